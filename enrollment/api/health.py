"""Health and readiness endpoints.

/health (liveness) answers 200 whenever the process can respond; the
body reports each dependency so a degraded Redis or database is visible
without triggering a restart.

/ready (readiness) answers 503 when the database is configured but
unreachable: without it no ledger operation can succeed.  Redis is not
critical, every Redis-backed feature has an in-memory fallback.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response, status
from sqlalchemy import text

from enrollment.db import engine as engine_module
from enrollment.db import redis as redis_module

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _check_database() -> str:
    engine = engine_module.engine
    if engine is None:
        return "not_configured"
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Database health check failed")
        return "degraded"
    return "ok"


async def _check_redis() -> str:
    pool = redis_module.redis_pool
    if pool is None:
        return "not_configured"
    try:
        await pool.ping()  # type: ignore[misc]
    except Exception:
        logger.exception("Redis health check failed")
        return "degraded"
    return "ok"


@router.get("/health")
async def health() -> dict:
    checks = {"database": await _check_database(), "redis": await _check_redis()}
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    if await _check_database() == "degraded":
        return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(status_code=status.HTTP_200_OK)
