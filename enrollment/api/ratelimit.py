"""Rate limiting dependency for FastAPI routes.

A dependency rather than middleware: only the routes that declare it are
limited, and it can key on the authenticated Principal because FastAPI
resolves ``require_user`` once per request and shares the result.

X-RateLimit-* headers are set on every limited response so clients can
throttle themselves before hitting 429.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Response, status

from enrollment.api.dependencies import require_user
from enrollment.core.metrics import RATE_LIMIT_HITS
from enrollment.models.principal import Principal
from enrollment.services import rate_limiter as rate_limiter_module
from enrollment.services.rate_limiter import RateLimitConfig, RateLimitResult

logger = logging.getLogger(__name__)


def require_rate_limit(scope: str, config: RateLimitConfig):
    """Dependency factory: ``config.limit`` calls per window per caller.

    Usage: dependencies=[Depends(require_rate_limit("redeem", REDEEM_LIMIT))]
    """

    async def _check(
        response: Response,
        principal: Annotated[Principal, Depends(require_user)],
    ) -> None:
        key = f"{scope}:{principal.user_id}"
        result: RateLimitResult = await rate_limiter_module.rate_limiter.check(
            key, config
        )
        response.headers["X-RateLimit-Limit"] = str(result.limit)
        response.headers["X-RateLimit-Remaining"] = str(result.remaining)

        if not result.allowed:
            RATE_LIMIT_HITS.labels(scope=scope).inc()
            logger.warning("Rate limit exceeded scope=%s user=%s", scope, principal.user_id)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail={"code": "RATE_LIMITED", "message": "Rate limit exceeded"},
                headers={
                    "Retry-After": str(int(result.retry_after) + 1),
                    "X-RateLimit-Limit": str(result.limit),
                    "X-RateLimit-Remaining": "0",
                },
            )

    return _check
