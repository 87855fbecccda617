from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from enrollment.api.admin import router as admin_router
from enrollment.api.balance import router as balance_router
from enrollment.api.content import router as content_router
from enrollment.api.courses import router as courses_router
from enrollment.api.health import router as health_router
from enrollment.api.metrics_endpoint import router as metrics_router
from enrollment.api.purchases import router as purchases_router
from enrollment.api.quizzes import router as quizzes_router
from enrollment.core.config import SETTINGS
from enrollment.core.logging import setup_logging
from enrollment.db.engine import lifespan_db
from enrollment.db.redis import lifespan_redis
from enrollment.middleware.metrics import MetricsMiddleware
from enrollment.middleware.request_context import RequestContextMiddleware

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order.
    async with lifespan_db():
        async with lifespan_redis():
            yield


app = FastAPI(
    title="enrollment-core",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

# Last added runs first: RequestContext (outermost) -> Metrics -> route.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(admin_router)
app.include_router(balance_router)
app.include_router(courses_router)
app.include_router(content_router)
app.include_router(purchases_router)
app.include_router(quizzes_router)

logger.info(
    "enrollment-core started  env=%s log_level=%s port=%d docs=%s store=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
    "postgres" if SETTINGS.database_url else "memory",
)
