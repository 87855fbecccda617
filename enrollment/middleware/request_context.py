"""Request context middleware: one ID per request, carried into every log line.

An incoming X-Request-ID is honored so the web layer in front of this
service can correlate its own logs; otherwise a UUID is generated.  The
ID is echoed on the response, including 401/403/404 rejections.

Each request ends with one summary line.  Probe and scrape paths log at
DEBUG so /health polling does not drown the ledger events; 5xx responses
log at WARNING.
"""

from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from enrollment.core.logging import request_id_var

logger = logging.getLogger(__name__)

_QUIET_PATHS = frozenset({"/health", "/ready", "/metrics"})


def _summary_level(path: str, status_code: int) -> int:
    if status_code >= 500:
        return logging.WARNING
    if path in _QUIET_PATHS:
        return logging.DEBUG
    return logging.INFO


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        token = request_id_var.set(req_id)
        try:
            start = time.monotonic()
            response = await call_next(request)
            duration_ms = round((time.monotonic() - start) * 1000, 1)

            path = request.url.path
            logger.log(
                _summary_level(path, response.status_code),
                "%s %s -> %d (%.1fms)",
                request.method,
                path,
                response.status_code,
                duration_ms,
                extra={
                    "method": request.method,
                    "path": path,
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                },
            )
        finally:
            request_id_var.reset(token)

        response.headers["X-Request-ID"] = req_id
        return response
