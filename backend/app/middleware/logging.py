"""
Prompt & Pause Backend — Access Log Middleware
===============================================

One line per request on the `promptpause.access` logger:

    POST /api/reflections 201 23.4ms rid=a1b2c3d4 user=9f0c...

Level follows the status class (5xx ERROR, 4xx WARNING, else INFO).
Bodies are never logged: reflections are personal writing. /health is
skipped because uptime monitors poll it constantly.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.middleware.request_id import request_id_var

logger = logging.getLogger("promptpause.access")

QUIET_PATHS = {"/health"}


def level_for(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        rid = request_id_var.get("")
        user = request.headers.get("X-User-Id") or "-"
        logger.log(
            level_for(response.status_code),
            "%s %s %d %.1fms rid=%s user=%s",
            request.method,
            path,
            response.status_code,
            elapsed_ms,
            rid,
            user,
            extra={
                "request_id": rid,
                "user_id": user,
                "status": response.status_code,
                "duration_ms": round(elapsed_ms, 2),
            },
        )
        return response
