"""
Prompt & Pause Backend — Request ID Middleware
===============================================

What:  Assigns each request a short correlation ID and echoes it back.
How:   Uses the client's X-Request-ID when present, otherwise a short uuid.
       Stored in a ContextVar so loggers and error handlers can read it.

Error responses carry the same ID in their `request_id` field, so a user
reporting a problem through /api/support/contact can quote it.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests share a thread but not this value
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Middleware that assigns a unique ID to each request for tracing."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])

        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid

        return response
