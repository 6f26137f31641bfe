"""
Prompt & Pause Backend — Rate Limiting Middleware
==================================================

What:  Sliding-window request limit per caller.
How:   Callers are keyed by client IP (first X-Forwarded-For hop when behind
       the platform proxy). X-User-Id is not used: it is client-supplied and
       unverified at this point. Each key holds a deque of request times for
       the last RATE_LIMIT_WINDOW seconds.
When:  First in the middleware chain.

Exempt:
    - /health and the API docs
    - /api/cron/*: the scheduler fires several jobs from one address and is
      authenticated by the cron secret

Counts live in process memory; each worker limits independently.
"""

import logging
import time
from collections import deque
from typing import Deque, Dict

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from app.config import settings
from app.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)

EXCLUDED_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}
EXCLUDED_PREFIXES = ("/api/cron/",)

# sweep idle keys every N admitted requests
SWEEP_EVERY = 1000


def is_exempt(path: str) -> bool:
    return path in EXCLUDED_PATHS or path.startswith(EXCLUDED_PREFIXES)


def caller_key(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"
    return f"ip:{request.client.host if request.client else 'unknown'}"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Rejects a caller's request once RATE_LIMIT_REQUESTS have been admitted
    inside the window. The 429 body has the same shape as the API's other
    errors, with `retry_after` in details and a Retry-After header.
    """

    def __init__(self, app, **kwargs):
        super().__init__(app, **kwargs)
        self._hits: Dict[str, Deque[float]] = {}
        self._admitted = 0

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if is_exempt(request.url.path):
            return await call_next(request)

        key = caller_key(request)
        now = time.monotonic()
        window = settings.rate_limit_window
        hits = self._hits.setdefault(key, deque())
        while hits and hits[0] <= now - window:
            hits.popleft()

        if len(hits) >= settings.rate_limit_requests:
            error = RateLimitExceededError(retry_after=int(hits[0] + window - now) + 1)
            logger.warning("Rate limit exceeded for %s (%d in %ds)", key, len(hits), window)
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": error.message,
                    "details": error.context,
                },
                headers={"Retry-After": str(error.retry_after)},
            )

        hits.append(now)
        self._admitted += 1
        if self._admitted % SWEEP_EVERY == 0:
            self._sweep(now - window)

        response = await call_next(request)
        response.headers["X-RateLimit-Remaining"] = str(settings.rate_limit_requests - len(hits))
        return response

    def _sweep(self, cutoff: float) -> None:
        idle = [key for key, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for key in idle:
            del self._hits[key]
        if idle:
            logger.debug("Dropped %d idle rate-limit keys", len(idle))
