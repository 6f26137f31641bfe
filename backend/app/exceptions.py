"""
Prompt & Pause Backend — Custom Exception Hierarchy
====================================================

What:  Application-specific exceptions for the error scenarios of the API.
How:   Each exception carries a user-safe message and an optional context
       dict. Global handlers (registered in main.py) map them to HTTP status
       codes and a structured JSON body.
Who:   Raised by services and dependencies; caught by global handlers.

Exception Hierarchy:
    PromptPauseError (base)
    ├── ValidationError          → 400 Bad Request
    ├── AuthenticationError      → 401 Unauthorized
    ├── PermissionDeniedError    → 403 Forbidden
    │   └── QuotaExceededError   → 403 Forbidden (tier limit reached)
    ├── NotFoundError            → 404 Not Found
    ├── RateLimitExceededError   → 429 Too Many Requests
    ├── DeliveryError            → 502 Bad Gateway
    ├── LLMServiceError          → 503 Service Unavailable
    ├── CircuitBreakerOpenError  → 503 Service Unavailable
    └── DatabaseError            → 500 Internal Server Error
"""

from typing import Any, Dict, Optional


class PromptPauseError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(PromptPauseError):
    """
    Raised when client input fails a business rule.

    HTTP: 400. Schema-level problems are still reported by FastAPI as 422.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthenticationError(PromptPauseError):
    """Missing or invalid credentials (user header, admin key, cron secret). HTTP 401."""

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PermissionDeniedError(PromptPauseError):
    """The caller is known but not allowed to do this. HTTP 403."""

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class QuotaExceededError(PermissionDeniedError):
    """
    Raised when a free-tier allowance is used up.

    What:    Weekly reflection allowance or monthly prompt allowance reached.
    HTTP:    403 Forbidden, with `limit` and `used` in the details.
    """

    def __init__(
        self,
        message: str = "Usage limit reached",
        limit: Optional[int] = None,
        used: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if limit is not None:
            ctx["limit"] = limit
        if used is not None:
            ctx["used"] = used
        super().__init__(message=message, context=ctx)
        self.limit = limit
        self.used = used


class NotFoundError(PromptPauseError):
    """
    Raised when a requested resource does not exist.

    SQLAlchemy returns None for missing rows; services convert that into
    this exception so routes stay free of status-code logic.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class DeliveryError(PromptPauseError):
    """
    Raised when an outbound delivery (email or Slack) fails on a user-triggered
    request. Batch jobs record delivery failures in their results instead.
    HTTP: 502.
    """

    def __init__(
        self,
        message: str = "Message delivery failed",
        channel: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if channel:
            ctx["channel"] = channel
        super().__init__(message=message, context=ctx)
        self.channel = channel


class LLMServiceError(PromptPauseError):
    """
    Raised when the LLM (Gemini) service fails after all retries.

    HTTP: 503. `retry_after` carries the suggested wait when known.
    """

    def __init__(
        self,
        message: str = "AI prompt service is temporarily unavailable",
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if retry_after:
            ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class CircuitBreakerOpenError(PromptPauseError):
    """
    Raised when the circuit breaker is in OPEN state.

    How circuit breaker works:
        CLOSED (normal) → failures increment counter
        → After N failures → OPEN (reject all calls for the recovery timeout)
        → After the timeout → HALF-OPEN (allow one test call)
        → If test succeeds → CLOSED
        → If test fails → OPEN again
    """

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"AI service is temporarily unavailable due to repeated failures. "
            f"The service will automatically retry in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, context=ctx)
        self.recovery_time = recovery_time


class DatabaseError(PromptPauseError):
    """
    Raised when database operations fail unexpectedly.

    The message returned to the client is always generic; details are
    logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(PromptPauseError):
    """Caller exceeded the per-user / per-IP request rate limit. HTTP 429 + Retry-After."""

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
