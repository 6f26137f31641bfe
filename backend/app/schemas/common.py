"""
Prompt & Pause Backend — Shared Response Schemas
=================================================

What:  Pydantic models used across route modules: error body, health body,
       simple acknowledgements.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Body returned by every global exception handler.

    Example:
        {
            "error": "quota_exceeded",
            "message": "Weekly limit reached. Free accounts can write 3 reflections per week.",
            "details": {"limit": 3, "used": 3},
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[Dict[str, Any]] = Field(default=None, description="Additional context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="healthy, degraded, or unhealthy")
    version: str = Field(description="API version")
    database: str = Field(description="connected or disconnected")
    ai: str = Field(description="available, unavailable, not_configured, or circuit_open")
    email: str = Field(description="configured or not_configured")
    uptime_seconds: float = Field(description="Seconds since the service started")


class MessageResponse(BaseModel):
    success: bool = True
    message: str
