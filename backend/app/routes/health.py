"""
Prompt & Pause Backend — Health Check Route
============================================

What:  Liveness/readiness probe for the container platform and uptime checks.
How:   Probes the database with SELECT 1, reports the AI provider (including
       circuit breaker state) and whether email delivery is configured.
Who:   Docker health checks, load balancers, monitoring.

Status levels:
    - healthy:   database reachable and AI available
    - degraded:  database reachable, AI down or circuit open (prompts fall back)
    - unhealthy: database unreachable
"""

import logging
import time

from fastapi import APIRouter
from sqlalchemy import text

from app import __version__
from app.database import engine
from app.schemas.common import HealthResponse
from app.services.email_service import email_service
from app.services.gemini_service import gemini_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check() -> HealthResponse:
    db_status = "connected"
    ai_status = "available"
    overall = "healthy"

    # ── Database ──────────────────────────────────────────────────────────
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    # ── AI provider ───────────────────────────────────────────────────────
    if not gemini_service.is_configured:
        ai_status = "not_configured"
    elif gemini_service.circuit_breaker.state == "open":
        ai_status = "circuit_open"
    else:
        try:
            if not await gemini_service.health_check():
                ai_status = "unavailable"
        except Exception as e:
            ai_status = "unavailable"
            logger.warning("Health check: Gemini unreachable: %s", str(e))

    if ai_status != "available" and overall == "healthy":
        overall = "degraded"

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        ai=ai_status,
        email="configured" if email_service.is_configured else "not_configured",
        uptime_seconds=round(time.time() - _start_time, 2),
    )
