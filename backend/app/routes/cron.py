"""
Prompt & Pause Backend — Cron Trigger Routes
=============================================

What:  Entry points for the external scheduler.

    POST /api/cron/{job}                 Authorization: Bearer <CRON_SECRET>
    GET  /api/cron/{job}?ts=..&sig=..    signed trigger for header-less schedulers
    GET  /api/cron/{job}                 unsigned: describes the endpoint, runs nothing

These routes are excluded from the per-IP rate limiter.
"""

import logging
from typing import Optional, Union

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.dependencies import require_cron, verify_cron_signature
from app.exceptions import ValidationError
from app.schemas.common import ErrorResponse
from app.schemas.cron import CronEndpointInfo, CronJobResult
from app.services import cron_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/cron",
    tags=["Cron"],
    responses={401: {"description": "Missing or invalid cron secret", "model": ErrorResponse}},
)


def _check_job(job: str) -> None:
    if job not in cron_service.JOBS:
        raise ValidationError(
            message=f"Unknown cron job '{job}'",
            field="job",
            context={"available_jobs": sorted(cron_service.JOBS)},
        )


@router.post("/{job}", response_model=CronJobResult, dependencies=[Depends(require_cron)])
async def trigger_job(job: str, db: AsyncSession = Depends(get_db_session)) -> CronJobResult:
    _check_job(job)
    logger.info("Cron trigger received for %s", job)
    return await cron_service.run_job(db, job)


@router.get("/{job}", response_model=Union[CronJobResult, CronEndpointInfo])
async def signed_trigger_or_info(
    job: str,
    ts: Optional[str] = Query(default=None, description="Unix timestamp (seconds)"),
    sig: Optional[str] = Query(default=None, description="Hex HMAC-SHA256 of ts"),
    db: AsyncSession = Depends(get_db_session),
) -> Union[CronJobResult, CronEndpointInfo]:
    _check_job(job)
    if verify_cron_signature(ts, sig):
        logger.info("Signed cron trigger received for %s", job)
        return await cron_service.run_job(db, job)

    if ts or sig:
        logger.warning("Rejected cron signature for %s (ts=%s)", job, ts)
    return CronEndpointInfo(job=job, available_jobs=sorted(cron_service.JOBS))
