"""
Prompt & Pause Backend — Admin Routes
======================================

What:  Back-office API. Every route requires the admin key plus an allow-listed
       X-Admin-Email; mutations are audited under that email.

    /api/admin/users                 GET list · GET/PATCH/DELETE /{user_id}
    /api/admin/subscriptions         GET list · GET /stats · GET /{user_id}
                                     POST /{user_id}/cancel
    /api/admin/support               GET list · GET /stats · GET/PATCH /{ticket_id}
                                     POST /{ticket_id}/responses
    /api/admin/cron-jobs             GET list · GET /stats · POST /trigger
    /api/admin/settings              GET list · PUT /{key}
"""

import logging
from datetime import date
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.dependencies import require_admin
from app.schemas.admin import (
    AdminUserDetail,
    AdminUserListResponse,
    AdminUserSummary,
    AdminUserUpdate,
    SubscriptionCancelRequest,
    SubscriptionDetail,
    SubscriptionListResponse,
    SubscriptionStats,
    SubscriptionSummary,
    SystemSettingResponse,
    SystemSettingUpdate,
)
from app.schemas.common import ErrorResponse
from app.schemas.cron import CronJobResult, CronJobRunListResponse, CronJobStats, CronTriggerRequest
from app.schemas.support import (
    SupportReplyRequest,
    SupportReplyResponse,
    SupportStats,
    SupportTicketDetail,
    SupportTicketListResponse,
    SupportTicketResponse,
    SupportTicketUpdate,
)
from app.services.admin_service import admin_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/admin",
    tags=["Admin"],
    responses={
        401: {"description": "Missing or invalid admin key", "model": ErrorResponse},
        403: {"description": "Email is not an admin", "model": ErrorResponse},
    },
)


# ── Users ─────────────────────────────────────────────────────────────────

@router.get("/users", response_model=AdminUserListResponse)
async def list_users(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    subscription_status: str | None = Query(default=None, description="'free' also matches NULL"),
    search: str | None = Query(default=None, description="Matches email or full name"),
    sort_by: str = Query(default="created_at"),
    sort_order: str = Query(default="desc"),
    admin_email: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> AdminUserListResponse:
    return await admin_service.list_users(
        db, limit=limit, offset=offset, subscription_status=subscription_status,
        search=search, sort_by=sort_by, sort_order=sort_order,
    )


@router.get("/users/{user_id}", response_model=AdminUserDetail)
async def get_user(
    user_id: UUID,
    admin_email: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> AdminUserDetail:
    return await admin_service.get_user(db, user_id)


@router.patch("/users/{user_id}", response_model=AdminUserSummary)
async def update_user(
    user_id: UUID,
    data: AdminUserUpdate,
    admin_email: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> AdminUserSummary:
    return await admin_service.update_user(db, user_id, data, admin_email)


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: UUID,
    admin_email: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await admin_service.delete_user(db, user_id, admin_email)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── Subscriptions ─────────────────────────────────────────────────────────

@router.get("/subscriptions", response_model=SubscriptionListResponse)
async def list_subscriptions(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    status_filter: str | None = Query(default=None, alias="status"),
    billing_cycle: str | None = Query(default=None),
    search: str | None = Query(default=None),
    admin_email: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> SubscriptionListResponse:
    return await admin_service.list_subscriptions(
        db, limit=limit, offset=offset, status=status_filter,
        billing_cycle=billing_cycle, search=search,
    )


@router.get("/subscriptions/stats", response_model=SubscriptionStats)
async def subscription_stats(
    admin_email: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> SubscriptionStats:
    return await admin_service.subscription_stats(db)


@router.get("/subscriptions/{user_id}", response_model=SubscriptionDetail)
async def get_subscription(
    user_id: UUID,
    admin_email: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> SubscriptionDetail:
    return await admin_service.get_subscription(db, user_id)


@router.post("/subscriptions/{user_id}/cancel", response_model=SubscriptionSummary)
async def cancel_subscription(
    user_id: UUID,
    data: SubscriptionCancelRequest,
    admin_email: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> SubscriptionSummary:
    return await admin_service.cancel_subscription(db, user_id, admin_email, reason=data.reason)


# ── Support ───────────────────────────────────────────────────────────────

@router.get("/support", response_model=SupportTicketListResponse)
async def list_tickets(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    status_filter: str | None = Query(default=None, alias="status"),
    priority: str | None = Query(default=None),
    search: str | None = Query(default=None, description="Matches subject or description"),
    admin_email: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> SupportTicketListResponse:
    return await admin_service.list_tickets(
        db, limit=limit, offset=offset, status=status_filter, priority=priority, search=search
    )


@router.get("/support/stats", response_model=SupportStats)
async def support_stats(
    admin_email: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> SupportStats:
    return await admin_service.support_stats(db)


@router.get("/support/{ticket_id}", response_model=SupportTicketDetail)
async def get_ticket(
    ticket_id: UUID,
    admin_email: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> SupportTicketDetail:
    return await admin_service.get_ticket(db, ticket_id)


@router.patch("/support/{ticket_id}", response_model=SupportTicketResponse)
async def update_ticket(
    ticket_id: UUID,
    data: SupportTicketUpdate,
    admin_email: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> SupportTicketResponse:
    return await admin_service.update_ticket(db, ticket_id, data, admin_email)


@router.post(
    "/support/{ticket_id}/responses",
    response_model=SupportReplyResponse,
    status_code=status.HTTP_201_CREATED,
)
async def respond_to_ticket(
    ticket_id: UUID,
    data: SupportReplyRequest,
    admin_email: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> SupportReplyResponse:
    return await admin_service.respond_to_ticket(
        db, ticket_id, data.message, admin_email, is_internal=data.is_internal
    )


# ── Cron monitoring ───────────────────────────────────────────────────────

@router.get("/cron-jobs", response_model=CronJobRunListResponse)
async def list_cron_runs(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    job_name: str | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    admin_email: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> CronJobRunListResponse:
    return await admin_service.list_cron_runs(
        db, limit=limit, offset=offset, job_name=job_name, status=status_filter,
        start_date=start_date, end_date=end_date,
    )


@router.get("/cron-jobs/stats", response_model=CronJobStats)
async def cron_stats(
    admin_email: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> CronJobStats:
    return await admin_service.cron_stats(db)


@router.post("/cron-jobs/trigger", response_model=CronJobResult)
async def trigger_cron_job(
    data: CronTriggerRequest,
    admin_email: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> CronJobResult:
    return await admin_service.trigger_job(db, data.job_name, admin_email)


# ── System settings ───────────────────────────────────────────────────────

@router.get("/settings", response_model=List[SystemSettingResponse])
async def list_settings(
    admin_email: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> List[SystemSettingResponse]:
    return await admin_service.list_settings(db)


@router.put(
    "/settings/{key}",
    response_model=SystemSettingResponse,
    responses={404: {"description": "Unknown setting", "model": ErrorResponse}},
)
async def update_setting(
    key: str,
    data: SystemSettingUpdate,
    admin_email: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> SystemSettingResponse:
    return await admin_service.update_setting(db, key, data.value, admin_email)
