"""
Prompt & Pause Backend — User Settings & Support Routes
========================================================

    GET  /api/user/preferences    defaults are created on first read
    PUT  /api/user/preferences    partial update
    POST /api/support/contact     open a support ticket
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.dependencies import get_current_profile
from app.models.profile import Profile
from app.schemas.common import ErrorResponse
from app.schemas.prompt import PreferencesResponse, PreferencesUpdate
from app.schemas.support import SupportContactRequest, SupportTicketResponse
from app.services.user_service import user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["User"])


@router.get("/user/preferences", response_model=PreferencesResponse)
async def get_preferences(
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db_session),
) -> PreferencesResponse:
    prefs = await user_service.get_or_create_preferences(db, profile.id)
    return PreferencesResponse.model_validate(prefs)


@router.put(
    "/user/preferences",
    response_model=PreferencesResponse,
    responses={
        400: {"description": "Invalid Slack webhook or missing URL", "model": ErrorResponse},
        403: {"description": "Slack delivery requires premium", "model": ErrorResponse},
    },
)
async def update_preferences(
    data: PreferencesUpdate,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db_session),
) -> PreferencesResponse:
    prefs = await user_service.update_preferences(db, profile, data)
    return PreferencesResponse.model_validate(prefs)


@router.post(
    "/support/contact",
    response_model=SupportTicketResponse,
    status_code=status.HTTP_201_CREATED,
)
async def contact_support(
    data: SupportContactRequest,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db_session),
) -> SupportTicketResponse:
    ticket = await user_service.create_support_ticket(db, profile, data)
    return SupportTicketResponse.model_validate(ticket)
