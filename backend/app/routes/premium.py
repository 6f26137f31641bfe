"""
Prompt & Pause Backend — Premium Feature Routes
================================================

What:  Mood analytics and the weekly AI digest. Both return 403 for free users.

    GET  /api/premium/mood-analytics?days=30
    GET  /api/premium/weekly-digest?week_offset=0&refresh=false
    POST /api/premium/weekly-digest          build + deliver by email/Slack
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.dependencies import get_current_profile
from app.models.profile import Profile
from app.schemas.common import ErrorResponse
from app.schemas.digest import DigestSendRequest, DigestSendResponse, WeeklyDigestResponse
from app.schemas.reflection import MoodAnalyticsResponse
from app.services.digest_service import digest_service
from app.services.reflection_service import reflection_service
from app.services.user_service import user_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/premium",
    tags=["Premium"],
    responses={403: {"description": "Premium plan required", "model": ErrorResponse}},
)


@router.get("/mood-analytics", response_model=MoodAnalyticsResponse)
async def mood_analytics(
    days: int = Query(default=30, ge=1, le=365),
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db_session),
) -> MoodAnalyticsResponse:
    return await reflection_service.get_mood_analytics(db, profile, days=days)


@router.get("/weekly-digest", response_model=WeeklyDigestResponse)
async def get_weekly_digest(
    week_offset: int = Query(default=0, ge=-52, le=0, description="0 = this week, -1 = last week"),
    refresh: bool = Query(default=False, description="Regenerate insights even if cached"),
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db_session),
) -> WeeklyDigestResponse:
    return await digest_service.get_weekly_digest(db, profile, week_offset=week_offset, refresh=refresh)


@router.post("/weekly-digest", response_model=DigestSendResponse)
async def send_weekly_digest(
    data: DigestSendRequest,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db_session),
) -> DigestSendResponse:
    prefs = await user_service.find_preferences(db, profile.id)
    return await digest_service.send_weekly_digest(
        db,
        profile,
        prefs,
        week_offset=data.week_offset,
        send_email=data.send_email,
        send_slack=data.send_slack,
    )
