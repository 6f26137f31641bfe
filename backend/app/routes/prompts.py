"""
Prompt & Pause Backend — Daily Prompt Routes
=============================================

What:  Fetch or generate the signed-in user's prompt for today.
How:   "Today" is the user's local date. Generation reuses an existing prompt
       and counts against the free monthly quota only when a new one is made.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.dependencies import get_current_profile
from app.models.profile import Profile
from app.schemas.common import ErrorResponse
from app.schemas.prompt import PromptResponse
from app.services.prompt_service import prompt_service
from app.services.timezones import local_today
from app.services.user_service import user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/prompts", tags=["Prompts"])


@router.get(
    "/today",
    response_model=PromptResponse,
    responses={404: {"description": "No prompt generated yet today", "model": ErrorResponse}},
    summary="Today's prompt, if one exists",
)
async def get_today_prompt(
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db_session),
) -> PromptResponse:
    today = local_today(datetime.now(timezone.utc), profile.tz_name)
    prompt = await prompt_service.get_today_prompt(db, profile.id, today)
    return PromptResponse.model_validate(prompt)


@router.post(
    "/generate",
    response_model=PromptResponse,
    responses={403: {"description": "Free monthly prompt limit reached", "model": ErrorResponse}},
    summary="Get or generate today's prompt",
)
async def generate_prompt(
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db_session),
) -> PromptResponse:
    today = local_today(datetime.now(timezone.utc), profile.tz_name)
    prefs = await user_service.find_preferences(db, profile.id)
    prompt = await prompt_service.get_or_create_today_prompt(
        db, profile, prefs, today, enforce_quota=True
    )
    return PromptResponse.model_validate(prompt)
