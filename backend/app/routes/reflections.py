"""
Prompt & Pause Backend — Reflection Routes
===========================================

What:  CRUD and stats for the signed-in user's reflections.
How:   Thin handlers; tier limits, ownership and counting live in
       ReflectionService.

    GET    /api/reflections          list (archive-limited for free users)
    POST   /api/reflections          create (weekly allowance enforced)
    GET    /api/reflections/stats    today / last 7 days / total / streaks
    GET    /api/reflections/{id}     detail
    PATCH  /api/reflections/{id}     edit text, mood, tags or feedback
    DELETE /api/reflections/{id}     delete
"""

import logging
from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.dependencies import get_current_profile
from app.models.profile import Profile
from app.schemas.common import ErrorResponse
from app.schemas.reflection import (
    ReflectionCreate,
    ReflectionListResponse,
    ReflectionResponse,
    ReflectionStats,
    ReflectionUpdate,
)
from app.services.reflection_service import reflection_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reflections", tags=["Reflections"])


@router.get(
    "",
    response_model=ReflectionListResponse,
    summary="List reflections, newest first",
)
async def list_reflections(
    response: Response,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    start_date: date | None = Query(default=None, description="Applied only together with end_date"),
    end_date: date | None = Query(default=None, description="Applied only together with start_date"),
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db_session),
) -> ReflectionListResponse:
    result = await reflection_service.list_reflections(
        db, profile, start_date=start_date, end_date=end_date, limit=limit, offset=offset
    )
    response.headers["X-Total-Count"] = str(result.total_count)
    return result


@router.post(
    "",
    response_model=ReflectionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Blank text or invalid field", "model": ErrorResponse},
        403: {"description": "Weekly reflection limit reached", "model": ErrorResponse},
    },
    summary="Save a reflection",
)
async def create_reflection(
    data: ReflectionCreate,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db_session),
) -> ReflectionResponse:
    return await reflection_service.create_reflection(db, profile, data)


@router.get("/stats", response_model=ReflectionStats, summary="Reflection counts and streaks")
async def reflection_stats(
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db_session),
) -> ReflectionStats:
    return await reflection_service.get_stats(db, profile)


@router.get(
    "/{reflection_id}",
    response_model=ReflectionResponse,
    responses={404: {"description": "Reflection not found", "model": ErrorResponse}},
)
async def get_reflection(
    reflection_id: UUID,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db_session),
) -> ReflectionResponse:
    return await reflection_service.get_reflection(db, profile.id, reflection_id)


@router.patch(
    "/{reflection_id}",
    response_model=ReflectionResponse,
    responses={404: {"description": "Reflection not found", "model": ErrorResponse}},
)
async def update_reflection(
    reflection_id: UUID,
    data: ReflectionUpdate,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db_session),
) -> ReflectionResponse:
    return await reflection_service.update_reflection(db, profile.id, reflection_id, data)


@router.delete(
    "/{reflection_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"description": "Reflection not found", "model": ErrorResponse}},
)
async def delete_reflection(
    reflection_id: UUID,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await reflection_service.delete_reflection(db, profile.id, reflection_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
