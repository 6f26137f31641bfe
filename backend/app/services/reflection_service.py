"""
Prompt & Pause Backend — Reflection Service
============================================

What:  CRUD for reflections plus per-user statistics and mood analytics.
How:   Tier rules come from app.services.tier, calculations from
       app.services.analytics; this module owns the queries.
Who:   /api/reflections routes and /api/premium/mood-analytics.

Business rules:
    - Free users may write 3 reflections per week (Monday 00:00 UTC reset);
      premium users 7.
    - Free users only see their 50 most recent reflections.
    - Every read and write is scoped to the owning user; another user's
      reflection is reported as not found.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import (
    DatabaseError,
    NotFoundError,
    PermissionDeniedError,
    PromptPauseError,
    QuotaExceededError,
    ValidationError,
)
from app.models.profile import Profile
from app.models.reflection import Reflection
from app.schemas.reflection import (
    DailyMood,
    MoodAnalyticsResponse,
    MoodCount,
    ReflectionCreate,
    ReflectionListResponse,
    ReflectionResponse,
    ReflectionStats,
    ReflectionUpdate,
)
from app.services import analytics, tier
from app.services.prompt_service import prompt_service
from app.services.timezones import local_today

logger = logging.getLogger(__name__)

MAX_TAGS = 10
MAX_TAG_LENGTH = 50


def clean_tags(tags: Optional[List[str]]) -> List[str]:
    """Trim, drop empties and duplicates (case-insensitive), cap at MAX_TAGS."""
    result: List[str] = []
    seen = set()
    for tag in tags or []:
        value = (tag or "").strip()[:MAX_TAG_LENGTH]
        key = value.lower()
        if value and key not in seen:
            seen.add(key)
            result.append(value)
    return result[:MAX_TAGS]


class ReflectionService:

    async def count_this_week(self, db: AsyncSession, user_id: UUID, now: datetime) -> int:
        since = tier.start_of_day_utc(tier.week_start(now.astimezone(timezone.utc).date()))
        result = await db.execute(
            select(func.count(Reflection.id)).where(
                Reflection.user_id == user_id,
                Reflection.created_at >= since,
            )
        )
        return result.scalar() or 0

    async def create_reflection(
        self,
        db: AsyncSession,
        profile: Profile,
        data: ReflectionCreate,
        now: Optional[datetime] = None,
    ) -> ReflectionResponse:
        """
        Save a reflection and mark the answered prompt as used.

        Raises:
            ValidationError: Blank prompt or reflection text.
            QuotaExceededError: Weekly allowance for the tier is used up.
            DatabaseError: Query or insert failed.
        """
        now = now or datetime.now(timezone.utc)
        if not data.prompt_text.strip() or not data.reflection_text.strip():
            raise ValidationError(
                message="Prompt text and reflection text are required",
                field="reflection_text",
            )

        user_tier = "premium" if tier.is_premium(profile, now=now) else "free"

        try:
            used = await self.count_this_week(db, profile.id, now)
            if not tier.can_create_reflection(used, user_tier):
                allowance = tier.weekly_prompt_allowance(user_tier)
                raise QuotaExceededError(
                    message=(
                        f"Weekly limit reached. Your plan includes {allowance} "
                        f"reflections per week; the count resets on Monday."
                    ),
                    limit=allowance,
                    used=used,
                    context={"tier": user_tier},
                )

            entry_date = data.date or local_today(now, profile.tz_name)
            reflection = Reflection(
                user_id=profile.id,
                prompt_id=data.prompt_id,
                prompt_text=data.prompt_text.strip(),
                reflection_text=data.reflection_text,
                mood=analytics.validate_mood(data.mood or analytics.DEFAULT_MOOD),
                tags=clean_tags(data.tags),
                word_count=(
                    data.word_count
                    if data.word_count is not None
                    else analytics.count_words(data.reflection_text)
                ),
                feedback=data.feedback,
                date=entry_date,
                created_at=now,
                updated_at=now,
            )
            db.add(reflection)
            await db.flush()

            await prompt_service.mark_used(db, profile.id, entry_date, prompt_id=data.prompt_id)

            logger.info(
                "Reflection %s saved for user %s (%d words, week count %d)",
                reflection.id,
                profile.id,
                reflection.word_count,
                used + 1,
            )
            return ReflectionResponse.model_validate(reflection)

        except PromptPauseError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error saving reflection: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not save your reflection. Please try again.",
                context={"user_id": str(profile.id)},
            )

    async def list_reflections(
        self,
        db: AsyncSession,
        profile: Profile,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> ReflectionListResponse:
        """
        Newest-first listing. Date filters apply only when both bounds are given.
        Free users never page past their archive limit.
        """
        cap = tier.archive_limit("premium" if tier.is_premium(profile) else "free")

        filters = [Reflection.user_id == profile.id]
        if start_date and end_date:
            if start_date > end_date:
                raise ValidationError(
                    message="start_date must be on or before end_date", field="start_date"
                )
            filters += [Reflection.date >= start_date, Reflection.date <= end_date]

        try:
            count_result = await db.execute(select(func.count(Reflection.id)).where(*filters))
            total = count_result.scalar() or 0
            if cap is not None:
                total = min(total, cap)
                limit = max(0, min(limit, cap - offset))

            reflections: List[Reflection] = []
            if limit > 0:
                result = await db.execute(
                    select(Reflection)
                    .where(*filters)
                    .order_by(Reflection.date.desc(), Reflection.created_at.desc())
                    .offset(offset)
                    .limit(limit)
                )
                reflections = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing reflections: %s", str(e), exc_info=True)
            raise DatabaseError(message="Could not retrieve reflections. Please try again.")

        return ReflectionListResponse(
            reflections=[ReflectionResponse.model_validate(r) for r in reflections],
            total_count=total,
            archive_limit=cap,
        )

    async def _get_owned(self, db: AsyncSession, user_id: UUID, reflection_id: UUID) -> Reflection:
        try:
            result = await db.execute(
                select(Reflection).where(
                    Reflection.id == reflection_id,
                    Reflection.user_id == user_id,
                )
            )
            reflection = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error fetching reflection %s: %s", reflection_id, str(e))
            raise DatabaseError(context={"reflection_id": str(reflection_id)})

        if reflection is None:
            raise NotFoundError(resource="reflection", resource_id=str(reflection_id))
        return reflection

    async def get_reflection(
        self, db: AsyncSession, user_id: UUID, reflection_id: UUID
    ) -> ReflectionResponse:
        return ReflectionResponse.model_validate(await self._get_owned(db, user_id, reflection_id))

    async def update_reflection(
        self,
        db: AsyncSession,
        user_id: UUID,
        reflection_id: UUID,
        data: ReflectionUpdate,
    ) -> ReflectionResponse:
        reflection = await self._get_owned(db, user_id, reflection_id)

        if data.reflection_text is not None:
            if not data.reflection_text.strip():
                raise ValidationError(message="Reflection text cannot be blank", field="reflection_text")
            reflection.reflection_text = data.reflection_text
            reflection.word_count = analytics.count_words(data.reflection_text)
        if data.mood is not None:
            reflection.mood = analytics.validate_mood(data.mood)
        if data.tags is not None:
            reflection.tags = clean_tags(data.tags)
        if data.feedback is not None:
            reflection.feedback = data.feedback
        reflection.updated_at = datetime.now(timezone.utc)

        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error updating reflection %s: %s", reflection_id, str(e))
            raise DatabaseError(message="Could not update the reflection. Please try again.")
        return ReflectionResponse.model_validate(reflection)

    async def delete_reflection(self, db: AsyncSession, user_id: UUID, reflection_id: UUID) -> None:
        reflection = await self._get_owned(db, user_id, reflection_id)
        try:
            await db.delete(reflection)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error deleting reflection %s: %s", reflection_id, str(e))
            raise DatabaseError(message="Could not delete the reflection. Please try again.")
        logger.info("Reflection %s deleted by user %s", reflection_id, user_id)

    async def entry_dates(self, db: AsyncSession, user_id: UUID) -> List[date]:
        result = await db.execute(
            select(Reflection.date).where(Reflection.user_id == user_id).distinct()
        )
        return list(result.scalars().all())

    async def get_stats(
        self, db: AsyncSession, profile: Profile, now: Optional[datetime] = None
    ) -> ReflectionStats:
        """Counts for today (UTC), the last 7 days, all time, and streaks."""
        now = now or datetime.now(timezone.utc)
        midnight = tier.start_of_day_utc(now.astimezone(timezone.utc).date())
        week_ago = now - timedelta(days=7)

        def count_since(since: Optional[datetime]):
            stmt = select(func.count(Reflection.id)).where(Reflection.user_id == profile.id)
            if since is not None:
                stmt = stmt.where(Reflection.created_at >= since)
            return stmt

        try:
            today_count = (await db.execute(count_since(midnight))).scalar() or 0
            week_count = (await db.execute(count_since(week_ago))).scalar() or 0
            total = (await db.execute(count_since(None))).scalar() or 0
            dates = await self.entry_dates(db, profile.id)
        except SQLAlchemyError as e:
            logger.error("Database error computing stats for %s: %s", profile.id, str(e))
            raise DatabaseError(message="Could not load your stats. Please try again.")

        today = local_today(now, profile.tz_name)
        return ReflectionStats(
            today=today_count,
            last_7_days=week_count,
            total=total,
            current_streak=analytics.calculate_current_streak(dates, today),
            longest_streak=analytics.calculate_longest_streak(dates),
        )

    async def get_mood_analytics(
        self,
        db: AsyncSession,
        profile: Profile,
        days: int = 30,
        now: Optional[datetime] = None,
    ) -> MoodAnalyticsResponse:
        """
        Mood distribution, daily series, most common mood and trend over `days`.

        Raises:
            PermissionDeniedError: Mood analytics are a premium feature.
        """
        now = now or datetime.now(timezone.utc)
        if not tier.is_premium(profile, now=now):
            raise PermissionDeniedError(
                message="Mood analytics are available on the premium plan.",
                context={"feature": "mood_analytics"},
            )

        today = local_today(now, profile.tz_name)
        start = today - timedelta(days=days)
        try:
            result = await db.execute(
                select(Reflection.date, Reflection.mood)
                .where(
                    Reflection.user_id == profile.id,
                    Reflection.date >= start,
                    Reflection.date <= today,
                )
                .order_by(Reflection.date.asc(), Reflection.created_at.asc())
            )
            rows = result.all()
        except SQLAlchemyError as e:
            logger.error("Database error loading moods for %s: %s", profile.id, str(e))
            raise DatabaseError(message="Could not load mood analytics. Please try again.")

        entries = [(r.date, analytics.validate_mood(r.mood)) for r in rows if r.mood]
        overall = analytics.mood_distribution(m for _, m in entries)

        return MoodAnalyticsResponse(
            days=days,
            overall=[MoodCount(**item) for item in overall],
            daily=[DailyMood(date=d, mood=m) for d, m in entries],
            most_common=overall[0]["mood"] if overall else None,
            trend=analytics.calculate_mood_trend(entries),
        )


reflection_service = ReflectionService()
