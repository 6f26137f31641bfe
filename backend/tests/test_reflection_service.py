"""
Prompt & Pause Backend — Reflection Service Unit Tests
=======================================================

What:  Tests for ReflectionService with a mocked database session.

What we test:
    ✅ Weekly allowance per tier (free 3, premium 7)
    ✅ Mood / tag / word count normalization on create and update
    ✅ Free archive limit on listing
    ✅ Ownership (missing or foreign reflection → NotFoundError)
    ✅ Stats and premium-only mood analytics
"""

from collections import namedtuple
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from app.exceptions import (
    DatabaseError,
    NotFoundError,
    PermissionDeniedError,
    QuotaExceededError,
    ValidationError,
)
from app.schemas.reflection import ReflectionCreate, ReflectionUpdate
from app.services.reflection_service import ReflectionService, clean_tags

NOW = datetime(2025, 3, 12, 9, 15, tzinfo=timezone.utc)
MoodRow = namedtuple("MoodRow", ["date", "mood"])


class TestCleanTags:

    def test_trims_and_dedupes_case_insensitively(self):
        assert clean_tags([" Work ", "work", "", "Sleep", None]) == ["Work", "Sleep"]

    def test_caps_count_and_length(self):
        tags = [f"tag{i}" for i in range(15)] + ["x" * 80]
        cleaned = clean_tags(tags)
        assert len(cleaned) == 10
        assert clean_tags(["y" * 80]) == ["y" * 50]

    def test_none(self):
        assert clean_tags(None) == []


class TestCreateReflection:

    def setup_method(self):
        self.service = ReflectionService()
        self.data = ReflectionCreate(
            prompt_text="What drained you today?",
            reflection_text="Back to back meetings and no lunch",
            tags=["work", "Work", " energy "],
        )

    @pytest.mark.asyncio
    async def test_create_under_allowance(self, mock_db_session, make_result, make_profile):
        profile = make_profile()
        mock_db_session.execute.side_effect = [make_result(scalar=2), MagicMock()]

        result = await self.service.create_reflection(mock_db_session, profile, self.data, now=NOW)

        assert result.mood == "😊"
        assert result.tags == ["work", "energy"]
        assert result.word_count == 7
        assert result.date == date(2025, 3, 12)
        mock_db_session.add.assert_called_once()
        # second execute marks the prompt as used
        assert mock_db_session.execute.await_count == 2

    @pytest.mark.asyncio
    async def test_free_user_weekly_limit(self, mock_db_session, make_result, make_profile):
        mock_db_session.execute.return_value = make_result(scalar=3)

        with pytest.raises(QuotaExceededError) as exc_info:
            await self.service.create_reflection(mock_db_session, make_profile(), self.data, now=NOW)

        assert exc_info.value.limit == 3
        assert exc_info.value.used == 3
        assert exc_info.value.context["tier"] == "free"
        mock_db_session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_premium_user_has_higher_allowance(self, mock_db_session, make_result, premium_profile):
        mock_db_session.execute.side_effect = [make_result(scalar=3), MagicMock()]

        result = await self.service.create_reflection(mock_db_session, premium_profile, self.data, now=NOW)
        assert result.reflection_text == self.data.reflection_text

    @pytest.mark.asyncio
    async def test_premium_user_weekly_limit(self, mock_db_session, make_result, premium_profile):
        mock_db_session.execute.return_value = make_result(scalar=7)

        with pytest.raises(QuotaExceededError) as exc_info:
            await self.service.create_reflection(mock_db_session, premium_profile, self.data, now=NOW)
        assert exc_info.value.limit == 7

    @pytest.mark.asyncio
    async def test_unknown_mood_and_explicit_fields(self, mock_db_session, make_result, make_profile):
        data = ReflectionCreate(
            prompt_text="p",
            reflection_text="one two three",
            mood="🦄",
            word_count=42,
            date=date(2025, 3, 10),
            prompt_id=uuid4(),
        )
        mock_db_session.execute.side_effect = [make_result(scalar=0), MagicMock()]

        with patch("app.services.reflection_service.prompt_service") as prompts:
            prompts.mark_used = AsyncMock()
            result = await self.service.create_reflection(mock_db_session, make_profile(), data, now=NOW)

        assert result.mood == "😐"
        assert result.word_count == 42
        assert result.date == date(2025, 3, 10)
        assert prompts.mark_used.call_args.kwargs["prompt_id"] == data.prompt_id

    @pytest.mark.asyncio
    async def test_blank_text_rejected(self, mock_db_session, make_profile):
        data = ReflectionCreate.model_construct(prompt_text="p", reflection_text="   ", tags=[])

        with pytest.raises(ValidationError):
            await self.service.create_reflection(mock_db_session, make_profile(), data, now=NOW)
        mock_db_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_database_error_is_wrapped(self, mock_db_session, make_profile):
        mock_db_session.execute.side_effect = OperationalError("SELECT", {}, Exception("down"))

        with pytest.raises(DatabaseError):
            await self.service.create_reflection(mock_db_session, make_profile(), self.data, now=NOW)


class TestListReflections:

    def setup_method(self):
        self.service = ReflectionService()

    @pytest.mark.asyncio
    async def test_free_user_capped_at_archive_limit(self, mock_db_session, make_result, make_profile, make_reflection):
        profile = make_profile()
        rows = [make_reflection(user_id=profile.id) for _ in range(3)]
        mock_db_session.execute.side_effect = [make_result(scalar=80), make_result(scalars=rows)]

        result = await self.service.list_reflections(mock_db_session, profile, limit=20, offset=40)

        assert result.total_count == 50
        assert result.archive_limit == 50
        assert len(result.reflections) == 3

    @pytest.mark.asyncio
    async def test_free_user_past_archive_limit_gets_nothing(self, mock_db_session, make_result, make_profile):
        mock_db_session.execute.return_value = make_result(scalar=80)

        result = await self.service.list_reflections(mock_db_session, make_profile(), limit=20, offset=60)

        assert result.reflections == []
        assert result.total_count == 50
        assert mock_db_session.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_premium_user_unlimited(self, mock_db_session, make_result, premium_profile):
        mock_db_session.execute.side_effect = [make_result(scalar=80), make_result(scalars=[])]

        result = await self.service.list_reflections(mock_db_session, premium_profile, offset=60)

        assert result.total_count == 80
        assert result.archive_limit is None

    @pytest.mark.asyncio
    async def test_inverted_date_range_rejected(self, mock_db_session, make_profile):
        with pytest.raises(ValidationError):
            await self.service.list_reflections(
                mock_db_session,
                make_profile(),
                start_date=date(2025, 3, 12),
                end_date=date(2025, 3, 1),
            )
        mock_db_session.execute.assert_not_called()


class TestSingleReflection:

    def setup_method(self):
        self.service = ReflectionService()

    @pytest.mark.asyncio
    async def test_missing_reflection_raises_not_found(self, mock_db_session, make_result):
        mock_db_session.execute.return_value = make_result(one=None)

        with pytest.raises(NotFoundError):
            await self.service.get_reflection(mock_db_session, uuid4(), uuid4())

    @pytest.mark.asyncio
    async def test_update_recounts_words_and_normalizes(self, mock_db_session, make_result, make_reflection):
        reflection = make_reflection()
        mock_db_session.execute.return_value = make_result(one=reflection)

        result = await self.service.update_reflection(
            mock_db_session,
            reflection.user_id,
            reflection.id,
            ReflectionUpdate(reflection_text="just four words here", mood="nope", tags=["a", "A"]),
        )

        assert result.word_count == 4
        assert result.mood == "😐"
        assert result.tags == ["a"]
        mock_db_session.flush.assert_awaited()

    @pytest.mark.asyncio
    async def test_update_blank_text_rejected(self, mock_db_session, make_result, make_reflection):
        reflection = make_reflection()
        mock_db_session.execute.return_value = make_result(one=reflection)

        with pytest.raises(ValidationError):
            await self.service.update_reflection(
                mock_db_session, reflection.user_id, reflection.id,
                ReflectionUpdate(reflection_text="   "),
            )

    @pytest.mark.asyncio
    async def test_delete(self, mock_db_session, make_result, make_reflection):
        reflection = make_reflection()
        mock_db_session.execute.return_value = make_result(one=reflection)

        await self.service.delete_reflection(mock_db_session, reflection.user_id, reflection.id)

        mock_db_session.delete.assert_awaited_once_with(reflection)


class TestStatsAndAnalytics:

    def setup_method(self):
        self.service = ReflectionService()

    @pytest.mark.asyncio
    async def test_stats(self, mock_db_session, make_result, make_profile):
        dates = [date(2025, 3, 12), date(2025, 3, 11), date(2025, 3, 10), date(2025, 3, 5)]
        mock_db_session.execute.side_effect = [
            make_result(scalar=1),
            make_result(scalar=4),
            make_result(scalar=20),
            make_result(scalars=dates),
        ]

        stats = await self.service.get_stats(mock_db_session, make_profile(), now=NOW)

        assert stats.today == 1
        assert stats.last_7_days == 4
        assert stats.total == 20
        assert stats.current_streak == 3
        assert stats.longest_streak == 3

    @pytest.mark.asyncio
    async def test_mood_analytics_requires_premium(self, mock_db_session, make_profile):
        with pytest.raises(PermissionDeniedError):
            await self.service.get_mood_analytics(mock_db_session, make_profile(), now=NOW)
        mock_db_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_mood_analytics(self, mock_db_session, make_result, premium_profile):
        rows = [
            MoodRow(date(2025, 3, 1), "😔"),
            MoodRow(date(2025, 3, 2), "😔"),
            MoodRow(date(2025, 3, 6), "😊"),
            MoodRow(date(2025, 3, 11), "😄"),
            MoodRow(date(2025, 3, 12), "😄"),
        ]
        mock_db_session.execute.return_value = make_result(rows=rows)

        result = await self.service.get_mood_analytics(mock_db_session, premium_profile, days=30, now=NOW)

        assert result.days == 30
        assert result.most_common == "😔"
        assert result.trend == "improving"
        assert [d.mood for d in result.daily] == ["😔", "😔", "😊", "😄", "😄"]
        assert sum(m.count for m in result.overall) == 5
