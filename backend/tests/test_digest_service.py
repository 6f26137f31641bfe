"""
Prompt & Pause Backend — Weekly Digest Tests
=============================================

What we test:
    ✅ Week bounds and snippets
    ✅ Parsing the model's sectioned answer, with guardrail defaults
    ✅ Deterministic fallback insights
    ✅ Premium gate, current-week cache, past weeks and fallback insights uncached
    ✅ Delivery results per channel, nothing sent with the digest turned off
"""

from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.exceptions import CircuitBreakerOpenError, PermissionDeniedError
from app.models.reflection import WeeklyInsight
from app.schemas.digest import TagCount, WeeklyDigest
from app.services.digest_service import (
    DEFAULT_HEADLINE,
    DEFAULT_OBSERVATION,
    DEFAULT_QUESTION,
    DEFAULT_THEME,
    DIGEST_OFF_REASON,
    FALLBACK_PROVIDER,
    DigestService,
    basic_insights,
    build_weekly_context,
    generate_weekly_insights,
    make_snippet,
    parse_insight_response,
    week_bounds,
)
from app.services.email_service import DeliveryResult

NOW = datetime(2025, 3, 12, 9, 15, tzinfo=timezone.utc)

MODEL_ANSWER = """HEADLINE:
A week that kept returning to rest.

OBSERVATIONS:
- You wrote most on Tuesday.
* Work came up in every entry.
• Your moods lifted toward the weekend.
- A fourth observation that should be dropped.

THEME_REFLECTION:
Rest showed up as something wanted
more than something had.

GENTLE_QUESTION:
What would enough rest look like next week?
"""


def _digest(**overrides) -> WeeklyDigest:
    fields = dict(
        week_start=date(2025, 3, 10),
        week_end=date(2025, 3, 16),
        total_reflections=2,
        top_tags=[TagCount(tag="work", count=2)],
        mood_distribution=[],
        average_word_count=15,
        current_streak=2,
        reflection_summaries=[],
    )
    fields.update(overrides)
    return WeeklyDigest(**fields)


def _fake_llm(text=MODEL_ANSWER):
    llm = MagicMock()
    llm.generate_text = AsyncMock(return_value=text)
    llm.provider_name = "gemini"
    return llm


class TestHelpers:

    def test_week_bounds(self):
        assert week_bounds(date(2025, 3, 12)) == (date(2025, 3, 10), date(2025, 3, 16))
        assert week_bounds(date(2025, 3, 12), -1) == (date(2025, 3, 3), date(2025, 3, 9))

    def test_snippet(self):
        assert make_snippet("short") == "short"
        assert make_snippet("x" * 100) == "x" * 100
        assert make_snippet("x" * 150) == "x" * 100 + "..."

    def test_weekly_context_lists_themes(self):
        text = build_weekly_context(_digest(), "Sam")
        assert "for Sam based on" in text
        assert "- Period: 2025-03-10 to 2025-03-16" in text
        assert "- work (2 reflections)" in text


class TestParseInsightResponse:

    def test_full_answer(self):
        parsed = parse_insight_response(MODEL_ANSWER)

        assert parsed["headline"] == "A week that kept returning to rest."
        assert parsed["observations"] == [
            "You wrote most on Tuesday.",
            "Work came up in every entry.",
            "Your moods lifted toward the weekend.",
        ]
        assert parsed["theme_reflection"] == "Rest showed up as something wanted\nmore than something had."
        assert parsed["gentle_question"] == "What would enough rest look like next week?"

    def test_inline_section_content(self):
        parsed = parse_insight_response("Headline: Quiet week.\nGENTLE_QUESTION: What helped?")
        assert parsed["headline"] == "Quiet week."
        assert parsed["gentle_question"] == "What helped?"

    def test_missing_sections_get_defaults(self):
        parsed = parse_insight_response("Nothing structured here at all.")

        assert parsed["headline"] == DEFAULT_HEADLINE
        assert parsed["observations"] == [DEFAULT_OBSERVATION]
        assert parsed["theme_reflection"] == DEFAULT_THEME
        assert parsed["gentle_question"] == DEFAULT_QUESTION

    def test_observation_lines_without_bullets_are_ignored(self):
        parsed = parse_insight_response("OBSERVATIONS:\nplain line\n- real one")
        assert parsed["observations"] == ["real one"]


class TestInsights:

    def test_basic_insights_empty_week(self):
        insights = basic_insights(_digest(total_reflections=0, top_tags=[]))

        assert insights.provider == "fallback"
        assert insights.headline == "This week was quieter on the page."
        assert insights.observations == ["You wrote 0 reflections this week."]

    def test_basic_insights_mentions_top_tag(self):
        insights = basic_insights(_digest(total_reflections=1))

        assert insights.observations == ["You wrote 1 reflection this week."]
        assert "work" in insights.theme_reflection

    @pytest.mark.asyncio
    async def test_generate_uses_model_answer(self):
        with patch("app.services.digest_service.gemini_service", _fake_llm()):
            insights = await generate_weekly_insights(_digest(), "Sam")

        assert insights.provider == "gemini"
        assert insights.headline == "A week that kept returning to rest."

    @pytest.mark.asyncio
    async def test_generate_falls_back_on_ai_failure(self):
        llm = _fake_llm()
        llm.generate_text.side_effect = CircuitBreakerOpenError(recovery_time=30)

        with patch("app.services.digest_service.gemini_service", llm):
            insights = await generate_weekly_insights(_digest())

        assert insights.provider == "fallback"


class TestGetWeeklyDigest:

    def setup_method(self):
        self.service = DigestService()

    @pytest.mark.asyncio
    async def test_free_user_rejected(self, mock_db_session, make_profile):
        with pytest.raises(PermissionDeniedError):
            await self.service.get_weekly_digest(mock_db_session, make_profile(), now=NOW)
        mock_db_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_cache_hit_skips_ai(self, mock_db_session, make_result, premium_profile):
        cached = WeeklyInsight(
            user_id=premium_profile.id,
            week_start=date(2025, 3, 10),
            week_end=date(2025, 3, 16),
            digest=_digest().model_dump(mode="json"),
            insights=basic_insights(_digest()).model_dump(),
        )
        mock_db_session.execute.return_value = make_result(one=cached)
        llm = _fake_llm()

        with patch("app.services.digest_service.gemini_service", llm):
            result = await self.service.get_weekly_digest(mock_db_session, premium_profile, now=NOW)

        assert result.cached is True
        assert result.digest.total_reflections == 2
        llm.generate_text.assert_not_called()

    @pytest.mark.asyncio
    async def test_cache_miss_builds_and_stores(
        self, mock_db_session, make_result, premium_profile, make_reflection
    ):
        reflections = [
            make_reflection(date=date(2025, 3, 10), mood="😔", tags=["work"], word_count=10),
            make_reflection(
                date=date(2025, 3, 11), mood="😊", tags=["work", "sleep"], word_count=20,
                reflection_text="y" * 120,
            ),
        ]
        mock_db_session.execute.side_effect = [
            make_result(one=None),
            make_result(scalars=reflections),
            make_result(scalars=[date(2025, 3, 10), date(2025, 3, 11)]),
        ]

        with patch("app.services.digest_service.gemini_service", _fake_llm()):
            result = await self.service.get_weekly_digest(mock_db_session, premium_profile, now=NOW)

        digest = result.digest
        assert result.cached is False
        assert digest.week_start == date(2025, 3, 10)
        assert digest.total_reflections == 2
        assert digest.average_word_count == 15
        assert digest.current_streak == 2
        assert digest.top_tags[0].tag == "work"
        assert digest.reflection_summaries[1].snippet == "y" * 100 + "..."

        stored = mock_db_session.add.call_args.args[0]
        assert isinstance(stored, WeeklyInsight)
        assert stored.insights["provider"] == "gemini"
        assert stored.digest["week_start"] == "2025-03-10"

    @pytest.mark.asyncio
    async def test_fallback_insights_are_not_cached(self, mock_db_session, make_result, premium_profile):
        mock_db_session.execute.side_effect = [
            make_result(one=None),
            make_result(scalars=[]),
            make_result(scalars=[]),
        ]
        llm = _fake_llm()
        llm.generate_text.side_effect = CircuitBreakerOpenError(recovery_time=30)

        with patch("app.services.digest_service.gemini_service", llm):
            result = await self.service.get_weekly_digest(mock_db_session, premium_profile, now=NOW)

        assert result.insights.provider == FALLBACK_PROVIDER
        assert result.cached is False
        mock_db_session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_cached_fallback_is_regenerated(
        self, mock_db_session, make_result, premium_profile, make_reflection
    ):
        cached = WeeklyInsight(
            user_id=premium_profile.id,
            week_start=date(2025, 3, 10),
            week_end=date(2025, 3, 16),
            digest=_digest().model_dump(mode="json"),
            insights=basic_insights(_digest()).model_dump(),
        )
        mock_db_session.execute.side_effect = [
            make_result(one=cached),
            make_result(scalars=[make_reflection(date=date(2025, 3, 11))]),
            make_result(scalars=[date(2025, 3, 11)]),
        ]
        llm = _fake_llm()

        with patch("app.services.digest_service.gemini_service", llm):
            result = await self.service.get_weekly_digest(mock_db_session, premium_profile, now=NOW)

        assert result.cached is False
        llm.generate_text.assert_awaited_once()
        assert cached.insights["provider"] == "gemini"

    @pytest.mark.asyncio
    async def test_past_week_is_not_cached(self, mock_db_session, make_result, premium_profile):
        mock_db_session.execute.side_effect = [make_result(scalars=[]), make_result(scalars=[])]

        with patch("app.services.digest_service.gemini_service", _fake_llm()):
            result = await self.service.get_weekly_digest(
                mock_db_session, premium_profile, week_offset=-1, now=NOW
            )

        assert result.digest.week_start == date(2025, 3, 3)
        assert result.digest.total_reflections == 0
        mock_db_session.add.assert_not_called()


class TestSendWeeklyDigest:

    def setup_method(self):
        self.service = DigestService()

    @pytest.mark.asyncio
    async def test_delivers_to_email_and_slack(self, mock_db_session, premium_profile, make_prefs):
        prefs = make_prefs(user_id=premium_profile.id, slack_webhook_url="https://hooks.slack.com/services/T/B/X")
        built = MagicMock(digest=_digest(), insights=basic_insights(_digest()))

        with patch.object(self.service, "get_weekly_digest", AsyncMock(return_value=built)), \
                patch("app.services.digest_service.email_service") as email, \
                patch("app.services.digest_service.slack_service") as slack:
            email.send_weekly_digest = AsyncMock(return_value=DeliveryResult(success=True, message_id="m1"))
            slack.send_weekly_digest = AsyncMock(return_value=DeliveryResult(success=False, error="Slack returned 404"))

            result = await self.service.send_weekly_digest(
                mock_db_session, premium_profile, prefs, send_email=True, send_slack=True, now=NOW
            )

        by_channel = {d.channel: d for d in result.deliveries}
        assert by_channel["email"].success is True
        assert by_channel["slack"].success is False
        assert by_channel["slack"].error == "Slack returned 404"

    @pytest.mark.asyncio
    async def test_missing_channels_reported(self, mock_db_session, make_profile):
        profile = make_profile(subscription_status="premium", email=None)
        built = MagicMock(digest=_digest(), insights=basic_insights(_digest()))

        with patch.object(self.service, "get_weekly_digest", AsyncMock(return_value=built)):
            result = await self.service.send_weekly_digest(
                mock_db_session, profile, None, send_email=True, send_slack=True, now=NOW
            )

        assert [d.model_dump() for d in result.deliveries] == [
            {"channel": "email", "success": False, "skipped": False, "error": "No email address on file"},
            {"channel": "slack", "success": False, "skipped": False, "error": "No Slack webhook configured"},
        ]

    @pytest.mark.asyncio
    async def test_turned_off_in_preferences(self, mock_db_session, premium_profile, make_prefs):
        prefs = make_prefs(
            user_id=premium_profile.id, weekly_digest=False, slack_webhook_url="https://hooks.slack.com/services/T/B/X"
        )
        built = MagicMock(digest=_digest(), insights=basic_insights(_digest()))

        with patch.object(self.service, "get_weekly_digest", AsyncMock(return_value=built)), \
                patch("app.services.digest_service.email_service") as email, \
                patch("app.services.digest_service.slack_service") as slack:
            email.send_weekly_digest = AsyncMock()
            slack.send_weekly_digest = AsyncMock()

            result = await self.service.send_weekly_digest(
                mock_db_session, premium_profile, prefs, send_email=True, send_slack=True, now=NOW
            )

        assert [(d.channel, d.success, d.skipped) for d in result.deliveries] == [
            ("email", False, True),
            ("slack", False, True),
        ]
        assert result.deliveries[0].error == DIGEST_OFF_REASON
        assert result.digest.total_reflections == 2
        email.send_weekly_digest.assert_not_called()
        slack.send_weekly_digest.assert_not_called()

    @pytest.mark.asyncio
    async def test_prebuilt_digest_is_reused(self, mock_db_session, premium_profile):
        built = MagicMock(digest=_digest(), insights=basic_insights(_digest()))
        rebuild = AsyncMock()

        with patch.object(self.service, "get_weekly_digest", rebuild), \
                patch("app.services.digest_service.email_service") as email:
            email.send_weekly_digest = AsyncMock(return_value=DeliveryResult(success=True, message_id="m1"))

            result = await self.service.send_weekly_digest(
                mock_db_session, premium_profile, None, now=NOW, built=built
            )

        rebuild.assert_not_called()
        assert result.deliveries[0].success is True
