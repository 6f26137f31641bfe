"""
Prompt & Pause Backend — Tier Rule Tests
=========================================

What we test:
    ✅ Effective tier from status / legacy tier / end date
    ✅ Gift trials count as premium
    ✅ Weekly allowance, archive limit, feature flags
    ✅ Calendar helpers (Monday week start, month start)
"""

from datetime import date, datetime, timedelta, timezone

from app.services import tier

NOW = datetime(2025, 3, 12, 12, 0, tzinfo=timezone.utc)


class TestGetUserTier:

    def test_premium_status_is_premium(self):
        assert tier.get_user_tier("premium") == "premium"

    def test_free_and_missing_status_are_free(self):
        assert tier.get_user_tier("free") == "free"
        assert tier.get_user_tier(None) == "free"
        assert tier.get_user_tier("cancelled") == "free"

    def test_legacy_tier_column_with_active_status(self):
        assert tier.get_user_tier("active", "premium") == "premium"
        assert tier.get_user_tier("trialing", "premium") == "premium"
        assert tier.get_user_tier("cancelled", "premium") == "free"

    def test_expired_premium_without_billing_tier_is_free(self):
        ended = NOW - timedelta(days=1)
        assert tier.get_user_tier("premium", None, ended, now=NOW) == "free"

    def test_expired_end_date_with_billing_tier_stays_premium(self):
        ended = NOW - timedelta(days=1)
        assert tier.get_user_tier("premium", "premium", ended, now=NOW) == "premium"

    def test_naive_end_date_is_treated_as_utc(self):
        ended = (NOW - timedelta(hours=1)).replace(tzinfo=None)
        assert tier.get_user_tier("premium", None, ended, now=NOW) == "free"

    def test_future_end_date_stays_premium(self):
        assert tier.get_user_tier("premium", None, NOW + timedelta(days=3), now=NOW) == "premium"


class TestIsPremium:

    def test_gift_trial_is_premium_regardless_of_status(self, make_profile):
        profile = make_profile(subscription_status="free", billing_cycle="gift_trial")
        assert tier.is_premium(profile) is True

    def test_free_profile(self, make_profile):
        assert tier.is_premium(make_profile()) is False

    def test_premium_profile(self, premium_profile):
        assert tier.is_premium(premium_profile) is True


class TestAllowances:

    def test_weekly_allowance(self):
        assert tier.weekly_prompt_allowance("free") == 3
        assert tier.weekly_prompt_allowance("premium") == 7

    def test_unknown_tier_gets_free_allowance(self):
        assert tier.weekly_prompt_allowance("platinum") == 3

    def test_can_create_reflection_below_allowance(self):
        assert tier.can_create_reflection(2, "free") is True
        assert tier.can_create_reflection(3, "free") is False
        assert tier.can_create_reflection(6, "premium") is True
        assert tier.can_create_reflection(7, "premium") is False

    def test_archive_limit(self):
        assert tier.archive_limit("free") == 50
        assert tier.archive_limit("premium") is None

    def test_feature_flags(self):
        assert tier.has_feature("premium", "weekly_digest") is True
        assert tier.has_feature("premium", "slack_delivery") is True
        assert tier.has_feature("free", "weekly_digest") is False
        assert tier.has_feature("free", "mood_analytics") is False
        assert tier.has_feature("unknown", "slack_delivery") is False


class TestCalendar:

    def test_week_starts_on_monday(self):
        assert tier.week_start(date(2025, 3, 12)) == date(2025, 3, 10)
        assert tier.week_start(date(2025, 3, 16)) == date(2025, 3, 10)
        assert tier.week_start(date(2025, 3, 10)) == date(2025, 3, 10)

    def test_month_start(self):
        assert tier.month_start(date(2025, 3, 31)) == date(2025, 3, 1)

    def test_start_of_day_utc(self):
        assert tier.start_of_day_utc(date(2025, 3, 12)) == datetime(2025, 3, 12, tzinfo=timezone.utc)
