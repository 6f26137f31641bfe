"""
Prompt & Pause Backend — Subscription Tier Rules
=================================================

What:  Pure functions deciding a user's tier and what that tier allows.
How:   No I/O. Callers pass profile fields (or the profile) and the current
       time, so every rule is testable without a database.
Who:   ReflectionService (weekly allowance, archive limit), PromptService
       (monthly quota), DigestService (premium gate), the cron jobs.

Tier features:
    free     3 prompts/week (Mon, Wed, Fri), archive of the last 50 entries,
             email delivery only, no weekly digest or mood analytics
    premium  7 prompts/week, unlimited archive, Slack delivery, weekly digest
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, Optional

from app.config import settings

FREE = "free"
PREMIUM = "premium"

TIER_FEATURES: Dict[str, Dict[str, Any]] = {
    FREE: {
        "prompts_per_week": settings.free_prompts_per_week,
        "prompt_days": ["monday", "wednesday", "friday"],
        "archive_limit": settings.free_archive_limit,
        "slack_delivery": False,
        "weekly_digest": False,
        "mood_analytics": False,
    },
    PREMIUM: {
        "prompts_per_week": settings.premium_prompts_per_week,
        "prompt_days": [
            "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
        ],
        "archive_limit": None,
        "slack_delivery": True,
        "weekly_digest": True,
        "mood_analytics": True,
    },
}


def get_user_tier(
    subscription_status: Optional[str],
    subscription_tier: Optional[str] = None,
    subscription_end_date: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> str:
    """
    Resolve the effective tier from the subscription columns.

    - An expired premium status with no billing tier behind it (an ended
      trial that has not been downgraded yet) counts as free.
    - subscription_status == 'premium' is premium.
    - Legacy rows: subscription_tier == 'premium' with an 'active' or
      'trialing' status is premium.
    - Everything else is free.
    """
    now = now or datetime.now(timezone.utc)
    if subscription_end_date is not None:
        end = subscription_end_date
        if end.tzinfo is None:
            end = end.replace(tzinfo=timezone.utc)
        if end < now and subscription_status == PREMIUM and not subscription_tier:
            return FREE

    if subscription_status == PREMIUM:
        return PREMIUM

    if subscription_tier == PREMIUM and subscription_status in ("active", "trialing"):
        return PREMIUM

    return FREE


def tier_for_profile(profile, now: Optional[datetime] = None) -> str:
    return get_user_tier(
        profile.subscription_status,
        profile.subscription_tier,
        profile.subscription_end_date,
        now=now,
    )


def is_premium(profile, now: Optional[datetime] = None) -> bool:
    """Premium by tier, or on a gifted trial (billing_cycle 'gift_trial')."""
    if profile.billing_cycle == "gift_trial":
        return True
    return tier_for_profile(profile, now=now) == PREMIUM


def has_feature(tier: str, feature: str) -> bool:
    return bool(TIER_FEATURES.get(tier, TIER_FEATURES[FREE]).get(feature))


def weekly_prompt_allowance(tier: str) -> int:
    return TIER_FEATURES.get(tier, TIER_FEATURES[FREE])["prompts_per_week"]


def can_create_reflection(count_this_week: int, tier: str) -> bool:
    return count_this_week < weekly_prompt_allowance(tier)


def archive_limit(tier: str) -> Optional[int]:
    """Number of most recent reflections visible to the tier (None = unlimited)."""
    return TIER_FEATURES.get(tier, TIER_FEATURES[FREE])["archive_limit"]


# ── Calendar helpers ──────────────────────────────────────────────────────

def week_start(day: date) -> date:
    """Monday of the week containing `day`."""
    return day - timedelta(days=day.weekday())


def month_start(day: date) -> date:
    return day.replace(day=1)


def start_of_day_utc(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)
