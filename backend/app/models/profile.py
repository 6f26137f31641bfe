"""
Prompt & Pause Backend — Profile & Preference Models
=====================================================

What:  ORM models for the `profiles` and `user_preferences` tables.
How:   A profile row holds identity and subscription state; a preferences row
       (one per user) holds delivery and personalization settings.
Who:   Read by every user-facing service, the cron jobs, and admin services.

Subscription fields:
    subscription_status  'free' | 'premium' | 'cancelled' (NULL is treated as free)
    subscription_tier    legacy column; 'premium' together with an
                         'active'/'trialing' status also means premium
    billing_cycle        'monthly' | 'yearly' | 'gift_trial' | NULL
    is_trial / trial_end_date  set for time-boxed premium trials
"""

import uuid
from datetime import datetime, timezone
from typing import List

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, text
from sqlalchemy.dialects.postgresql import ARRAY, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Profile(Base):
    """A registered user. The id matches the identity provider's user id."""

    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    email: Mapped[str | None] = mapped_column(String(320), nullable=True, index=True)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # ── Subscription ──────────────────────────────────────────────────────
    subscription_status: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
        default="free",
        server_default=text("'free'"),
        comment="free, premium, cancelled",
    )
    subscription_tier: Mapped[str | None] = mapped_column(String(50), nullable=True)
    billing_cycle: Mapped[str | None] = mapped_column(
        String(50), nullable=True, comment="monthly, yearly, gift_trial"
    )
    subscription_end_date: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    is_trial: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    trial_end_date: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    # ── Locale ────────────────────────────────────────────────────────────
    # timezone_iana takes precedence; `timezone` is the older free-form column
    timezone_iana: Mapped[str | None] = mapped_column(String(64), nullable=True)
    timezone: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_profiles_subscription_status", "subscription_status"),
    )

    @property
    def tz_name(self) -> str | None:
        return self.timezone_iana or self.timezone

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, email='{self.email}', status='{self.subscription_status}')>"


class UserPreferences(Base):
    """Per-user reminder and personalization settings (one row per profile)."""

    __tablename__ = "user_preferences"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    daily_reminders: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )
    reminder_time: Mapped[str] = mapped_column(
        String(5),
        nullable=False,
        default="09:00",
        server_default=text("'09:00'"),
        comment="Local HH:MM in the profile's timezone",
    )
    delivery_method: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="email",
        server_default=text("'email'"),
        comment="email, slack, both",
    )
    slack_webhook_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    focus_areas: Mapped[List[str]] = mapped_column(
        ARRAY(String(100)),
        nullable=False,
        default=list,
        server_default=text("'{}'"),
    )
    reason: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Why the user started reflecting (from onboarding)"
    )
    weekly_digest: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    def __repr__(self) -> str:
        return (
            f"<UserPreferences(user_id={self.user_id}, reminder_time='{self.reminder_time}', "
            f"delivery='{self.delivery_method}')>"
        )
