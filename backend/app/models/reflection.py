"""
Prompt & Pause Backend — Reflection, Prompt History & Weekly Insight Models
============================================================================

What:  ORM models for journal content:
       - `reflections`: a user's written answer to a prompt, with mood and tags
       - `prompts_history`: one generated prompt per user per day
       - `weekly_insights`: cached weekly digest + AI insights per user/week
Who:   ReflectionService, PromptService, DigestService and the cron jobs.

Query Patterns:
    - Reflections for a user, newest first → idx_reflections_user_created
    - Reflections in a date window          → idx_reflections_user_date
    - Today's prompt for a user             → uq_prompts_history_user_date
"""

import uuid
from datetime import date as date_type, datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Boolean,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Reflection(Base):
    """A single journal entry written in response to a prompt."""

    __tablename__ = "reflections"

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
    )
    prompt_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("prompts_history.id", ondelete="SET NULL"),
        nullable=True,
    )
    prompt_text: Mapped[str] = mapped_column(Text, nullable=False)
    reflection_text: Mapped[str] = mapped_column(Text, nullable=False)
    mood: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default="😊",
        comment="One of the eight supported mood emojis",
    )
    tags: Mapped[List[str]] = mapped_column(
        ARRAY(String(100)),
        nullable=False,
        default=list,
        server_default=text("'{}'"),
    )
    word_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )
    feedback: Mapped[str | None] = mapped_column(
        String(20), nullable=True, comment="helped, irrelevant"
    )
    # Local calendar date of the entry (the user's day, not the UTC day)
    date: Mapped[date_type] = mapped_column(Date, nullable=False)
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
        Index("idx_reflections_user_created", "user_id", created_at.desc()),
        Index("idx_reflections_user_date", "user_id", "date"),
    )

    def __repr__(self) -> str:
        return f"<Reflection(id={self.id}, user_id={self.user_id}, date='{self.date}')>"


class PromptHistory(Base):
    """A prompt generated (or reused) for a user on a given day."""

    __tablename__ = "prompts_history"

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
    )
    prompt_text: Mapped[str] = mapped_column(Text, nullable=False)
    ai_provider: Mapped[str] = mapped_column(
        String(50), nullable=False, default="gemini", comment="gemini or fallback"
    )
    ai_model: Mapped[str | None] = mapped_column(String(100), nullable=True)
    personalization_context: Mapped[Dict[str, Any]] = mapped_column(
        JSONB, nullable=False, default=dict, server_default=text("'{}'::jsonb")
    )
    date_generated: Mapped[date_type] = mapped_column(Date, nullable=False)
    used: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        UniqueConstraint("user_id", "date_generated", name="uq_prompts_history_user_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<PromptHistory(id={self.id}, user_id={self.user_id}, "
            f"date='{self.date_generated}', used={self.used})>"
        )


class WeeklyInsight(Base):
    """Cached weekly digest and AI insights for one user and one Monday-Sunday week."""

    __tablename__ = "weekly_insights"

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
    )
    week_start: Mapped[date_type] = mapped_column(Date, nullable=False)
    week_end: Mapped[date_type] = mapped_column(Date, nullable=False)
    digest: Mapped[Dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    insights: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONB, nullable=True)
    generated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        UniqueConstraint("user_id", "week_start", name="uq_weekly_insights_user_week"),
    )
