"""Initial Prompt & Pause schema

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Creates every table the backend uses:
       profiles, user_preferences, prompts_history, reflections, weekly_insights,
       cron_job_runs, email_logs, support_tickets, support_responses,
       system_settings, subscription_events, admin_activity_logs.
How:   PostgreSQL UUID keys (gen_random_uuid), TIMESTAMP WITH TIME ZONE,
       JSONB for free-form metadata, TEXT[] for tags and focus areas.

Rollback: downgrade() drops all tables (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        server_default=sa.text("gen_random_uuid()"),
        nullable=False,
    )


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.TIMESTAMP(timezone=True),
        server_default=None if nullable else sa.text("CURRENT_TIMESTAMP"),
        nullable=nullable,
    )


def _jsonb(name: str) -> sa.Column:
    return sa.Column(
        name,
        postgresql.JSONB(),
        server_default=sa.text("'{}'::jsonb"),
        nullable=False,
    )


def upgrade() -> None:
    # ── Users ─────────────────────────────────────────────────────────────
    op.create_table(
        "profiles",
        _id_column(),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column(
            "subscription_status",
            sa.String(50),
            server_default=sa.text("'free'"),
            nullable=True,
            comment="free, premium, cancelled",
        ),
        sa.Column("subscription_tier", sa.String(50), nullable=True),
        sa.Column("billing_cycle", sa.String(50), nullable=True, comment="monthly, yearly, gift_trial"),
        _timestamp("subscription_end_date", nullable=True),
        sa.Column("is_trial", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        _timestamp("trial_end_date", nullable=True),
        sa.Column("timezone_iana", sa.String(64), nullable=True),
        sa.Column("timezone", sa.String(64), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_profiles_email", "profiles", ["email"])
    op.create_index("idx_profiles_subscription_status", "profiles", ["subscription_status"])

    op.create_table(
        "user_preferences",
        _id_column(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("daily_reminders", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column(
            "reminder_time",
            sa.String(5),
            server_default=sa.text("'09:00'"),
            nullable=False,
            comment="Local HH:MM in the profile's timezone",
        ),
        sa.Column(
            "delivery_method",
            sa.String(20),
            server_default=sa.text("'email'"),
            nullable=False,
            comment="email, slack, both",
        ),
        sa.Column("slack_webhook_url", sa.Text(), nullable=True),
        sa.Column(
            "focus_areas",
            postgresql.ARRAY(sa.String(100)),
            server_default=sa.text("'{}'"),
            nullable=False,
        ),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("weekly_digest", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id"),
    )

    # ── Journal ───────────────────────────────────────────────────────────
    op.create_table(
        "prompts_history",
        _id_column(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("prompt_text", sa.Text(), nullable=False),
        sa.Column("ai_provider", sa.String(50), nullable=False, comment="gemini or fallback"),
        sa.Column("ai_model", sa.String(100), nullable=True),
        _jsonb("personalization_context"),
        sa.Column("date_generated", sa.Date(), nullable=False),
        sa.Column("used", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="CASCADE"),
        # One prompt per user per local day
        sa.UniqueConstraint("user_id", "date_generated", name="uq_prompts_history_user_date"),
    )

    op.create_table(
        "reflections",
        _id_column(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("prompt_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("prompt_text", sa.Text(), nullable=False),
        sa.Column("reflection_text", sa.Text(), nullable=False),
        sa.Column("mood", sa.String(16), nullable=False),
        sa.Column(
            "tags",
            postgresql.ARRAY(sa.String(100)),
            server_default=sa.text("'{}'"),
            nullable=False,
        ),
        sa.Column("word_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("feedback", sa.String(20), nullable=True, comment="helped, irrelevant"),
        sa.Column("date", sa.Date(), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["prompt_id"], ["prompts_history.id"], ondelete="SET NULL"),
    )
    op.create_index(
        "idx_reflections_user_created", "reflections", ["user_id", sa.text("created_at DESC")]
    )
    op.create_index("idx_reflections_user_date", "reflections", ["user_id", "date"])

    op.create_table(
        "weekly_insights",
        _id_column(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("week_start", sa.Date(), nullable=False),
        sa.Column("week_end", sa.Date(), nullable=False),
        sa.Column("digest", postgresql.JSONB(), nullable=False),
        sa.Column("insights", postgresql.JSONB(), nullable=True),
        _timestamp("generated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", "week_start", name="uq_weekly_insights_user_week"),
    )

    # ── Operations ────────────────────────────────────────────────────────
    op.create_table(
        "cron_job_runs",
        _id_column(),
        sa.Column("job_name", sa.String(100), nullable=False),
        _timestamp("started_at"),
        _timestamp("completed_at", nullable=True),
        sa.Column(
            "status",
            sa.String(20),
            server_default=sa.text("'running'"),
            nullable=False,
            comment="running, success, failed",
        ),
        sa.Column("total_users", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("successful_sends", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("failed_sends", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("execution_time_ms", sa.Integer(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        _jsonb("metadata"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_cron_job_runs_started_at", "cron_job_runs", [sa.text("started_at DESC")])
    op.create_index("idx_cron_job_runs_job_name", "cron_job_runs", ["job_name"])

    op.create_table(
        "email_logs",
        _id_column(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("email_type", sa.String(50), nullable=False),
        sa.Column("recipient_email", sa.String(320), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, comment="sent, failed"),
        sa.Column("provider_message_id", sa.String(255), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        _timestamp("sent_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_email_logs_user_sent", "email_logs", ["user_id", sa.text("sent_at DESC")])

    # ── Support ───────────────────────────────────────────────────────────
    op.create_table(
        "support_tickets",
        _id_column(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("user_email", sa.String(320), nullable=True),
        sa.Column("subject", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("category", sa.String(50), server_default=sa.text("'general'"), nullable=False),
        sa.Column("status", sa.String(20), server_default=sa.text("'open'"), nullable=False),
        sa.Column("priority", sa.String(20), server_default=sa.text("'normal'"), nullable=False),
        sa.Column("assigned_to", sa.String(320), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_support_tickets_status", "support_tickets", ["status"])
    op.create_index(
        "idx_support_tickets_created_at", "support_tickets", [sa.text("created_at DESC")]
    )

    op.create_table(
        "support_responses",
        _id_column(),
        sa.Column("ticket_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("responder_email", sa.String(320), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("is_internal", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["ticket_id"], ["support_tickets.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_support_responses_ticket_id", "support_responses", ["ticket_id"])

    # ── Admin ─────────────────────────────────────────────────────────────
    op.create_table(
        "system_settings",
        sa.Column("key", sa.String(100), nullable=False),
        sa.Column("value", postgresql.JSONB(), nullable=True),
        sa.Column("category", sa.String(50), server_default=sa.text("'general'"), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("updated_by", sa.String(320), nullable=True),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("key"),
    )

    op.create_table(
        "subscription_events",
        _id_column(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("event_type", sa.String(50), nullable=False),
        sa.Column("old_status", sa.String(50), nullable=True),
        sa.Column("new_status", sa.String(50), nullable=True),
        _jsonb("metadata"),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_subscription_events_user_id", "subscription_events", ["user_id"])

    op.create_table(
        "admin_activity_logs",
        _id_column(),
        sa.Column("admin_email", sa.String(320), nullable=False),
        sa.Column("action_type", sa.String(100), nullable=False),
        sa.Column("target_user_id", postgresql.UUID(as_uuid=True), nullable=True),
        _jsonb("details"),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_admin_activity_logs_created_at", "admin_activity_logs", [sa.text("created_at DESC")]
    )


def downgrade() -> None:
    """Drop every table in reverse dependency order. Destructive."""
    op.drop_table("admin_activity_logs")
    op.drop_table("subscription_events")
    op.drop_table("system_settings")
    op.drop_table("support_responses")
    op.drop_table("support_tickets")
    op.drop_table("email_logs")
    op.drop_table("cron_job_runs")
    op.drop_table("weekly_insights")
    op.drop_table("reflections")
    op.drop_table("prompts_history")
    op.drop_table("user_preferences")
    op.drop_table("profiles")
