"""
Prompt & Pause Backend — Cron Job Run Model
============================================

What:  ORM model for the `cron_job_runs` table: one row per scheduled job run.
How:   A row is inserted with status 'running' when a job starts and updated
       to 'success' or 'failed' with totals and timing when it finishes.
Who:   Written by the cron jobs; read by the admin cron monitoring routes.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import Index, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class CronJobRun(Base):
    __tablename__ = "cron_job_runs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    job_name: Mapped[str] = mapped_column(String(100), nullable=False)
    started_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )
    completed_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="running",
        server_default=text("'running'"),
        comment="running, success, failed",
    )
    total_users: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    successful_sends: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    failed_sends: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    execution_time_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    # `metadata` is reserved on declarative classes
    run_metadata: Mapped[Dict[str, Any]] = mapped_column(
        "metadata", JSONB, nullable=False, default=dict, server_default=text("'{}'::jsonb")
    )

    __table_args__ = (
        Index("idx_cron_job_runs_started_at", started_at.desc()),
        Index("idx_cron_job_runs_job_name", "job_name"),
    )

    def __repr__(self) -> str:
        return f"<CronJobRun(job='{self.job_name}', status='{self.status}', started_at='{self.started_at}')>"
