"""
Prompt & Pause Backend — Cron Job Schemas
==========================================

What:  Job run results, the stored run log, and the admin run statistics.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class CronJobResult(BaseModel):
    """Outcome of one job invocation, returned to the caller and summarized in the run row."""
    job_name: str
    run_id: Optional[uuid.UUID] = None
    total_processed: int = 0
    sent: int = 0
    skipped: int = 0
    failed: int = 0
    execution_time_ms: int = 0
    results: List[Dict[str, Any]] = Field(default_factory=list)


class CronJobRunResponse(BaseModel):
    id: uuid.UUID
    job_name: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    status: str
    total_users: int
    successful_sends: int
    failed_sends: int
    execution_time_ms: Optional[int] = None
    error_message: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="run_metadata")

    model_config = {"from_attributes": True, "populate_by_name": True}


class CronJobRunListResponse(BaseModel):
    runs: List[CronJobRunResponse]
    total_count: int


class RecentRuns(BaseModel):
    total: int
    successful: int
    failed: int


class CronJobStats(BaseModel):
    total_runs: int
    successful_runs: int
    failed_runs: int
    success_rate: float = Field(description="Percentage, one decimal place")
    average_execution_time_ms: int
    last_24h: RecentRuns


class CronTriggerRequest(BaseModel):
    job_name: str = Field(description="Registered job, e.g. 'send-daily-prompts'")


class CronEndpointInfo(BaseModel):
    """Returned by an unsigned GET on a cron route."""
    job: str
    method: str = "POST"
    auth: str = "Authorization: Bearer <CRON_SECRET>"
    signed_get: str = "GET ?ts=<unix seconds>&sig=<hex HMAC-SHA256(ts, CRON_SECRET)>"
    available_jobs: List[str]
