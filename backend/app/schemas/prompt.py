"""
Prompt & Pause Backend — Prompt & Preference Schemas
=====================================================

What:  Models for daily prompts, the personalization context handed to the
       AI, and the user's reminder/delivery preferences.
"""

import re
import uuid
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

DELIVERY_METHODS = ("email", "slack", "both")
_REMINDER_TIME = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class PromptContext(BaseModel):
    """Everything the AI sees about a user when writing their prompt."""
    focus_areas: List[str] = Field(default_factory=list)
    recent_moods: List[str] = Field(default_factory=list, description="Newest first")
    recent_topics: List[str] = Field(default_factory=list)
    user_reason: Optional[str] = None
    focus_area_name: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not (self.user_reason or self.focus_areas or self.recent_moods or self.recent_topics)


class PromptResponse(BaseModel):
    id: uuid.UUID
    prompt_text: str
    ai_provider: str
    ai_model: Optional[str] = None
    date_generated: date
    used: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class PreferencesResponse(BaseModel):
    daily_reminders: bool
    reminder_time: str
    delivery_method: str
    slack_webhook_url: Optional[str] = None
    focus_areas: List[str]
    reason: Optional[str] = None
    weekly_digest: bool

    model_config = {"from_attributes": True}


class PreferencesUpdate(BaseModel):
    daily_reminders: Optional[bool] = None
    reminder_time: Optional[str] = Field(default=None, description="Local time, HH:MM")
    delivery_method: Optional[str] = Field(default=None, description="email, slack, or both")
    slack_webhook_url: Optional[str] = None
    focus_areas: Optional[List[str]] = None
    reason: Optional[str] = Field(default=None, max_length=1000)
    weekly_digest: Optional[bool] = None

    @field_validator("reminder_time")
    @classmethod
    def validate_reminder_time(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not _REMINDER_TIME.match(v):
            raise ValueError("reminder_time must be HH:MM (24-hour)")
        return v

    @field_validator("delivery_method")
    @classmethod
    def validate_delivery_method(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in DELIVERY_METHODS:
            raise ValueError(f"delivery_method must be one of {DELIVERY_METHODS}")
        return v
