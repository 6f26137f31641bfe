"""
Prompt & Pause Backend — Reflection Schemas
============================================

What:  Request/response models for /api/reflections and mood analytics.
How:   Create/update bodies validate shape only; business rules (mood
       normalization, tag cleanup, weekly allowance) live in ReflectionService.
"""

import uuid
from datetime import date as date_type, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

FEEDBACK_VALUES = ("helped", "irrelevant")


class ReflectionCreate(BaseModel):
    prompt_text: str = Field(min_length=1, description="The prompt that was answered")
    reflection_text: str = Field(min_length=1, description="The user's written reflection")
    mood: Optional[str] = Field(default=None, description="Mood emoji; defaults to 😊")
    tags: List[str] = Field(default_factory=list, description="Free-form topic tags")
    word_count: Optional[int] = Field(
        default=None, ge=0, description="Defaults to the whitespace token count"
    )
    prompt_id: Optional[uuid.UUID] = Field(
        default=None, description="prompts_history row this reflection answers"
    )
    date: Optional[date_type] = Field(
        default=None, description="Local date of the entry; defaults to today"
    )
    feedback: Optional[str] = Field(default=None, description="helped or irrelevant")

    @field_validator("prompt_text", "reflection_text")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v

    @field_validator("feedback")
    @classmethod
    def validate_feedback(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in FEEDBACK_VALUES:
            raise ValueError(f"feedback must be one of {FEEDBACK_VALUES}")
        return v


class ReflectionUpdate(BaseModel):
    reflection_text: Optional[str] = Field(default=None, min_length=1)
    mood: Optional[str] = None
    tags: Optional[List[str]] = None
    feedback: Optional[str] = None

    @field_validator("feedback")
    @classmethod
    def validate_feedback(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in FEEDBACK_VALUES:
            raise ValueError(f"feedback must be one of {FEEDBACK_VALUES}")
        return v


class ReflectionResponse(BaseModel):
    id: uuid.UUID
    prompt_id: Optional[uuid.UUID] = None
    prompt_text: str
    reflection_text: str
    mood: str
    tags: List[str]
    word_count: int
    feedback: Optional[str] = None
    date: date_type
    created_at: datetime

    model_config = {"from_attributes": True}


class ReflectionListResponse(BaseModel):
    reflections: List[ReflectionResponse]
    total_count: int = Field(description="Reflections visible to the caller's tier")
    archive_limit: Optional[int] = Field(
        default=None, description="Tier archive cap (null = unlimited)"
    )


class ReflectionStats(BaseModel):
    today: int = Field(description="Reflections written since 00:00 UTC today")
    last_7_days: int
    total: int
    current_streak: int
    longest_streak: int


class MoodCount(BaseModel):
    mood: str
    count: int
    percentage: int


class DailyMood(BaseModel):
    date: date_type
    mood: str


class MoodAnalyticsResponse(BaseModel):
    days: int
    overall: List[MoodCount]
    daily: List[DailyMood]
    most_common: Optional[str] = None
    trend: str = Field(description="improving, declining, or stable")
