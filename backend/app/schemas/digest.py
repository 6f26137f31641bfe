"""
Prompt & Pause Backend — Weekly Digest Schemas
===============================================

What:  The weekly digest (counts, tags, moods, summaries), the AI insight
       sections, and the per-channel delivery outcome.
"""

from datetime import date as date_type
from typing import List, Optional

from pydantic import BaseModel, Field


class TagCount(BaseModel):
    tag: str
    count: int


class DigestMoodCount(BaseModel):
    mood: str
    count: int


class ReflectionSummary(BaseModel):
    date: date_type
    prompt: str
    snippet: str = Field(description="First 100 characters of the reflection")


class WeeklyDigest(BaseModel):
    week_start: date_type
    week_end: date_type
    total_reflections: int
    top_tags: List[TagCount]
    mood_distribution: List[DigestMoodCount]
    average_word_count: int
    current_streak: int
    reflection_summaries: List[ReflectionSummary]


class WeeklyInsights(BaseModel):
    headline: str
    observations: List[str] = Field(description="At most three short observations")
    theme_reflection: str
    gentle_question: str
    provider: str = Field(description="AI provider name, or 'fallback'")


class WeeklyDigestResponse(BaseModel):
    digest: WeeklyDigest
    insights: WeeklyInsights
    cached: bool = False


class DigestSendRequest(BaseModel):
    week_offset: int = Field(default=0, le=0, ge=-52, description="0 = this week, -1 = last week")
    send_email: bool = True
    send_slack: bool = False


class ChannelResult(BaseModel):
    channel: str
    success: bool
    skipped: bool = False
    error: Optional[str] = None


class DigestSendResponse(BaseModel):
    digest: WeeklyDigest
    insights: WeeklyInsights
    deliveries: List[ChannelResult]
