"""
Prompt & Pause Backend — Admin Schemas
=======================================

What:  Request/response models for the admin user, subscription and
       system-settings routes.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from app.schemas.prompt import PreferencesResponse


# ── Users ─────────────────────────────────────────────────────────────────

class AdminUserSummary(BaseModel):
    id: uuid.UUID
    email: Optional[str] = None
    full_name: Optional[str] = None
    subscription_status: Optional[str] = None
    billing_cycle: Optional[str] = None
    is_trial: bool = False
    timezone_iana: Optional[str] = None
    timezone: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AdminUserListResponse(BaseModel):
    users: List[AdminUserSummary]
    total_count: int


class AdminUserDetail(BaseModel):
    user: AdminUserSummary
    preferences: Optional[PreferencesResponse] = None
    reflection_count: int


class AdminUserUpdate(BaseModel):
    full_name: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=320)
    timezone: Optional[str] = Field(default=None, max_length=64)
    timezone_iana: Optional[str] = Field(default=None, max_length=64)


# ── Subscriptions ─────────────────────────────────────────────────────────

class SubscriptionSummary(BaseModel):
    id: uuid.UUID = Field(description="Profile id")
    email: Optional[str] = None
    full_name: Optional[str] = None
    subscription_status: Optional[str] = None
    subscription_tier: Optional[str] = None
    billing_cycle: Optional[str] = None
    subscription_end_date: Optional[datetime] = None
    is_trial: bool = False
    trial_end_date: Optional[datetime] = None

    model_config = {"from_attributes": True}


class SubscriptionListResponse(BaseModel):
    subscriptions: List[SubscriptionSummary]
    total_count: int


class SubscriptionEventResponse(BaseModel):
    id: uuid.UUID
    event_type: str
    old_status: Optional[str] = None
    new_status: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="event_metadata")
    created_at: datetime

    model_config = {"from_attributes": True, "populate_by_name": True}


class SubscriptionDetail(BaseModel):
    subscription: SubscriptionSummary
    events: List[SubscriptionEventResponse]


class SubscriptionCancelRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=1000)


class Pricing(BaseModel):
    monthly: float
    yearly: float
    currency: str


class SubscriptionStats(BaseModel):
    total: int
    free: int = Field(description="NULL, 'free' and 'cancelled' statuses")
    premium: int
    cancelled: int
    monthly_subs: int
    annual_subs: int
    recent_cancellations: int = Field(description="Cancellation events in the last 30 days")
    pricing: Pricing


# ── System settings ───────────────────────────────────────────────────────

class SystemSettingResponse(BaseModel):
    key: str
    value: Any = None
    category: str
    description: Optional[str] = None
    updated_by: Optional[str] = None
    updated_at: datetime

    model_config = {"from_attributes": True}


class SystemSettingUpdate(BaseModel):
    value: Any
