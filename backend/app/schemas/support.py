"""
Prompt & Pause Backend — Support Ticket Schemas
================================================

What:  The user's contact form, and the ticket/response views used by the
       admin support queue.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from app.models.support import TICKET_PRIORITIES, TICKET_STATUSES


def _check_priority(v: Optional[str]) -> Optional[str]:
    if v is not None and v not in TICKET_PRIORITIES:
        raise ValueError(f"priority must be one of {TICKET_PRIORITIES}")
    return v


class SupportContactRequest(BaseModel):
    subject: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1, max_length=5000)
    category: str = Field(default="general", max_length=50)
    priority: str = "normal"

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v: str) -> str:
        return _check_priority(v)


class SupportTicketResponse(BaseModel):
    id: uuid.UUID
    user_id: Optional[uuid.UUID] = None
    user_email: Optional[str] = None
    subject: str
    description: str
    category: str
    status: str
    priority: str
    assigned_to: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class SupportReplyResponse(BaseModel):
    id: uuid.UUID
    ticket_id: uuid.UUID
    responder_email: str
    message: str
    is_internal: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class SupportTicketListResponse(BaseModel):
    tickets: List[SupportTicketResponse]
    total_count: int


class SupportTicketDetail(BaseModel):
    ticket: SupportTicketResponse
    responses: List[SupportReplyResponse] = Field(description="Oldest first")


class SupportTicketUpdate(BaseModel):
    status: Optional[str] = None
    priority: Optional[str] = None
    assigned_to: Optional[str] = Field(default=None, max_length=320)

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in TICKET_STATUSES:
            raise ValueError(f"status must be one of {TICKET_STATUSES}")
        return v

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v: Optional[str]) -> Optional[str]:
        return _check_priority(v)


class SupportReplyRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=10000)
    is_internal: bool = False


class SupportStats(BaseModel):
    total_tickets: int
    open_tickets: int
    in_progress_tickets: int
    resolved_tickets: int
    avg_response_time_hours: float
