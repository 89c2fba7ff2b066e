from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import Field

from uaetrail.api.v1.schemas.events import SchemaBase
from uaetrail.models.join_request import JoinRequestStatus


class JoinRequestCreate(SchemaBase):
    note: str | None = Field(default=None, max_length=300)


class Decision(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


class JoinRequestDecision(SchemaBase):
    status: Decision
    organizer_note: str | None = Field(default=None, max_length=300)


class RequestUserOut(SchemaBase):
    id: UUID
    email: str
    name: str | None = None


class RequestEventOut(SchemaBase):
    id: UUID
    title: str
    location: str | None = None
    starts_at: datetime


class JoinRequestOut(SchemaBase):
    id: UUID
    event_id: UUID
    user_id: UUID
    status: JoinRequestStatus
    note: str | None = None
    organizer_note: str | None = None
    reviewed_by_id: UUID | None = None
    reviewed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class JoinRequestDetailOut(JoinRequestOut):
    user: RequestUserOut
    event: RequestEventOut


class ParticipantOut(SchemaBase):
    id: UUID
    event_id: UUID
    user_id: UUID
    request_id: UUID
    approved_by_id: UUID | None = None
    checked_in_at: datetime | None = None
    created_at: datetime
    user: RequestUserOut


class DecisionOut(SchemaBase):
    message: str
    request: JoinRequestOut
    participant_id: UUID | None = None
