from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from uaetrail.models.event import EventStatus


def _ensure_tzaware(value: datetime | None) -> datetime | None:
    if value is None:
        return value
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise ValueError("datetime must be timezone-aware")
    return value


class SchemaBase(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="ignore")


class TZAwareMixin(BaseModel):
    @field_validator(
        "starts_at",
        "ends_at",
        "published_at",
        "cancelled_at",
        "created_at",
        "updated_at",
        mode="after",
        check_fields=False,
    )
    @classmethod
    def _validate_tzaware(cls, value: datetime | None) -> datetime | None:
        return _ensure_tzaware(value)


class EventCreate(TZAwareMixin, SchemaBase):
    title: str = Field(min_length=4, max_length=120)
    description: str | None = None
    location: str | None = Field(default=None, max_length=300)
    meeting_point: str | None = Field(default=None, max_length=200)
    starts_at: datetime
    ends_at: datetime | None = None
    price_aed: int = Field(default=0, ge=0)
    capacity: int = Field(ge=1)

    @model_validator(mode="after")
    def _validate_time_bounds(self):
        if self.ends_at and self.ends_at <= self.starts_at:
            raise ValueError("ends_at must be after starts_at")
        return self


class EventUpdate(TZAwareMixin, SchemaBase):
    title: str | None = Field(default=None, min_length=4, max_length=120)
    description: str | None = None
    location: str | None = Field(default=None, max_length=300)
    meeting_point: str | None = Field(default=None, max_length=200)
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    price_aed: int | None = Field(default=None, ge=0)
    capacity: int | None = Field(default=None, ge=1)

    @model_validator(mode="after")
    def _validate_time_bounds(self):
        if self.starts_at and self.ends_at and self.ends_at <= self.starts_at:
            raise ValueError("ends_at must be after starts_at")
        return self


class EventOut(TZAwareMixin, SchemaBase):
    id: UUID
    title: str
    description: str | None = None
    location: str | None = None
    meeting_point: str | None = None
    starts_at: datetime
    ends_at: datetime | None = None
    price_aed: int
    capacity: int
    participant_count: int
    slots_available: int
    status: EventStatus
    organizer_id: UUID
    published_at: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class EventListOut(SchemaBase):
    items: list[EventOut]
    page: int = Field(ge=1)
    page_size: int = Field(ge=1)
    total: int = Field(ge=0)


class ModerationAction(str, Enum):
    SUSPEND = "suspend"
    REINSTATE = "reinstate"


class EventModerationIn(SchemaBase):
    action: ModerationAction
