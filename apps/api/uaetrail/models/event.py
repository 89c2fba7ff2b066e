from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

import sqlalchemy as sa
from sqlalchemy import ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from uaetrail.models.base import Base, TimestampMixin, UTCDateTime, UUIDPrimaryKeyMixin


class EventStatus(str, Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    CANCELLED = "CANCELLED"
    SUSPENDED = "SUSPENDED"


class Event(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "events"
    __table_args__ = (
        sa.CheckConstraint("capacity >= 1", name="ck_events_capacity_positive"),
        sa.CheckConstraint("participant_count >= 0", name="ck_events_participant_count_non_negative"),
        sa.Index("ix_events_status_starts_at", "status", "starts_at"),
    )

    title: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    location: Mapped[str | None] = mapped_column(String(300), nullable=True)
    meeting_point: Mapped[str | None] = mapped_column(String(200), nullable=True)
    starts_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    ends_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    price_aed: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    # Maintained by the approval guard and by request cancellation only
    participant_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )

    status: Mapped[EventStatus] = mapped_column(
        sa.Enum(EventStatus, name="event_status"),
        nullable=False,
        default=EventStatus.DRAFT,
        server_default=EventStatus.DRAFT.value,
    )
    organizer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    published_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    @property
    def slots_available(self) -> int:
        return max(self.capacity - self.participant_count, 0)
