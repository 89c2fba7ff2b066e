from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

import sqlalchemy as sa
from sqlalchemy import ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from uaetrail.models.base import Base, TimestampMixin, UTCDateTime, UUIDPrimaryKeyMixin
from uaetrail.models.event import Event
from uaetrail.models.user import User


class JoinRequestStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


ACTIVE_REQUEST_STATUSES = frozenset({JoinRequestStatus.PENDING, JoinRequestStatus.APPROVED})


class JoinRequest(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "join_requests"
    # One row per (event, user); rejected/cancelled rows are reopened in place
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_join_requests_event_user"),
        sa.Index("ix_join_requests_event_status", "event_id", "status"),
    )

    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    note: Mapped[str | None] = mapped_column(String(300), nullable=True)
    organizer_note: Mapped[str | None] = mapped_column(String(300), nullable=True)

    status: Mapped[JoinRequestStatus] = mapped_column(
        sa.Enum(JoinRequestStatus, name="join_request_status"),
        nullable=False,
        default=JoinRequestStatus.PENDING,
        server_default=JoinRequestStatus.PENDING.value,
    )
    reviewed_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    event: Mapped[Event] = relationship(lazy="joined")
    user: Mapped[User] = relationship(foreign_keys=[user_id], lazy="joined")
