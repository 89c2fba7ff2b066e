from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from uaetrail.models.base import Base, TimestampMixin, UTCDateTime, UUIDPrimaryKeyMixin
from uaetrail.models.event import Event
from uaetrail.models.user import User


class Participant(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "event_participants"
    __table_args__ = (
        UniqueConstraint("request_id", name="uq_event_participants_request"),
        UniqueConstraint("event_id", "user_id", name="uq_event_participants_event_user"),
    )

    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    request_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("join_requests.id", ondelete="CASCADE"), nullable=False
    )
    approved_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    checked_in_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    event: Mapped[Event] = relationship(lazy="joined")
    user: Mapped[User] = relationship(foreign_keys=[user_id], lazy="joined")
