from __future__ import annotations

import uuid
from enum import Enum
from typing import Any

import sqlalchemy as sa
from sqlalchemy import Boolean, ForeignKey, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from uaetrail.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

JSONType = sa.JSON().with_variant(JSONB(), "postgresql")


class NotificationType(str, Enum):
    REQUEST_UPDATE = "REQUEST_UPDATE"
    SYSTEM = "SYSTEM"


class Notification(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "notifications"
    __table_args__ = (
        sa.Index("ix_notifications_user_created_at", "user_id", "created_at"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[NotificationType] = mapped_column(
        sa.Enum(NotificationType, name="notification_type"),
        nullable=False,
        default=NotificationType.SYSTEM,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    meta: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=sa.false())
