from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from uaetrail.api.v1.schemas.events import SchemaBase
from uaetrail.models.notification import NotificationType


class NotificationOut(SchemaBase):
    id: UUID
    type: NotificationType
    title: str
    body: str
    meta: dict[str, Any]
    is_read: bool
    created_at: datetime
