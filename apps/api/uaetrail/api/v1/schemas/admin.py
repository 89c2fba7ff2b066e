from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from uaetrail.api.v1.schemas.events import SchemaBase


class MetricsOut(SchemaBase):
    users: int
    events: int
    published_events: int
    pending_requests: int
    participants: int


class AuditEntryOut(SchemaBase):
    id: UUID
    actor_id: UUID | None
    action: str
    entity_type: str
    entity_id: UUID
    meta: dict[str, Any]
    created_at: datetime
