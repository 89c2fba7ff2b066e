from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select

from uaetrail.api.errors import http_error_from_service
from uaetrail.api.v1.schemas import AuditEntryOut, EventModerationIn, EventOut, MetricsOut
from uaetrail.auth.deps import DBSession, require_role
from uaetrail.models import Event, JoinRequest, Participant, User
from uaetrail.models.event import EventStatus
from uaetrail.models.join_request import JoinRequestStatus
from uaetrail.models.user import UserRole
from uaetrail.services import events_service
from uaetrail.services.audit import list_audit_entries
from uaetrail.services.exceptions import ServiceError

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_role(UserRole.ADMIN))],
)

AdminUser = Annotated[User, Depends(require_role(UserRole.ADMIN))]


@router.get("/events", response_model=list[EventOut])
def list_events(db: DBSession):
    return events_service.list_all_events(db)


@router.patch("/events/{event_id}", response_model=EventOut)
def moderate_event(event_id: uuid.UUID, payload: EventModerationIn, db: DBSession, admin: AdminUser):
    try:
        return events_service.moderate_event(db, admin, event_id, payload.action)
    except ServiceError as err:
        raise http_error_from_service(err) from err


def _count(db, stmt) -> int:
    return int(db.scalar(stmt) or 0)


@router.get("/metrics", response_model=MetricsOut)
def platform_metrics(db: DBSession):
    return MetricsOut(
        users=_count(db, select(func.count()).select_from(User)),
        events=_count(db, select(func.count()).select_from(Event)),
        published_events=_count(
            db,
            select(func.count()).select_from(Event).where(Event.status == EventStatus.PUBLISHED),
        ),
        pending_requests=_count(
            db,
            select(func.count())
            .select_from(JoinRequest)
            .where(JoinRequest.status == JoinRequestStatus.PENDING),
        ),
        participants=_count(db, select(func.count()).select_from(Participant)),
    )


@router.get("/audit-log", response_model=list[AuditEntryOut])
def audit_log(db: DBSession, limit: int = Query(default=100, ge=1, le=500)):
    return list_audit_entries(db, limit=limit)
