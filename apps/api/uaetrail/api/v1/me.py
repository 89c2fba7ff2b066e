import uuid

from fastapi import APIRouter, Query
from pydantic import BaseModel

from uaetrail.api.errors import http_error_from_service
from uaetrail.api.v1.schemas import EventOut, JoinRequestDetailOut, NotificationOut
from uaetrail.auth.deps import CurrentUser, DBSession
from uaetrail.services import join_request_service, notifications_service, participants_service
from uaetrail.services.exceptions import ServiceError

router = APIRouter(prefix="/me", tags=["me"])


class MeOut(BaseModel):
    user_id: str
    email: str
    name: str | None
    role: str


@router.get("", response_model=MeOut)
def me(user: CurrentUser):
    return MeOut(user_id=str(user.id), email=user.email, name=user.name, role=user.role.value)


@router.get("/requests", response_model=list[JoinRequestDetailOut])
def my_requests(user: CurrentUser, db: DBSession):
    return join_request_service.list_my_requests(db, user)


@router.get("/trips", response_model=list[EventOut])
def my_trips(user: CurrentUser, db: DBSession):
    return participants_service.list_my_trips(db, user)


@router.get("/notifications", response_model=list[NotificationOut])
def my_notifications(
    user: CurrentUser,
    db: DBSession,
    limit: int = Query(default=50, ge=1, le=100),
):
    return notifications_service.list_notifications(db, user, limit=limit)


@router.patch("/notifications/{notification_id}/read", response_model=NotificationOut)
def mark_notification_read(notification_id: uuid.UUID, user: CurrentUser, db: DBSession):
    try:
        return notifications_service.mark_read(db, user, notification_id)
    except ServiceError as err:
        raise http_error_from_service(err) from err
