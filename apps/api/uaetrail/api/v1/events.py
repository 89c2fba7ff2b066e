import uuid

from fastapi import APIRouter, Query

from uaetrail.api.errors import http_error_from_service
from uaetrail.api.v1.schemas import EventListOut, EventOut, JoinRequestCreate, JoinRequestOut
from uaetrail.auth.deps import CurrentUser, DBSession
from uaetrail.services import events_service, join_request_service
from uaetrail.services.exceptions import ServiceError

router = APIRouter(prefix="/events", tags=["events"])


@router.get("", response_model=EventListOut)
def list_events(
    db: DBSession,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
):
    items, total = events_service.list_published_events(db, page=page, page_size=page_size)
    return EventListOut(
        items=[EventOut.model_validate(event) for event in items],
        page=page,
        page_size=page_size,
        total=total,
    )


@router.get("/{event_id}", response_model=EventOut)
def get_event(event_id: uuid.UUID, db: DBSession):
    try:
        return events_service.get_published_event(db, event_id)
    except ServiceError as err:
        raise http_error_from_service(err) from err


@router.post("/{event_id}/requests", response_model=JoinRequestOut, status_code=201)
def request_to_join(
    event_id: uuid.UUID,
    user: CurrentUser,
    db: DBSession,
    payload: JoinRequestCreate | None = None,
):
    note = payload.note if payload else None
    try:
        return join_request_service.submit_join_request(db, user, event_id, note)
    except ServiceError as err:
        raise http_error_from_service(err) from err


@router.patch("/{event_id}/requests/{request_id}/cancel", response_model=JoinRequestOut)
def cancel_request(event_id: uuid.UUID, request_id: uuid.UUID, user: CurrentUser, db: DBSession):
    try:
        join_request = join_request_service.cancel_join_request(db, user, request_id, event_id)
    except ServiceError as err:
        raise http_error_from_service(err) from err
    return join_request
