import uuid
from typing import Annotated

from fastapi import APIRouter, Depends

from uaetrail.api.errors import http_error_from_service
from uaetrail.api.v1.schemas import (
    Decision,
    DecisionOut,
    EventCreate,
    EventOut,
    EventUpdate,
    JoinRequestDecision,
    JoinRequestDetailOut,
    JoinRequestOut,
    ParticipantOut,
)
from uaetrail.auth.deps import DBSession, require_role
from uaetrail.models import User
from uaetrail.models.join_request import JoinRequestStatus
from uaetrail.models.user import UserRole
from uaetrail.services import events_service, join_request_service, participants_service
from uaetrail.services.exceptions import ServiceError

router = APIRouter(
    prefix="/organizer",
    tags=["organizer"],
    dependencies=[Depends(require_role(UserRole.ORGANIZER))],
)

OrganizerUser = Annotated[User, Depends(require_role(UserRole.ORGANIZER))]


@router.get("/events", response_model=list[EventOut])
def list_my_events(organizer: OrganizerUser, db: DBSession):
    return events_service.list_organizer_events(db, organizer)


@router.post("/events", response_model=EventOut, status_code=201)
def create_event(payload: EventCreate, organizer: OrganizerUser, db: DBSession):
    try:
        return events_service.create_event(db, organizer, payload)
    except ServiceError as err:
        raise http_error_from_service(err) from err


@router.patch("/events/{event_id}", response_model=EventOut)
def update_event(event_id: uuid.UUID, patch: EventUpdate, organizer: OrganizerUser, db: DBSession):
    try:
        return events_service.update_event(db, organizer, event_id, patch)
    except ServiceError as err:
        raise http_error_from_service(err) from err


@router.post("/events/{event_id}/publish", response_model=EventOut)
def publish_event(event_id: uuid.UUID, organizer: OrganizerUser, db: DBSession):
    try:
        return events_service.publish_event(db, organizer, event_id)
    except ServiceError as err:
        raise http_error_from_service(err) from err


@router.post("/events/{event_id}/cancel", response_model=EventOut)
def cancel_event(event_id: uuid.UUID, organizer: OrganizerUser, db: DBSession):
    try:
        return events_service.cancel_event(db, organizer, event_id)
    except ServiceError as err:
        raise http_error_from_service(err) from err


@router.get("/events/{event_id}/participants", response_model=list[ParticipantOut])
def list_participants(event_id: uuid.UUID, organizer: OrganizerUser, db: DBSession):
    try:
        return participants_service.list_participants(db, organizer, event_id)
    except ServiceError as err:
        raise http_error_from_service(err) from err


@router.post(
    "/events/{event_id}/participants/{participant_id}/check-in",
    response_model=ParticipantOut,
)
def check_in(
    event_id: uuid.UUID,
    participant_id: uuid.UUID,
    organizer: OrganizerUser,
    db: DBSession,
):
    try:
        return participants_service.check_in_participant(db, organizer, event_id, participant_id)
    except ServiceError as err:
        raise http_error_from_service(err) from err


@router.get("/requests", response_model=list[JoinRequestDetailOut])
def list_requests(
    organizer: OrganizerUser,
    db: DBSession,
    status: JoinRequestStatus | None = None,
    event_id: uuid.UUID | None = None,
):
    return join_request_service.list_organizer_requests(
        db, organizer, status=status, event_id=event_id
    )


@router.patch("/requests/{request_id}", response_model=DecisionOut)
def decide_request(
    request_id: uuid.UUID,
    payload: JoinRequestDecision,
    organizer: OrganizerUser,
    db: DBSession,
):
    try:
        join_request, participant = join_request_service.decide_join_request(
            db,
            request_id,
            organizer,
            approve=payload.status == Decision.APPROVED,
            note=payload.organizer_note,
        )
    except ServiceError as err:
        raise http_error_from_service(err) from err

    return DecisionOut(
        message=f"Request {payload.status.value}.",
        request=JoinRequestOut.model_validate(join_request),
        participant_id=participant.id if participant else None,
    )
