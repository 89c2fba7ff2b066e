from __future__ import annotations

import uuid
from datetime import datetime, timezone

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from uaetrail.models import Event, JoinRequest, Participant, User
from uaetrail.models.event import EventStatus
from uaetrail.models.join_request import ACTIVE_REQUEST_STATUSES, JoinRequestStatus
from uaetrail.models.notification import NotificationType
from uaetrail.models.user import UserRole
from uaetrail.services.audit import record_audit
from uaetrail.services.error_codes import ErrorCode
from uaetrail.services.exceptions import (
    CapacityExceededError,
    ConflictError,
    EventNotPublishableError,
    NotFoundError,
    RequestFinalizedError,
    ValidationError,
)
from uaetrail.services.notifications_service import dispatch_notification

logger = structlog.get_logger(__name__)

APPROVED_TITLE = "Join request approved"
APPROVED_BODY = "Your request was approved. You are now confirmed for the event."
REJECTED_TITLE = "Join request rejected"
REJECTED_BODY = "Your request could not be approved at this time."


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _audit_decision(db: Session, **entry) -> None:
    # The decision is already committed; a lost audit row is logged, not raised
    try:
        record_audit(db, **entry)
    except SQLAlchemyError:
        db.rollback()
        logger.exception(
            "audit_record_failed", action=entry["action"], entity_id=str(entry["entity_id"])
        )


def _get_reviewable_request(db: Session, request_id: uuid.UUID, reviewer: User) -> JoinRequest:
    join_request = db.get(JoinRequest, request_id)
    # Requests for other organizers' events are reported as missing, not forbidden
    if not join_request or (
        reviewer.role != UserRole.ADMIN and join_request.event.organizer_id != reviewer.id
    ):
        raise NotFoundError(ErrorCode.REQUEST_NOT_FOUND.value, "join request not found")
    return join_request


def submit_join_request(
    db: Session, user: User, event_id: uuid.UUID, note: str | None = None
) -> JoinRequest:
    event = db.scalar(
        select(Event).where(Event.id == event_id, Event.status == EventStatus.PUBLISHED)
    )
    if not event:
        raise NotFoundError(ErrorCode.EVENT_NOT_FOUND.value, "event not found")
    if event.organizer_id == user.id:
        raise ValidationError(
            ErrorCode.ORGANIZER_CANNOT_JOIN.value, "organizer cannot request their own event"
        )
    if event.participant_count >= event.capacity:
        raise CapacityExceededError()

    existing = db.scalar(
        select(JoinRequest).where(
            JoinRequest.event_id == event.id,
            JoinRequest.user_id == user.id,
        )
    )
    if existing and existing.status in ACTIVE_REQUEST_STATUSES:
        raise ConflictError(
            ErrorCode.REQUEST_EXISTS.value, "you already have an active request for this event"
        )

    try:
        if existing:
            existing.status = JoinRequestStatus.PENDING
            existing.note = note if note is not None else existing.note
            existing.organizer_note = None
            existing.reviewed_at = None
            existing.reviewed_by_id = None
            db.add(existing)
            join_request = existing
        else:
            join_request = JoinRequest(
                event_id=event.id,
                user_id=user.id,
                note=note,
                status=JoinRequestStatus.PENDING,
            )
            db.add(join_request)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(
            ErrorCode.REQUEST_EXISTS.value, "you already have an active request for this event"
        ) from exc

    db.refresh(join_request)
    logger.info(
        "join_request_submitted",
        request_id=str(join_request.id),
        event_id=str(event.id),
        user_id=str(user.id),
    )
    return join_request


def approve_join_request(
    db: Session,
    request_id: uuid.UUID,
    reviewer: User,
    note: str | None = None,
) -> Participant:
    """Turn a pending join request into a confirmed participant.

    The capacity check and the participant insert commit together. The seat is
    claimed with a conditional ``UPDATE ... WHERE participant_count < capacity``
    and the affected-row count decides the outcome, so two concurrent
    approvals can never both take the last seat regardless of isolation level.

    Raises ``NotFoundError``, ``RequestFinalizedError``,
    ``EventNotPublishableError`` or ``CapacityExceededError``; in every case
    nothing is written. The approval notification is only queued after commit.
    """
    join_request = _get_reviewable_request(db, request_id, reviewer)
    if join_request.status != JoinRequestStatus.PENDING:
        raise RequestFinalizedError()

    event_id = join_request.event_id
    user_id = join_request.user_id

    event = db.scalar(
        select(Event)
        .where(Event.id == event_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    if not event:
        db.rollback()
        raise NotFoundError(ErrorCode.EVENT_NOT_FOUND.value, "event not found")
    if event.status != EventStatus.PUBLISHED:
        db.rollback()
        raise EventNotPublishableError()

    try:
        seat = db.execute(
            update(Event)
            .where(
                Event.id == event_id,
                Event.status == EventStatus.PUBLISHED,
                Event.participant_count < Event.capacity,
            )
            .values(participant_count=Event.participant_count + 1)
            .execution_options(synchronize_session=False)
        )
        if seat.rowcount != 1:
            db.rollback()
            fresh = db.get(Event, event_id, populate_existing=True)
            if fresh is None or fresh.status != EventStatus.PUBLISHED:
                raise EventNotPublishableError()
            logger.info(
                "join_request_capacity_exceeded",
                request_id=str(request_id),
                event_id=str(event_id),
                capacity=fresh.capacity,
            )
            raise CapacityExceededError()

        reviewed_at = _now()
        decided = db.execute(
            update(JoinRequest)
            .where(
                JoinRequest.id == request_id,
                JoinRequest.status == JoinRequestStatus.PENDING,
            )
            .values(
                status=JoinRequestStatus.APPROVED,
                organizer_note=note,
                reviewed_by_id=reviewer.id,
                reviewed_at=reviewed_at,
            )
            .execution_options(synchronize_session=False)
        )
        if decided.rowcount != 1:
            # Someone else decided this request between our read and the update
            db.rollback()
            raise RequestFinalizedError()

        participant = Participant(
            event_id=event_id,
            user_id=user_id,
            request_id=request_id,
            approved_by_id=reviewer.id,
        )
        db.add(participant)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise RequestFinalizedError() from exc

    db.refresh(participant)
    db.refresh(join_request)

    logger.info(
        "join_request_approved",
        request_id=str(request_id),
        event_id=str(event_id),
        user_id=str(user_id),
        reviewer_id=str(reviewer.id),
    )
    dispatch_notification(
        user_id,
        APPROVED_TITLE,
        APPROVED_BODY,
        type=NotificationType.REQUEST_UPDATE,
        meta={"event_id": str(event_id), "request_id": str(request_id)},
    )
    _audit_decision(
        db,
        actor_id=reviewer.id,
        action="request.approved",
        entity_type="join_request",
        entity_id=request_id,
        meta={"event_id": str(event_id), "participant_id": str(participant.id)},
    )
    return participant


def reject_join_request(
    db: Session,
    request_id: uuid.UUID,
    reviewer: User,
    note: str | None = None,
) -> JoinRequest:
    join_request = _get_reviewable_request(db, request_id, reviewer)
    if join_request.status != JoinRequestStatus.PENDING:
        raise RequestFinalizedError()

    event_id = join_request.event_id
    user_id = join_request.user_id

    decided = db.execute(
        update(JoinRequest)
        .where(
            JoinRequest.id == request_id,
            JoinRequest.status == JoinRequestStatus.PENDING,
        )
        .values(
            status=JoinRequestStatus.REJECTED,
            organizer_note=note,
            reviewed_by_id=reviewer.id,
            reviewed_at=_now(),
        )
        .execution_options(synchronize_session=False)
    )
    if decided.rowcount != 1:
        db.rollback()
        raise RequestFinalizedError()
    db.commit()
    db.refresh(join_request)

    logger.info(
        "join_request_rejected",
        request_id=str(request_id),
        event_id=str(event_id),
        reviewer_id=str(reviewer.id),
    )
    dispatch_notification(
        user_id,
        REJECTED_TITLE,
        note or REJECTED_BODY,
        type=NotificationType.REQUEST_UPDATE,
        meta={"event_id": str(event_id), "request_id": str(request_id)},
    )
    _audit_decision(
        db,
        actor_id=reviewer.id,
        action="request.rejected",
        entity_type="join_request",
        entity_id=request_id,
        meta={"event_id": str(event_id)},
    )
    return join_request


def decide_join_request(
    db: Session,
    request_id: uuid.UUID,
    reviewer: User,
    approve: bool,
    note: str | None = None,
) -> tuple[JoinRequest, Participant | None]:
    if approve:
        participant = approve_join_request(db, request_id, reviewer, note)
        return db.get(JoinRequest, request_id), participant
    return reject_join_request(db, request_id, reviewer, note), None


def cancel_join_request(
    db: Session, user: User, request_id: uuid.UUID, event_id: uuid.UUID | None = None
) -> JoinRequest:
    stmt = select(JoinRequest).where(
        JoinRequest.id == request_id,
        JoinRequest.user_id == user.id,
    )
    if event_id is not None:
        stmt = stmt.where(JoinRequest.event_id == event_id)
    join_request = db.scalar(stmt)
    if not join_request:
        raise NotFoundError(ErrorCode.REQUEST_NOT_FOUND.value, "join request not found")
    if join_request.status not in ACTIVE_REQUEST_STATUSES:
        raise ValidationError(
            ErrorCode.REQUEST_NOT_CANCELLABLE.value, "this request cannot be cancelled"
        )

    event_id = join_request.event_id

    cancelled = db.execute(
        update(JoinRequest)
        .where(
            JoinRequest.id == request_id,
            JoinRequest.status.in_(ACTIVE_REQUEST_STATUSES),
        )
        .values(status=JoinRequestStatus.CANCELLED)
        .execution_options(synchronize_session=False)
    )
    if cancelled.rowcount != 1:
        db.rollback()
        raise ValidationError(
            ErrorCode.REQUEST_NOT_CANCELLABLE.value, "this request cannot be cancelled"
        )

    removed = db.execute(
        delete(Participant)
        .where(Participant.request_id == request_id)
        .execution_options(synchronize_session=False)
    )
    freed = removed.rowcount or 0
    if freed:
        db.execute(
            update(Event)
            .where(Event.id == event_id)
            .values(participant_count=Event.participant_count - freed)
            .execution_options(synchronize_session=False)
        )
    db.commit()
    db.refresh(join_request)

    logger.info(
        "join_request_cancelled",
        request_id=str(request_id),
        event_id=str(event_id),
        user_id=str(user.id),
        seats_freed=freed,
    )
    return join_request


def list_my_requests(db: Session, user: User) -> list[JoinRequest]:
    stmt = (
        select(JoinRequest)
        .where(JoinRequest.user_id == user.id)
        .order_by(JoinRequest.created_at.desc())
    )
    return list(db.scalars(stmt).unique().all())


def list_organizer_requests(
    db: Session,
    organizer: User,
    status: JoinRequestStatus | None = None,
    event_id: uuid.UUID | None = None,
) -> list[JoinRequest]:
    stmt = (
        select(JoinRequest)
        .join(Event, Event.id == JoinRequest.event_id)
        .order_by(JoinRequest.created_at.desc())
    )
    if organizer.role != UserRole.ADMIN:
        stmt = stmt.where(Event.organizer_id == organizer.id)
    if status is not None:
        stmt = stmt.where(JoinRequest.status == status)
    if event_id is not None:
        stmt = stmt.where(JoinRequest.event_id == event_id)
    return list(db.scalars(stmt).unique().all())
