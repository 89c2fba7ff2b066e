from __future__ import annotations

import uuid
from datetime import datetime, timezone

import structlog
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from uaetrail.models import Event, Participant, User
from uaetrail.services.error_codes import ErrorCode
from uaetrail.services.events_service import get_managed_event
from uaetrail.services.exceptions import ConflictError, NotFoundError

logger = structlog.get_logger(__name__)


def list_participants(db: Session, actor: User, event_id: uuid.UUID) -> list[Participant]:
    event = get_managed_event(db, actor, event_id)
    stmt = (
        select(Participant)
        .where(Participant.event_id == event.id)
        .order_by(Participant.created_at.asc())
    )
    return list(db.scalars(stmt).unique().all())


def check_in_participant(
    db: Session, actor: User, event_id: uuid.UUID, participant_id: uuid.UUID
) -> Participant:
    event = get_managed_event(db, actor, event_id)
    participant = db.get(Participant, participant_id)
    if not participant or participant.event_id != event.id:
        raise NotFoundError(ErrorCode.PARTICIPANT_NOT_FOUND.value, "participant not found")

    checked = db.execute(
        update(Participant)
        .where(Participant.id == participant.id, Participant.checked_in_at.is_(None))
        .values(checked_in_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    if checked.rowcount != 1:
        db.rollback()
        raise ConflictError(ErrorCode.ALREADY_CHECKED_IN.value, "participant already checked in")
    db.commit()
    db.refresh(participant)

    logger.info(
        "participant_checked_in",
        participant_id=str(participant.id),
        event_id=str(event.id),
        actor_id=str(actor.id),
    )
    return participant


def list_my_trips(db: Session, user: User) -> list[Event]:
    stmt = (
        select(Event)
        .join(Participant, Participant.event_id == Event.id)
        .where(Participant.user_id == user.id)
        .order_by(Event.starts_at.asc())
    )
    return list(db.scalars(stmt).all())
