from __future__ import annotations

import uuid
from datetime import datetime, timezone

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from uaetrail.api.v1.schemas.events import EventCreate, EventUpdate, ModerationAction
from uaetrail.models import Event, User
from uaetrail.models.event import EventStatus
from uaetrail.models.user import UserRole
from uaetrail.services.audit import record_audit
from uaetrail.services.error_codes import ErrorCode
from uaetrail.services.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ServiceError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

_REQUIRED_EVENT_FIELDS = frozenset({"title", "starts_at", "capacity", "price_aed"})


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _is_admin(user: User) -> bool:
    return user.role == UserRole.ADMIN


def _is_organizer(user: User) -> bool:
    return user.role in {UserRole.ORGANIZER, UserRole.ADMIN}


def can_manage(user: User, event: Event) -> bool:
    return _is_admin(user) or event.organizer_id == user.id


def require_manage_permission(user: User, event: Event) -> None:
    if not can_manage(user, event):
        raise PermissionDeniedError(
            ErrorCode.NOT_EVENT_ORGANIZER.value, "not organizer for this event"
        )


def get_event(db: Session, event_id: uuid.UUID) -> Event:
    event = db.get(Event, event_id)
    if not event:
        raise NotFoundError(ErrorCode.EVENT_NOT_FOUND.value, "event not found")
    return event


def get_managed_event(db: Session, actor: User, event_id: uuid.UUID) -> Event:
    event = get_event(db, event_id)
    require_manage_permission(actor, event)
    return event


def get_published_event(db: Session, event_id: uuid.UUID) -> Event:
    event = db.scalar(
        select(Event).where(Event.id == event_id, Event.status == EventStatus.PUBLISHED)
    )
    if not event:
        raise NotFoundError(ErrorCode.EVENT_NOT_FOUND.value, "event not found")
    return event


def list_published_events(
    db: Session, page: int = 1, page_size: int = 20
) -> tuple[list[Event], int]:
    base = select(Event).where(Event.status == EventStatus.PUBLISHED)
    total = db.scalar(select(func.count()).select_from(base.subquery())) or 0
    items = db.scalars(
        base.order_by(Event.starts_at.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    ).all()
    return list(items), int(total)


def list_organizer_events(db: Session, organizer: User) -> list[Event]:
    stmt = select(Event).order_by(Event.starts_at.asc())
    if not _is_admin(organizer):
        stmt = stmt.where(Event.organizer_id == organizer.id)
    return list(db.scalars(stmt).all())


def list_all_events(db: Session) -> list[Event]:
    return list(db.scalars(select(Event).order_by(Event.starts_at.asc())).all())


def create_event(db: Session, organizer: User, payload: EventCreate) -> Event:
    if not _is_organizer(organizer):
        raise PermissionDeniedError(
            ErrorCode.ORGANIZER_ROLE_REQUIRED.value,
            "only organizers or admins can create events",
        )

    event = Event(
        title=payload.title,
        description=payload.description,
        location=payload.location,
        meeting_point=payload.meeting_point,
        starts_at=payload.starts_at,
        ends_at=payload.ends_at,
        price_aed=payload.price_aed,
        capacity=payload.capacity,
        participant_count=0,
        status=EventStatus.DRAFT,
        organizer_id=organizer.id,
    )
    db.add(event)
    db.commit()
    db.refresh(event)

    logger.info("event_created", event_id=str(event.id), organizer_id=str(organizer.id))
    record_audit(
        db,
        actor_id=organizer.id,
        action="event.create",
        entity_type="event",
        entity_id=event.id,
    )
    return event


def update_event(db: Session, actor: User, event_id: uuid.UUID, patch: EventUpdate) -> Event:
    try:
        event, patch_data, new_capacity = _locked_patch(db, actor, event_id, patch)
    except ServiceError:
        # Drop the row lock before reporting
        db.rollback()
        raise

    for key, value in patch_data.items():
        setattr(event, key, value)
    db.add(event)

    if new_capacity is not None:
        # Re-checked in the UPDATE itself: an approval may have landed since the read.
        result = db.execute(
            update(Event)
            .where(Event.id == event.id, Event.participant_count <= new_capacity)
            .values(capacity=new_capacity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            raise ConflictError(
                ErrorCode.CAPACITY_BELOW_PARTICIPANTS.value,
                "capacity cannot be below current participant count",
            )
        patch_data["capacity"] = new_capacity

    db.commit()
    db.refresh(event)

    record_audit(
        db,
        actor_id=actor.id,
        action="event.update",
        entity_type="event",
        entity_id=event.id,
        meta={"fields": sorted(patch_data)},
    )
    return event


def _locked_patch(
    db: Session, actor: User, event_id: uuid.UUID, patch: EventUpdate
) -> tuple[Event, dict, int | None]:
    # Lock the row so a concurrent approval cannot slip in under a lowered capacity
    event = db.scalar(select(Event).where(Event.id == event_id).with_for_update())
    if not event:
        raise NotFoundError(ErrorCode.EVENT_NOT_FOUND.value, "event not found")

    require_manage_permission(actor, event)

    if event.status == EventStatus.CANCELLED:
        raise ConflictError(ErrorCode.EVENT_CANCELLED.value, "cannot edit a cancelled event")

    patch_data = {
        key: value
        for key, value in patch.model_dump(exclude_unset=True).items()
        if value is not None or key not in _REQUIRED_EVENT_FIELDS
    }
    new_capacity = patch_data.pop("capacity", None)

    if new_capacity is not None and new_capacity < event.participant_count:
        raise ConflictError(
            ErrorCode.CAPACITY_BELOW_PARTICIPANTS.value,
            "capacity cannot be below current participant count",
        )

    new_starts_at = patch_data.get("starts_at", event.starts_at)
    new_ends_at = patch_data.get("ends_at", event.ends_at)
    if new_ends_at and new_ends_at <= new_starts_at:
        raise ValidationError(
            ErrorCode.INVALID_TIME_RANGE.value, "ends_at must be after starts_at"
        )

    return event, patch_data, new_capacity


def publish_event(db: Session, actor: User, event_id: uuid.UUID) -> Event:
    event = get_managed_event(db, actor, event_id)

    if event.status == EventStatus.CANCELLED:
        raise ConflictError(ErrorCode.EVENT_CANCELLED.value, "cannot publish a cancelled event")
    if event.status == EventStatus.SUSPENDED and not _is_admin(actor):
        raise ConflictError(
            ErrorCode.EVENT_NOT_PUBLISHABLE.value, "suspended events can only be reinstated by an admin"
        )
    if event.starts_at <= _now():
        raise ValidationError(
            ErrorCode.EVENT_STARTS_IN_PAST.value, "starts_at must be in the future to publish"
        )

    event.status = EventStatus.PUBLISHED
    event.published_at = _now()
    db.add(event)
    db.commit()
    db.refresh(event)

    logger.info("event_published", event_id=str(event.id))
    record_audit(
        db,
        actor_id=actor.id,
        action="event.publish",
        entity_type="event",
        entity_id=event.id,
    )
    return event


def cancel_event(db: Session, actor: User, event_id: uuid.UUID) -> Event:
    event = get_managed_event(db, actor, event_id)

    event.status = EventStatus.CANCELLED
    event.cancelled_at = _now()
    db.add(event)
    db.commit()
    db.refresh(event)

    logger.info("event_cancelled", event_id=str(event.id))
    record_audit(
        db,
        actor_id=actor.id,
        action="event.cancel",
        entity_type="event",
        entity_id=event.id,
    )
    return event


def moderate_event(
    db: Session, admin: User, event_id: uuid.UUID, action: ModerationAction
) -> Event:
    event = get_event(db, event_id)

    if event.status == EventStatus.CANCELLED:
        raise ConflictError(ErrorCode.EVENT_CANCELLED.value, "cannot moderate a cancelled event")

    if action == ModerationAction.SUSPEND:
        event.status = EventStatus.SUSPENDED
    else:
        # Reinstate only lifts a suspension; drafts go through publish_event
        if event.status != EventStatus.SUSPENDED:
            raise ConflictError(
                ErrorCode.EVENT_NOT_PUBLISHABLE.value, "only suspended events can be reinstated"
            )
        event.status = EventStatus.PUBLISHED
        event.published_at = event.published_at or _now()

    db.add(event)
    db.commit()
    db.refresh(event)

    logger.info("event_moderated", event_id=str(event.id), action=action.value)
    record_audit(
        db,
        actor_id=admin.id,
        action=f"event.{action.value}",
        entity_type="event",
        entity_id=event.id,
    )
    return event
