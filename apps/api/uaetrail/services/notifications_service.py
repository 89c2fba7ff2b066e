from __future__ import annotations

import uuid
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from uaetrail.models import Notification, User
from uaetrail.models.notification import NotificationType
from uaetrail.services.error_codes import ErrorCode
from uaetrail.services.exceptions import NotFoundError

logger = structlog.get_logger(__name__)


def create_notification(
    db: Session,
    user_id: uuid.UUID,
    title: str,
    body: str,
    type: NotificationType = NotificationType.SYSTEM,
    meta: dict[str, Any] | None = None,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        body=body,
        meta=meta or {},
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def dispatch_notification(
    user_id: uuid.UUID,
    title: str,
    body: str,
    type: NotificationType = NotificationType.SYSTEM,
    meta: dict[str, Any] | None = None,
) -> None:
    """Queue a notification; only call once the originating transaction committed.

    Delivery is best-effort: broker failures are logged, never raised.
    """
    from uaetrail.worker.tasks import create_notification_task

    try:
        create_notification_task.delay(str(user_id), title, body, type.value, meta or {})
    except Exception:
        logger.exception("notification_dispatch_failed", user_id=str(user_id), title=title)


def list_notifications(db: Session, user: User, limit: int = 50) -> list[Notification]:
    stmt = (
        select(Notification)
        .where(Notification.user_id == user.id)
        .order_by(Notification.created_at.desc())
        .limit(limit)
    )
    return list(db.scalars(stmt).all())


def mark_read(db: Session, user: User, notification_id: uuid.UUID) -> Notification:
    notification = db.get(Notification, notification_id)
    if not notification or notification.user_id != user.id:
        raise NotFoundError(ErrorCode.NOTIFICATION_NOT_FOUND.value, "notification not found")

    if not notification.is_read:
        notification.is_read = True
        db.add(notification)
        db.commit()
        db.refresh(notification)
    return notification
