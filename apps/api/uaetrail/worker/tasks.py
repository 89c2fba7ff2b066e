import uuid

from celery.utils.log import get_task_logger
from sqlalchemy.orm import Session

from uaetrail.db import SessionLocal
from uaetrail.models.notification import NotificationType
from uaetrail.services.notifications_service import create_notification
from uaetrail.worker.celery_app import celery_app

logger = get_task_logger(__name__)


@celery_app.task(name="notifications.create")
def create_notification_task(
    user_id: str,
    title: str,
    body: str,
    type: str = NotificationType.SYSTEM.value,
    meta: dict | None = None,
) -> dict:
    db: Session = SessionLocal()
    try:
        notification = create_notification(
            db,
            uuid.UUID(user_id),
            title,
            body,
            type=NotificationType(type),
            meta=meta,
        )
        logger.info(
            "notification created notification_id=%s user_id=%s", notification.id, user_id
        )
        return {"notification_id": str(notification.id)}
    except Exception:
        db.rollback()
        logger.exception("notification failed user_id=%s title=%s", user_id, title)
        raise
    finally:
        db.close()
