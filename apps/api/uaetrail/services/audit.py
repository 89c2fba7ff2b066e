from __future__ import annotations

import uuid
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from uaetrail.models import AuditLog

logger = structlog.get_logger(__name__)


def record_audit(
    db: Session,
    *,
    actor_id: uuid.UUID | None,
    action: str,
    entity_type: str,
    entity_id: uuid.UUID,
    meta: dict[str, Any] | None = None,
) -> AuditLog:
    """Write one audit row in its own commit.

    Call after the business transaction has committed so that a failed
    decision never leaves an audit trail behind.
    """
    entry = AuditLog(
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        meta=meta or {},
    )
    db.add(entry)
    db.commit()
    logger.info(
        "audit_recorded",
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        actor_id=str(actor_id) if actor_id else None,
    )
    return entry


def list_audit_entries(db: Session, limit: int = 100) -> list[AuditLog]:
    stmt = select(AuditLog).order_by(AuditLog.created_at.desc()).limit(limit)
    return list(db.scalars(stmt).all())
