from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import or_, select, update

from uaetrail.auth.deps import DBSession, require_role
from uaetrail.models import RefreshToken, User
from uaetrail.models.user import UserRole, UserStatus
from uaetrail.services.audit import record_audit

router = APIRouter(
    prefix="/admin/users",
    tags=["admin"],
    dependencies=[Depends(require_role(UserRole.ADMIN))],
)

AdminUser = Annotated[User, Depends(require_role(UserRole.ADMIN))]

logger = structlog.get_logger(__name__)


class UserOut(BaseModel):
    user_id: str
    email: str
    name: str | None
    role: str
    status: str
    created_at: datetime
    last_login_at: datetime | None

    @classmethod
    def from_user(cls, u: User) -> "UserOut":
        return cls(
            user_id=str(u.id),
            email=u.email,
            name=u.name,
            role=u.role.value,
            status=u.status.value,
            created_at=u.created_at,
            last_login_at=u.last_login_at,
        )


def _parse_user_id(user_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(user_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="invalid user id") from None


@router.get("", response_model=list[UserOut])
def list_users(
    db: DBSession,
    query: str | None = Query(default=None, min_length=1),
    role: UserRole | None = None,
    limit: int = Query(default=50, ge=1, le=200),
):
    stmt = select(User).order_by(User.created_at.desc()).limit(limit)
    if query:
        like = f"%{query.strip().lower()}%"
        stmt = stmt.where(
            or_(
                User.email.ilike(like),
                User.name.ilike(like),
            )
        )
    if role is not None:
        stmt = stmt.where(User.role == role)

    return [UserOut.from_user(u) for u in db.scalars(stmt).all()]


class UpdateUserIn(BaseModel):
    role: UserRole | None = None
    status: UserStatus | None = None


@router.patch("/{user_id}", response_model=UserOut)
def update_user(user_id: str, payload: UpdateUserIn, db: DBSession, admin: AdminUser):
    if payload.role is None and payload.status is None:
        raise HTTPException(status_code=400, detail="no changes provided")

    user = db.get(User, _parse_user_id(user_id))
    if not user:
        raise HTTPException(status_code=404, detail="user not found")

    changes: dict[str, str] = {}
    if payload.role is not None:
        if user.id == admin.id:
            raise HTTPException(status_code=400, detail="cannot change own role")
        user.role = payload.role
        changes["role"] = payload.role.value

    if payload.status is not None:
        user.status = payload.status
        changes["status"] = payload.status.value

    db.add(user)
    db.commit()
    db.refresh(user)

    record_audit(
        db,
        actor_id=admin.id,
        action="user.update",
        entity_type="user",
        entity_id=user.id,
        meta=changes,
    )
    return UserOut.from_user(user)


@router.post("/{user_id}/revoke-sessions")
def revoke_sessions(user_id: str, db: DBSession, admin: AdminUser):
    target_id = _parse_user_id(user_id)

    now = datetime.now(timezone.utc)
    result = db.execute(
        update(RefreshToken)
        .where(RefreshToken.user_id == target_id)
        .where(RefreshToken.revoked_at.is_(None))
        .values(revoked_at=now, revoked_reason="admin")
    )
    db.commit()

    revoked = result.rowcount or 0
    logger.info("sessions_revoked", user_id=str(target_id), revoked=revoked, admin_id=str(admin.id))
    record_audit(
        db,
        actor_id=admin.id,
        action="user.revoke_sessions",
        entity_type="user",
        entity_id=target_id,
        meta={"revoked": revoked},
    )
    return {"revoked": revoked}
