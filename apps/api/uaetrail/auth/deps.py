from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from uaetrail.auth.jwt import verify_access_token
from uaetrail.db import get_db
from uaetrail.models import User
from uaetrail.models.user import UserRole, UserStatus

DBSession = Annotated[Session, Depends(get_db)]


def _unauthorized(detail: str = "unauthorized") -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(request: Request, db: DBSession) -> User:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        raise _unauthorized("missing bearer token")

    token = auth.removeprefix("Bearer ").strip()
    try:
        claims = verify_access_token(token)
        user_id = uuid.UUID(claims["sub"])
    except (ValueError, KeyError):
        raise _unauthorized("invalid access token") from None

    user = db.get(User, user_id)
    if not user:
        raise _unauthorized("user not found")
    if user.status != UserStatus.ACTIVE:
        raise HTTPException(status_code=403, detail="user is not active")
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_role(*roles: UserRole):
    allowed = set(roles)

    def _dependency(user: CurrentUser) -> User:
        # Admins pass every role gate
        if user.role == UserRole.ADMIN or user.role in allowed:
            return user
        raise HTTPException(status_code=403, detail="insufficient role")

    return _dependency
