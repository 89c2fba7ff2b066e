from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import structlog
from fastapi import APIRouter, HTTPException, Request, Response
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from uaetrail.auth.deps import CurrentUser, DBSession
from uaetrail.auth.jwt import create_access_token, create_refresh_token, hash_refresh_token
from uaetrail.auth.password import hash_password, needs_rehash, password_problems, verify_password
from uaetrail.core.config import settings
from uaetrail.models import RefreshToken, User
from uaetrail.models.user import UserStatus

router = APIRouter(prefix="/auth", tags=["auth"])

logger = structlog.get_logger(__name__)


class AuthTokensOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user_id: str
    email: str
    name: str | None
    role: str
    status: str


def _new_refresh_row(user_id: uuid.UUID, family_id: uuid.UUID | None = None) -> tuple[str, RefreshToken]:
    raw_refresh = create_refresh_token()
    now = datetime.now(timezone.utc)
    token_row = RefreshToken(
        user_id=user_id,
        token_hash=hash_refresh_token(raw_refresh),
        issued_at=now,
        expires_at=now + timedelta(days=settings.refresh_token_ttl_days),
        family_id=family_id or uuid.uuid4(),
    )
    return raw_refresh, token_row


def _set_refresh_cookie(response: Response, raw_refresh: str) -> None:
    response.set_cookie(
        key=settings.refresh_cookie_name,
        value=raw_refresh,
        httponly=True,
        secure=settings.refresh_cookie_secure,
        samesite=settings.refresh_cookie_samesite,
        max_age=int(settings.refresh_token_ttl_days * 86400),
        path="/",
    )


def _tokens_out(user: User, access_token: str) -> AuthTokensOut:
    return AuthTokensOut(
        access_token=access_token,
        expires_in=settings.access_token_ttl_seconds,
        user_id=str(user.id),
        email=user.email,
        name=user.name,
        role=user.role.value,
        status=user.status.value,
    )


class RegisterIn(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    name: str | None = Field(default=None, max_length=200)

    @field_validator("password")
    @classmethod
    def _password_strength(cls, value: str) -> str:
        problems = password_problems(value)
        if problems:
            raise ValueError("password " + ", ".join(problems))
        return value


@router.post("/register", response_model=AuthTokensOut)
def register(payload: RegisterIn, db: DBSession, response: Response):
    email = payload.email.strip().lower()
    existing = db.scalar(select(User).where(User.email == email))
    if existing:
        raise HTTPException(status_code=409, detail="email already registered")

    user = User(email=email, name=payload.name, password_hash=hash_password(payload.password))
    db.add(user)

    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="email already registered") from None

    raw_refresh, token_row = _new_refresh_row(user.id)
    db.add(token_row)

    access_token = create_access_token(user.id, user.role.value)
    db.commit()
    db.refresh(user)

    logger.info("user_registered", user_id=str(user.id))
    _set_refresh_cookie(response, raw_refresh)
    return _tokens_out(user, access_token)


class LoginIn(BaseModel):
    email: EmailStr
    password: str


@router.post("/login", response_model=AuthTokensOut)
def login(payload: LoginIn, db: DBSession, response: Response):
    email = payload.email.strip().lower()
    user = db.scalar(select(User).where(User.email == email))
    if not user or not user.password_hash:
        raise HTTPException(status_code=401, detail="invalid credentials")
    if not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=401, detail="invalid credentials")
    if user.status != UserStatus.ACTIVE:
        raise HTTPException(status_code=403, detail="user is not active")

    user.last_login_at = datetime.now(timezone.utc)
    if needs_rehash(user.password_hash):
        user.password_hash = hash_password(payload.password)
    db.add(user)

    raw_refresh, token_row = _new_refresh_row(user.id)
    db.add(token_row)

    access_token = create_access_token(user.id, user.role.value)
    db.commit()
    db.refresh(user)

    _set_refresh_cookie(response, raw_refresh)
    return _tokens_out(user, access_token)


class RefreshIn(BaseModel):
    refresh_token: str | None = None


@router.post("/refresh", response_model=AuthTokensOut)
def refresh(request: Request, response: Response, db: DBSession, payload: RefreshIn | None = None):
    raw_refresh = payload.refresh_token if payload else None
    if not raw_refresh:
        raw_refresh = request.cookies.get(settings.refresh_cookie_name)
    if not raw_refresh:
        raise HTTPException(status_code=401, detail="missing refresh token")

    token = db.scalar(
        select(RefreshToken).where(RefreshToken.token_hash == hash_refresh_token(raw_refresh))
    )
    if not token:
        raise HTTPException(status_code=401, detail="invalid refresh token")

    now = datetime.now(timezone.utc)
    if token.revoked_at is not None:
        # Replay detected: revoke entire family
        if token.family_id:
            db.execute(
                update(RefreshToken)
                .where(RefreshToken.family_id == token.family_id)
                .where(RefreshToken.revoked_at.is_(None))
                .values(revoked_at=now, revoked_reason="replay")
            )
        db.commit()
        logger.warning("refresh_token_replayed", user_id=str(token.user_id))
        raise HTTPException(status_code=401, detail="refresh token revoked")

    if token.expires_at <= now:
        raise HTTPException(status_code=401, detail="refresh token expired")

    user = db.get(User, token.user_id)
    if not user:
        raise HTTPException(status_code=401, detail="user not found")
    if user.status != UserStatus.ACTIVE:
        raise HTTPException(status_code=403, detail="user is not active")

    # Rotate
    new_raw, new_token = _new_refresh_row(token.user_id, token.family_id)
    db.add(new_token)
    db.flush()

    token.revoked_at = now
    token.revoked_reason = "rotated"
    token.replaced_by = new_token.id
    db.add(token)

    access_token = create_access_token(user.id, user.role.value)
    db.commit()
    db.refresh(user)

    _set_refresh_cookie(response, new_raw)
    return _tokens_out(user, access_token)


class LogoutIn(BaseModel):
    refresh_token: str | None = None


@router.post("/logout")
def logout(request: Request, response: Response, db: DBSession, payload: LogoutIn | None = None):
    raw_refresh = payload.refresh_token if payload else None
    if not raw_refresh:
        raw_refresh = request.cookies.get(settings.refresh_cookie_name)
    if raw_refresh:
        token = db.scalar(
            select(RefreshToken).where(RefreshToken.token_hash == hash_refresh_token(raw_refresh))
        )
        if token and token.revoked_at is None:
            token.revoked_at = datetime.now(timezone.utc)
            token.revoked_reason = "logout"
            db.add(token)

    db.commit()
    response.delete_cookie(key=settings.refresh_cookie_name, path="/")
    return {"status": "ok"}


class MeOut(BaseModel):
    user_id: str
    email: str
    name: str | None
    role: str
    status: str


@router.get("/me", response_model=MeOut)
def me(user: CurrentUser):
    return MeOut(
        user_id=str(user.id),
        email=user.email,
        name=user.name,
        role=user.role.value,
        status=user.status.value,
    )
