from __future__ import annotations

import hashlib
import hmac
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from jwt import PyJWTError

from uaetrail.core.config import settings

ACCESS_TOKEN_TYPE = "access"
_REQUIRED_CLAIMS = ["sub", "exp", "iat", "iss", "aud", "typ"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def create_access_token(user_id: uuid.UUID, role: str, ttl_seconds: int | None = None) -> str:
    """Short-lived bearer token; the role claim is informational, deps re-read the user row."""
    now = _now()
    exp = now + timedelta(seconds=ttl_seconds or settings.access_token_ttl_seconds)
    claims = {
        "sub": str(user_id),
        "role": role,
        "typ": ACCESS_TOKEN_TYPE,
        "jti": uuid.uuid4().hex,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_access_token(token: str) -> dict[str, Any]:
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            options={"require": _REQUIRED_CLAIMS},
        )
    except PyJWTError as exc:
        raise ValueError("invalid access token") from exc

    if claims.get("typ") != ACCESS_TOKEN_TYPE:
        raise ValueError("unexpected token type")
    return claims


def create_refresh_token() -> str:
    return secrets.token_urlsafe(48)


def hash_refresh_token(raw_token: str) -> str:
    # Only the keyed digest is stored; the raw value lives in the cookie
    key = (settings.refresh_token_pepper or settings.jwt_secret).encode("utf-8")
    return hmac.new(key, raw_token.encode("utf-8"), hashlib.sha256).hexdigest()
