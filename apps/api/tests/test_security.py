from __future__ import annotations

import uuid

import jwt as pyjwt
import pytest

from uaetrail.auth.jwt import create_access_token, hash_refresh_token, verify_access_token
from uaetrail.auth.password import hash_password, password_problems, verify_password
from uaetrail.core.config import settings
from uaetrail.middleware.rate_limit import parse_rate


@pytest.mark.parametrize(
    "rate, expected",
    [
        ("60/minute", (60, 60)),
        ("20/min", (20, 60)),
        ("5/second", (5, 1)),
        (" 1000/Day ", (1000, 86400)),
    ],
)
def test_parse_rate(rate, expected):
    assert parse_rate(rate) == expected


@pytest.mark.parametrize("rate", ["60", "60/fortnight"])
def test_parse_rate_rejects_garbage(rate):
    with pytest.raises(ValueError):
        parse_rate(rate)


def test_password_policy():
    assert password_problems("StrongPass123") == []
    assert "must contain a digit" in password_problems("NoDigitsHere")
    assert len(password_problems("a1")) == 1


def test_password_hash_roundtrip():
    hashed = hash_password("StrongPass123")
    assert verify_password("StrongPass123", hashed)
    assert not verify_password("WrongPass123", hashed)
    assert not verify_password("StrongPass123", "not-a-hash")


def test_access_token_claims():
    user_id = uuid.uuid4()
    claims = verify_access_token(create_access_token(user_id, "ORGANIZER"))
    assert claims["sub"] == str(user_id)
    assert claims["role"] == "ORGANIZER"
    assert claims["typ"] == "access"


def test_access_token_rejects_other_token_types():
    forged = pyjwt.encode(
        {
            "sub": str(uuid.uuid4()),
            "typ": "refresh",
            "iat": 0,
            "exp": 4102444800,
            "iss": settings.jwt_issuer,
            "aud": settings.jwt_audience,
        },
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )
    with pytest.raises(ValueError):
        verify_access_token(forged)


def test_access_token_rejects_wrong_secret():
    forged = pyjwt.encode(
        {"sub": str(uuid.uuid4()), "typ": "access"},
        "some-other-secret-that-is-long-enough",
        algorithm="HS256",
    )
    with pytest.raises(ValueError):
        verify_access_token(forged)


def test_refresh_token_hash_is_keyed_and_stable():
    assert hash_refresh_token("abc") == hash_refresh_token("abc")
    assert hash_refresh_token("abc") != hash_refresh_token("abd")
    assert len(hash_refresh_token("abc")) == 64
