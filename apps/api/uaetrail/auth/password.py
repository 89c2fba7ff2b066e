from __future__ import annotations

from argon2 import PasswordHasher
from argon2.exceptions import HashingError, InvalidHashError, VerificationError, VerifyMismatchError

MIN_PASSWORD_LENGTH = 8

_hasher = PasswordHasher()


def password_problems(plain: str) -> list[str]:
    """Return human readable reasons the password is too weak (empty when acceptable)."""
    problems: list[str] = []
    if len(plain) < MIN_PASSWORD_LENGTH:
        problems.append(f"must be at least {MIN_PASSWORD_LENGTH} characters")
    if not any(c.isalpha() for c in plain):
        problems.append("must contain a letter")
    if not any(c.isdigit() for c in plain):
        problems.append("must contain a digit")
    return problems


def hash_password(plain: str) -> str:
    if not plain:
        raise ValueError("password is required")
    try:
        return _hasher.hash(plain)
    except HashingError as exc:
        raise ValueError("failed to hash password") from exc


def verify_password(plain: str, hashed: str) -> bool:
    if not plain or not hashed:
        return False
    try:
        return _hasher.verify(hashed, plain)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


def needs_rehash(hashed: str) -> bool:
    # argon2 parameters change between library releases
    return _hasher.check_needs_rehash(hashed)
