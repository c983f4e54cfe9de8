"""Password hashing and credential rules for logbook accounts."""
from __future__ import annotations

from passlib.context import CryptContext

from .errors import AccountError

PASSWORD_MIN_LENGTH = 8
USERNAME_MAX_LENGTH = 30

_pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return _pwd_context.hash(password)


def verify_password(password: str, hashed: str | None) -> bool:
    if not hashed:
        return False
    try:
        return _pwd_context.verify(password, hashed)
    except ValueError:
        return False


def check_password(password: str) -> None:
    if len(password or "") < PASSWORD_MIN_LENGTH:
        raise AccountError(f"password must be at least {PASSWORD_MIN_LENGTH} characters")


def normalize_username(username: str) -> str:
    cleaned = (username or "").strip()
    if not cleaned or len(cleaned) > USERNAME_MAX_LENGTH:
        raise AccountError(f"username must be 1-{USERNAME_MAX_LENGTH} characters")
    return cleaned


def normalize_email(email: str | None) -> str | None:
    if email is None:
        return None
    cleaned = email.strip()
    return cleaned or None


__all__ = [
    "PASSWORD_MIN_LENGTH",
    "USERNAME_MAX_LENGTH",
    "check_password",
    "hash_password",
    "normalize_email",
    "normalize_username",
    "verify_password",
]
