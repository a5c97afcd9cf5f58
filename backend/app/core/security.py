"""Security helpers for hashing passwords, opaque tokens and signed session JWTs."""

from __future__ import annotations

import datetime as dt
import hashlib
import secrets
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from app.core.config import settings

pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
    pbkdf2_sha256__rounds=settings.PASSWORD_HASH_ROUNDS,
)
SESSION_TOKEN_TYPE = "session"
DEFAULT_TOKEN_BYTES = 32


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str | None) -> bool:
    if not hashed:
        pwd_context.dummy_verify()
        return False
    try:
        return pwd_context.verify(password, hashed)
    except (ValueError, TypeError):
        # Unrecognised or corrupt hash in the store.
        return False


def dummy_verify_password() -> None:
    """Burn the same work as a real verify so unknown accounts are not faster."""
    pwd_context.dummy_verify()


def generate_secure_token(byte_length: int = DEFAULT_TOKEN_BYTES) -> str:
    return secrets.token_hex(byte_length)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_session_jwt(data: dict[str, Any], expires_minutes: int | None = None) -> str:
    to_encode = data.copy()
    now = dt.datetime.now(dt.timezone.utc)
    expire = now + dt.timedelta(minutes=expires_minutes or settings.JWT_EXPIRE_MINUTES)
    to_encode.update({"type": SESSION_TOKEN_TYPE, "iat": int(now.timestamp()), "exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str, *, verify_exp: bool = True) -> dict[str, Any]:
    options = {"verify_exp": verify_exp}
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options=options,
        )
    except ExpiredSignatureError as exc:
        raise ValueError("expired_token") from exc
    except JWTError as exc:
        raise ValueError("invalid_token") from exc
