"""Resolve an inbound token of unknown kind to an authenticated user."""

from __future__ import annotations

import logging
from typing import Iterable, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.security import SESSION_TOKEN_TYPE, decode_token
from app.models.user import User
from app.services.tokens import verify_access_token
from app.services.users import get_user_by_id

logger = logging.getLogger(__name__)


class TokenVerifier(Protocol):
    name: str

    def try_verify(self, db: Session, token: str) -> User | None:
        ...


class AccessTokenVerifier:
    """Stateful path: opaque token looked up by hash, revocable."""

    name = "access_token"

    def try_verify(self, db: Session, token: str) -> User | None:
        return verify_access_token(db, token)


class SignedTokenVerifier:
    """Stateless path: signature and expiry checked, then the claimed user is loaded."""

    name = "signed_token"

    def try_verify(self, db: Session, token: str) -> User | None:
        try:
            payload = decode_token(token)
        except ValueError:
            return None
        if payload.get("type") != SESSION_TOKEN_TYPE:
            return None
        try:
            user_id = int(payload.get("sub"))
        except (TypeError, ValueError):
            return None
        return get_user_by_id(db, user_id)


class SessionVerifier:
    def __init__(self, verifiers: Iterable[TokenVerifier]) -> None:
        self._verifiers = tuple(verifiers)

    def verify(self, db: Session, token: str | None) -> User | None:
        if not token:
            return None
        for verifier in self._verifiers:
            try:
                user = verifier.try_verify(db, token)
            except SQLAlchemyError:
                logger.exception("Token verification via %s failed; trying next verifier", verifier.name)
                db.rollback()
                continue
            if user is not None:
                return user
        return None


session_verifier = SessionVerifier([AccessTokenVerifier(), SignedTokenVerifier()])
