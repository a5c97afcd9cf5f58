"""Common FastAPI dependencies for authentication and collaborators."""

from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import ForbiddenError, UnauthorizedError
from app.db.session import get_db
from app.models.user import User
from app.services.email import EmailSender
from app.services.session_verifier import session_verifier


def _extract_bearer_token(request: Request) -> str | None:
    authorization = request.headers.get("Authorization", "")
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    cleaned = token.strip()
    return cleaned or None


def extract_session_token(request: Request) -> str | None:
    return _extract_bearer_token(request) or request.cookies.get(settings.SESSION_COOKIE_NAME) or None


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    token = extract_session_token(request)
    if not token:
        raise UnauthorizedError("not_authenticated")

    user = session_verifier.verify(db, token)
    if user is None:
        raise UnauthorizedError("invalid_token")
    return user


def get_email_sender(request: Request) -> EmailSender:
    return request.app.state.email_sender


def require_feature(flag: str, message: str):
    def _checker() -> None:
        if not getattr(settings, flag):
            raise ForbiddenError(message)

    return _checker
