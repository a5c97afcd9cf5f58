"""Service helpers for registration, login, logout, email verification and password recovery."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.core.exceptions import UnauthorizedError, ValidationError
from app.core.password_policy import password_policy_errors
from app.core.security import create_session_jwt, dummy_verify_password, verify_password
from app.models.user import User
from app.schemas.user import UserCreate
from app.services.email import EmailSender, build_password_reset_email, build_verification_email, deliver
from app.services.session_verifier import session_verifier
from app.services.tokens import (
    email_verification_tokens,
    issue_access_token,
    password_reset_tokens,
    revoke_access_token,
    revoke_all_access_tokens,
)
from app.services.users import create_user, get_user_by_email, mark_email_verified, update_password

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientInfo:
    user_agent: str | None = None
    ip_address: str | None = None


@dataclass(frozen=True)
class SessionTokens:
    user: User
    access_token: str
    signed_token: str


@dataclass(frozen=True)
class Registration:
    session: SessionTokens
    verification_token: str
    verification_email_sent: bool


def ensure_password_policy(password: str) -> None:
    errors = password_policy_errors(password)
    if errors:
        raise ValidationError("password_requirements_not_met", details={"errors": errors})


def start_session(db: Session, user: User, client: ClientInfo | None = None) -> SessionTokens:
    client = client or ClientInfo()
    access_token = issue_access_token(
        db,
        user.id,
        user_agent=client.user_agent,
        ip_address=client.ip_address,
    )
    signed_token = create_session_jwt({"sub": str(user.id), "email": user.email})
    return SessionTokens(user=user, access_token=access_token, signed_token=signed_token)


def send_email_verification(db: Session, user: User, email_sender: EmailSender) -> tuple[str, bool]:
    token = email_verification_tokens.issue(db, user.id)
    sent = deliver(email_sender, build_verification_email(user.email, user.name, token))
    return token, sent


def register_user(
    db: Session,
    data: UserCreate,
    *,
    email_sender: EmailSender,
    client: ClientInfo | None = None,
) -> Registration:
    ensure_password_policy(data.password)
    user = create_user(db, email=data.email, password=data.password, name=data.name)
    verification_token, sent = send_email_verification(db, user, email_sender)
    session = start_session(db, user, client)
    return Registration(session=session, verification_token=verification_token, verification_email_sent=sent)


def authenticate_user(db: Session, email: str, password: str) -> User | None:
    user = get_user_by_email(db, email)
    if not user:
        dummy_verify_password()
        logger.warning("Login failed: unknown account")
        return None
    if not verify_password(password, user.password_hash):
        logger.warning("Login failed: invalid password (user %s)", user.id)
        return None
    logger.info("User authenticated: %s", user.id)
    return user


def login_user(db: Session, email: str, password: str, *, client: ClientInfo | None = None) -> SessionTokens:
    user = authenticate_user(db, email, password)
    if not user:
        raise UnauthorizedError("invalid_credentials")
    return start_session(db, user, client)


def logout(db: Session, token: str | None) -> None:
    if revoke_access_token(db, token):
        logger.info("Session revoked")


def logout_everywhere(db: Session, token: str | None) -> None:
    user = session_verifier.verify(db, token)
    if user is None:
        return
    revoke_all_access_tokens(db, user.id)


def request_password_reset(db: Session, email: str, *, email_sender: EmailSender) -> None:
    """Issue and mail a reset token when the account exists; silent otherwise."""
    user = get_user_by_email(db, email)
    if not user:
        logger.info("Password reset requested for an unknown email")
        return
    token = password_reset_tokens.issue(db, user.id)
    deliver(email_sender, build_password_reset_email(user.email, user.name, token))


def reset_password(db: Session, token: str, new_password: str) -> int:
    ensure_password_policy(new_password)
    user_id = password_reset_tokens.verify(db, token)
    if user_id is None:
        raise ValidationError("invalid_or_expired_reset_token")

    if not update_password(db, user_id, new_password):
        raise ValidationError("invalid_or_expired_reset_token")
    if not password_reset_tokens.consume(db, token):
        logger.warning("Reset token for user %s was consumed concurrently", user_id)
    # Runs even when consume matched nothing: the password has already changed.
    revoke_all_access_tokens(db, user_id)
    logger.info("Password reset completed for user %s", user_id)
    return user_id


def verify_email(db: Session, token: str) -> int:
    user_id = email_verification_tokens.verify(db, token)
    if user_id is None:
        raise ValidationError("invalid_or_expired_verification_token")
    mark_email_verified(db, user_id)
    email_verification_tokens.consume(db, token)
    return user_id


def resend_verification(db: Session, user: User, *, email_sender: EmailSender) -> tuple[str, bool]:
    if user.email_verified:
        raise ValidationError("email_already_verified")
    return send_email_verification(db, user, email_sender)
