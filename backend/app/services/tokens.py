"""Token manager: issue, verify and revoke access, reset and verification tokens.

Only the SHA-256 of each opaque token is stored. Every lookup filters on
expiry (and on ``used`` for one-shot tokens), so a stored row alone never
makes a token valid. Expired rows are left in place until
``cleanup_expired_tokens`` runs.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Callable

from sqlalchemy import delete, or_, update
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.security import generate_secure_token, hash_token
from app.models.access_token import AccessToken
from app.models.email_verification_token import EmailVerificationToken
from app.models.password_reset_token import PasswordResetToken
from app.models.user import User

logger = logging.getLogger(__name__)

MAX_USER_AGENT_LEN = 512
MAX_IP_LEN = 64


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _session_expiry(now: dt.datetime) -> dt.datetime:
    return now + dt.timedelta(days=settings.SESSION_TOKEN_EXPIRE_DAYS)


# ===== ACCESS TOKENS =====


def issue_access_token(
    db: Session,
    user_id: int,
    *,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> str:
    token = generate_secure_token()
    now = _utcnow()
    db.add(
        AccessToken(
            user_id=user_id,
            token_hash=hash_token(token),
            expires_at=_session_expiry(now),
            created_at=now,
            last_used_at=now,
            user_agent=user_agent[:MAX_USER_AGENT_LEN] if user_agent else None,
            ip_address=ip_address[:MAX_IP_LEN] if ip_address else None,
        )
    )
    db.commit()
    logger.info("Access token issued for user %s", user_id)
    return token


def verify_access_token(db: Session, token: str | None) -> User | None:
    """Return the owner of a live access token.

    Unknown, expired and revoked tokens all yield ``None``.
    """
    if not token:
        return None
    token_hash = hash_token(token)
    now = _utcnow()
    user = (
        db.query(User)
        .join(AccessToken, AccessToken.user_id == User.id)
        .filter(AccessToken.token_hash == token_hash, AccessToken.expires_at > now)
        .first()
    )
    if user is None:
        return None

    db.execute(
        update(AccessToken)
        .where(AccessToken.token_hash == token_hash)
        .values(last_used_at=now)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return user


def revoke_access_token(db: Session, token: str | None) -> bool:
    if not token:
        return False
    result = db.execute(
        delete(AccessToken)
        .where(AccessToken.token_hash == hash_token(token))
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return bool(result.rowcount)


def revoke_all_access_tokens(db: Session, user_id: int) -> int:
    result = db.execute(
        delete(AccessToken)
        .where(AccessToken.user_id == user_id)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    logger.info("Revoked %s access token(s) for user %s", result.rowcount, user_id)
    return result.rowcount or 0


# ===== ONE-SHOT TOKENS =====


class OneTimeTokenManager:
    """Issued -> consumed | expired. Verification and consumption are separate steps."""

    def __init__(
        self,
        model: type[PasswordResetToken] | type[EmailVerificationToken],
        *,
        lifetime: Callable[[], dt.timedelta],
        kind: str,
    ) -> None:
        self.model = model
        self.lifetime = lifetime
        self.kind = kind

    def issue(self, db: Session, user_id: int) -> str:
        token = generate_secure_token()
        now = _utcnow()
        db.add(
            self.model(
                user_id=user_id,
                token_hash=hash_token(token),
                expires_at=now + self.lifetime(),
                used=False,
                created_at=now,
            )
        )
        db.commit()
        logger.info("%s token issued for user %s", self.kind, user_id)
        return token

    def verify(self, db: Session, token: str | None) -> int | None:
        """Return the owning user id of an unused, unexpired token without consuming it."""
        if not token:
            return None
        model = self.model
        row = (
            db.query(model.user_id)
            .filter(
                model.token_hash == hash_token(token),
                model.used.is_(False),
                model.expires_at > _utcnow(),
            )
            .first()
        )
        if row is None:
            logger.warning("%s token rejected: invalid, used or expired", self.kind)
            return None
        return row.user_id

    def consume(self, db: Session, token: str | None) -> bool:
        if not token:
            return False
        model = self.model
        result = db.execute(
            update(model)
            .where(model.token_hash == hash_token(token))
            .values(used=True)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        return bool(result.rowcount)


password_reset_tokens = OneTimeTokenManager(
    PasswordResetToken,
    lifetime=lambda: dt.timedelta(minutes=settings.PASSWORD_RESET_TOKEN_EXPIRE_MINUTES),
    kind="password_reset",
)
email_verification_tokens = OneTimeTokenManager(
    EmailVerificationToken,
    lifetime=lambda: dt.timedelta(hours=settings.EMAIL_TOKEN_EXPIRE_HOURS),
    kind="email_verification",
)


# ===== HOUSEKEEPING =====


def cleanup_expired_tokens(db: Session, *, dry_run: bool = False) -> dict[str, int]:
    now = _utcnow()
    counts: dict[str, int] = {}
    targets = {
        "access_tokens": (AccessToken, AccessToken.expires_at <= now),
        "password_reset_tokens": (
            PasswordResetToken,
            or_(PasswordResetToken.expires_at <= now, PasswordResetToken.used.is_(True)),
        ),
        "email_verification_tokens": (
            EmailVerificationToken,
            or_(EmailVerificationToken.expires_at <= now, EmailVerificationToken.used.is_(True)),
        ),
    }
    for name, (model, condition) in targets.items():
        if dry_run:
            counts[name] = db.query(model).filter(condition).count()
        else:
            statement = delete(model).where(condition).execution_options(synchronize_session=False)
            counts[name] = db.execute(statement).rowcount or 0
    if dry_run:
        db.rollback()
    else:
        db.commit()
    logger.info("Token cleanup%s: %s", " (dry run)" if dry_run else "", counts)
    return counts
