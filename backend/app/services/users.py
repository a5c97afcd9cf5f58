"""Credential store: user records keyed by normalized email or id."""

from __future__ import annotations

import logging

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError
from app.core.sanitize import clean_email
from app.core.security import hash_password
from app.models.user import User, utcnow

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return clean_email(email)


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def get_user_by_id(db: Session, user_id: int) -> User | None:
    return db.get(User, user_id)


def create_user(db: Session, *, email: str, password: str, name: str) -> User:
    normalized = normalize_email(email)
    if get_user_by_email(db, normalized):
        raise ConflictError("email_exists")

    user = User(
        email=normalized,
        name=name.strip(),
        password_hash=hash_password(password),
        email_verified=False,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration for the same address.
        db.rollback()
        raise ConflictError("email_exists")
    db.refresh(user)
    logger.info("User created: %s", user.email)
    return user


def update_password(db: Session, user_id: int, new_password: str) -> bool:
    result = db.execute(
        update(User)
        .where(User.id == user_id)
        .values(password_hash=hash_password(new_password), updated_at=utcnow())
        .execution_options(synchronize_session="fetch")
    )
    db.commit()
    if not result.rowcount:
        logger.warning("Password update matched no user: %s", user_id)
        return False
    logger.info("Password updated for user %s", user_id)
    return True


def mark_email_verified(db: Session, user_id: int) -> bool:
    result = db.execute(
        update(User)
        .where(User.id == user_id, User.email_verified.is_(False))
        .values(email_verified=True, updated_at=utcnow())
        .execution_options(synchronize_session="fetch")
    )
    db.commit()
    if result.rowcount:
        logger.info("Email verified for user %s", user_id)
    return bool(result.rowcount)
