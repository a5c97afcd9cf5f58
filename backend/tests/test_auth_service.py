from __future__ import annotations

import datetime as dt

import pytest
from sqlalchemy import update

from app.core.exceptions import ConflictError, UnauthorizedError, ValidationError
from app.core.security import hash_token, verify_password
from app.models.access_token import AccessToken
from app.models.password_reset_token import PasswordResetToken
from app.models.user import User
from app.schemas.user import UserCreate
from app.services.auth import (
    ClientInfo,
    login_user,
    logout_everywhere,
    register_user,
    request_password_reset,
    resend_verification,
    reset_password,
    verify_email,
)
from app.services.session_verifier import session_verifier
from app.services.tokens import issue_access_token, password_reset_tokens

STRONG_PASSWORD = "Aa1!aaaa"


def _register(db, email_sender, email: str = "a@x.com"):
    data = UserCreate(email=email, password=STRONG_PASSWORD, name="Ann")
    return register_user(db, data, email_sender=email_sender, client=ClientInfo("pytest", "127.0.0.1"))


def _password_hash(db, user_id: int) -> str:
    return db.query(User.password_hash).filter(User.id == user_id).scalar()


def test_register_issues_session_and_verification(db, email_sender) -> None:
    registration = _register(db, email_sender)
    user = registration.session.user

    assert user.email == "a@x.com"
    assert user.email_verified is False
    assert user.password_hash != STRONG_PASSWORD
    assert session_verifier.verify(db, registration.session.access_token).id == user.id
    assert session_verifier.verify(db, registration.session.signed_token).id == user.id
    assert registration.verification_email_sent is True
    assert email_sender.last_token() == registration.verification_token


def test_register_duplicate_normalized_email_conflicts(db, email_sender) -> None:
    _register(db, email_sender, "a@x.com")

    with pytest.raises(ConflictError):
        _register(db, email_sender, "  A@X.COM ")
    assert db.query(User).count() == 1


def test_register_rejects_weak_password_with_all_reasons(db, email_sender) -> None:
    data = UserCreate(email="a@x.com", password="weak", name="Ann")

    with pytest.raises(ValidationError) as excinfo:
        register_user(db, data, email_sender=email_sender)

    assert excinfo.value.details["errors"] == [
        "password_too_short",
        "password_missing_uppercase",
        "password_missing_digit",
        "password_missing_symbol",
    ]
    assert db.query(User).count() == 0


def test_register_survives_email_failure(db, email_sender) -> None:
    email_sender.fail = True

    registration = _register(db, email_sender)

    assert registration.verification_email_sent is False
    assert verify_email(db, registration.verification_token) == registration.session.user.id


def test_login_mismatches_are_indistinguishable(db, email_sender) -> None:
    _register(db, email_sender)

    with pytest.raises(UnauthorizedError) as wrong_password:
        login_user(db, "a@x.com", "Wrong1!pass")
    with pytest.raises(UnauthorizedError) as unknown_user:
        login_user(db, "nobody@x.com", STRONG_PASSWORD)

    assert wrong_password.value.to_dict() == unknown_user.value.to_dict()


def test_login_is_case_insensitive_on_email(db, email_sender) -> None:
    user = _register(db, email_sender).session.user

    tokens = login_user(db, " A@x.com", STRONG_PASSWORD)

    assert tokens.user.id == user.id
    assert session_verifier.verify(db, tokens.access_token).id == user.id


def test_logout_everywhere_revokes_every_session(db, email_sender) -> None:
    registration = _register(db, email_sender)
    second = login_user(db, "a@x.com", STRONG_PASSWORD)

    logout_everywhere(db, second.access_token)

    assert session_verifier.verify(db, registration.session.access_token) is None
    assert session_verifier.verify(db, second.access_token) is None
    logout_everywhere(db, "unknown-token")
    logout_everywhere(db, None)


def test_forgot_password_is_silent_for_unknown_email(db, email_sender) -> None:
    request_password_reset(db, "nonexistent@x.com", email_sender=email_sender)

    assert email_sender.sent == []
    assert db.query(PasswordResetToken).count() == 0


def test_reset_password_flow(db, email_sender) -> None:
    registration = _register(db, email_sender)
    user_id = registration.session.user.id
    request_password_reset(db, "a@x.com", email_sender=email_sender)
    token = email_sender.last_token()

    assert reset_password(db, token, "NewPass1!") == user_id

    assert verify_password("NewPass1!", _password_hash(db, user_id))
    assert db.query(AccessToken).filter(AccessToken.user_id == user_id).count() == 0
    assert password_reset_tokens.verify(db, token) is None
    with pytest.raises(ValidationError, match="invalid_or_expired_reset_token"):
        reset_password(db, token, "Other1!pass")
    login_user(db, "a@x.com", "NewPass1!")


def test_reset_password_revokes_sessions_when_consume_loses_race(db, email_sender, monkeypatch) -> None:
    registration = _register(db, email_sender)
    user_id = registration.session.user.id
    issue_access_token(db, user_id)
    token = password_reset_tokens.issue(db, user_id)
    monkeypatch.setattr(password_reset_tokens, "consume", lambda *_args, **_kwargs: False)

    reset_password(db, token, "NewPass1!")

    assert db.query(AccessToken).filter(AccessToken.user_id == user_id).count() == 0


def test_stale_reset_token_leaves_password_unchanged(db, email_sender) -> None:
    user_id = _register(db, email_sender).session.user.id
    token = password_reset_tokens.issue(db, user_id)
    before = _password_hash(db, user_id)
    db.execute(
        update(PasswordResetToken)
        .where(PasswordResetToken.token_hash == hash_token(token))
        .values(expires_at=dt.datetime.now(dt.timezone.utc) - dt.timedelta(hours=1, minutes=1))
        .execution_options(synchronize_session=False)
    )
    db.commit()

    with pytest.raises(ValidationError, match="invalid_or_expired_reset_token"):
        reset_password(db, token, "NewPass1!")

    assert _password_hash(db, user_id) == before


def test_reset_password_checks_policy_before_token(db, email_sender) -> None:
    user_id = _register(db, email_sender).session.user.id
    token = password_reset_tokens.issue(db, user_id)

    with pytest.raises(ValidationError, match="password_requirements_not_met"):
        reset_password(db, token, "short")

    assert password_reset_tokens.verify(db, token) == user_id


def test_verify_email_then_resend_is_refused(db, email_sender) -> None:
    registration = _register(db, email_sender)
    user = registration.session.user

    verify_email(db, registration.verification_token)

    assert db.get(User, user.id).email_verified is True
    with pytest.raises(ValidationError, match="invalid_or_expired_verification_token"):
        verify_email(db, registration.verification_token)
    with pytest.raises(ValidationError, match="email_already_verified"):
        resend_verification(db, db.get(User, user.id), email_sender=email_sender)


def test_resend_issues_a_new_working_token(db, email_sender) -> None:
    registration = _register(db, email_sender)

    token, sent = resend_verification(db, registration.session.user, email_sender=email_sender)

    assert sent is True
    assert token != registration.verification_token
    assert verify_email(db, token) == registration.session.user.id
