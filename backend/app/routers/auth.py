"""Authentication endpoints (register, login, logout, verification, password recovery)."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import extract_session_token, get_current_user, get_email_sender, require_feature
from app.core.exceptions import ValidationError
from app.core.rate_limit import client_ip, enforce_rate_limit, rate_limit
from app.db.session import get_db
from app.models.user import User
from app.schemas.auth import (
    ForgotPasswordRequest,
    MessageResponse,
    RegisterResponse,
    ResendVerificationResponse,
    ResetPasswordRequest,
    SessionResponse,
    UserResponse,
    VerificationRequest,
)
from app.schemas.user import UserCreate, UserLogin, UserOut
from app.services.auth import (
    ClientInfo,
    SessionTokens,
    login_user,
    logout,
    logout_everywhere,
    register_user,
    request_password_reset,
    resend_verification,
    reset_password,
    verify_email,
)
from app.services.email import EmailSender

router = APIRouter()

FORGOT_PASSWORD_MESSAGE = "If an account with that email exists, a password reset link has been sent."

registration_enabled = require_feature("ENABLE_REGISTRATION", "registration_disabled")
password_recovery_enabled = require_feature("ENABLE_PASSWORD_RECOVERY", "password_recovery_disabled")


def _client_info(request: Request) -> ClientInfo:
    return ClientInfo(user_agent=request.headers.get("user-agent") or "unknown", ip_address=client_ip(request))


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        token,
        httponly=True,
        samesite="strict",
        secure=settings.is_production,
        path="/",
        max_age=settings.SESSION_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
    )


def _clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        settings.SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        samesite="strict",
        secure=settings.is_production,
    )


def _session_payload(tokens: SessionTokens, message: str) -> dict:
    return {
        "message": message,
        "user": UserOut.model_validate(tokens.user),
        "access_token": tokens.access_token,
        "token": tokens.signed_token,
    }


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(registration_enabled), Depends(rate_limit("register"))],
)
def register(
    payload: UserCreate,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    email_sender: EmailSender = Depends(get_email_sender),
) -> RegisterResponse:
    registration = register_user(db, payload, email_sender=email_sender, client=_client_info(request))
    _set_session_cookie(response, registration.session.access_token)
    return RegisterResponse(
        **_session_payload(registration.session, "user_created_verification_sent"),
        verification_token=registration.verification_token if settings.expose_issued_tokens else None,
        verification_email_sent=registration.verification_email_sent,
    )


@router.post("/login", response_model=SessionResponse, dependencies=[Depends(rate_limit("login"))])
def login(payload: UserLogin, request: Request, response: Response, db: Session = Depends(get_db)) -> SessionResponse:
    tokens = login_user(db, payload.email, payload.password, client=_client_info(request))
    _set_session_cookie(response, tokens.access_token)
    return SessionResponse(**_session_payload(tokens, "logged_in"))


@router.post("/logout", response_model=MessageResponse)
def logout_session(request: Request, response: Response, db: Session = Depends(get_db)) -> MessageResponse:
    logout(db, extract_session_token(request))
    _clear_session_cookie(response)
    return MessageResponse(message="logged_out")


@router.post("/logout-all", response_model=MessageResponse)
@router.delete("/logout", response_model=MessageResponse)
def logout_all_sessions(request: Request, response: Response, db: Session = Depends(get_db)) -> MessageResponse:
    logout_everywhere(db, extract_session_token(request))
    _clear_session_cookie(response)
    return MessageResponse(message="logged_out_everywhere")


@router.get("/validate", response_model=UserResponse)
@router.get("/me", response_model=UserResponse)
def validate_session(current_user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse(user=UserOut.model_validate(current_user))


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    dependencies=[Depends(password_recovery_enabled), Depends(rate_limit("forgot-password"))],
)
def forgot_password(
    payload: ForgotPasswordRequest,
    db: Session = Depends(get_db),
    email_sender: EmailSender = Depends(get_email_sender),
) -> MessageResponse:
    request_password_reset(db, payload.email, email_sender=email_sender)
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    dependencies=[Depends(password_recovery_enabled), Depends(rate_limit("reset-password"))],
)
def reset_password_with_token(payload: ResetPasswordRequest, db: Session = Depends(get_db)) -> MessageResponse:
    reset_password(db, payload.token, payload.new_password)
    return MessageResponse(message="password_reset_success")


@router.post("/verify-email", response_model=MessageResponse, dependencies=[Depends(rate_limit("verify-email"))])
def verify_email_with_token(payload: VerificationRequest, db: Session = Depends(get_db)) -> MessageResponse:
    verify_email(db, payload.token)
    return MessageResponse(message="email_verified")


@router.post("/resend-verification", response_model=ResendVerificationResponse)
@router.put("/verify-email", response_model=ResendVerificationResponse)
def resend_verification_email(
    request: Request,
    response: Response,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    email_sender: EmailSender = Depends(get_email_sender),
) -> ResendVerificationResponse:
    if current_user.email_verified:
        raise ValidationError("email_already_verified")
    enforce_rate_limit(request, response, "resend-verification", str(current_user.id))
    token, sent = resend_verification(db, current_user, email_sender=email_sender)
    return ResendVerificationResponse(
        message="verification_sent",
        verification_token=token if settings.expose_issued_tokens else None,
        verification_email_sent=sent,
    )
