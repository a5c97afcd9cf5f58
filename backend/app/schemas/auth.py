"""Auth-related schemas (sessions, verification, password recovery)."""

from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.core.sanitize import clean_email, clean_token, has_control_chars
from app.schemas.user import MAX_PASSWORD_LEN, UserOut

MAX_TOKEN_LEN = 256


class SessionResponse(BaseModel):
    message: str
    user: UserOut
    access_token: str
    token: str
    token_type: str = "bearer"


class RegisterResponse(SessionResponse):
    verification_token: str | None = None
    verification_email_sent: bool = False


class UserResponse(BaseModel):
    user: UserOut


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class VerificationRequest(BaseModel):
    token: str = Field(min_length=1, max_length=MAX_TOKEN_LEN)

    @field_validator("token", mode="before")
    @classmethod
    def normalize_token(cls, value: str) -> str:
        return clean_token(value)


class ResendVerificationResponse(MessageResponse):
    verification_token: str | None = None
    verification_email_sent: bool = False


class ForgotPasswordRequest(BaseModel):
    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return clean_email(value)


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1, max_length=MAX_TOKEN_LEN)
    new_password: str = Field(min_length=1, max_length=MAX_PASSWORD_LEN)

    @field_validator("token", mode="before")
    @classmethod
    def normalize_token(cls, value: str) -> str:
        return clean_token(value)

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, value: str) -> str:
        if has_control_chars(value):
            raise ValueError("password_contains_control_chars")
        return value
