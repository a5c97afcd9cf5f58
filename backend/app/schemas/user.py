"""Pydantic schemas for user payloads and responses."""

from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.core.sanitize import clean_email, clean_single_line, has_control_chars

MAX_NAME_LEN = 80
MIN_NAME_LEN = 2
MAX_PASSWORD_LEN = 128


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=MAX_PASSWORD_LEN)
    name: str = Field(min_length=MIN_NAME_LEN, max_length=MAX_NAME_LEN)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return clean_email(value)

    @field_validator("name", mode="before")
    @classmethod
    def normalize_name(cls, value: str) -> str:
        return clean_single_line(value)

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        if has_control_chars(value):
            raise ValueError("password_contains_control_chars")
        return value


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=MAX_PASSWORD_LEN)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return clean_email(value)


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: EmailStr
    name: str
    email_verified: bool
    created_at: dt.datetime
    updated_at: dt.datetime
