"""
Identity service — Pydantic V2 request/response schemas for the auth domain.

Separation of concerns:
  - *Request  models:  input from the client (strict extra="forbid")
  - *Response models:  output to the client (no write-only fields exposed)

Wire names are camelCase (firstName, isVerified, ...) to match the LearnHub
web client; Python attribute names stay snake_case.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from app.auth.constants import (
    NAME_MAX_LENGTH,
    NAME_MIN_LENGTH,
    OTP_LENGTH,
    PASSWORD_MAX_LENGTH,
    PASSWORD_MIN_LENGTH,
)
from app.auth.utils import normalize_email


# ── Shared base ───────────────────────────────────────────────────────────────

class _Base(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class _EmailBody(_Base):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def _normalize(cls, value: str) -> str:
        return normalize_email(value)


# ── Requests ──────────────────────────────────────────────────────────────────

class RegisterRequest(_EmailBody):
    """Body for POST /auth/register."""

    first_name: str = Field(min_length=NAME_MIN_LENGTH, max_length=NAME_MAX_LENGTH)
    last_name: str = Field(min_length=NAME_MIN_LENGTH, max_length=NAME_MAX_LENGTH)
    password: str = Field(min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)


class LoginRequest(_EmailBody):
    """Body for POST /auth/login."""

    password: str = Field(min_length=1, max_length=PASSWORD_MAX_LENGTH)


class VerifyOTPRequest(_EmailBody):
    """Body for POST /auth/verify-otp."""

    otp: str = Field(
        min_length=OTP_LENGTH,
        max_length=OTP_LENGTH,
        pattern=r"^\d+$",
        description="6-digit code from the verification email",
    )


class ResendOTPRequest(_EmailBody):
    """Body for POST /auth/resend-otp."""


# ── Response models ───────────────────────────────────────────────────────────

class UserResponse(BaseModel):
    """
    Public view of a credential.

    Password hash, OTP and lockout counters are never serialized.
    """

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    is_verified: bool
    last_login_at: datetime | None = None
    created_at: datetime


class RegisterResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    message: str
    email: str
    # Advisory pacing for the "resend code" button; the server does not enforce it
    resend_cooldown_seconds: int
    # Set when the verification email could not be handed to the notification service
    warning: str | None = None


class ResendOTPResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    message: str
    resend_cooldown_seconds: int
    warning: str | None = None


class AuthResponse(BaseModel):
    """Returned on successful verify-otp and login."""

    message: str
    token: str
    user: UserResponse


class CurrentUserResponse(BaseModel):
    user: UserResponse


class MessageResponse(BaseModel):
    message: str
