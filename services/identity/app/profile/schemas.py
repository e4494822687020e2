"""
Profile domain — Pydantic V2 request/response schemas.
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.auth.constants import NAME_MAX_LENGTH, NAME_MIN_LENGTH
from app.auth.schemas import UserResponse


class UpdateProfileRequest(BaseModel):
    """PUT /users/profile: all fields optional; only provided fields are written."""

    model_config = ConfigDict(
        extra="forbid",
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    first_name: str | None = Field(None, min_length=NAME_MIN_LENGTH, max_length=NAME_MAX_LENGTH)
    last_name: str | None = Field(None, min_length=NAME_MIN_LENGTH, max_length=NAME_MAX_LENGTH)


class ProfileResponse(BaseModel):
    user: UserResponse


class ProfileUpdatedResponse(BaseModel):
    message: str
    user: UserResponse
