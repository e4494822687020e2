"""
Profile domain — request orchestration (thin glue between router and service).
"""
from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.auth.schemas import UserResponse
from app.profile.schemas import ProfileResponse, ProfileUpdatedResponse, UpdateProfileRequest
from app.profile.service import update_profile


def get_me(user: User) -> ProfileResponse:
    return ProfileResponse(user=UserResponse.model_validate(user))


async def update_me(
    session: AsyncSession,
    user: User,
    body: UpdateProfileRequest,
) -> ProfileUpdatedResponse:
    fields = body.model_dump(exclude_unset=True)
    user = await update_profile(session, user, fields)
    return ProfileUpdatedResponse(
        message="Profile updated successfully",
        user=UserResponse.model_validate(user),
    )
