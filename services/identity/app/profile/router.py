"""
Profile domain — router.

Routes:
  GET    /api/v1/users/profile   Get own profile
  PUT    /api/v1/users/profile   Update own first / last name (partial)

All routes require a valid Bearer token.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.models import User
from app.database import get_db
from app.profile import controller as ctrl
from app.profile.schemas import ProfileResponse, ProfileUpdatedResponse, UpdateProfileRequest

router = APIRouter(prefix="/users", tags=["profile"])


@router.get("/profile", response_model=ProfileResponse, summary="Get own profile")
async def get_profile(
    current_user: User = Depends(get_current_user),
) -> ProfileResponse:
    return ctrl.get_me(current_user)


@router.put(
    "/profile",
    response_model=ProfileUpdatedResponse,
    summary="Update own profile (partial: only provided fields are written)",
)
async def update_profile(
    body: UpdateProfileRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> ProfileUpdatedResponse:
    return await ctrl.update_me(session, current_user, body)
