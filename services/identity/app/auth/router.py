"""
Identity service — auth router.

Only HTTP concerns live here:
  - Route declarations, HTTP methods, status codes, response_model
  - Dependency injection (session, settings, notifier, current user)
  - Forwarding to the controller

Zero business logic. Zero DB queries.
"""
from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.rate_limit import limiter
from app.auth import controller as ctrl
from app.auth.dependencies import get_current_user, get_notifier, get_settings
from app.auth.models import User
from app.auth.schemas import (
    AuthResponse,
    CurrentUserResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
    ResendOTPRequest,
    ResendOTPResponse,
    VerifyOTPRequest,
)
from app.config import Settings
from app.database import get_db
from app.notifications.client import Notifier

router = APIRouter(prefix="/auth", tags=["auth"])


# ── Registration & email verification ────────────────────────────────────────

@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new account and email a verification code",
)
@limiter.limit("10/hour")
async def register(
    request: Request,
    body: RegisterRequest,
    session: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    notifier: Notifier = Depends(get_notifier),
) -> RegisterResponse:
    return await ctrl.register(session, body, settings, notifier)


@router.post(
    "/verify-otp",
    response_model=AuthResponse,
    summary="Verify the emailed code and receive a session token",
)
@limiter.limit("10/10minutes")
async def verify_otp(
    request: Request,
    body: VerifyOTPRequest,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    notifier: Notifier = Depends(get_notifier),
) -> AuthResponse:
    return await ctrl.verify_otp(session, body, settings, notifier, background_tasks)


@router.post(
    "/resend-otp",
    response_model=ResendOTPResponse,
    summary="Replace the pending verification code and email it again",
    description=(
        "Any previously issued code stops working. `resendCooldownSeconds` is a "
        "pacing hint for the client; the server does not enforce it."
    ),
)
@limiter.limit("5/10minutes")
async def resend_otp(
    request: Request,
    body: ResendOTPRequest,
    session: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    notifier: Notifier = Depends(get_notifier),
) -> ResendOTPResponse:
    return await ctrl.resend_otp(session, body, settings, notifier)


# ── Login & session ───────────────────────────────────────────────────────────

@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Login with email + password",
    responses={423: {"description": "Account temporarily locked"}},
)
@limiter.limit("20/15minutes")
async def login(
    request: Request,
    body: LoginRequest,
    session: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> AuthResponse:
    return await ctrl.login(session, body, settings)


@router.get(
    "/me",
    response_model=CurrentUserResponse,
    summary="Return the credential behind the Bearer token",
)
async def me(current_user: User = Depends(get_current_user)) -> CurrentUserResponse:
    return ctrl.me(current_user)


@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="Acknowledge logout (tokens are stateless; the client discards it)",
)
async def logout(current_user: User = Depends(get_current_user)) -> MessageResponse:
    return ctrl.logout(current_user)
