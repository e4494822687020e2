"""
Identity service — auth controller (request orchestration layer).

Responsibilities:
  - Receive validated input from the router.
  - Call service functions (which own business logic).
  - Commit state before talking to the notification service.
  - Compose and return the response model.

No framework validation logic here; that belongs in schemas.py.
No business logic here; that belongs in service.py.
"""
from __future__ import annotations

import logging

from fastapi import BackgroundTasks
from sqlalchemy.ext.asyncio import AsyncSession

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
    UserResponse,
    VerifyOTPRequest,
)
from app.auth.service import (
    check_password,
    consume_otp,
    create_credential,
    create_session_token,
    get_user_by_email,
    is_locked,
    issue_otp,
    record_failed_login,
    record_login,
    record_successful_login,
)
from app.config import Settings
from app.exceptions import (
    AccountLocked,
    AlreadyVerified,
    EmailNotVerified,
    InvalidCredentials,
    UserNotFound,
)
from app.notifications import send as notify
from app.notifications.client import Notifier

logger = logging.getLogger(__name__)

_OTP_UNDELIVERED = (
    "We could not send the verification email right now. "
    "Please use 'resend code' in a moment."
)


# ── Register ──────────────────────────────────────────────────────────────────

async def register(
    session: AsyncSession,
    body: RegisterRequest,
    settings: Settings,
    notifier: Notifier,
) -> RegisterResponse:
    user = await create_credential(
        session,
        email=body.email,
        first_name=body.first_name,
        last_name=body.last_name,
        password=body.password,
    )
    plain_otp = await issue_otp(
        session, user, expire_seconds=settings.otp_expire_seconds
    )
    # The account must exist before the user can be told about it
    await session.commit()
    logger.info("Registered credential %s", user.id)

    delivered = await notify.send_otp(notifier, user.email, user.first_name, plain_otp)
    return RegisterResponse(
        message="User registered successfully. Please verify your email with the OTP sent.",
        email=user.email,
        resend_cooldown_seconds=settings.otp_resend_cooldown_seconds,
        warning=None if delivered else _OTP_UNDELIVERED,
    )


# ── Verify OTP ────────────────────────────────────────────────────────────────

async def verify_otp(
    session: AsyncSession,
    body: VerifyOTPRequest,
    settings: Settings,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
) -> AuthResponse:
    user = await get_user_by_email(session, body.email)
    if user is None:
        raise UserNotFound()
    if user.is_verified:
        raise AlreadyVerified()

    await consume_otp(session, user, body.otp)
    token = create_session_token(user.id, settings)
    await session.commit()
    logger.info("Verified credential %s", user.id)

    background_tasks.add_task(notify.send_welcome, notifier, user.email, user.first_name)
    return AuthResponse(
        message="Email verified successfully",
        token=token,
        user=UserResponse.model_validate(user),
    )


# ── Resend OTP ────────────────────────────────────────────────────────────────

async def resend_otp(
    session: AsyncSession,
    body: ResendOTPRequest,
    settings: Settings,
    notifier: Notifier,
) -> ResendOTPResponse:
    user = await get_user_by_email(session, body.email)
    if user is None:
        raise UserNotFound()
    if user.is_verified:
        raise AlreadyVerified()

    # Replaces any pending code; the previous one stops working immediately
    plain_otp = await issue_otp(
        session, user, expire_seconds=settings.otp_expire_seconds
    )
    await session.commit()

    delivered = await notify.send_otp(notifier, user.email, user.first_name, plain_otp)
    return ResendOTPResponse(
        message="OTP sent successfully",
        resend_cooldown_seconds=settings.otp_resend_cooldown_seconds,
        warning=None if delivered else _OTP_UNDELIVERED,
    )


# ── Login ─────────────────────────────────────────────────────────────────────

async def login(
    session: AsyncSession,
    body: LoginRequest,
    settings: Settings,
) -> AuthResponse:
    """
    Gate order: unknown email → lock → verified → password.

    The lock is checked before any hashing so a locked account neither burns
    CPU nor inflates its own counter.
    """
    user = await get_user_by_email(session, body.email)
    if user is None:
        raise InvalidCredentials()
    if is_locked(user):
        raise AccountLocked()
    if not user.is_verified:
        raise EmailNotVerified()

    if not check_password(user, body.password):
        await record_failed_login(
            session,
            user,
            max_attempts=settings.login_max_attempts,
            lock_seconds=settings.login_lock_seconds,
        )
        # Persist the failure even though the request itself fails
        await session.commit()
        raise InvalidCredentials()

    # Re-checks the lock in the same write; a concurrent locking failure wins
    await record_successful_login(session, user)
    await record_login(session, user)
    token = create_session_token(user.id, settings)
    return AuthResponse(
        message="Login successful",
        token=token,
        user=UserResponse.model_validate(user),
    )


# ── Current user / logout ─────────────────────────────────────────────────────

def me(user: User) -> CurrentUserResponse:
    return CurrentUserResponse(user=UserResponse.model_validate(user))


def logout(user: User) -> MessageResponse:
    """Tokens are stateless; the client discards its copy."""
    logger.info("Logout for credential %s", user.id)
    return MessageResponse(message="Logout successful")
