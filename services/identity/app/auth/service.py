"""
Identity service — pure business logic for authentication.

Rules:
  - Zero FastAPI imports beyond the domain exceptions.
  - Zero direct DB driver calls; only SQLAlchemy async session.
  - All I/O functions are async def.
  - No side effects beyond the session passed in (no global state mutated).
  - Every mutation of verification or lockout state is a single UPDATE whose
    WHERE clause encodes the state it expects to find.  A request that lost a
    race matches zero rows and re-reads the record instead of overwriting it.
"""
from __future__ import annotations

import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone

import sqlalchemy as sa
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import CredentialState, User, Verified
from app.auth.utils import generate_otp, hash_password, normalize_email, verify_password
from app.config import Settings
from app.exceptions import (
    AccountLocked,
    AlreadyVerified,
    InvalidOTP,
    NoOTPIssued,
    OTPExpired,
    TokenExpired,
    TokenInvalid,
    UserAlreadyExists,
)
from shared.auth.tokens import ExpiredSignatureError, JWTError, decode_token, encode_token
from shared.database.types import UTCDateTime

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── User queries ──────────────────────────────────────────────────────────────

async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    # Emails are stored normalized, so an exact match is case-insensitive
    result = await session.execute(
        select(User).where(User.email == normalize_email(email))
    )
    return result.scalar_one_or_none()


async def get_user_by_id(
    session: AsyncSession, user_id: uuid.UUID
) -> User | None:
    result = await session.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


# ── Credential store ──────────────────────────────────────────────────────────

async def create_credential(
    session: AsyncSession,
    *,
    email: str,
    first_name: str,
    last_name: str,
    password: str,
) -> User:
    """
    Create a new, unverified credential.

    The password is hashed before it reaches the model.  The pre-check gives
    the common case a clean error; the unique index catches the concurrent
    case, which is reported the same way.
    Uses flush() so the caller can use user.id without committing.
    """
    email = normalize_email(email)
    if await get_user_by_email(session, email) is not None:
        raise UserAlreadyExists()

    user = User(
        email=email,
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
    )
    session.add(user)
    try:
        await session.flush()
    except IntegrityError:
        raise UserAlreadyExists() from None
    return user


def check_password(user: User, password: str) -> bool:
    return verify_password(password, user.password_hash)


async def mark_verified(
    session: AsyncSession,
    user: User,
    code: str,
    now: datetime,
) -> bool:
    """
    Flip is_verified and clear the OTP in one conditional UPDATE.

    Matches only while the row is still unverified and still holds this exact,
    unexpired code.  Returns False when another request got there first.
    """
    result = await session.execute(
        update(User)
        .where(
            User.id == user.id,
            User.is_verified.is_(False),
            User.otp_code == code,
            User.otp_expires_at > now,
        )
        .values(is_verified=True, otp_code=None, otp_expires_at=None)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False
    await session.refresh(user)
    return True


async def record_login(session: AsyncSession, user: User) -> None:
    """Stamp last_login_at without ending the transaction."""
    user.last_login_at = _utcnow()
    await session.flush()


# ── OTP state machine ─────────────────────────────────────────────────────────
#
#   NO_OTP ──issue──▶ PENDING(code, expiry) ──validate──▶ CONSUMED (verified)
#                        │  ▲                    └─────▶ EXPIRED  (now >= expiry)
#                        └──┘ issue again = REPLACED (old code dead)

def check_otp(state: CredentialState, submitted: str, now: datetime) -> None:
    """
    Decide whether ``submitted`` would be accepted against ``state``.

    Raises, in this order:
      AlreadyVerified — credential is already verified
      NoOTPIssued     — no pending code
      OTPExpired      — now >= expiry, even if the code matches
      InvalidOTP      — code differs
    """
    if isinstance(state, Verified):
        raise AlreadyVerified()
    pending = state.pending_otp
    if pending is None:
        raise NoOTPIssued()
    if pending.is_expired(now):
        raise OTPExpired()
    if not secrets.compare_digest(pending.code.encode(), submitted.encode()):
        raise InvalidOTP()


async def issue_otp(
    session: AsyncSession,
    user: User,
    *,
    expire_seconds: int,
    now: datetime | None = None,
) -> str:
    """
    Generate a fresh code and make it the only live one for this credential.

    Any pending code is overwritten wholesale (resend).  The UPDATE is guarded
    by is_verified = false so a concurrent verification cannot be followed by
    a stray pending OTP.  Returns the plain code for the caller to deliver.
    """
    now = now or _utcnow()
    code = generate_otp()
    result = await session.execute(
        update(User)
        .where(User.id == user.id, User.is_verified.is_(False))
        .values(otp_code=code, otp_expires_at=now + timedelta(seconds=expire_seconds))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise AlreadyVerified()
    await session.refresh(user)
    return code


async def consume_otp(
    session: AsyncSession,
    user: User,
    submitted: str,
    *,
    now: datetime | None = None,
) -> None:
    """
    Validate ``submitted`` and, on success, mark the credential verified.

    Exactly one of any number of concurrent calls with the right code wins.
    The losers re-read the row and fail with whatever it now says
    (AlreadyVerified after a competing verify, InvalidOTP after a resend).
    """
    now = now or _utcnow()
    check_otp(user.state, submitted, now)
    if await mark_verified(session, user, submitted, now):
        return

    await session.refresh(user)
    check_otp(user.state, submitted, now)
    raise InvalidOTP()


# ── Login lockout (per credential, persisted on the users row) ────────────────
#
# A password check only counts if its write still finds the row unlocked.
# Both writers below carry that condition in their WHERE clause, so a guess
# that raced a locking failure is refused instead of counted or accepted.

def is_locked(user: User, now: datetime | None = None) -> bool:
    now = now or _utcnow()
    return user.locked_until is not None and user.locked_until > now


def _unlocked_at(now: datetime) -> sa.ColumnElement[bool]:
    return sa.or_(User.locked_until.is_(None), User.locked_until <= now)


async def record_failed_login(
    session: AsyncSession,
    user: User,
    *,
    max_attempts: int,
    lock_seconds: int,
    now: datetime | None = None,
) -> bool:
    """
    Count one failed password check as a single atomic read-modify-write.

    - An expired lock is cleared and the counter restarts from zero.
    - Reaching ``max_attempts`` sets locked_until and zeroes the counter in
      the same statement, so the lock no longer depends on later attempts.
    - If a concurrent failure locked the row first, nothing is counted and
      AccountLocked is raised.

    Returns True if this failure locked the account.
    """
    now = now or _utcnow()
    lock_expired = sa.and_(User.locked_until.is_not(None), User.locked_until <= now)
    attempts = sa.case((lock_expired, 0), else_=User.failed_login_attempts) + 1
    reaches_limit = attempts >= max_attempts
    lock_until = sa.literal(now + timedelta(seconds=lock_seconds), UTCDateTime())

    result = await session.execute(
        update(User)
        .where(User.id == user.id, _unlocked_at(now))
        .values(
            failed_login_attempts=sa.case((reaches_limit, 0), else_=attempts),
            locked_until=sa.case(
                (reaches_limit, lock_until),
                (lock_expired, sa.null()),
                else_=User.locked_until,
            ),
        )
        .execution_options(synchronize_session=False)
    )
    await session.refresh(user)
    if result.rowcount != 1:
        raise AccountLocked()

    just_locked = is_locked(user, now)
    if just_locked:
        logger.warning("Account %s locked until %s", user.id, user.locked_until.isoformat())
    return just_locked


async def record_successful_login(
    session: AsyncSession,
    user: User,
    *,
    now: datetime | None = None,
) -> None:
    """
    Zero the failure counter.  Never touches locked_until.

    Raises AccountLocked if the row was locked after the caller last read it;
    the matching password must not yield a session in that case.
    """
    now = now or _utcnow()
    result = await session.execute(
        update(User)
        .where(User.id == user.id, _unlocked_at(now))
        .values(failed_login_attempts=0)
        .execution_options(synchronize_session=False)
    )
    await session.refresh(user)
    if result.rowcount != 1:
        raise AccountLocked()


# ── Session tokens ────────────────────────────────────────────────────────────

def create_session_token(
    user_id: uuid.UUID,
    settings: Settings,
    *,
    now: datetime | None = None,
) -> str:
    return encode_token(
        user_id,
        secret=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        issuer=settings.jwt_issuer,
        audience=settings.jwt_audience,
        expire_seconds=settings.jwt_expire_seconds,
        now=now,
    )


def decode_session_token(token: str, settings: Settings) -> uuid.UUID:
    try:
        return decode_token(
            token,
            secret=settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
        )
    except ExpiredSignatureError:
        raise TokenExpired() from None
    except JWTError:
        raise TokenInvalid() from None


async def resolve_session(
    session: AsyncSession,
    token: str,
    settings: Settings,
) -> User:
    """
    Validate a bearer token and return the credential it belongs to.

    The credential is looked up on every call: deleting or un-verifying it
    invalidates all of its outstanding tokens, even though their signatures
    still check out.
    """
    user_id = decode_session_token(token, settings)
    user = await get_user_by_id(session, user_id)
    if user is None or not user.is_verified:
        raise TokenInvalid()
    return user
