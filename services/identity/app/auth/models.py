"""
Identity service — SQLAlchemy ORM models for the auth domain.

Tables owned by this module:
  - users   Credential records: password hash, email-verification OTP,
            and per-account login lockout counters
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from shared.database.postgres import Base
from shared.database.types import UTCDateTime

from app.auth.constants import EMAIL_MAX_LENGTH, NAME_MAX_LENGTH, OTP_LENGTH


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Credential state (tagged variant over the nullable columns) ───────────────

@dataclass(frozen=True)
class PendingOTP:
    code: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        # Inclusive: a code submitted exactly at expires_at is already expired
        return now >= self.expires_at


@dataclass(frozen=True)
class Unverified:
    pending_otp: PendingOTP | None = None


@dataclass(frozen=True)
class Verified:
    pass


CredentialState = Unverified | Verified


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        # An OTP is a (code, expiry) pair, never one without the other
        sa.CheckConstraint(
            "(otp_code IS NULL) = (otp_expires_at IS NULL)",
            name="ck_users_otp_complete",
        ),
        # Verified accounts cannot carry a pending OTP
        sa.CheckConstraint(
            "NOT (is_verified AND otp_code IS NOT NULL)",
            name="ck_users_verified_has_no_otp",
        ),
        sa.CheckConstraint(
            "failed_login_attempts >= 0",
            name="ck_users_failed_login_attempts_non_negative",
        ),
    )

    # ── Primary key ──────────────────────────────────────────────────────────
    id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid(),
        primary_key=True,
        default=uuid.uuid4,
    )

    # ── Authentication identifiers ────────────────────────────────────────────
    # Always stored lower-cased; uniqueness is therefore case-insensitive
    email: Mapped[str] = mapped_column(
        sa.String(EMAIL_MAX_LENGTH), unique=True, nullable=False, index=True
    )
    password_hash: Mapped[str] = mapped_column(sa.String(255), nullable=False)

    # ── Profile fields ────────────────────────────────────────────────────────
    first_name: Mapped[str] = mapped_column(sa.String(NAME_MAX_LENGTH), nullable=False)
    last_name: Mapped[str] = mapped_column(sa.String(NAME_MAX_LENGTH), nullable=False)

    # ── Email verification ────────────────────────────────────────────────────
    # Flipped to True exactly once, by the first successful OTP validation.
    is_verified: Mapped[bool] = mapped_column(
        sa.Boolean(),
        nullable=False,
        default=False,
        server_default=sa.false(),
    )
    otp_code: Mapped[str | None] = mapped_column(sa.String(OTP_LENGTH), nullable=True)
    otp_expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    # ── Login lockout ─────────────────────────────────────────────────────────
    # Mutated only through the lockout guard's atomic UPDATE statements.
    failed_login_attempts: Mapped[int] = mapped_column(
        sa.SmallInteger(),
        nullable=False,
        default=0,
        server_default=sa.text("0"),
    )
    locked_until: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    last_login_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    # ── Audit timestamps ──────────────────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=_utcnow,
        server_default=sa.func.now(),
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        server_default=sa.func.now(),
    )

    @property
    def state(self) -> CredentialState:
        if self.is_verified:
            return Verified()
        if self.otp_code is None or self.otp_expires_at is None:
            return Unverified()
        return Unverified(PendingOTP(self.otp_code, self.otp_expires_at))

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} verified={self.is_verified}>"
