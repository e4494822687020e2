"""
Identity service — domain-specific HTTP exceptions.

All exceptions use preset status codes, detail messages and a stable ``code``
so that callers never need to specify these at the call site.  The handlers
installed by shared.middleware.register_exception_handlers wrap them in the
standard error envelope.
"""
from fastapi import HTTPException, status


# ── Authentication ────────────────────────────────────────────────────────────

class InvalidCredentials(HTTPException):
    """Same status and message for unknown email and wrong password (no enumeration)."""

    code = "invalid_credentials"

    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password.",
        )


class EmailNotVerified(HTTPException):
    code = "not_verified"

    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Please verify your email first.",
        )


class AccountLocked(HTTPException):
    """Raised when the account is temporarily locked after too many failed logins."""

    code = "account_locked"

    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_423_LOCKED,
            detail=(
                "Your account has been temporarily locked after too many failed login "
                "attempts. Please try again later."
            ),
        )


class TokenExpired(HTTPException):
    code = "token_expired"

    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired.",
            headers={"WWW-Authenticate": "Bearer"},
        )


class TokenInvalid(HTTPException):
    code = "invalid_token"

    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token is invalid.",
            headers={"WWW-Authenticate": "Bearer"},
        )


# ── Registration ──────────────────────────────────────────────────────────────

class UserAlreadyExists(HTTPException):
    code = "duplicate_email"

    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A user with this email already exists.",
        )


# ── Account state ─────────────────────────────────────────────────────────────

class UserNotFound(HTTPException):
    code = "not_found"

    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found.",
        )


class AlreadyVerified(HTTPException):
    code = "already_verified"

    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="This email address has already been verified.",
        )


# ── OTP ───────────────────────────────────────────────────────────────────────

class NoOTPIssued(HTTPException):
    code = "no_code_issued"

    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No verification code found. Please request a new one.",
        )


class OTPExpired(HTTPException):
    code = "otp_expired"

    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Verification code has expired. Please request a new one.",
        )


class InvalidOTP(HTTPException):
    code = "otp_mismatch"

    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid verification code.",
        )
