"""
Signed bearer tokens shared by every LearnHub service.

Only the cryptographic envelope lives here (sign, verify signature, issuer,
audience, expiry).  Whether the subject is still allowed to hold a session is
the identity service's decision, not this module's.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import UUID

from jose import ExpiredSignatureError, JWTError, jwt

__all__ = [
    "ExpiredSignatureError",
    "JWTError",
    "decode_token",
    "encode_token",
]


def encode_token(
    subject: UUID,
    *,
    secret: str,
    algorithm: str,
    issuer: str,
    audience: str,
    expire_seconds: int,
    now: datetime | None = None,
) -> str:
    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "sub": str(subject),
        "iat": issued_at,
        "exp": issued_at + timedelta(seconds=expire_seconds),
        "iss": issuer,
        "aud": audience,
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_token(
    token: str,
    *,
    secret: str,
    algorithm: str,
    issuer: str,
    audience: str,
) -> UUID:
    """Return the token subject.

    Raises ExpiredSignatureError for an expired token and JWTError for any
    other signature or claim failure (including a malformed ``sub``).
    """
    payload = jwt.decode(
        token,
        secret,
        algorithms=[algorithm],
        issuer=issuer,
        audience=audience,
    )
    subject = payload.get("sub")
    if not subject:
        raise JWTError("Missing sub in token")
    try:
        return UUID(subject)
    except ValueError as exc:
        raise JWTError("Malformed sub in token") from exc
