"""
Profile domain — pure business logic (zero FastAPI imports).
"""
from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User

# Only display fields are editable here; email, password, verification and
# lockout state belong to the auth flows.
_EDITABLE_FIELDS = frozenset({"first_name", "last_name"})


async def update_profile(
    session: AsyncSession,
    user: User,
    fields: dict[str, Any],
) -> User:
    """Apply a partial update; keys outside the editable set are ignored."""
    for key, value in fields.items():
        if key in _EDITABLE_FIELDS and value is not None:
            setattr(user, key, value)
    await session.flush()
    return user
