"""
Identity service — FastAPI dependencies.

Process-wide resources (settings, notification client) are created once in
create_app() and hung on app.state; these dependencies hand them to routes so
nothing reads configuration from module globals.
"""
from __future__ import annotations

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.auth.service import resolve_session
from app.config import Settings
from app.database import get_db
from app.exceptions import TokenInvalid
from app.notifications.client import Notifier

http_bearer = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(http_bearer),
    session: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    """Resolve ``Authorization: Bearer <token>`` to a live, verified credential."""
    if credentials is None or not credentials.credentials:
        raise TokenInvalid()
    return await resolve_session(session, credentials.credentials, settings)
