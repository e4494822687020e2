from collections.abc import AsyncGenerator, Awaitable, Callable
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.auth.constants import NotificationKind
from app.auth.models import User  # noqa: F401 - register with Base
from app.config import Settings
from app.database import init_db
from app.main import create_app
from shared.database.postgres import Base

TEST_PASSWORD = "correct-horse"


class FakeNotifier:
    """Records every send; flip ``fail`` to simulate a notification outage."""

    def __init__(self) -> None:
        self.sent: list[tuple[NotificationKind, str, dict[str, Any]]] = []
        self.fail = False

    async def send(
        self, kind: NotificationKind, to_email: str, payload: dict[str, Any]
    ) -> bool:
        self.sent.append((kind, to_email, payload))
        return not self.fail

    def last_otp(self, to_email: str) -> str:
        for kind, email, payload in reversed(self.sent):
            if kind is NotificationKind.OTP and email == to_email:
                return payload["otp"]
        raise AssertionError(f"no OTP sent to {to_email}")

    def kinds(self) -> list[NotificationKind]:
        return [kind for kind, _, _ in self.sent]

    async def aclose(self) -> None:
        return None


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        identity_database_url=f"sqlite+aiosqlite:///{tmp_path / 'identity.db'}",
        jwt_secret="test-secret",
        notification_service_url="",
        rate_limit_enabled=False,
    )


@pytest_asyncio.fixture
async def session_factory(settings: Settings) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    factory = init_db(settings.identity_database_url)
    engine = factory.kw["bind"]
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield factory
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def app(settings: Settings, notifier: FakeNotifier, session_factory):
    return create_app(settings, notifier)


@pytest_asyncio.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def register(async_client: AsyncClient) -> Callable[..., Awaitable[Any]]:
    async def _register(email: str, password: str = TEST_PASSWORD, **extra: str):
        body = {
            "firstName": extra.pop("first_name", "Ada"),
            "lastName": extra.pop("last_name", "Lovelace"),
            "email": email,
            "password": password,
        }
        return await async_client.post("/api/v1/auth/register", json=body)

    return _register


@pytest.fixture
def verified_user(
    async_client: AsyncClient,
    notifier: FakeNotifier,
    register: Callable[..., Awaitable[Any]],
) -> Callable[..., Awaitable[str]]:
    """Register + verify; returns the session token."""

    async def _verified(email: str, password: str = TEST_PASSWORD) -> str:
        reg = await register(email, password)
        assert reg.status_code == 201, reg.text
        resp = await async_client.post(
            "/api/v1/auth/verify-otp",
            json={"email": email, "otp": notifier.last_otp(email.lower())},
        )
        assert resp.status_code == 200, resp.text
        return resp.json()["token"]

    return _verified
