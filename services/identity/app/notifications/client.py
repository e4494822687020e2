"""
Notification dispatch client — outbound calls to the LearnHub notification service.

Every send is best-effort: it logs on failure but never raises, so a
notification outage never breaks registration or verification.  Callers
invoke it only after their state change has been committed; the HTTP call is
bounded by ``notification_timeout_seconds`` and delivery beyond the
notification service's acceptance is not awaited.  Retries, if any, are the
notification service's business.
"""
from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from app.auth.constants import NotificationKind
from app.config import Settings

logger = logging.getLogger(__name__)
_SEND_PATH = "/api/notifications/send"


class Notifier(Protocol):
    async def send(
        self, kind: NotificationKind, to_email: str, payload: dict[str, Any]
    ) -> bool: ...


class NotificationClient:
    """httpx-backed Notifier; one instance (and connection pool) per process."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @classmethod
    def from_settings(cls, settings: Settings) -> NotificationClient:
        return cls(
            settings.notification_service_url,
            timeout=settings.notification_timeout_seconds,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self._base_url)

    async def send(
        self, kind: NotificationKind, to_email: str, payload: dict[str, Any]
    ) -> bool:
        """POST ``{type, to, **payload}``.  Returns True if the service accepted it."""
        if not self.is_configured:
            logger.warning(
                "NOTIFICATION_SERVICE_URL not configured; skipping %s notification to %s",
                kind.value, to_email,
            )
            return False

        body = {"type": kind.value, "to": to_email, **payload}
        try:
            r = await self._client.post(f"{self._base_url}{_SEND_PATH}", json=body)
        except httpx.TimeoutException:
            logger.warning("Notification service timed out sending %s to %s", kind.value, to_email)
            return False
        except httpx.HTTPError as exc:
            logger.warning("Notification request failed (%s → %s): %s", kind.value, to_email, exc)
            return False

        if r.status_code >= 400:
            logger.warning(
                "Notification service error %s for %s to %s: %s",
                r.status_code, kind.value, to_email, r.text[:300],
            )
            return False
        return True

    async def aclose(self) -> None:
        await self._client.aclose()
