"""
Typed helpers over the notification client for the identity flows.

Safe to run inside FastAPI BackgroundTasks: they only ever return a bool.
"""
from __future__ import annotations

from app.auth.constants import NotificationKind
from app.notifications.client import Notifier


async def send_otp(notifier: Notifier, to_email: str, first_name: str, otp: str) -> bool:
    return await notifier.send(
        NotificationKind.OTP, to_email, {"firstName": first_name, "otp": otp}
    )


async def send_welcome(notifier: Notifier, to_email: str, first_name: str) -> bool:
    return await notifier.send(
        NotificationKind.WELCOME, to_email, {"firstName": first_name}
    )
