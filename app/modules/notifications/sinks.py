"""Notification sinks: where rendered messages are delivered."""

from __future__ import annotations

import logging
from email.message import EmailMessage
from email.utils import formataddr
from typing import Protocol

import aiosmtplib
from fastapi import Request

from app.core.config import Settings

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    """Deliver one message to one contact address."""

    async def send(self, address: str, subject: str, text: str, html: str | None = None) -> None:
        """Raise on delivery failure."""


class LoggingNotificationSink:
    """Sink that only logs messages, for development and tests."""

    async def send(self, address: str, subject: str, text: str, html: str | None = None) -> None:
        logger.info("Notification to %s: %s", address, subject)


class SmtpNotificationSink:
    """Email sink using async SMTP."""

    def __init__(
        self,
        *,
        host: str,
        port: int,
        from_email: str,
        from_name: str,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.from_email = from_email
        self.from_name = from_name
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def build_message(self, address: str, subject: str, text: str, html: str | None) -> EmailMessage:
        message = EmailMessage()
        message["From"] = formataddr((self.from_name, self.from_email))
        message["To"] = address
        message["Subject"] = subject
        message.set_content(text)
        if html:
            message.add_alternative(html, subtype="html")
        return message

    async def send(self, address: str, subject: str, text: str, html: str | None = None) -> None:
        message = self.build_message(address, subject, text, html)
        # MailHog-style relays accept unauthenticated mail.
        await aiosmtplib.send(
            message,
            hostname=self.host,
            port=self.port,
            username=self.username or None,
            password=self.password or None,
            start_tls=self.use_tls,
            timeout=self.timeout,
        )


def build_notification_sink(settings: Settings) -> NotificationSink:
    """Create the sink selected by settings."""
    if settings.notification_backend == "smtp":
        return SmtpNotificationSink(
            host=settings.smtp_host or "",
            port=settings.smtp_port,
            from_email=settings.smtp_from_email or "",
            from_name=settings.smtp_from_name,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            timeout=settings.smtp_timeout_seconds,
        )
    return LoggingNotificationSink()


def get_notification_sink(request: Request) -> NotificationSink:
    """FastAPI dependency returning the application-owned sink."""
    return request.app.state.notification_sink
