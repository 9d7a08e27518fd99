"""Email channel.

:class:`EmailSender` only assembles the message (recipients, subject, body =
alert message). Handing it to a mail server is the job of an
:class:`EmailTransport`:

- :class:`SmtpEmailTransport` - ``smtplib`` on a worker thread
- :class:`LoggingEmailTransport` - records the intent in the log (used when
  no SMTP host is configured)
"""

from __future__ import annotations

import asyncio
import smtplib
from abc import ABC, abstractmethod
from collections import deque
from email.message import EmailMessage
from typing import Any

from vigil.core.errors import DeliveryError
from vigil.core.logging import get_logger
from vigil.notifications.base import BaseSender
from vigil.notifications.protocol import (
    AlertInstance,
    ChannelType,
    DeliveryResult,
    EmailConfig,
    NotificationChannel,
)

log = get_logger(__name__)

DEFAULT_SUBJECT = "Alert notification"


class EmailTransport(ABC):
    """Delivers an assembled message."""

    @abstractmethod
    async def deliver(self, message: EmailMessage) -> None:
        ...


class LoggingEmailTransport(EmailTransport):
    """Logs the message instead of sending it. The last ``keep`` messages are retained."""

    def __init__(self, keep: int = 100) -> None:
        self.sent: deque[EmailMessage] = deque(maxlen=keep)

    async def deliver(self, message: EmailMessage) -> None:
        self.sent.append(message)
        log.info(
            "email_intent",
            to=message["To"],
            subject=message["Subject"],
            body=message.get_content().strip(),
        )


class SmtpEmailTransport(EmailTransport):
    """SMTP delivery; the blocking ``smtplib`` calls run via ``asyncio.to_thread``."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        *,
        user: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        timeout: float = 10.0,
    ):
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._use_tls = use_tls
        self._timeout = timeout

    def _send_sync(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
            if self._use_tls:
                server.starttls()
            if self._user and self._password:
                server.login(self._user, self._password)
            server.send_message(message)

    async def deliver(self, message: EmailMessage) -> None:
        try:
            await asyncio.to_thread(self._send_sync, message)
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryError(f"SMTP delivery failed: {e}", cause=e).with_context(
                url=f"smtp://{self._host}:{self._port}"
            ) from e


class EmailSender(BaseSender):
    channel_type = ChannelType.EMAIL

    def __init__(self, transport: EmailTransport | None = None, *, from_address: str = "alerts@localhost"):
        self._transport = transport or LoggingEmailTransport()
        self._from_address = from_address

    @property
    def transport(self) -> EmailTransport:
        return self._transport

    def parse_config(self, raw: dict[str, Any]) -> EmailConfig:
        return EmailConfig.from_dict(raw)

    def render(self, config: EmailConfig, alert: AlertInstance) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = config.subject or DEFAULT_SUBJECT
        message["From"] = self._from_address
        message["To"] = ", ".join(config.recipients)
        message.set_content(alert.message)
        return message

    async def send(self, channel: NotificationChannel, alert: AlertInstance) -> DeliveryResult:
        config = self.parse_config(channel.config)
        await self._transport.deliver(self.render(config, alert))
        return DeliveryResult.ok(channel.id, message=f"Email sent to {len(config.recipients)} recipient(s)")


__all__ = [
    "EmailTransport",
    "LoggingEmailTransport",
    "SmtpEmailTransport",
    "EmailSender",
]
