"""
Notification dispatcher.

Routes an alert instance to the sender for the channel's type. The
dispatcher is the error boundary of the notification path: nothing raises
past it. ``send()`` answers with a bool, ``deliver()`` with the full
:class:`DeliveryResult`. No retries are attempted; a failed delivery is
logged and reported.

Usage:
    async with NotificationDispatcher.from_settings() as dispatcher:
        ok = await dispatcher.send(channel, alert)
        ok = await dispatcher.test_channel(channel)
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import httpx

from vigil.alerting.types import AlertSeverity
from vigil.core.errors import DeliveryError, OperationTimeoutError, VigilError
from vigil.core.logging import get_logger
from vigil.core.timestamps import utc_now

from .base import BaseSender
from .channels import (
    DingTalkSender,
    EmailSender,
    EmailTransport,
    LoggingEmailTransport,
    SlackSender,
    SmtpEmailTransport,
    WebhookSender,
)
from .protocol import (
    AlertInstance,
    AlertStatus,
    ChannelType,
    DeliveryResult,
    NotificationChannel,
)

if TYPE_CHECKING:
    from vigil.core.settings import VigilSettings

log = get_logger(__name__)

DEFAULT_TIMEOUT = 10.0
TEST_MESSAGE = "This is a test notification"


def make_test_alert() -> AlertInstance:
    """Canonical low-severity alert used to verify a channel's configuration."""
    return AlertInstance(
        id="test",
        rule_id="test",
        status=AlertStatus.FIRING,
        severity=AlertSeverity.INFO,
        message=TEST_MESSAGE,
        started_at=utc_now(),
    )


class NotificationDispatcher:
    """
    Sends alert instances through email, webhook, Slack and DingTalk channels.

    The HTTP senders share one ``httpx.AsyncClient``. A client passed in by
    the caller is left open by :meth:`aclose`.
    """

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        email_transport: EmailTransport | None = None,
        from_address: str = "alerts@localhost",
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self._timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._senders: dict[ChannelType, BaseSender] = {}
        self.register_sender(EmailSender(email_transport or LoggingEmailTransport(), from_address=from_address))
        self.register_sender(WebhookSender(self._client))
        self.register_sender(SlackSender(self._client))
        self.register_sender(DingTalkSender(self._client))

    @classmethod
    def from_settings(cls, settings: VigilSettings | None = None, **kwargs) -> NotificationDispatcher:
        """Build a dispatcher from settings; SMTP is used only when a host is configured."""
        if settings is None:
            from vigil.core.settings import get_settings

            settings = get_settings()
        if "email_transport" not in kwargs and settings.smtp_enabled:
            kwargs["email_transport"] = SmtpEmailTransport(
                settings.smtp_host,
                settings.smtp_port,
                user=settings.smtp_user,
                password=settings.smtp_password,
                use_tls=settings.smtp_use_tls,
                timeout=settings.notification_timeout_seconds,
            )
        kwargs.setdefault("from_address", settings.smtp_from)
        kwargs.setdefault("timeout", settings.notification_timeout_seconds)
        return cls(**kwargs)

    def register_sender(self, sender: BaseSender) -> None:
        """Register (or replace) the sender for ``sender.channel_type``."""
        self._senders[sender.channel_type] = sender

    def get_sender(self, channel_type: ChannelType | str) -> BaseSender | None:
        resolved = ChannelType.lookup(channel_type)
        return self._senders.get(resolved) if resolved is not None else None

    def supported_types(self) -> list[str]:
        return sorted(t.value for t in self._senders)

    async def deliver(self, channel: NotificationChannel, alert: AlertInstance) -> DeliveryResult:
        """Deliver ``alert`` to ``channel``. Never raises."""
        if not channel.enabled:
            return DeliveryResult.fail(channel.id, "Channel is disabled")

        sender = self.get_sender(channel.type)
        if sender is None:
            log.warning("notification_unknown_channel_type", channel_id=channel.id, channel_type=channel.type)
            return DeliveryResult.fail(channel.id, f"Unknown channel type: {channel.type}")

        try:
            result = await asyncio.wait_for(sender.send(channel, alert), self._timeout)
        except asyncio.TimeoutError as e:
            error = OperationTimeoutError(
                f"Notification timed out after {self._timeout:g}s", cause=e
            ).with_context(channel_id=channel.id)
            result = DeliveryResult.fail(channel.id, error)
        except VigilError as e:
            result = DeliveryResult.fail(channel.id, e.with_context(channel_id=channel.id))
        except Exception as e:
            error = DeliveryError(f"{channel.type} delivery failed: {e}", cause=e).with_context(channel_id=channel.id)
            result = DeliveryResult.fail(channel.id, error)

        if result.success:
            log.info(
                "notification_sent",
                channel_id=channel.id,
                channel_type=channel.type,
                alert_id=alert.id,
                status_code=result.status_code,
            )
        else:
            log.error(
                "notification_failed",
                channel_id=channel.id,
                channel_type=channel.type,
                alert_id=alert.id,
                status_code=result.status_code,
                error=result.message,
            )
        return result

    async def send(self, channel: NotificationChannel, alert: AlertInstance) -> bool:
        """Deliver ``alert``; True on success. Disabled channels return False untouched."""
        result = await self.deliver(channel, alert)
        return result.success

    async def test_channel(self, channel: NotificationChannel) -> bool:
        """Send a synthetic info-level alert through ``channel``."""
        if not channel.enabled:
            return False
        return await self.send(channel, make_test_alert())

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> NotificationDispatcher:
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()


__all__ = [
    "NotificationDispatcher",
    "make_test_alert",
]
