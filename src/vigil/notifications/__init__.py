"""
Notification package.

Renders alert instances into channel-specific payloads and delivers them
over email, generic webhooks, Slack and DingTalk.
"""

from vigil.notifications.base import BaseSender, HttpSender
from vigil.notifications.channels import (
    DingTalkSender,
    EmailSender,
    EmailTransport,
    LoggingEmailTransport,
    SlackSender,
    SmtpEmailTransport,
    WebhookSender,
)
from vigil.notifications.dispatcher import NotificationDispatcher, make_test_alert
from vigil.notifications.protocol import (
    AlertInstance,
    AlertStatus,
    ChannelSender,
    ChannelType,
    DeliveryResult,
    DingTalkConfig,
    EmailConfig,
    NotificationChannel,
    NotificationRecord,
    SlackConfig,
    WebhookConfig,
)

__all__ = [
    # Enums
    "ChannelType",
    "AlertStatus",
    # Data classes
    "AlertInstance",
    "NotificationChannel",
    "EmailConfig",
    "WebhookConfig",
    "SlackConfig",
    "DingTalkConfig",
    "DeliveryResult",
    "NotificationRecord",
    # Protocols
    "ChannelSender",
    # Base classes
    "BaseSender",
    "HttpSender",
    # Implementations
    "EmailSender",
    "EmailTransport",
    "LoggingEmailTransport",
    "SmtpEmailTransport",
    "WebhookSender",
    "SlackSender",
    "DingTalkSender",
    # Dispatcher
    "NotificationDispatcher",
    "make_test_alert",
]
