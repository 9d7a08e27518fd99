"""Channel sender implementations."""

from vigil.notifications.channels.dingtalk import DingTalkSender
from vigil.notifications.channels.email import (
    EmailSender,
    EmailTransport,
    LoggingEmailTransport,
    SmtpEmailTransport,
)
from vigil.notifications.channels.slack import SlackSender
from vigil.notifications.channels.webhook import WebhookSender

__all__ = [
    "EmailSender",
    "EmailTransport",
    "LoggingEmailTransport",
    "SmtpEmailTransport",
    "WebhookSender",
    "SlackSender",
    "DingTalkSender",
]
