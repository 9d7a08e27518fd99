"""
Notification protocol and data classes.

Defines the sender protocol (interface) and the records the dispatcher
works with: channels, their per-type configs, alert instances and delivery
results. Concrete senders are in channels/.

Channel records come from an external store, so every ``from_dict`` accepts
the camelCase keys that store uses (``webhookUrl``, ``atMobiles``).
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from vigil.alerting.types import AlertSeverity
from vigil.core.errors import InvalidConfigError
from vigil.core.timestamps import from_iso8601, to_iso8601, utc_now


class ChannelType(str, Enum):
    """Notification channel types."""

    EMAIL = "email"
    WEBHOOK = "webhook"
    SLACK = "slack"
    DINGTALK = "dingtalk"

    @classmethod
    def lookup(cls, value: ChannelType | str) -> ChannelType | None:
        """Case-insensitive lookup; None for unknown types."""
        if isinstance(value, ChannelType):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class AlertStatus(str, Enum):
    """Alert instance lifecycle: pending -> firing -> resolved, or muted."""

    PENDING = "pending"
    FIRING = "firing"
    RESOLVED = "resolved"
    MUTED = "muted"


def _get(data: dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


# =============================================================================
# ALERT INSTANCES
# =============================================================================


@dataclass
class AlertInstance:
    """One occurrence of a rule firing; the payload handed to the dispatcher."""

    id: str
    rule_id: str
    status: AlertStatus
    severity: AlertSeverity
    message: str
    started_at: datetime = field(default_factory=utc_now)
    ended_at: datetime | None = None
    value: float | None = None
    evaluations: int = 1

    @classmethod
    def new_id(cls) -> str:
        return f"alert_{uuid.uuid4().hex[:12]}"

    @property
    def is_active(self) -> bool:
        return self.status in (AlertStatus.FIRING, AlertStatus.MUTED)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "ruleId": self.rule_id,
            "status": self.status.value,
            "severity": self.severity.value,
            "message": self.message,
            "startedAt": to_iso8601(self.started_at),
            "endedAt": to_iso8601(self.ended_at),
            "value": self.value,
            "evaluations": self.evaluations,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AlertInstance:
        started = _get(data, "startedAt", "started_at")
        ended = _get(data, "endedAt", "ended_at")
        return cls(
            id=str(data["id"]),
            rule_id=str(_get(data, "ruleId", "rule_id", default="")),
            status=AlertStatus(_get(data, "status", default="firing")),
            severity=AlertSeverity.parse(_get(data, "severity", default="info")),
            message=str(_get(data, "message", default="")),
            started_at=from_iso8601(started) if isinstance(started, str) else (started or utc_now()),
            ended_at=from_iso8601(ended) if isinstance(ended, str) else ended,
            value=_get(data, "value"),
            evaluations=int(_get(data, "evaluations", default=1)),
        )


# =============================================================================
# CHANNEL CONFIGS
# =============================================================================


@dataclass(frozen=True)
class EmailConfig:
    recipients: list[str]
    subject: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EmailConfig:
        recipients = _get(data, "recipients", "to", default=[])
        if isinstance(recipients, str):
            recipients = [r.strip() for r in recipients.split(",") if r.strip()]
        if not recipients:
            raise InvalidConfigError("recipients", recipients, "Email channel needs at least one recipient")
        return cls(recipients=list(recipients), subject=_get(data, "subject"))


@dataclass(frozen=True)
class WebhookConfig:
    url: str
    method: str = "POST"
    headers: dict[str, str] = field(default_factory=dict)
    body: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WebhookConfig:
        url = _get(data, "url")
        if not url:
            raise InvalidConfigError("url", url, "Webhook channel needs a url")
        method = str(_get(data, "method", default="POST")).upper()
        if method not in ("POST", "PUT"):
            raise InvalidConfigError("method", method, "Webhook method must be POST or PUT")
        return cls(
            url=url,
            method=method,
            headers=dict(_get(data, "headers", default={})),
            body=_get(data, "body"),
        )


@dataclass(frozen=True)
class SlackConfig:
    webhook_url: str
    channel: str | None = None
    username: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SlackConfig:
        url = _get(data, "webhookUrl", "webhook_url")
        if not url:
            raise InvalidConfigError("webhookUrl", url, "Slack channel needs a webhookUrl")
        return cls(webhook_url=url, channel=_get(data, "channel"), username=_get(data, "username"))


@dataclass(frozen=True)
class DingTalkConfig:
    webhook_url: str
    at_mobiles: list[str] = field(default_factory=list)
    is_at_all: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DingTalkConfig:
        url = _get(data, "webhookUrl", "webhook_url")
        if not url:
            raise InvalidConfigError("webhookUrl", url, "DingTalk channel needs a webhookUrl")
        return cls(
            webhook_url=url,
            at_mobiles=[str(m) for m in _get(data, "atMobiles", "at_mobiles", default=[])],
            is_at_all=bool(_get(data, "isAtAll", "is_at_all", default=False)),
        )


# =============================================================================
# CHANNELS AND RESULTS
# =============================================================================


@dataclass
class NotificationChannel:
    """
    A configured notification target.

    ``type`` is kept as given so that records with an unknown type can still
    be loaded; the dispatcher refuses to deliver to them.
    """

    id: str
    name: str
    type: str
    enabled: bool = True
    config: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if isinstance(self.type, ChannelType):
            self.type = self.type.value

    @property
    def channel_type(self) -> ChannelType | None:
        return ChannelType.lookup(self.type)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NotificationChannel:
        if "type" not in data:
            raise InvalidConfigError("type", None, "Channel type is required")
        channel_id = str(_get(data, "id", default=data.get("name", "")))
        return cls(
            id=channel_id,
            name=str(_get(data, "name", default=channel_id)),
            type=str(data["type"]),
            enabled=bool(_get(data, "enabled", default=True)),
            config=dict(_get(data, "config", default={})),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "enabled": self.enabled,
            "config": dict(self.config),
        }


@dataclass
class DeliveryResult:
    """Result of one delivery attempt."""

    channel_id: str
    success: bool
    message: str | None = None
    status_code: int | None = None
    response: Any = None
    error: Exception | None = None
    delivered_at: datetime = field(default_factory=utc_now)

    @classmethod
    def ok(cls, channel_id: str, message: str | None = None, **kwargs: Any) -> DeliveryResult:
        return cls(channel_id=channel_id, success=True, message=message, **kwargs)

    @classmethod
    def fail(cls, channel_id: str, error: Exception | str, **kwargs: Any) -> DeliveryResult:
        if isinstance(error, str):
            return cls(channel_id=channel_id, success=False, message=error, **kwargs)
        return cls(channel_id=channel_id, success=False, message=str(error), error=error, **kwargs)


@dataclass(frozen=True)
class NotificationRecord:
    """Audit entry for one notification sent (or attempted) for an alert."""

    id: str
    alert_id: str
    channel_id: str
    status: str  # "sent" | "failed"
    sent_at: datetime
    error: str | None = None

    @classmethod
    def from_result(cls, alert_id: str, result: DeliveryResult) -> NotificationRecord:
        return cls(
            id=f"notif_{uuid.uuid4().hex[:12]}",
            alert_id=alert_id,
            channel_id=result.channel_id,
            status="sent" if result.success else "failed",
            sent_at=result.delivered_at,
            error=None if result.success else result.message,
        )


@runtime_checkable
class ChannelSender(Protocol):
    """
    Protocol for channel senders.

    Implementations must provide:
    - channel_type: the channel type they deliver
    - send(): render and transmit one alert for one channel
    """

    @property
    def channel_type(self) -> ChannelType:
        ...

    async def send(self, channel: NotificationChannel, alert: AlertInstance) -> DeliveryResult:
        ...


__all__ = [
    # Enums
    "ChannelType",
    "AlertStatus",
    # Data classes
    "AlertInstance",
    "EmailConfig",
    "WebhookConfig",
    "SlackConfig",
    "DingTalkConfig",
    "NotificationChannel",
    "DeliveryResult",
    "NotificationRecord",
    # Protocols
    "ChannelSender",
]
