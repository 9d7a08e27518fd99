"""Slack incoming-webhook channel (color-coded attachment card)."""

from __future__ import annotations

from typing import Any

from vigil.alerting.types import AlertSeverity
from vigil.notifications.base import HttpSender, format_timestamp
from vigil.notifications.protocol import (
    AlertInstance,
    ChannelType,
    DeliveryResult,
    NotificationChannel,
    SlackConfig,
)

SEVERITY_COLORS = {
    AlertSeverity.CRITICAL: "#FF0000",
    AlertSeverity.WARNING: "#FFA500",
    AlertSeverity.INFO: "#0000FF",
}
DEFAULT_COLOR = "#CCCCCC"
DEFAULT_USERNAME = "Vigil Alert"


class SlackSender(HttpSender):
    """
    Slack webhook sender.

    Success requires HTTP 200 exactly; Slack answers other 2xx codes only on
    misconfigured endpoints.
    """

    channel_type = ChannelType.SLACK

    def parse_config(self, raw: dict[str, Any]) -> SlackConfig:
        return SlackConfig.from_dict(raw)

    def render(self, config: SlackConfig, alert: AlertInstance) -> dict[str, Any]:
        attachment = {
            "color": SEVERITY_COLORS.get(alert.severity, DEFAULT_COLOR),
            "title": alert.message,
            "text": f"Alert ID: {alert.id}\nStatus: {alert.status.value}\nStarted: {format_timestamp(alert)}",
            "footer": "Vigil",
            "ts": int(alert.started_at.timestamp()),
        }
        payload: dict[str, Any] = {
            "username": config.username or DEFAULT_USERNAME,
            "attachments": [attachment],
        }
        if config.channel:
            payload["channel"] = config.channel
        return payload

    async def send(self, channel: NotificationChannel, alert: AlertInstance) -> DeliveryResult:
        config = self.parse_config(channel.config)
        response = await self.request("POST", config.webhook_url, json=self.render(config, alert))
        if response.status_code == 200:
            return DeliveryResult.ok(channel.id, message=response.text, status_code=200)
        return DeliveryResult.fail(
            channel.id,
            f"Slack returned HTTP {response.status_code}",
            status_code=response.status_code,
        )


__all__ = [
    "SlackSender",
    "SEVERITY_COLORS",
]
