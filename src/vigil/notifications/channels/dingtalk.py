"""DingTalk robot channel (markdown card with mentions).

DingTalk answers HTTP 200 even for rejected messages; success is the
``errcode == 0`` field of the JSON response.
"""

from __future__ import annotations

from typing import Any

from vigil.alerting.types import AlertSeverity
from vigil.notifications.base import HttpSender, format_timestamp
from vigil.notifications.protocol import (
    AlertInstance,
    ChannelType,
    DeliveryResult,
    DingTalkConfig,
    NotificationChannel,
)

SEVERITY_LABELS = {
    AlertSeverity.CRITICAL: "🔴 Critical",
    AlertSeverity.WARNING: "🟡 Warning",
    AlertSeverity.INFO: "🔵 Info",
}


class DingTalkSender(HttpSender):
    channel_type = ChannelType.DINGTALK

    def parse_config(self, raw: dict[str, Any]) -> DingTalkConfig:
        return DingTalkConfig.from_dict(raw)

    def render(self, config: DingTalkConfig, alert: AlertInstance) -> dict[str, Any]:
        label = SEVERITY_LABELS.get(alert.severity, alert.severity.value)
        text = (
            f"### {label}\n\n{alert.message}\n\n"
            f"> Alert ID: {alert.id}\n"
            f"> Status: {alert.status.value}\n"
            f"> Started: {format_timestamp(alert)}"
        )
        return {
            "msgtype": "markdown",
            "markdown": {"title": f"{label} - Alert notification", "text": text},
            "at": {"atMobiles": list(config.at_mobiles), "isAtAll": config.is_at_all},
        }

    async def send(self, channel: NotificationChannel, alert: AlertInstance) -> DeliveryResult:
        config = self.parse_config(channel.config)
        response = await self.request("POST", config.webhook_url, json=self.render(config, alert))
        try:
            data = response.json()
        except ValueError:
            return DeliveryResult.fail(
                channel.id,
                f"DingTalk returned a non-JSON response (HTTP {response.status_code})",
                status_code=response.status_code,
            )

        errcode = data.get("errcode") if isinstance(data, dict) else None
        if errcode == 0:
            return DeliveryResult.ok(channel.id, status_code=response.status_code, response=data)
        errmsg = data.get("errmsg") if isinstance(data, dict) else None
        return DeliveryResult.fail(
            channel.id,
            f"DingTalk errcode {errcode}: {errmsg or 'unknown error'}",
            status_code=response.status_code,
            response=data,
        )


__all__ = [
    "DingTalkSender",
    "SEVERITY_LABELS",
]
