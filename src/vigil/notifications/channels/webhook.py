"""Generic webhook channel.

Manifesto:
    Any HTTP endpoint should be a valid alert target. The body is either the
    default JSON envelope or a user template with ``{{placeholder}}`` fields
    substituted verbatim. Values are not escaped; a template that embeds
    them in JSON must quote them itself.
"""

from __future__ import annotations

import re
from typing import Any

from vigil.core.timestamps import to_iso8601
from vigil.notifications.base import HttpSender, format_timestamp
from vigil.notifications.protocol import (
    AlertInstance,
    ChannelType,
    DeliveryResult,
    NotificationChannel,
    WebhookConfig,
)

_PLACEHOLDER_RE = re.compile(r"\{\{(alertId|message|severity|status|startedAt)\}\}")


def render_template(template: str, alert: AlertInstance) -> str:
    """Substitute ``{{alertId}}``, ``{{message}}``, ``{{severity}}``, ``{{status}}``, ``{{startedAt}}``."""
    values = {
        "alertId": alert.id,
        "message": alert.message,
        "severity": alert.severity.value,
        "status": alert.status.value,
        "startedAt": format_timestamp(alert),
    }
    return _PLACEHOLDER_RE.sub(lambda m: values[m.group(1)], template)


def default_envelope(alert: AlertInstance) -> dict[str, Any]:
    return {
        "alert": {
            "id": alert.id,
            "status": alert.status.value,
            "severity": alert.severity.value,
            "message": alert.message,
            "startedAt": format_timestamp(alert),
            "endedAt": to_iso8601(alert.ended_at),
        }
    }


class WebhookSender(HttpSender):
    """POSTs (or PUTs) alert data to a URL. Success is any 2xx status."""

    channel_type = ChannelType.WEBHOOK

    def parse_config(self, raw: dict[str, Any]) -> WebhookConfig:
        return WebhookConfig.from_dict(raw)

    def render(self, config: WebhookConfig, alert: AlertInstance) -> str | dict[str, Any]:
        if config.body:
            return render_template(config.body, alert)
        return default_envelope(alert)

    async def send(self, channel: NotificationChannel, alert: AlertInstance) -> DeliveryResult:
        config = self.parse_config(channel.config)
        body = self.render(config, alert)
        headers = {"Content-Type": "application/json", **config.headers}
        if isinstance(body, str):
            response = await self.request(config.method, config.url, content=body, headers=headers)
        else:
            response = await self.request(config.method, config.url, json=body, headers=headers)

        if 200 <= response.status_code < 300:
            return DeliveryResult.ok(channel.id, status_code=response.status_code)
        return DeliveryResult.fail(
            channel.id,
            f"Webhook returned HTTP {response.status_code}",
            status_code=response.status_code,
        )


__all__ = [
    "WebhookSender",
    "render_template",
    "default_envelope",
]
