"""
Channel sender base classes.

Senders are stateless renderers: ``render()`` turns an alert into the
channel's payload and ``send()`` transmits it. HTTP senders share the
dispatcher's ``httpx.AsyncClient``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import httpx

from vigil.core.errors import DeliveryError
from vigil.core.timestamps import to_iso8601

from .protocol import AlertInstance, ChannelType, DeliveryResult, NotificationChannel


def format_timestamp(alert: AlertInstance) -> str:
    """ISO-8601 start time used in every rendered payload."""
    return to_iso8601(alert.started_at) or ""


class BaseSender(ABC):
    """Base class for channel senders."""

    channel_type: ChannelType

    @abstractmethod
    def parse_config(self, raw: dict[str, Any]) -> Any:
        """Validate the channel's raw config into its typed form."""
        ...

    @abstractmethod
    def render(self, config: Any, alert: AlertInstance) -> Any:
        """Build the payload for ``alert``."""
        ...

    @abstractmethod
    async def send(self, channel: NotificationChannel, alert: AlertInstance) -> DeliveryResult:
        """Render and transmit. Transport failures may raise; the dispatcher catches them."""
        ...


class HttpSender(BaseSender):
    """Sender that delivers over HTTP with a shared client."""

    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    async def request(
        self,
        method: str,
        url: str,
        *,
        json: Any = None,
        content: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            return await self._client.request(method, url, json=json, content=content, headers=headers)
        except httpx.HTTPError as e:
            raise DeliveryError(f"{self.channel_type.value} request failed: {e}", cause=e).with_context(
                url=url
            ) from e


__all__ = [
    "BaseSender",
    "HttpSender",
    "format_timestamp",
]
