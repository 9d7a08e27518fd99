"""Tests for NotificationDispatcher routing and its error boundary."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from vigil.core.settings import VigilSettings
from vigil.notifications.base import BaseSender
from vigil.notifications.channels import LoggingEmailTransport, SmtpEmailTransport
from vigil.notifications.dispatcher import NotificationDispatcher, make_test_alert
from vigil.notifications.protocol import AlertStatus, ChannelType, DeliveryResult


class _CountingHandler:
    def __init__(self, status: int = 200, body: dict | None = None):
        self.status = status
        self.body = body
        self.calls: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        return httpx.Response(self.status, json=self.body)


def _dispatcher(handler, **kwargs) -> NotificationDispatcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return NotificationDispatcher(client=client, **kwargs)


class _ExplodingSender(BaseSender):
    channel_type = ChannelType.WEBHOOK

    def parse_config(self, raw):
        return raw

    def render(self, config, alert):
        return {}

    async def send(self, channel, alert):
        raise RuntimeError("kaboom")


class _SlowSender(_ExplodingSender):
    async def send(self, channel, alert):
        await asyncio.sleep(5)
        return DeliveryResult.ok(channel.id)


class TestRouting:
    def test_supported_types(self):
        dispatcher = NotificationDispatcher(client=httpx.AsyncClient())
        assert dispatcher.supported_types() == ["dingtalk", "email", "slack", "webhook"]
        assert dispatcher.get_sender("SLACK").channel_type is ChannelType.SLACK
        assert dispatcher.get_sender("pager") is None

    @pytest.mark.asyncio
    async def test_send_webhook(self, make_alert, make_channel):
        handler = _CountingHandler(200)
        async with _dispatcher(handler) as dispatcher:
            ok = await dispatcher.send(make_channel("webhook", url="https://hooks.example.com/x"), make_alert())
        assert ok is True
        assert len(handler.calls) == 1

    @pytest.mark.asyncio
    async def test_disabled_channel_is_not_contacted(self, make_alert, make_channel):
        handler = _CountingHandler(200)
        dispatcher = _dispatcher(handler)
        channel = make_channel("webhook", enabled=False, url="https://hooks.example.com/x")

        assert await dispatcher.send(channel, make_alert()) is False
        assert await dispatcher.test_channel(channel) is False
        result = await dispatcher.deliver(channel, make_alert())
        assert result.message == "Channel is disabled"
        assert handler.calls == []

    @pytest.mark.asyncio
    async def test_unknown_type(self, make_alert, make_channel):
        dispatcher = _dispatcher(_CountingHandler())
        result = await dispatcher.deliver(make_channel("pager", url="x"), make_alert())
        assert result.success is False
        assert result.message == "Unknown channel type: pager"


class TestErrorBoundary:
    @pytest.mark.asyncio
    async def test_sender_exception_becomes_false(self, make_alert, make_channel):
        dispatcher = _dispatcher(_CountingHandler())
        dispatcher.register_sender(_ExplodingSender())
        result = await dispatcher.deliver(make_channel("webhook", url="https://h.example.com"), make_alert())
        assert result.success is False
        assert "kaboom" in result.message
        assert result.error.context.channel_id == "webhook-1"

    @pytest.mark.asyncio
    async def test_invalid_config_becomes_false(self, make_alert, make_channel):
        dispatcher = _dispatcher(_CountingHandler())
        assert await dispatcher.send(make_channel("slack"), make_alert()) is False

    @pytest.mark.asyncio
    async def test_transport_failure_becomes_false(self, make_alert, make_channel):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        dispatcher = _dispatcher(handler)
        assert await dispatcher.send(make_channel("webhook", url="https://h.example.com"), make_alert()) is False

    @pytest.mark.asyncio
    async def test_timeout(self, make_alert, make_channel):
        dispatcher = _dispatcher(_CountingHandler(), timeout=0.05)
        dispatcher.register_sender(_SlowSender())
        result = await dispatcher.deliver(make_channel("webhook", url="https://h.example.com"), make_alert())
        assert result.success is False
        assert "timed out" in result.message


class TestTestChannel:
    @pytest.mark.asyncio
    async def test_sends_info_test_alert(self, make_channel):
        handler = _CountingHandler(200)
        dispatcher = _dispatcher(handler)
        assert await dispatcher.test_channel(make_channel("webhook", url="https://h.example.com")) is True

        alert = json.loads(handler.calls[0].content)["alert"]
        assert alert["id"] == "test"
        assert alert["severity"] == "info"
        assert alert["message"] == "This is a test notification"

    @pytest.mark.asyncio
    async def test_dingtalk_rejection(self, make_channel):
        dispatcher = _dispatcher(_CountingHandler(200, {"errcode": 300001, "errmsg": "token is not exist"}))
        channel = make_channel("dingtalk", webhookUrl="https://oapi.dingtalk.com/robot/send?access_token=x")
        assert await dispatcher.test_channel(channel) is False

    def test_make_test_alert(self):
        alert = make_test_alert()
        assert alert.status is AlertStatus.FIRING
        assert alert.rule_id == "test"


class TestFromSettings:
    @pytest.mark.asyncio
    async def test_logging_transport_without_smtp_host(self):
        dispatcher = NotificationDispatcher.from_settings(VigilSettings(smtp_host=None))
        assert isinstance(dispatcher.get_sender("email").transport, LoggingEmailTransport)
        await dispatcher.aclose()

    @pytest.mark.asyncio
    async def test_smtp_transport_with_host(self):
        settings = VigilSettings(smtp_host="mail.example.com", smtp_from="vigil@example.com")
        dispatcher = NotificationDispatcher.from_settings(settings)
        assert isinstance(dispatcher.get_sender("email").transport, SmtpEmailTransport)
        await dispatcher.aclose()

    @pytest.mark.asyncio
    async def test_email_goes_through_logging_transport(self, make_alert, make_channel):
        transport = LoggingEmailTransport()
        dispatcher = NotificationDispatcher.from_settings(VigilSettings(), email_transport=transport)
        ok = await dispatcher.send(make_channel("email", recipients="ops@example.com"), make_alert())
        await dispatcher.aclose()

        assert ok is True
        assert transport.sent[0]["From"] == "alerts@localhost"
