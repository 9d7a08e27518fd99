"""Tests for ``vigil.core.logging``."""

from __future__ import annotations

import pytest
import structlog

from vigil.core.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    unbind_context,
)


@pytest.fixture(autouse=True)
def _clean_context():
    clear_context()
    yield
    clear_context()
    structlog.reset_defaults()


class TestContextBinding:
    def test_bind_and_unbind(self):
        bind_context(rule_id="r1", source_id="db")
        assert structlog.contextvars.get_contextvars() == {"rule_id": "r1", "source_id": "db"}

        unbind_context("source_id")
        assert structlog.contextvars.get_contextvars() == {"rule_id": "r1"}

    def test_log_context_is_scoped(self):
        with LogContext(rule_id="r1"):
            assert structlog.contextvars.get_contextvars()["rule_id"] == "r1"
        assert "rule_id" not in structlog.contextvars.get_contextvars()

    @pytest.mark.asyncio
    async def test_async_log_context(self):
        async with LogContext(channel_id="c1"):
            assert structlog.contextvars.get_contextvars()["channel_id"] == "c1"
        assert "channel_id" not in structlog.contextvars.get_contextvars()


class TestConfigure:
    def test_json_pipeline_ends_with_json_renderer(self):
        configure_logging(level="DEBUG", json_format=True, service="vigil-test")
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)
        assert isinstance(processors[0], structlog.processors.TimeStamper)

    def test_console_pipeline_without_timestamp(self):
        configure_logging(level="INFO", json_format=False, add_timestamp=False)
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
        assert not any(isinstance(p, structlog.processors.TimeStamper) for p in processors)
