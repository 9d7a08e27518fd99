"""
Shared pytest fixtures for vigil tests.

This module provides:
- Settings cache reset for test isolation
- A registry wired to ``tests._support.fakes.FakeAdapter``
- Factories for rules, alert instances and channels

Usage:
    async def test_something(registry, fake_adapter, make_rule):
        await registry.connect("postgresql", DataSourceConfig(), source_id="db")
        ...
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import pytest

from tests._support.fakes import FakeAdapter
from vigil.alerting.types import AlertCondition, AlertRule, AlertSeverity, ComparisonOperator
from vigil.core.settings import clear_settings_cache
from vigil.datasources.registry import DataSourceRegistry
from vigil.datasources.types import DataSourceType
from vigil.notifications.protocol import AlertInstance, AlertStatus, NotificationChannel

FIXED_TIME = datetime(2026, 1, 15, 12, 0, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def _reset_settings():
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def fake_adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def registry(fake_adapter: FakeAdapter) -> DataSourceRegistry:
    reg = DataSourceRegistry()
    reg.register(DataSourceType.POSTGRESQL, fake_adapter)
    return reg


@pytest.fixture
def make_rule():
    def _make(
        rule_id: str = "rule-1",
        *,
        operator: str = ">",
        threshold: float = 80.0,
        conditions: list[AlertCondition] | None = None,
        severity: AlertSeverity = AlertSeverity.CRITICAL,
        data_source_id: str | None = "db",
        query: str | None = "SELECT value FROM metrics",
        **overrides: Any,
    ) -> AlertRule:
        if conditions is None:
            conditions = [
                AlertCondition(
                    metric="cpu_usage",
                    operator=ComparisonOperator(operator),
                    threshold=threshold,
                )
            ]
        return AlertRule(
            id=rule_id,
            name=overrides.pop("name", "High CPU"),
            severity=severity,
            conditions=conditions,
            data_source_id=data_source_id,
            query=query,
            **overrides,
        )

    return _make


@pytest.fixture
def make_alert():
    def _make(**overrides: Any) -> AlertInstance:
        defaults: dict[str, Any] = dict(
            id="a1",
            rule_id="rule-1",
            status=AlertStatus.FIRING,
            severity=AlertSeverity.CRITICAL,
            message="🔴 High CPU: cpu_usage exceeds 80, current value: 95",
            started_at=FIXED_TIME,
        )
        defaults.update(overrides)
        return AlertInstance(**defaults)

    return _make


@pytest.fixture
def make_channel():
    def _make(channel_type: str = "webhook", *, enabled: bool = True, **config: Any) -> NotificationChannel:
        return NotificationChannel(
            id=f"{channel_type}-1",
            name=f"{channel_type} channel",
            type=channel_type,
            enabled=enabled,
            config=config,
        )

    return _make
