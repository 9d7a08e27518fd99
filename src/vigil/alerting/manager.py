"""
Alert manager: rule and channel book-keeping plus the alert-instance lifecycle.

Manifesto:
    The evaluator answers "does this rule fire right now?". The manager
    decides when that answer becomes an incident: an alert instance opens
    once the rule has fired for ``required_consecutive_evaluations`` ticks
    and for at least every condition's ``duration``, and resolves on the
    first tick it stops firing. Opening and resolving notify every enabled
    channel. Storage is in memory; persistence belongs to the caller, and
    only the newest ``max_resolved_alerts`` resolved instances are kept.

Usage:
    manager = AlertManager.from_settings(evaluator, dispatcher)
    manager.add_rule(rule)
    manager.add_channel(channel)
    outcomes = await manager.evaluate_all()   # one scheduler tick
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING, Any

from vigil.core.locks import KeyedLocks
from vigil.core.logging import get_logger
from vigil.core.timestamps import utc_now
from vigil.notifications.protocol import (
    AlertInstance,
    AlertStatus,
    DeliveryResult,
    NotificationChannel,
    NotificationRecord,
)

from .types import AlertRule, EvaluationOutcome

if TYPE_CHECKING:
    from vigil.core.settings import VigilSettings
    from vigil.notifications.dispatcher import NotificationDispatcher

    from .evaluator import AlertEvaluator

log = get_logger(__name__)


class AlertManager:
    """In-memory alert manager driving evaluator and dispatcher."""

    def __init__(
        self,
        evaluator: AlertEvaluator,
        dispatcher: NotificationDispatcher,
        *,
        required_consecutive_evaluations: int = 1,
        clock: Callable[[], datetime] = utc_now,
        max_notification_records: int = 1000,
        max_resolved_alerts: int = 1000,
    ):
        if required_consecutive_evaluations < 1:
            raise ValueError("required_consecutive_evaluations must be >= 1")
        self._evaluator = evaluator
        self._dispatcher = dispatcher
        self._required = required_consecutive_evaluations
        self._clock = clock
        self._rules: dict[str, AlertRule] = {}
        self._channels: dict[str, NotificationChannel] = {}
        self._alerts: dict[str, AlertInstance] = {}
        self._open: dict[str, str] = {}
        self._resolved: deque[str] = deque()
        self._max_resolved = max_resolved_alerts
        self._notifications: deque[NotificationRecord] = deque(maxlen=max_notification_records)
        self._locks = KeyedLocks()

    @classmethod
    def from_settings(
        cls,
        evaluator: AlertEvaluator,
        dispatcher: NotificationDispatcher,
        settings: VigilSettings | None = None,
        **kwargs,
    ) -> AlertManager:
        """Build a manager whose firing requirement comes from settings."""
        if settings is None:
            from vigil.core.settings import get_settings

            settings = get_settings()
        kwargs.setdefault("required_consecutive_evaluations", settings.required_consecutive_evaluations)
        return cls(evaluator, dispatcher, **kwargs)

    @property
    def evaluator(self) -> AlertEvaluator:
        return self._evaluator

    # ------------------------------------------------------------------ #
    # Rules
    # ------------------------------------------------------------------ #

    def add_rule(self, rule: AlertRule) -> None:
        self._rules[rule.id] = rule

    def update_rule(self, rule: AlertRule) -> bool:
        """Replace an existing rule; False if the id is unknown."""
        if rule.id not in self._rules:
            return False
        rule.updated_at = self._clock()
        self._rules[rule.id] = rule
        return True

    def delete_rule(self, rule_id: str) -> None:
        """Remove a rule and forget its evaluation history."""
        self._rules.pop(rule_id, None)
        self._evaluator.clear_history(rule_id)
        self._locks.discard(rule_id)

    def get_rule(self, rule_id: str) -> AlertRule | None:
        return self._rules.get(rule_id)

    def rules(self) -> list[AlertRule]:
        return list(self._rules.values())

    def enabled_rules(self) -> list[AlertRule]:
        return [rule for rule in self._rules.values() if rule.enabled]

    # ------------------------------------------------------------------ #
    # Channels
    # ------------------------------------------------------------------ #

    def add_channel(self, channel: NotificationChannel) -> None:
        self._channels[channel.id] = channel

    def update_channel(self, channel: NotificationChannel) -> bool:
        if channel.id not in self._channels:
            return False
        self._channels[channel.id] = channel
        return True

    def delete_channel(self, channel_id: str) -> None:
        self._channels.pop(channel_id, None)

    def get_channel(self, channel_id: str) -> NotificationChannel | None:
        return self._channels.get(channel_id)

    def channels(self) -> list[NotificationChannel]:
        return list(self._channels.values())

    def enabled_channels(self) -> list[NotificationChannel]:
        return [channel for channel in self._channels.values() if channel.enabled]

    # ------------------------------------------------------------------ #
    # Alert instances
    # ------------------------------------------------------------------ #

    def get_alert(self, alert_id: str) -> AlertInstance | None:
        return self._alerts.get(alert_id)

    def alerts(self) -> list[AlertInstance]:
        return list(self._alerts.values())

    def active_alerts(self) -> list[AlertInstance]:
        """Alerts currently firing (muted alerts are not listed)."""
        return [alert for alert in self._alerts.values() if alert.status == AlertStatus.FIRING]

    def mute_alert(self, alert_id: str) -> bool:
        """Silence an open alert; it resolves later without notifying."""
        alert = self._alerts.get(alert_id)
        if alert is None or not alert.is_active:
            return False
        alert.status = AlertStatus.MUTED
        log.info("alert_muted", alert_id=alert_id, rule_id=alert.rule_id)
        return True

    def notification_records(self, alert_id: str | None = None) -> list[NotificationRecord]:
        if alert_id is None:
            return list(self._notifications)
        return [record for record in self._notifications if record.alert_id == alert_id]

    def _open_alert_for(self, rule_id: str) -> AlertInstance | None:
        alert_id = self._open.get(rule_id)
        return self._alerts.get(alert_id) if alert_id is not None else None

    # ------------------------------------------------------------------ #
    # Evaluation
    # ------------------------------------------------------------------ #

    async def evaluate_all(self) -> list[EvaluationOutcome]:
        """Evaluate every enabled rule concurrently (one scheduler tick)."""
        rules = self.enabled_rules()
        if not rules:
            return []
        return list(await asyncio.gather(*(self.evaluate_rule(rule) for rule in rules)))

    async def evaluate_rule(self, rule: AlertRule) -> EvaluationOutcome:
        """Evaluate ``rule`` and open or resolve its alert instance as needed."""
        async with self._locks.hold(rule.id):
            outcome = await self._evaluator.evaluate(rule)
            existing = self._open_alert_for(rule.id)

            if outcome.is_firing:
                if existing is None:
                    if self._ready_to_fire(rule):
                        await self._trigger(rule, outcome)
                else:
                    existing.value = outcome.value
                    existing.evaluations += 1
            elif existing is not None:
                await self._resolve(existing)
            return outcome

    def _ready_to_fire(self, rule: AlertRule) -> bool:
        history = self._evaluator.get_history(rule.id)
        if history is None or history.consecutive_firing_count < self._required:
            return False
        durations = [c.duration for c in rule.conditions if c.duration]
        if durations and history.firing_since is not None:
            held = (self._clock() - history.firing_since).total_seconds()
            if held < max(durations):
                return False
        return True

    async def _trigger(self, rule: AlertRule, outcome: EvaluationOutcome) -> AlertInstance:
        history = self._evaluator.get_history(rule.id)
        alert = AlertInstance(
            id=AlertInstance.new_id(),
            rule_id=rule.id,
            status=AlertStatus.FIRING,
            severity=rule.severity,
            message=outcome.message or f"{rule.name} alert triggered",
            started_at=outcome.timestamp,
            value=outcome.value,
            evaluations=history.consecutive_firing_count if history else 1,
        )
        self._alerts[alert.id] = alert
        self._open[rule.id] = alert.id
        log.warning(
            "alert_triggered",
            alert_id=alert.id,
            rule_id=rule.id,
            severity=alert.severity.value,
            value=alert.value,
        )
        await self._notify(alert)
        return alert

    async def _resolve(self, alert: AlertInstance) -> None:
        was_muted = alert.status == AlertStatus.MUTED
        alert.status = AlertStatus.RESOLVED
        alert.ended_at = self._clock()
        self._open.pop(alert.rule_id, None)
        self._retire(alert.id)
        log.info("alert_resolved", alert_id=alert.id, rule_id=alert.rule_id, muted=was_muted)
        if not was_muted:
            await self._notify(alert)

    def _retire(self, alert_id: str) -> None:
        """Keep at most ``max_resolved_alerts`` resolved alerts, oldest evicted first."""
        self._resolved.append(alert_id)
        while len(self._resolved) > self._max_resolved:
            self._alerts.pop(self._resolved.popleft(), None)

    async def _notify(self, alert: AlertInstance) -> list[DeliveryResult]:
        channels = self.enabled_channels()
        if not channels:
            return []
        results = await asyncio.gather(*(self._dispatcher.deliver(channel, alert) for channel in channels))
        for channel, result in zip(channels, results):
            self._notifications.append(NotificationRecord.from_result(alert.id, result))
            if not result.success:
                log.warning(
                    "alert_notification_failed",
                    alert_id=alert.id,
                    channel_id=channel.id,
                    channel_name=channel.name,
                    error=result.message,
                )
        return list(results)

    def stats(self) -> dict[str, Any]:
        return {
            "total_rules": len(self._rules),
            "enabled_rules": len(self.enabled_rules()),
            "active_alerts": len(self.active_alerts()),
            "channels": len(self._channels),
        }


__all__ = [
    "AlertManager",
]
