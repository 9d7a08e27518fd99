"""
Alert evaluation engine.

Manifesto:
    Evaluating a rule resolves one metric value, checks every condition
    against it and advances the rule's hysteresis counter. Availability wins
    over precision: a failing backend never fails the call, the rule simply
    does not fire on that tick. The reason is logged so operators can tell
    "below threshold" from "unavailable".

Value policy:
    The current value is the **first numeric column of the last row** of the
    query result (see :func:`extract_metric_value`). When a query returns
    several numeric columns the first one in column order wins; put the
    metric first in the SELECT list.

Concurrency:
    Evaluations of the same rule id are serialized by a per-rule
    ``asyncio.Lock``; different rules never wait on each other.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from vigil.core.errors import OperationTimeoutError, is_configuration_error
from vigil.core.locks import KeyedLocks
from vigil.core.logging import LogContext, get_logger
from vigil.core.timestamps import utc_now
from vigil.datasources.types import Query, QueryResult

from .types import (
    AlertRule,
    EvaluationHistory,
    EvaluationOutcome,
    ValueState,
    format_number,
)

if TYPE_CHECKING:
    from vigil.datasources.registry import DataSourceRegistry

log = get_logger(__name__)


def _is_numeric(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def extract_metric_value(result: QueryResult) -> float | None:
    """Return the first numeric column of the last row, or None.

    ``bool`` is not numeric; ``int``, ``float`` and ``Decimal`` are. Columns
    are scanned in ``result.columns`` order, falling back to the row's own key
    order for columns the result does not declare.
    """
    if not result.rows:
        return None
    row = result.rows[-1]
    order = list(result.columns) + [key for key in row if key not in result.columns]
    for column in order:
        value = row.get(column)
        if _is_numeric(value):
            return float(value)
    return None


def render_message(rule: AlertRule, value: float | None) -> str:
    """``<glyph> <name>: <metric> <phrase> <threshold>, current value: <value>``."""
    if not rule.conditions:
        return rule.name
    condition = rule.conditions[0]
    return f"{rule.severity.glyph} {rule.name}: {condition.describe()}, current value: {format_number(value)}"


class AlertEvaluator:
    """
    Evaluates alert rules against the data source registry.

    Usage:
        evaluator = AlertEvaluator(registry, deadline=30)
        outcome = await evaluator.evaluate(rule)
        history = evaluator.get_history(rule.id)
    """

    def __init__(
        self,
        registry: DataSourceRegistry,
        *,
        deadline: float | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._registry = registry
        self._deadline = deadline
        self._clock = clock
        self._history: dict[str, EvaluationHistory] = {}
        self._locks = KeyedLocks()

    @property
    def registry(self) -> DataSourceRegistry:
        return self._registry

    async def evaluate(self, rule: AlertRule) -> EvaluationOutcome:
        """Evaluate ``rule`` once and advance its history. Never raises on query failure."""
        async with self._locks.hold(rule.id):
            async with LogContext(rule_id=rule.id):
                return await self._evaluate_locked(rule)

    async def _evaluate_locked(self, rule: AlertRule) -> EvaluationOutcome:
        history = self._history.get(rule.id)
        if history is None:
            history = self._history[rule.id] = EvaluationHistory()

        value, state, error = await self._resolve_value(rule)
        firing = value is not None and bool(rule.conditions) and all(c.holds(value) for c in rule.conditions)

        now = self._clock()
        if firing and history.is_firing:
            history.consecutive_firing_count += 1
        elif firing:
            history.consecutive_firing_count = 1
            history.firing_since = now
        else:
            history.consecutive_firing_count = 0
            history.firing_since = None
        history.is_firing = firing
        history.last_value = value if value is not None else 0.0
        history.last_evaluated_at = now

        log.debug(
            "rule_evaluated",
            firing=firing,
            value=value,
            value_state=state.value,
            consecutive=history.consecutive_firing_count,
        )
        return EvaluationOutcome(
            rule_id=rule.id,
            timestamp=now,
            is_firing=firing,
            value=value,
            message=render_message(rule, value) if firing else "",
            value_state=state,
            error=error,
        )

    async def _resolve_value(self, rule: AlertRule) -> tuple[float | None, ValueState, str | None]:
        if not rule.has_query:
            return None, ValueState.NO_QUERY, None

        try:
            result = await self._run_query(rule)
        except Exception as e:
            if is_configuration_error(e):
                log.error(
                    "rule_misconfigured",
                    data_source_id=rule.data_source_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return None, ValueState.MISCONFIGURED, str(e)
            log.warning(
                "metric_unavailable",
                data_source_id=rule.data_source_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None, ValueState.UNAVAILABLE, str(e)

        value = extract_metric_value(result)
        if value is None:
            log.info("metric_missing", data_source_id=rule.data_source_id, rows=result.row_count)
            return None, ValueState.NO_DATA, None
        return value, ValueState.RESOLVED, None

    async def _run_query(self, rule: AlertRule) -> QueryResult:
        query = self._registry.query_source(rule.data_source_id, Query(statement=rule.query or ""))
        if self._deadline is None:
            return await query
        try:
            return await asyncio.wait_for(query, self._deadline)
        except asyncio.TimeoutError as e:
            raise OperationTimeoutError(
                f"Evaluation deadline of {self._deadline:g}s exceeded", cause=e
            ).with_context(rule_id=rule.id, source_id=rule.data_source_id) from e

    def get_history(self, rule_id: str) -> EvaluationHistory | None:
        """Read-only snapshot of a rule's history; None if never evaluated."""
        history = self._history.get(rule_id)
        return history.snapshot() if history is not None else None

    def clear_history(self, rule_id: str | None = None) -> None:
        """Reset one rule's history, or every rule's when ``rule_id`` is None.

        The rule's lock is dropped too unless an evaluation holds or awaits it.
        """
        if rule_id is None:
            self._history.clear()
        else:
            self._history.pop(rule_id, None)
        self._locks.discard(rule_id)

    def tracked_rules(self) -> list[str]:
        return list(self._history)


__all__ = [
    "AlertEvaluator",
    "extract_metric_value",
    "render_message",
]
