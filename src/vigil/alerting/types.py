"""
Alerting data types: severities, conditions, rules, history and outcomes.

Rules and conditions arrive from an external store; :meth:`AlertRule.from_dict`
accepts the camelCase records that store produces (``dataSourceId``,
``createdAt``) as well as snake_case.
"""

from __future__ import annotations

import math
import operator
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any

from vigil.core.errors import InvalidConfigError
from vigil.core.timestamps import from_iso8601, to_iso8601, utc_now


class AlertSeverity(str, Enum):
    """Alert severity levels."""

    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"

    @property
    def glyph(self) -> str:
        return _SEVERITY_GLYPHS[self]

    @classmethod
    def parse(cls, value: AlertSeverity | str) -> AlertSeverity:
        if isinstance(value, AlertSeverity):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidConfigError("severity", value) from None


_SEVERITY_GLYPHS = {
    AlertSeverity.CRITICAL: "🔴",
    AlertSeverity.WARNING: "🟡",
    AlertSeverity.INFO: "🔵",
}


class ComparisonOperator(str, Enum):
    """Threshold comparison operators."""

    GT = ">"
    LT = "<"
    GE = ">="
    LE = "<="
    EQ = "=="
    NE = "!="

    @property
    def phrase(self) -> str:
        return _OPERATOR_PHRASES[self]

    def compare(self, value: float, threshold: float) -> bool:
        return _OPERATOR_FUNCS[self](value, threshold)

    @classmethod
    def parse(cls, value: ComparisonOperator | str) -> ComparisonOperator:
        if isinstance(value, ComparisonOperator):
            return value
        text = str(value).strip()
        text = _OPERATOR_ALIASES.get(text.lower(), text)
        try:
            return cls(text)
        except ValueError:
            raise InvalidConfigError("operator", value) from None


_OPERATOR_PHRASES = {
    ComparisonOperator.GT: "exceeds",
    ComparisonOperator.LT: "below",
    ComparisonOperator.GE: "at or above",
    ComparisonOperator.LE: "at or below",
    ComparisonOperator.EQ: "equals",
    ComparisonOperator.NE: "does not equal",
}

_OPERATOR_FUNCS: dict[ComparisonOperator, Callable[[float, float], bool]] = {
    ComparisonOperator.GT: operator.gt,
    ComparisonOperator.LT: operator.lt,
    ComparisonOperator.GE: operator.ge,
    ComparisonOperator.LE: operator.le,
    ComparisonOperator.EQ: operator.eq,
    ComparisonOperator.NE: operator.ne,
}

_OPERATOR_ALIASES = {
    "gt": ">",
    "lt": "<",
    "gte": ">=",
    "ge": ">=",
    "lte": "<=",
    "le": "<=",
    "eq": "==",
    "=": "==",
    "ne": "!=",
    "neq": "!=",
    "<>": "!=",
}


def format_number(value: float | None) -> str:
    """Render a metric or threshold; integral values drop the trailing ``.0``."""
    if value is None:
        return "N/A"
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class AlertCondition:
    """One threshold check against the rule's resolved value.

    ``duration`` (seconds) is not enforced by the evaluator; the alert
    manager uses it as a minimum firing time before opening an alert.
    """

    metric: str
    operator: ComparisonOperator
    threshold: float
    duration: float | None = None

    def holds(self, value: float) -> bool:
        return self.operator.compare(value, self.threshold)

    def describe(self) -> str:
        return f"{self.metric} {self.operator.phrase} {format_number(self.threshold)}"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AlertCondition:
        try:
            threshold = float(data["threshold"])
        except KeyError:
            raise InvalidConfigError("threshold", None, "Condition threshold is required") from None
        except (TypeError, ValueError):
            raise InvalidConfigError("threshold", data.get("threshold")) from None
        duration = data.get("duration")
        if duration is not None:
            try:
                duration = float(duration)
            except (TypeError, ValueError):
                raise InvalidConfigError("duration", duration) from None
        return cls(
            metric=str(data.get("metric", "value")),
            operator=ComparisonOperator.parse(data.get("operator", ">")),
            threshold=threshold,
            duration=duration,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "metric": self.metric,
            "operator": self.operator.value,
            "threshold": self.threshold,
        }
        if self.duration is not None:
            result["duration"] = self.duration
        return result


@dataclass
class AlertRule:
    """A user-defined threshold rule.

    All conditions must hold (logical AND) for the rule to fire. A rule
    without ``data_source_id`` and ``query`` has no value and never fires.
    """

    id: str
    name: str
    severity: AlertSeverity = AlertSeverity.WARNING
    enabled: bool = True
    conditions: list[AlertCondition] = field(default_factory=list)
    data_source_id: str | None = None
    query: str | None = None
    description: str | None = None
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        if not self.id:
            raise InvalidConfigError("id", self.id, "Rule id is required")
        self.severity = AlertSeverity.parse(self.severity)

    @property
    def has_query(self) -> bool:
        return bool(self.data_source_id and self.query)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AlertRule:
        """Build from a stored record (camelCase or snake_case keys)."""

        def pick(*keys: str, default: Any = None) -> Any:
            for key in keys:
                if key in data:
                    return data[key]
            return default

        conditions = pick("conditions", default=[]) or []
        if not isinstance(conditions, list):
            raise InvalidConfigError("conditions", conditions, "Conditions must be a list")

        kwargs: dict[str, Any] = {}
        for name, keys in (("created_at", ("createdAt", "created_at")), ("updated_at", ("updatedAt", "updated_at"))):
            value = pick(*keys)
            if isinstance(value, str):
                value = from_iso8601(value)
            if value is not None:
                kwargs[name] = value

        return cls(
            id=str(pick("id", default="")),
            name=str(pick("name", default=pick("id", default=""))),
            severity=AlertSeverity.parse(pick("severity", default=AlertSeverity.WARNING)),
            enabled=bool(pick("enabled", default=True)),
            conditions=[c if isinstance(c, AlertCondition) else AlertCondition.from_dict(c) for c in conditions],
            data_source_id=pick("dataSourceId", "data_source_id"),
            query=pick("query"),
            description=pick("description"),
            labels=dict(pick("labels", default={}) or {}),
            annotations=dict(pick("annotations", default={}) or {}),
            **kwargs,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "severity": self.severity.value,
            "enabled": self.enabled,
            "conditions": [c.to_dict() for c in self.conditions],
            "dataSourceId": self.data_source_id,
            "query": self.query,
            "labels": dict(self.labels),
            "annotations": dict(self.annotations),
            "createdAt": to_iso8601(self.created_at),
            "updatedAt": to_iso8601(self.updated_at),
        }


class ValueState(str, Enum):
    """How the metric value of an evaluation was (or was not) obtained."""

    RESOLVED = "resolved"
    NO_QUERY = "no_query"  # rule has no data source / query
    NO_DATA = "no_data"  # zero rows or no numeric column
    UNAVAILABLE = "unavailable"  # transient backend failure or deadline
    MISCONFIGURED = "misconfigured"  # unsupported kind / not connected


@dataclass
class EvaluationHistory:
    """Per-rule hysteresis state, owned by the evaluator."""

    is_firing: bool = False
    consecutive_firing_count: int = 0
    last_value: float = 0.0
    last_evaluated_at: datetime | None = None
    firing_since: datetime | None = None

    def snapshot(self) -> EvaluationHistory:
        return replace(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "isFiring": self.is_firing,
            "consecutiveFiringCount": self.consecutive_firing_count,
            "lastValue": self.last_value,
            "lastEvaluatedAt": to_iso8601(self.last_evaluated_at),
            "firingSince": to_iso8601(self.firing_since),
        }


@dataclass(frozen=True)
class EvaluationOutcome:
    """Result of one ``evaluate()`` call."""

    rule_id: str
    timestamp: datetime
    is_firing: bool
    value: float | None
    message: str
    value_state: ValueState = ValueState.RESOLVED
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "ruleId": self.rule_id,
            "timestamp": to_iso8601(self.timestamp),
            "isFiring": self.is_firing,
            "value": self.value,
            "message": self.message,
            "valueState": self.value_state.value,
        }
        if self.error:
            result["error"] = self.error
        return result


__all__ = [
    "AlertSeverity",
    "ComparisonOperator",
    "format_number",
    "AlertCondition",
    "AlertRule",
    "ValueState",
    "EvaluationHistory",
    "EvaluationOutcome",
]
