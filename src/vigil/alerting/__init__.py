"""
Alerting package.

Threshold rules, the evaluation engine with its per-rule hysteresis state,
and the alert manager that turns outcomes into alert instances.
"""

from vigil.alerting.evaluator import AlertEvaluator, extract_metric_value, render_message
from vigil.alerting.types import (
    AlertCondition,
    AlertRule,
    AlertSeverity,
    ComparisonOperator,
    EvaluationHistory,
    EvaluationOutcome,
    ValueState,
    format_number,
)

__all__ = [
    # Enums
    "AlertSeverity",
    "ComparisonOperator",
    "ValueState",
    # Data classes
    "AlertCondition",
    "AlertRule",
    "EvaluationHistory",
    "EvaluationOutcome",
    # Engine
    "AlertEvaluator",
    "extract_metric_value",
    "render_message",
    "format_number",
    # Manager (resolved via __getattr__ below)
    "AlertManager",  # noqa: F822
]


# AlertManager depends on vigil.notifications, which itself imports
# vigil.alerting.types; import it on first access to keep the packages
# importable in either order.
def __getattr__(name: str):
    if name == "AlertManager":
        from vigil.alerting.manager import AlertManager

        return AlertManager
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
