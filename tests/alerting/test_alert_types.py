"""Tests for alerting value types."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from vigil.alerting.types import (
    AlertCondition,
    AlertRule,
    AlertSeverity,
    ComparisonOperator,
    EvaluationHistory,
    format_number,
)
from vigil.core.errors import InvalidConfigError


class TestComparisonOperator:
    @pytest.mark.parametrize(
        ("op", "value", "threshold", "expected"),
        [
            (">", 81, 80, True),
            (">", 80, 80, False),
            ("<", 79, 80, True),
            (">=", 80, 80, True),
            ("<=", 81, 80, False),
            ("==", 80, 80, True),
            ("!=", 80, 80, False),
        ],
    )
    def test_compare(self, op, value, threshold, expected):
        assert ComparisonOperator(op).compare(value, threshold) is expected

    @pytest.mark.parametrize(("alias", "expected"), [("gte", ">="), ("=", "=="), ("<>", "!="), ("LT", "<")])
    def test_parse_aliases(self, alias, expected):
        assert ComparisonOperator.parse(alias).value == expected

    def test_parse_unknown(self):
        with pytest.raises(InvalidConfigError):
            ComparisonOperator.parse("~=")

    def test_phrases(self):
        assert ComparisonOperator.GT.phrase == "exceeds"
        assert ComparisonOperator.NE.phrase == "does not equal"


class TestSeverity:
    def test_glyphs(self):
        assert AlertSeverity.CRITICAL.glyph == "🔴"
        assert AlertSeverity.WARNING.glyph == "🟡"
        assert AlertSeverity.INFO.glyph == "🔵"

    def test_parse(self):
        assert AlertSeverity.parse("CRITICAL") is AlertSeverity.CRITICAL
        with pytest.raises(InvalidConfigError):
            AlertSeverity.parse("fatal")


class TestFormatNumber:
    def test_formats(self):
        assert format_number(None) == "N/A"
        assert format_number(80.0) == "80"
        assert format_number(95.5) == "95.5"
        assert format_number(3) == "3"


class TestAlertCondition:
    def test_describe(self):
        condition = AlertCondition(metric="cpu_usage", operator=ComparisonOperator.GT, threshold=80.0)
        assert condition.describe() == "cpu_usage exceeds 80"

    def test_from_dict(self):
        condition = AlertCondition.from_dict({"metric": "lag", "operator": "gte", "threshold": "5", "duration": 60})
        assert condition.operator is ComparisonOperator.GE
        assert condition.threshold == 5.0
        assert condition.duration == 60.0
        assert AlertCondition.from_dict(condition.to_dict()) == condition

    @pytest.mark.parametrize("data", [{"metric": "x"}, {"metric": "x", "threshold": "high"}])
    def test_from_dict_invalid_threshold(self, data):
        with pytest.raises(InvalidConfigError):
            AlertCondition.from_dict(data)


class TestAlertRule:
    def test_from_dict_camel_case(self):
        rule = AlertRule.from_dict(
            {
                "id": "r1",
                "name": "High CPU",
                "severity": "critical",
                "dataSourceId": "db",
                "query": "SELECT value FROM m",
                "conditions": [{"metric": "cpu", "operator": ">", "threshold": 80}],
                "createdAt": "2026-01-15T12:00:00Z",
            }
        )
        assert rule.severity is AlertSeverity.CRITICAL
        assert rule.data_source_id == "db"
        assert rule.has_query
        assert rule.created_at == datetime(2026, 1, 15, 12, 0, tzinfo=UTC)
        assert rule.to_dict()["dataSourceId"] == "db"

    def test_missing_id_rejected(self):
        with pytest.raises(InvalidConfigError):
            AlertRule(id="", name="nameless")

    def test_without_query(self):
        rule = AlertRule(id="r1", name="manual", data_source_id="db")
        assert not rule.has_query

    def test_conditions_must_be_list(self):
        with pytest.raises(InvalidConfigError):
            AlertRule.from_dict({"id": "r1", "conditions": {"threshold": 1}})


class TestEvaluationHistory:
    def test_defaults_and_snapshot(self):
        history = EvaluationHistory()
        assert history.consecutive_firing_count == 0
        assert history.last_value == 0.0

        snap = history.snapshot()
        snap.consecutive_firing_count = 5
        assert history.consecutive_firing_count == 0
        assert history.to_dict()["lastEvaluatedAt"] is None
