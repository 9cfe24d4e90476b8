"""
test_observability.py - Structured logging, @timed and PerformanceTracker.
"""

import json
import logging

import pytest

from pricing_app.services.logging_config import JSONFormatter, setup_logging
from pricing_app.services.middleware import budget_operation
from pricing_app.services.perf_monitor import PerformanceTracker, timed, tracker


def _record(**extra):
    record = logging.LogRecord(
        name="pricing-engine", level=logging.INFO, pathname=__file__, lineno=10,
        msg="budget %s", args=("done",), exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:

    def test_base_fields(self):
        entry = json.loads(JSONFormatter().format(_record()))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "pricing-engine"
        assert entry["message"] == "budget done"
        assert "budget_id" not in entry

    def test_extra_fields_copied(self):
        entry = json.loads(JSONFormatter().format(
            _record(budget_id="b1", operation="calculate_taxes", duration_ms=1.5, request_id="r1"),
        ))
        assert entry["budget_id"] == "b1"
        assert entry["operation"] == "calculate_taxes"
        assert entry["duration_ms"] == 1.5
        assert entry["request_id"] == "r1"

    def test_setup_logging_text_mode(self):
        root = logging.getLogger()
        previous = (root.level, list(root.handlers))
        try:
            setup_logging(level="DEBUG", json_output=False)
            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
            assert not isinstance(root.handlers[0].formatter, JSONFormatter)
            assert logging.getLogger("httpx").level == logging.WARNING
        finally:
            root.setLevel(previous[0])
            root.handlers = previous[1]


class TestPerformanceTracker:

    def test_records_and_reports(self):
        local = PerformanceTracker()
        local.record_budget_computed()
        local.record_operation("calculate_taxes", 2.0)
        local.record_operation("calculate_taxes", 4.0)
        local.record_operation("build_budget", 10.0)
        local.record_error("build_budget")

        metrics = local.get_metrics()
        assert metrics["budgets_computed"] == 1
        assert metrics["operation_calls"] == {"calculate_taxes": 2, "build_budget": 1}
        assert metrics["operation_avg_ms"]["calculate_taxes"] == 3.0
        assert metrics["slowest_operation"] == "build_budget"
        assert metrics["error_count"] == 1

    def test_reset(self):
        local = PerformanceTracker()
        local.record_operation("x", 1.0)
        local.reset()
        assert local.get_metrics()["operation_calls"] == {}


class TestTimedDecorator:

    def test_success_recorded(self):
        @timed
        def add(a, b):
            return a + b

        name = add.__qualname__
        before = tracker.get_metrics()["operation_calls"].get(name, 0)
        assert add(2, 3) == 5
        assert tracker.get_metrics()["operation_calls"][name] == before + 1

    def test_error_recorded_and_reraised(self):
        @timed
        def boom():
            raise RuntimeError("fail")

        name = boom.__qualname__
        before = tracker.get_metrics()["error_count_by_operation"].get(name, 0)
        with pytest.raises(RuntimeError):
            boom()
        assert tracker.get_metrics()["error_count_by_operation"][name] == before + 1


class TestBudgetOperation:

    def test_known_routes(self):
        assert budget_operation("/api/budget/consolidated") == "build_budget"
        assert budget_operation("/api/budget/history/abc123") == "budget_history"
        assert budget_operation("/api/budget/tax-regimes/lucro_real") == "get_regime"

    def test_other_paths(self):
        assert budget_operation("/health") is None
        assert budget_operation("/api/budget/unknown") is None
