"""Performance monitoring utilities for the pricing engine."""
import time
import logging
import threading
import functools
from typing import Any, Callable, Dict

logger = logging.getLogger("pricing-api.perf")


def timed(func: Callable) -> Callable:
    """
    Decorator that measures and logs execution time of an engine operation
    and records it on the module-level ``tracker``.

    Usage::

        @timed
        def calculate_taxes(self, ...):
            ...
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        except Exception:
            tracker.record_error(func.__qualname__)
            raise
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 3)
            tracker.record_operation(func.__qualname__, duration_ms)
            logger.debug(
                "operation timed",
                extra={"operation": func.__qualname__, "duration_ms": duration_ms},
            )
    return wrapper


class PerformanceTracker:
    """
    Thread-safe in-memory tracker for engine metrics.

    Tracks:
    - Consolidated budgets computed
    - Per-operation call counts and average duration
    - Slowest operation seen
    - Error count broken down by operation
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._budgets_computed: int = 0
        self._durations: Dict[str, list] = {}      # operation -> [duration_ms, ...]
        self._error_counts: Dict[str, int] = {}
        self._slowest_operation: str = ""
        self._slowest_operation_ms: float = 0.0

    # ------------------------------------------------------------------
    # Public write API
    # ------------------------------------------------------------------

    def record_budget_computed(self) -> None:
        with self._lock:
            self._budgets_computed += 1

    def record_operation(self, operation: str, duration_ms: float) -> None:
        with self._lock:
            self._durations.setdefault(operation, []).append(duration_ms)
            if duration_ms > self._slowest_operation_ms:
                self._slowest_operation_ms = duration_ms
                self._slowest_operation = operation

    def record_error(self, operation: str) -> None:
        with self._lock:
            self._error_counts[operation] = self._error_counts.get(operation, 0) + 1

    # ------------------------------------------------------------------
    # Public read API
    # ------------------------------------------------------------------

    def get_metrics(self) -> Dict[str, Any]:
        """
        Return a snapshot of all collected metrics.

        Returns
        -------
        dict with keys:
            budgets_computed          : int
            operation_calls           : dict  {operation: count}
            operation_avg_ms          : dict  {operation: avg_ms}
            slowest_operation         : str
            slowest_operation_ms      : float
            error_count               : int
            error_count_by_operation  : dict  {operation: count}
        """
        with self._lock:
            avgs = {
                op: round(sum(d) / len(d), 3) if d else 0.0
                for op, d in self._durations.items()
            }
            return {
                "budgets_computed": self._budgets_computed,
                "operation_calls": {op: len(d) for op, d in self._durations.items()},
                "operation_avg_ms": avgs,
                "slowest_operation": self._slowest_operation,
                "slowest_operation_ms": round(self._slowest_operation_ms, 3),
                "error_count": sum(self._error_counts.values()),
                "error_count_by_operation": dict(self._error_counts),
            }

    def reset(self) -> None:
        """Reset all counters (useful in tests)."""
        with self._lock:
            self._budgets_computed = 0
            self._durations.clear()
            self._error_counts.clear()
            self._slowest_operation = ""
            self._slowest_operation_ms = 0.0


# Module-level singleton - import this instance everywhere else.
tracker = PerformanceTracker()
