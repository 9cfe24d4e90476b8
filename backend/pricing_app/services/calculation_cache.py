"""
Memoising wrapper around BudgetCalculationEngine.

Consolidated budgets are keyed by a SHA-256 digest of the canonical JSON
form of every input that affects the result. Entries expire after a TTL
and the least recently used entry is evicted once the cache is full.
The wrapped engine stays pure; this layer is the only stateful piece.
"""
import hashlib
import json
import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, Optional, Sequence

from pricing_app.config import BUDGET_CACHE_SIZE, BUDGET_CACHE_TTL_SECONDS
from pricing_app.services.budget_engine import BudgetCalculationEngine
from pricing_app.services.budget_types import (
    ConsolidatedBudget,
    MarginConfiguration,
    OtherCostItem,
    ScheduleEntry,
    TaxConfiguration,
    TeamMember,
    to_plain,
)

logger = logging.getLogger("pricing-cache")


def cache_key(**inputs: Any) -> str:
    """SHA-256 of the inputs serialised as sorted-key JSON."""
    payload = json.dumps(
        to_plain(inputs),
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class CachedBudgetEngine:
    """
    LRU + TTL cache in front of ``BudgetCalculationEngine.build_budget``.

    Thread-safe. ``clock`` is injectable so expiry can be tested without
    sleeping.
    """

    def __init__(
        self,
        engine: Optional[BudgetCalculationEngine] = None,
        max_size: int = BUDGET_CACHE_SIZE,
        ttl_seconds: float = BUDGET_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.engine = engine or BudgetCalculationEngine()
        self.max_size = max(1, int(max_size))
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: "OrderedDict[str, tuple]" = OrderedDict()   # key -> (stored_at, budget)
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def _get(self, key: str) -> Optional[ConsolidatedBudget]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            stored_at, budget = entry
            if self._clock() - stored_at > self.ttl_seconds:
                del self._entries[key]
                self._misses += 1
                logger.debug(f"Cache entry {key[:12]} expired")
                return None
            self._entries.move_to_end(key)
            self._hits += 1
            return budget

    def _put(self, key: str, budget: ConsolidatedBudget) -> None:
        with self._lock:
            self._entries[key] = (self._clock(), budget)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                self._evictions += 1
                logger.debug(f"Cache entry {evicted[:12]} evicted (LRU)")

    def build_budget(
        self,
        roster: Sequence[TeamMember],
        schedule: Sequence[ScheduleEntry],
        other_cost_items: Sequence[OtherCostItem],
        tax_config: TaxConfiguration,
        margin_config: MarginConfiguration,
        contract_months: int,
        tax_base: Optional[str] = None,
        fractional_allocation: bool = False,
        start_year: Optional[int] = None,
        start_month: int = 1,
    ) -> ConsolidatedBudget:
        """Same contract as the engine's build_budget, served from cache when possible."""
        key = cache_key(
            operation="build_budget",
            roster=list(roster),
            schedule=list(schedule),
            other_cost_items=list(other_cost_items),
            tax_config=tax_config,
            margin_config=margin_config,
            contract_months=contract_months,
            tax_base=tax_base or self.engine.default_tax_base,
            fractional_allocation=fractional_allocation,
            start_year=start_year,
            start_month=start_month,
        )

        cached = self._get(key)
        if cached is not None:
            logger.debug(f"Cache hit {key[:12]}", extra={"budget_id": key[:12]})
            return cached

        budget = self.engine.build_budget(
            roster, schedule, other_cost_items, tax_config, margin_config, contract_months,
            tax_base=tax_base, fractional_allocation=fractional_allocation,
            start_year=start_year, start_month=start_month,
        )
        self._put(key, budget)
        return budget

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def purge_expired(self) -> int:
        """Drop expired entries; returns how many were removed."""
        now = self._clock()
        with self._lock:
            stale = [k for k, (at, _) in self._entries.items() if now - at > self.ttl_seconds]
            for key in stale:
                del self._entries[key]
        if stale:
            logger.info(f"Purged {len(stale)} expired budget cache entries")
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = self._misses = self._evictions = 0

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "size": len(self._entries),
                "max_size": self.max_size,
                "ttl_seconds": self.ttl_seconds,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "hit_rate_pct": round(self._hits / lookups * 100.0, 2) if lookups else 0.0,
            }
