"""
Budget comparison and history.

Compares a freshly computed ConsolidatedBudget against earlier snapshots:
deviations against the most recent one, trends across all of them,
prioritised recommendations, alerts and a weighted health score.

BudgetHistory keeps immutable snapshots ordered by a caller-attached
timestamp; the engine itself never reads the clock.
"""
from __future__ import annotations

import logging
import math
import threading
import uuid
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from pricing_app.config import (
    BUDGET_HISTORY_LIMIT,
    DEVIATION_TREND_PCT,
    HEALTH_SCORE_BANDS,
    HEALTH_SCORE_WEIGHTS,
    MARGIN_CRITICAL_PCT,
    MARGIN_DROP_REVIEW_PCT,
    MARGIN_LOW_PCT,
    MARGIN_RECOMMENDED_PCT,
    MONTHLY_MARGIN_CV_ALERT_PCT,
    PRICE_DEVIATION_ALERT_PCT,
    PRICE_INCREASE_REVIEW_PCT,
    TAX_SHARE_HIGH_PCT,
    TEAM_COST_DEVIATION_ALERT_PCT,
    TEAM_COST_SHARE_HIGH_PCT,
)
from pricing_app.services.budget_types import ConsolidatedBudget

logger = logging.getLogger("pricing-comparison")

_PRIORITY_ORDER = {"critical": 4, "high": 3, "medium": 2, "low": 1}


# ── Deviations ────────────────────────────────────────────────────────────────

def calculate_deviation(current: float, reference: float) -> Dict[str, Any]:
    absolute = current - reference
    percentage = absolute / reference * 100.0 if reference != 0 else 0.0
    trend = "stable"
    if abs(percentage) > DEVIATION_TREND_PCT:
        trend = "up" if percentage > 0 else "down"
    return {"absolute": round(absolute, 2), "percentage": round(percentage, 4), "trend": trend}


def _empty_deviations() -> Dict[str, Dict[str, Any]]:
    return {
        key: {"absolute": 0.0, "percentage": 0.0, "trend": "stable"}
        for key in ("team_costs", "other_costs", "taxes", "total_price", "margin")
    }


def calculate_deviations(
    current: ConsolidatedBudget, previous: Sequence[ConsolidatedBudget]
) -> Dict[str, Dict[str, Any]]:
    """Deviation of ``current`` against the most recent previous budget."""
    if not previous:
        return _empty_deviations()
    ref = previous[-1]
    return {
        "team_costs": calculate_deviation(current.team_costs.total, ref.team_costs.total),
        "other_costs": calculate_deviation(current.other_costs, ref.other_costs),
        "taxes": calculate_deviation(current.taxes.total, ref.taxes.total),
        "total_price": calculate_deviation(current.total_price, ref.total_price),
        "margin": calculate_deviation(current.profit_margin_pct, ref.profit_margin_pct),
    }


def calculate_trends(
    current: ConsolidatedBudget, previous: Sequence[ConsolidatedBudget]
) -> Dict[str, List[Dict[str, Any]]]:
    budgets = list(previous) + [current]

    def _series(values):
        return [
            {"period": f"Budget {i + 1}", "value": round(v, 4)}
            for i, v in enumerate(values)
        ]

    return {
        "team_cost_trend": _series(b.team_costs.total for b in budgets),
        "margin_trend": _series(b.profit_margin_pct for b in budgets),
        "price_trend": _series(b.total_price for b in budgets),
        "profit_trend": _series(b.profit for b in budgets),
    }


# ── Helpers ───────────────────────────────────────────────────────────────────

def _share(part: float, budget: ConsolidatedBudget) -> float:
    return part / budget.total_price * 100.0 if budget.total_price > 0 else 0.0


def coefficient_of_variation(values: Sequence[float]) -> float:
    """Population std-dev / |mean| x 100; 0 for empty input or zero mean."""
    if not values:
        return 0.0
    mean = sum(values) / len(values)
    if mean == 0:
        return 0.0
    variance = sum((v - mean) ** 2 for v in values) / len(values)
    return math.sqrt(variance) / abs(mean) * 100.0


# ── Recommendations & alerts ──────────────────────────────────────────────────

def generate_recommendations(
    budget: ConsolidatedBudget, deviations: Dict[str, Dict[str, Any]]
) -> List[Dict[str, Any]]:
    recs: List[Dict[str, Any]] = []
    margin = budget.profit_margin_pct
    gross_profit = budget.total_price - budget.total_costs

    if margin < MARGIN_LOW_PCT:
        recs.append({
            "type": "margin_adjustment",
            "priority": "critical",
            "title": "Critical margin",
            "description": f"Margin is below the recommended minimum of {MARGIN_LOW_PCT:.0f}%",
            "financial_impact": round(budget.total_price * MARGIN_LOW_PCT / 100.0 - gross_profit, 2),
            "risk": "high",
            "action_items": [
                "Review team costs",
                "Negotiate better supplier terms",
                "Adjust the sell price",
                "Optimise the tax burden",
            ],
        })
    elif margin < MARGIN_RECOMMENDED_PCT:
        recs.append({
            "type": "margin_adjustment",
            "priority": "high",
            "title": "Low margin",
            "description": f"Margin is below the recommended {MARGIN_RECOMMENDED_PCT:.0f}%",
            "financial_impact": round(budget.total_price * MARGIN_RECOMMENDED_PCT / 100.0 - gross_profit, 2),
            "risk": "medium",
            "action_items": [
                "Assess a price increase",
                "Review team efficiency",
                "Look for cost optimisations",
            ],
        })

    team_share = _share(budget.team_costs.total, budget)
    if team_share > TEAM_COST_SHARE_HIGH_PCT:
        recs.append({
            "type": "cost_optimization",
            "priority": "high",
            "title": "High team costs",
            "description": f"Team costs are {team_share:.1f}% of the total price",
            "financial_impact": round(budget.team_costs.total * 0.1, 2),
            "risk": "medium",
            "action_items": [
                "Review team sizing",
                "Analyse productivity per member",
                "Consider outsourcing specific activities",
                "Optimise work schedules",
            ],
        })

    tax_share = _share(budget.taxes.total, budget)
    if tax_share > TAX_SHARE_HIGH_PCT:
        recs.append({
            "type": "cost_optimization",
            "priority": "medium",
            "title": "High tax burden",
            "description": f"Taxes are {tax_share:.1f}% of the total price",
            "financial_impact": round(budget.taxes.total * 0.1, 2),
            "risk": "low",
            "action_items": [
                "Review the tax regime",
                "Consult a tax planning specialist",
                "Check available tax incentives",
            ],
        })

    margin_dev = deviations["margin"]
    if margin_dev["trend"] == "down" and abs(margin_dev["percentage"]) > MARGIN_DROP_REVIEW_PCT:
        recs.append({
            "type": "risk_mitigation",
            "priority": "high",
            "title": "Falling margin",
            "description": (
                f"Margin fell {abs(margin_dev['percentage']):.1f}% against the previous budget"
            ),
            "financial_impact": abs(margin_dev["absolute"]),
            "risk": "high",
            "action_items": [
                "Identify the causes of the margin drop",
                "Tighten cost controls",
                "Review the pricing strategy",
            ],
        })

    price_dev = deviations["total_price"]
    if price_dev["trend"] == "up" and price_dev["percentage"] > PRICE_INCREASE_REVIEW_PCT:
        recs.append({
            "type": "pricing_strategy",
            "priority": "medium",
            "title": "Significant price increase",
            "description": f"Price rose {price_dev['percentage']:.1f}% against the previous budget",
            "financial_impact": price_dev["absolute"],
            "risk": "medium",
            "action_items": [
                "Validate price competitiveness",
                "Prepare a justification for the increase",
                "Consider a phased rollout",
            ],
        })

    return sorted(recs, key=lambda r: _PRIORITY_ORDER[r["priority"]], reverse=True)


def generate_alerts(
    budget: ConsolidatedBudget, deviations: Dict[str, Dict[str, Any]]
) -> List[Dict[str, Any]]:
    alerts: List[Dict[str, Any]] = []
    margin = budget.profit_margin_pct

    if margin < MARGIN_CRITICAL_PCT:
        alerts.append({
            "type": "error",
            "category": "margin",
            "title": "Critical margin",
            "message": f"Margin below {MARGIN_CRITICAL_PCT:.0f}% - risk of loss",
            "threshold": MARGIN_CRITICAL_PCT,
            "current_value": round(margin, 4),
            "suggested_action": "Review costs or raise the price immediately",
        })
    elif margin < MARGIN_LOW_PCT:
        alerts.append({
            "type": "warning",
            "category": "margin",
            "title": "Low margin",
            "message": "Margin below the recommended level",
            "threshold": MARGIN_LOW_PCT,
            "current_value": round(margin, 4),
            "suggested_action": "Consider cost or price adjustments",
        })

    team_dev = deviations["team_costs"]
    if abs(team_dev["percentage"]) > TEAM_COST_DEVIATION_ALERT_PCT:
        direction = "increased" if team_dev["trend"] == "up" else "decreased"
        alerts.append({
            "type": "warning",
            "category": "costs",
            "title": "Significant team cost change",
            "message": f"Team costs {direction} {abs(team_dev['percentage']):.1f}%",
            "threshold": TEAM_COST_DEVIATION_ALERT_PCT,
            "current_value": team_dev["percentage"],
            "suggested_action": "Review team sizing and costs",
        })

    price_dev = deviations["total_price"]
    if abs(price_dev["percentage"]) > PRICE_DEVIATION_ALERT_PCT:
        direction = "increased" if price_dev["trend"] == "up" else "decreased"
        alerts.append({
            "type": "info",
            "category": "pricing",
            "title": "Significant price change",
            "message": f"Total price {direction} {abs(price_dev['percentage']):.1f}%",
            "threshold": PRICE_DEVIATION_ALERT_PCT,
            "current_value": price_dev["percentage"],
            "suggested_action": "Validate the competitive impact of the price change",
        })

    cv = coefficient_of_variation([m.margin_pct for m in budget.monthly_breakdown])
    if cv > MONTHLY_MARGIN_CV_ALERT_PCT:
        alerts.append({
            "type": "warning",
            "category": "trend",
            "title": "Volatile monthly margins",
            "message": "Monthly margins vary widely across the contract",
            "threshold": MONTHLY_MARGIN_CV_ALERT_PCT,
            "current_value": round(cv, 4),
            "suggested_action": "Review how costs are distributed over the period",
        })

    return alerts


def compare_budgets(
    current: ConsolidatedBudget, previous: Sequence[ConsolidatedBudget] = ()
) -> Dict[str, Any]:
    """Full comparison of ``current`` against earlier budgets (oldest first)."""
    deviations = calculate_deviations(current, previous)
    result = {
        "deviations": deviations,
        "trends": calculate_trends(current, previous),
        "recommendations": generate_recommendations(current, deviations),
        "alerts": generate_alerts(current, deviations),
        "previous_count": len(previous),
    }
    logger.debug(
        f"Budget compared against {len(previous)} previous: "
        f"{len(result['recommendations'])} recommendations, {len(result['alerts'])} alerts"
    )
    return result


# ── Health score ──────────────────────────────────────────────────────────────

def _band_score(value: float, bands: Sequence[float], ascending: bool) -> float:
    """
    Map a value onto 100/80/60/40/20 using four cut points.

    ascending=True: higher is better (value >= cut earns the score).
    ascending=False: lower is better (value <= cut earns the score).
    """
    scores = (100.0, 80.0, 60.0, 40.0)
    for cut, score in zip(bands, scores):
        if (ascending and value >= cut) or (not ascending and value <= cut):
            return score
    return 20.0


def budget_health_score(budget: ConsolidatedBudget) -> Dict[str, Any]:
    """Weighted 0-100 health score with its contributing factors."""
    margin = budget.profit_margin_pct
    team_share = _share(budget.team_costs.total, budget)
    tax_share = _share(budget.taxes.total, budget)
    cv = coefficient_of_variation([m.margin_pct for m in budget.monthly_breakdown])

    factors = [
        {
            "name": "margin",
            "score": _band_score(margin, (20, 15, 10, 5), ascending=True),
            "weight": HEALTH_SCORE_WEIGHTS["margin"],
            "description": f"Current margin: {margin:.1f}%",
        },
        {
            "name": "team_costs",
            "score": _band_score(team_share, (50, 60, 70, 80), ascending=False),
            "weight": HEALTH_SCORE_WEIGHTS["team_costs"],
            "description": f"Team costs: {team_share:.1f}% of price",
        },
        {
            "name": "taxes",
            "score": _band_score(tax_share, (20, 25, 30, 35), ascending=False),
            "weight": HEALTH_SCORE_WEIGHTS["taxes"],
            "description": f"Taxes: {tax_share:.1f}% of price",
        },
        {
            "name": "consistency",
            "score": _band_score(cv, (5, 10, 15, 20), ascending=False),
            "weight": HEALTH_SCORE_WEIGHTS["consistency"],
            "description": "Variability of monthly margins",
        },
    ]

    weighted = sum(f["score"] * f["weight"] for f in factors)
    category = next(label for floor, label in HEALTH_SCORE_BANDS if weighted >= floor)
    return {"score": int(round(weighted)), "category": category, "factors": factors}


# ── Snapshot history ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class BudgetSnapshot:
    snapshot_id: str
    timestamp: datetime
    label: str
    budget: ConsolidatedBudget

    def to_dict(self, include_budget: bool = True) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "snapshot_id": self.snapshot_id,
            "timestamp": self.timestamp.isoformat(),
            "label": self.label,
            "total_price": self.budget.total_price,
            "total_costs": self.budget.total_costs,
            "profit_margin_pct": self.budget.profit_margin_pct,
        }
        if include_budget:
            data["budget"] = self.budget.to_dict()
        return data


class BudgetHistory:
    """
    Bounded, thread-safe store of budget snapshots ordered by timestamp.

    The oldest snapshot is dropped once ``limit`` is reached.
    """

    def __init__(self, limit: int = BUDGET_HISTORY_LIMIT) -> None:
        self._lock = threading.Lock()
        self._snapshots: deque = deque(maxlen=max(1, int(limit)))

    def add(
        self,
        budget: ConsolidatedBudget,
        label: str = "",
        timestamp: Optional[datetime] = None,
    ) -> BudgetSnapshot:
        """
        Store ``budget`` as a new snapshot.

        Naive timestamps are taken to be UTC so every stored timestamp stays
        comparable. The store is only replaced once the new ordering is built.
        """
        if timestamp is None:
            timestamp = datetime.now(timezone.utc)
        elif timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)

        snapshot = BudgetSnapshot(
            snapshot_id=uuid.uuid4().hex,
            timestamp=timestamp,
            label=label,
            budget=budget,
        )
        with self._lock:
            ordered = sorted([*self._snapshots, snapshot], key=lambda s: s.timestamp)
            self._snapshots = deque(ordered, maxlen=self._snapshots.maxlen)
        logger.info(f"Budget snapshot {snapshot.snapshot_id} stored ({label or 'unlabelled'})")
        return snapshot

    def get(self, snapshot_id: str) -> Optional[BudgetSnapshot]:
        with self._lock:
            return next((s for s in self._snapshots if s.snapshot_id == snapshot_id), None)

    def list(self) -> List[BudgetSnapshot]:
        with self._lock:
            return list(self._snapshots)

    def budgets(self) -> List[ConsolidatedBudget]:
        """Stored budgets, oldest first."""
        with self._lock:
            return [s.budget for s in self._snapshots]

    def clear(self) -> None:
        with self._lock:
            self._snapshots.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._snapshots)
