"""
Profitability analysis for consolidated budgets.

ROI / NPV / IRR, simple and discounted payback, and the month-by-month
margin trend. All functions are pure and return plain dicts suitable for
API responses.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

from pricing_app.config import (
    DEFAULT_DISCOUNT_RATE,
    IRR_MAX_ITERATIONS,
    IRR_MAX_RATE,
    IRR_MIN_RATE,
    IRR_TOLERANCE,
)
from pricing_app.services.budget_types import MonthlyBudget

logger = logging.getLogger("pricing-profitability")


def _discount(rate: float, period: int) -> float:
    return (1.0 / (1.0 + rate)) ** period


def _npv(investment: float, returns: Sequence[float], rate: float) -> float:
    npv = -investment
    for period, ret in enumerate(returns, start=1):
        npv += ret * _discount(rate, period)
    return npv


def _has_sign_change(investment: float, returns: Sequence[float]) -> bool:
    flows = [-investment, *returns]
    return any(f > 0 for f in flows) and any(f < 0 for f in flows)


def irr_rate(investment: float, returns: Sequence[float]) -> Optional[float]:
    """
    Periodic internal rate of return as a fraction, by Newton-Raphson.

    Returns None when the IRR is undefined (no sign change in the cash flow)
    or when the iteration does not converge inside [IRR_MIN_RATE, IRR_MAX_RATE].
    Cash flows are discounted by (1 + rate) ** -period so large rates
    underflow towards zero instead of overflowing.
    """
    if not returns or not _has_sign_change(investment, returns):
        return None

    rate = 0.10
    try:
        for _ in range(IRR_MAX_ITERATIONS):
            npv = -investment
            dnpv = 0.0
            for period, ret in enumerate(returns, start=1):
                factor = _discount(rate, period)
                npv += ret * factor
                dnpv -= period * ret * factor / (1.0 + rate)

            if abs(npv) < IRR_TOLERANCE:
                return rate
            if dnpv == 0.0:
                return None

            step = min(max(rate - npv / dnpv, IRR_MIN_RATE), IRR_MAX_RATE)
            if abs(step - rate) < 1e-12:
                # stalled on a bound means no root in range
                return None if step in (IRR_MIN_RATE, IRR_MAX_RATE) else step
            rate = step
    except (OverflowError, ZeroDivisionError):
        logger.debug("IRR iteration left the representable range; reporting it as undefined")
        return None
    return None


def calculate_irr(investment: float, returns: Sequence[float]) -> float:
    """Internal rate of return in percent; 0.0 when it is undefined."""
    rate = irr_rate(investment, returns)
    return rate * 100.0 if rate is not None else 0.0


def calculate_roi(
    investment: float,
    returns: Sequence[float],
    discount_rate: float = DEFAULT_DISCOUNT_RATE,
) -> Dict[str, Any]:
    """
    Return ROI %, NPV at ``discount_rate``, IRR % and the number of periods.

    With no returns every figure is zero. When the IRR is undefined or does
    not converge, ``irr_pct`` is 0 and ``irr_defined`` is False.
    """
    returns = [float(r) for r in returns]
    if not returns:
        return {"investment": investment, "returns": [], "roi_pct": 0.0, "irr_pct": 0.0,
                "irr_defined": False, "npv": 0.0, "periods": 0}

    total = sum(returns)
    roi = (total - investment) / investment * 100.0 if investment > 0 else 0.0
    irr = irr_rate(investment, returns)

    return {
        "investment": round(investment, 2),
        "returns": [round(r, 2) for r in returns],
        "roi_pct": round(roi, 4),
        "irr_pct": round(irr * 100.0, 4) if irr is not None else 0.0,
        "irr_defined": irr is not None,
        "npv": round(_npv(investment, returns, discount_rate), 2),
        "periods": len(returns),
    }


def calculate_payback(
    investment: float,
    returns: Sequence[float],
    discount_rate: float = DEFAULT_DISCOUNT_RATE,
) -> Dict[str, Any]:
    """
    Simple and discounted payback.

    Periods are 1-based; 0 means the investment is never recovered within
    the given returns.
    """
    cash_flow: List[Dict[str, float]] = []
    cumulative = -investment
    discounted_cumulative = -investment
    simple_payback = 0
    discounted_payback = 0

    for period, ret in enumerate(returns, start=1):
        ret = float(ret)
        cumulative += ret
        discounted_cumulative += ret * _discount(discount_rate, period)

        cash_flow.append({
            "period": period,
            "cash_in": round(ret, 2),
            "cash_out": round(investment, 2) if period == 1 else 0.0,
            "net_cash_flow": round(ret, 2),
            "cumulative_cash_flow": round(cumulative, 2),
        })

        if simple_payback == 0 and cumulative >= 0:
            simple_payback = period
        if discounted_payback == 0 and discounted_cumulative >= 0:
            discounted_payback = period

    return {
        "simple_payback": simple_payback,
        "discounted_payback": discounted_payback,
        "break_even_period": simple_payback,
        "cash_flow": cash_flow,
    }


def calculate_margin_analysis(monthly_budgets: Iterable[MonthlyBudget]) -> Dict[str, Any]:
    """
    Month-by-month margin trend.

    gross margin: revenue less team and other costs (before taxes)
    net margin:   revenue less total costs (after taxes)
    """
    trend: List[Dict[str, float]] = []
    total_revenue = 0.0
    total_pre_tax = 0.0
    total_costs = 0.0

    for budget in monthly_budgets:
        pre_tax = budget.team_costs + budget.other_costs
        gross = (budget.revenue - pre_tax) / budget.revenue * 100.0 if budget.revenue > 0 else 0.0
        net = (budget.revenue - budget.total_costs) / budget.revenue * 100.0 if budget.revenue > 0 else 0.0
        trend.append({
            "period": budget.month_index,
            "gross_margin_pct": round(gross, 4),
            "net_margin_pct": round(net, 4),
        })
        total_revenue += budget.revenue
        total_pre_tax += pre_tax
        total_costs += budget.total_costs

    gross_total = (total_revenue - total_pre_tax) / total_revenue * 100.0 if total_revenue > 0 else 0.0
    net_total = (total_revenue - total_costs) / total_revenue * 100.0 if total_revenue > 0 else 0.0

    return {
        "gross_margin_pct": round(gross_total, 4),
        "net_margin_pct": round(net_total, 4),
        "margin_trend": trend,
    }
