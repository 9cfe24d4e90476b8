"""
BudgetCalculationEngine - pricing / budget consolidation for Service Desk and NOC proposals.

Covers:
  - Team labour cost aggregation (salary + benefits, optional fractional
    allocation by scheduled coverage)
  - Other-cost aggregation by category (infrastructure, licences, facilities,
    training, certification, contingency, other) with one-time items
  - Tax model: named rates applied to a caller-selected taxable base
  - Margin policy: percentage-of-price or fixed amount, with advisory guardrails
  - Consolidated budget with month-by-month revenue / cost / profit
  - What-if scenarios (salary, costs, taxes, margin adjustments)

The engine is pure: no I/O, no caching, no clock reads. Identical inputs
always produce identical output. Business concerns (low margin, implausible
tax rate, projected loss) are returned as BudgetWarning records; nothing
here raises for well-typed numeric input.
"""

import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from pricing_app.config import (
    COST_CATEGORIES,
    DEFAULT_TAX_BASE,
    TAX_BASE_POLICIES,
    TAX_JURISDICTIONS,
    TAX_RATE_WARNING_PCT,
)
from pricing_app.services.budget_types import (
    BudgetWarning,
    ConsolidatedBudget,
    MarginConfiguration,
    MarginResult,
    MonthlyBudget,
    OtherCostItem,
    OtherCostSummary,
    ScheduleEntry,
    TaxConfiguration,
    TaxLine,
    TaxSummary,
    TeamCostSummary,
    TeamMember,
    TeamMemberCost,
)
from pricing_app.services.coverage_engine import scheduled_hours_by_member
from pricing_app.services.perf_monitor import timed, tracker

logger = logging.getLogger("pricing-engine")

_PERCENTAGE_TYPES = {"percentage", "percentage-of-cost", "percentage_of_cost"}
_FIXED_TYPES = {"fixed", "fixed-amount", "fixed_amount"}

# Scenario adjustment categories
SCENARIO_CATEGORIES: Tuple[str, ...] = ("salary", "costs", "taxes", "margin")


def _r2(value: float) -> float:
    return round(value, 2)


def _pct(part: float, whole: float) -> float:
    """part / whole * 100, reported as 0 when whole is not positive."""
    return part / whole * 100.0 if whole > 0 else 0.0


class BudgetCalculationEngine:
    """
    Stateless budget consolidation engine.

    Instances only carry configuration (warning threshold, default tax base)
    and can be shared freely across threads.
    """

    def __init__(
        self,
        tax_rate_warning_pct: float = TAX_RATE_WARNING_PCT,
        default_tax_base: str = DEFAULT_TAX_BASE,
    ) -> None:
        self.tax_rate_warning_pct = float(tax_rate_warning_pct)
        policy = str(default_tax_base).lower()
        if policy not in TAX_BASE_POLICIES:
            raise ValueError(
                f"Unknown default tax base policy '{default_tax_base}' (expected one of {TAX_BASE_POLICIES})"
            )
        self.default_tax_base = policy

    # ------------------------------------------------------------------
    # 1. Team costs
    # ------------------------------------------------------------------

    @timed
    def calculate_team_costs(
        self,
        roster: Sequence[TeamMember],
        schedule: Sequence[ScheduleEntry] = (),
        fractional_allocation: bool = False,
    ) -> TeamCostSummary:
        """
        Aggregate monthly labour cost for a roster.

        Per member: monthly cost = salary + benefits. The full monthly cost is
        attributed regardless of partial coverage unless ``fractional_allocation``
        is requested, in which case a scheduled member's cost is scaled by
        min(1, scheduled weekly hours / member weekly hours). Members with no
        schedule entry keep their full cost.

        An empty roster yields a zero summary.
        """
        scheduled = scheduled_hours_by_member(schedule) if fractional_allocation else {}

        breakdown: List[TeamMemberCost] = []
        total_salaries = 0.0
        total_benefits = 0.0

        for member in roster:
            fraction = 1.0
            if member.member_id in scheduled and member.weekly_hours > 0:
                fraction = min(1.0, scheduled[member.member_id] / member.weekly_hours)

            salary = member.salary * fraction
            benefits = member.benefits * fraction
            monthly = salary + benefits

            breakdown.append(TeamMemberCost(
                member_id=member.member_id,
                name=member.name,
                role=member.role,
                salary=_r2(salary),
                benefits=_r2(benefits),
                coverage_fraction=round(fraction, 4),
                monthly_cost=_r2(monthly),
                annual_cost=_r2(monthly * 12),
            ))
            total_salaries += salary
            total_benefits += benefits

        return TeamCostSummary(
            salaries=_r2(total_salaries),
            benefits=_r2(total_benefits),
            total=_r2(total_salaries + total_benefits),
            breakdown=tuple(breakdown),
        )

    # ------------------------------------------------------------------
    # 2. Other costs
    # ------------------------------------------------------------------

    @timed
    def calculate_other_costs(self, items: Iterable[OtherCostItem]) -> OtherCostSummary:
        """Subtotal other-cost items by category; one-time items are tracked separately."""
        by_category: Dict[str, float] = {}
        total = 0.0
        one_time = 0.0

        for item in items:
            line = item.total
            by_category[item.category] = by_category.get(item.category, 0.0) + line
            total += line
            if item.one_time:
                one_time += line

        ordered = {
            cat: _r2(by_category[cat])
            for cat in list(COST_CATEGORIES) + sorted(set(by_category) - set(COST_CATEGORIES))
            if cat in by_category
        }

        return OtherCostSummary(
            total=_r2(total),
            by_category=ordered,
            one_time_total=_r2(one_time),
            infrastructure_total=_r2(by_category.get("infrastructure", 0.0)),
        )

    # ------------------------------------------------------------------
    # 3. Taxes
    # ------------------------------------------------------------------

    @timed
    def calculate_taxes(self, taxable_base: float, tax_config: TaxConfiguration) -> TaxSummary:
        """
        Apply every configured rate to ``taxable_base``.

        amount = base x rate / 100. Rates are taken as-is; a rate above the
        sanity threshold (50 % by default) adds a TAX_RATE_HIGH warning.
        """
        breakdown: List[TaxLine] = []
        by_jurisdiction: Dict[str, float] = {j: 0.0 for j in TAX_JURISDICTIONS}
        warnings: List[BudgetWarning] = []
        total = 0.0

        for tax in tax_config.rates:
            jurisdiction = tax.resolved_jurisdiction
            amount = taxable_base * (tax.rate / 100.0)
            breakdown.append(TaxLine(
                name=tax.name,
                jurisdiction=jurisdiction,
                rate=tax.rate,
                base=_r2(taxable_base),
                amount=_r2(amount),
            ))
            by_jurisdiction[jurisdiction] = by_jurisdiction.get(jurisdiction, 0.0) + amount
            total += amount

            if tax.rate > self.tax_rate_warning_pct:
                warnings.append(BudgetWarning(
                    code="TAX_RATE_HIGH",
                    severity="warning",
                    message=f"Tax '{tax.name}' rate {tax.rate:.2f}% looks implausibly high",
                    threshold=self.tax_rate_warning_pct,
                    current_value=tax.rate,
                ))

        return TaxSummary(
            total=_r2(total),
            taxable_base=_r2(taxable_base),
            effective_rate=round(_pct(total, taxable_base), 4),
            breakdown=tuple(breakdown),
            by_jurisdiction={k: _r2(v) for k, v in by_jurisdiction.items()},
            warnings=tuple(warnings),
        )

    # ------------------------------------------------------------------
    # 4. Margins
    # ------------------------------------------------------------------

    @timed
    def calculate_margins(
        self,
        total_costs: float,
        margin_config: MarginConfiguration,
        other_cost_items: Sequence[OtherCostItem] = (),
    ) -> MarginResult:
        """
        Derive the sell price from costs.

        percentage: price = cost / (1 - margin / 100), i.e. the margin is a
                    share of the resulting price (20 % on 80 -> 100, not 96).
        fixed:      price = cost + value.

        ``other_cost_items`` are extra costs not already inside ``total_costs``
        and are added to the cost base. Guardrails (minimum / target / maximum)
        only produce warnings.
        """
        cost_base = total_costs + sum(item.total for item in other_cost_items)
        warnings: List[BudgetWarning] = []
        kind = str(margin_config.type).lower()

        if kind not in _PERCENTAGE_TYPES and kind not in _FIXED_TYPES:
            warnings.append(BudgetWarning(
                code="MARGIN_TYPE_UNKNOWN",
                severity="warning",
                message=f"Unknown margin type '{margin_config.type}'; priced as a percentage of price",
            ))

        if kind in _FIXED_TYPES:
            price = cost_base + margin_config.value
        elif margin_config.value >= 100.0:
            price = cost_base
            warnings.append(BudgetWarning(
                code="MARGIN_OUT_OF_RANGE",
                severity="critical",
                message=(
                    f"Percentage margin {margin_config.value:.2f}% leaves no room for cost; "
                    "priced at cost"
                ),
                threshold=100.0,
                current_value=margin_config.value,
            ))
        else:
            price = cost_base / (1.0 - margin_config.value / 100.0)

        margin_amount = price - cost_base
        margin_pct = _pct(margin_amount, price)
        markup_pct = _pct(margin_amount, cost_base)

        if margin_pct < margin_config.minimum_margin:
            warnings.append(BudgetWarning(
                code="MARGIN_BELOW_MINIMUM",
                severity="warning",
                message=(
                    f"Margin {margin_pct:.2f}% is below the minimum "
                    f"of {margin_config.minimum_margin:.2f}%"
                ),
                threshold=margin_config.minimum_margin,
                current_value=round(margin_pct, 4),
            ))
        elif margin_config.target_margin > 0 and margin_pct < margin_config.target_margin:
            warnings.append(BudgetWarning(
                code="MARGIN_BELOW_TARGET",
                severity="info",
                message=(
                    f"Margin {margin_pct:.2f}% is below the target "
                    f"of {margin_config.target_margin:.2f}%"
                ),
                threshold=margin_config.target_margin,
                current_value=round(margin_pct, 4),
            ))

        if margin_config.maximum_margin > 0 and margin_pct > margin_config.maximum_margin:
            warnings.append(BudgetWarning(
                code="MARGIN_ABOVE_MAXIMUM",
                severity="info",
                message=(
                    f"Margin {margin_pct:.2f}% exceeds the maximum "
                    f"of {margin_config.maximum_margin:.2f}%"
                ),
                threshold=margin_config.maximum_margin,
                current_value=round(margin_pct, 4),
            ))

        return MarginResult(
            total_price=_r2(price),
            cost_base=_r2(cost_base),
            margin_applied=_r2(margin_amount),
            margin_pct=round(margin_pct, 4),
            markup_pct=round(markup_pct, 4),
            warnings=tuple(warnings),
        )

    # ------------------------------------------------------------------
    # 5. Tax base policy
    # ------------------------------------------------------------------

    def resolve_taxable_base(
        self,
        team_total: float,
        other_total: float,
        margin_config: MarginConfiguration,
        policy: Optional[str] = None,
    ) -> float:
        """
        Select the taxable base.

        cost:  team + other costs (pre-margin).
        price: pre-tax sell price, i.e. the margin applied to team + other.
        """
        policy = (policy or self.default_tax_base).lower()
        if policy not in TAX_BASE_POLICIES:
            raise ValueError(f"Unknown tax base policy '{policy}' (expected one of {TAX_BASE_POLICIES})")

        cost_base = team_total + other_total
        if policy == "cost":
            return cost_base
        return self.calculate_margins(cost_base, margin_config).total_price

    # ------------------------------------------------------------------
    # 6. Consolidation
    # ------------------------------------------------------------------

    @timed
    def calculate_consolidated_budget(
        self,
        team_costs: TeamCostSummary,
        other_cost_items: Sequence[OtherCostItem],
        taxes: TaxSummary,
        margin_config: MarginConfiguration,
        contract_months: int,
        start_year: Optional[int] = None,
        start_month: int = 1,
    ) -> ConsolidatedBudget:
        """
        Combine team, other and tax costs into a price and a monthly schedule.

        total cost = team + other + taxes; price follows calculate_margins.
        Each month's revenue is price / contract_months. Recurring costs are
        spread evenly; one-time items land in month 1 only, lowering its margin.

        Calendar fields derive from ``start_year`` / ``start_month``. Without a
        start year, ``year`` is the contract year number (1, 2, ...).
        """
        other = self.calculate_other_costs(other_cost_items)
        total_costs = team_costs.total + other.total + taxes.total

        margins = self.calculate_margins(total_costs, margin_config)
        total_price = margins.total_price
        profit = total_price - total_costs

        monthly = self._monthly_breakdown(
            team_total=team_costs.total,
            other_total=other.total,
            one_time_total=other.one_time_total,
            tax_total=taxes.total,
            total_price=total_price,
            contract_months=int(contract_months),
            start_year=start_year,
            start_month=start_month,
        )

        warnings: List[BudgetWarning] = list(taxes.warnings) + list(margins.warnings)
        if profit < 0:
            warnings.append(BudgetWarning(
                code="PROJECTED_LOSS",
                severity="critical",
                message=f"Projected loss of {abs(profit):,.2f} over the contract",
                threshold=0.0,
                current_value=_r2(profit),
            ))
        if int(contract_months) < 1:
            warnings.append(BudgetWarning(
                code="NO_CONTRACT_PERIOD",
                severity="warning",
                message="Contract period shorter than one month; no monthly breakdown produced",
                threshold=1.0,
                current_value=float(contract_months),
            ))

        budget = ConsolidatedBudget(
            team_costs=team_costs,
            other_costs=other.total,
            other_costs_by_category=other.by_category,
            infrastructure_costs=other.infrastructure_total,
            one_time_costs=other.one_time_total,
            taxes=taxes,
            total_costs=_r2(total_costs),
            total_price=total_price,
            profit=_r2(profit),
            profit_margin_pct=round(_pct(profit, total_price), 4),
            margin=margin_config,
            contract_months=int(contract_months),
            monthly_breakdown=monthly,
            warnings=tuple(warnings),
        )

        tracker.record_budget_computed()
        logger.debug(
            f"Budget consolidated: cost={budget.total_costs:.2f} price={budget.total_price:.2f} "
            f"months={budget.contract_months}"
        )
        if warnings:
            logger.info(
                f"Budget produced {len(warnings)} advisory warning(s): "
                + ", ".join(w.code for w in warnings)
            )
        return budget

    @staticmethod
    def _monthly_breakdown(
        team_total: float,
        other_total: float,
        one_time_total: float,
        tax_total: float,
        total_price: float,
        contract_months: int,
        start_year: Optional[int],
        start_month: int,
    ) -> Tuple[MonthlyBudget, ...]:
        if contract_months < 1:
            return ()

        months = contract_months
        team_m = team_total / months
        recurring_other_m = (other_total - one_time_total) / months
        taxes_m = tax_total / months
        revenue_m = total_price / months
        first_offset = max(1, min(12, int(start_month))) - 1

        entries: List[MonthlyBudget] = []
        for index in range(1, months + 1):
            other_m = recurring_other_m + (one_time_total if index == 1 else 0.0)
            cost_m = team_m + other_m + taxes_m
            profit_m = revenue_m - cost_m

            offset = first_offset + index - 1
            year_offset = offset // 12
            year = (start_year + year_offset) if start_year is not None else year_offset + 1

            entries.append(MonthlyBudget(
                month_index=index,
                month=offset % 12 + 1,
                year=year,
                team_costs=_r2(team_m),
                other_costs=_r2(other_m),
                taxes=_r2(taxes_m),
                total_costs=_r2(cost_m),
                revenue=_r2(revenue_m),
                profit=_r2(profit_m),
                margin_pct=round(_pct(profit_m, revenue_m), 4),
            ))
        return tuple(entries)

    # ------------------------------------------------------------------
    # 7. End-to-end pipeline
    # ------------------------------------------------------------------

    @timed
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
        """Recompute a full consolidated budget from raw inputs."""
        team = self.calculate_team_costs(roster, schedule, fractional_allocation)
        other = self.calculate_other_costs(other_cost_items)
        base = self.resolve_taxable_base(team.total, other.total, margin_config, tax_base)
        taxes = self.calculate_taxes(base, tax_config)
        return self.calculate_consolidated_budget(
            team, other_cost_items, taxes, margin_config, contract_months,
            start_year=start_year, start_month=start_month,
        )

    # ------------------------------------------------------------------
    # 8. Scenarios
    # ------------------------------------------------------------------

    @timed
    def calculate_scenarios(
        self,
        roster: Sequence[TeamMember],
        schedule: Sequence[ScheduleEntry],
        other_cost_items: Sequence[OtherCostItem],
        tax_config: TaxConfiguration,
        margin_config: MarginConfiguration,
        contract_months: int,
        scenarios: Sequence[Dict[str, Any]],
        tax_base: Optional[str] = None,
        fractional_allocation: bool = False,
    ) -> Dict[str, Any]:
        """
        Evaluate what-if scenarios against a base configuration.

        Each scenario dict:
            name (str)
            adjustments (list of {"category": salary|costs|taxes|margin,
                                  "adjustment": percent change})

        Inputs are never mutated; each scenario works on adjusted copies.
        Unknown categories are ignored.

        Returns:
            Dict with the base summary and one summary per scenario,
            including price / profit deltas against the base.
        """
        def _run(r, items, taxes, margin):
            return self.build_budget(
                r, schedule, items, taxes, margin, contract_months,
                tax_base=tax_base, fractional_allocation=fractional_allocation,
            )

        base_budget = _run(roster, other_cost_items, tax_config, margin_config)
        base_summary = _budget_summary(base_budget)

        results: List[Dict[str, Any]] = []
        for idx, scenario in enumerate(scenarios):
            s_roster = list(roster)
            s_items = list(other_cost_items)
            s_taxes = tax_config
            s_margin = margin_config

            for adj in scenario.get("adjustments", []):
                category = str(adj.get("category", "")).lower()
                factor = 1.0 + float(adj.get("adjustment", 0.0)) / 100.0

                if category == "salary":
                    s_roster = [replace(m, salary=m.salary * factor) for m in s_roster]
                elif category == "costs":
                    s_items = [replace(i, unit_cost=i.unit_cost * factor) for i in s_items]
                elif category == "taxes":
                    s_taxes = replace(
                        s_taxes, rates=tuple(replace(t, rate=t.rate * factor) for t in s_taxes.rates)
                    )
                elif category == "margin":
                    s_margin = replace(s_margin, value=s_margin.value * factor)
                else:
                    logger.warning(f"Scenario adjustment category '{category}' ignored")

            summary = _budget_summary(_run(s_roster, s_items, s_taxes, s_margin))
            summary["name"] = scenario.get("name") or f"Scenario {idx + 1}"
            summary["price_delta"] = _r2(summary["total_price"] - base_summary["total_price"])
            summary["profit_delta"] = _r2(summary["profit"] - base_summary["profit"])
            results.append(summary)

        return {"base": base_summary, "scenarios": results}


def _budget_summary(budget: ConsolidatedBudget) -> Dict[str, Any]:
    return {
        "team_costs": budget.team_costs.total,
        "other_costs": budget.other_costs,
        "taxes": budget.taxes.total,
        "total_costs": budget.total_costs,
        "total_price": budget.total_price,
        "profit": budget.profit,
        "profit_margin_pct": budget.profit_margin_pct,
        "warnings": [w.code for w in budget.warnings],
    }
