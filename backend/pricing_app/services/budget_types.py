"""
Value objects for the budget consolidation engine.

All types are frozen dataclasses; sequences are stored as tuples and
subtotal mappings as read-only MappingProxyType views, so a computed budget
can be shared by the cache and the snapshot history without defensive copies.
Money is expressed in the proposal currency (BRL in practice, but the
engine is currency-agnostic).
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from pricing_app.config import TAX_NAME_JURISDICTION


def infer_jurisdiction(tax_name: str) -> str:
    """Map a tax name (PIS, ICMS, ISS, federal, ...) to its jurisdiction."""
    return TAX_NAME_JURISDICTION.get(tax_name.strip().upper(), "other")


def _freeze(obj: Any, name: str) -> None:
    object.__setattr__(obj, name, MappingProxyType(dict(getattr(obj, name))))


def to_plain(value: Any) -> Any:
    """
    Recursive plain-data form of a value object.

    Works like dataclasses.asdict but also unwraps the read-only mappings,
    which asdict cannot copy.
    """
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_plain(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Mapping):
        return {k: to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    return value


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TeamMember:
    member_id: str
    role: str
    salary: float                    # monthly base salary
    benefits: float = 0.0            # monthly benefits amount
    shift: Optional[str] = None
    name: str = ""
    weekly_hours: float = 44.0


@dataclass(frozen=True)
class ScheduleEntry:
    member_id: str
    schedule_id: str = ""
    shift_code: Optional[str] = None
    start_time: Optional[str] = None     # "HH:MM"
    end_time: Optional[str] = None       # "HH:MM"; <= start wraps overnight
    days_of_week: Tuple[int, ...] = ()   # 0 = Sunday .. 6 = Saturday


@dataclass(frozen=True)
class OtherCostItem:
    category: str                    # one of config.COST_CATEGORIES
    quantity: float
    unit_cost: float
    description: str = ""
    one_time: bool = False

    @property
    def total(self) -> float:
        return self.quantity * self.unit_cost


@dataclass(frozen=True)
class TaxRate:
    name: str
    rate: float                      # percent
    jurisdiction: str = ""

    @property
    def resolved_jurisdiction(self) -> str:
        return self.jurisdiction or infer_jurisdiction(self.name)


@dataclass(frozen=True)
class TaxConfiguration:
    rates: Tuple[TaxRate, ...] = ()
    name: str = ""

    @classmethod
    def from_mapping(cls, rates: Mapping[str, float], name: str = "") -> "TaxConfiguration":
        """Build from ``{"federal": 10, "ISS": 5}`` style input."""
        return cls(
            rates=tuple(TaxRate(name=k, rate=float(v)) for k, v in rates.items()),
            name=name,
        )


@dataclass(frozen=True)
class MarginConfiguration:
    type: str = "percentage"         # "percentage" (of price) | "fixed"
    value: float = 0.0
    minimum_margin: float = 0.0      # percent of price
    target_margin: float = 0.0
    maximum_margin: float = 0.0      # 0 disables the upper guardrail


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BudgetWarning:
    code: str
    severity: str                    # info | warning | critical
    message: str
    threshold: Optional[float] = None
    current_value: Optional[float] = None


@dataclass(frozen=True)
class TeamMemberCost:
    member_id: str
    name: str
    role: str
    salary: float
    benefits: float
    coverage_fraction: float
    monthly_cost: float
    annual_cost: float


@dataclass(frozen=True)
class TeamCostSummary:
    salaries: float
    benefits: float
    total: float
    breakdown: Tuple[TeamMemberCost, ...] = ()


@dataclass(frozen=True)
class OtherCostSummary:
    total: float
    by_category: Mapping[str, float] = field(default_factory=dict)
    one_time_total: float = 0.0
    infrastructure_total: float = 0.0

    def __post_init__(self) -> None:
        _freeze(self, "by_category")


@dataclass(frozen=True)
class TaxLine:
    name: str
    jurisdiction: str
    rate: float
    base: float
    amount: float


@dataclass(frozen=True)
class TaxSummary:
    total: float
    taxable_base: float
    effective_rate: float
    breakdown: Tuple[TaxLine, ...] = ()
    by_jurisdiction: Mapping[str, float] = field(default_factory=dict)
    warnings: Tuple[BudgetWarning, ...] = ()

    def __post_init__(self) -> None:
        _freeze(self, "by_jurisdiction")


@dataclass(frozen=True)
class MarginResult:
    total_price: float
    cost_base: float
    margin_applied: float            # price - cost, in money
    margin_pct: float                # (price - cost) / price * 100
    markup_pct: float                # (price - cost) / cost * 100
    warnings: Tuple[BudgetWarning, ...] = ()


@dataclass(frozen=True)
class MonthlyBudget:
    month_index: int                 # 1..contract_months
    month: int                       # calendar month 1..12
    year: int
    team_costs: float
    other_costs: float
    taxes: float
    total_costs: float
    revenue: float
    profit: float
    margin_pct: float


@dataclass(frozen=True)
class ConsolidatedBudget:
    team_costs: TeamCostSummary
    other_costs: float
    other_costs_by_category: Mapping[str, float]
    infrastructure_costs: float
    one_time_costs: float
    taxes: TaxSummary
    total_costs: float
    total_price: float
    profit: float
    profit_margin_pct: float
    margin: MarginConfiguration
    contract_months: int
    monthly_breakdown: Tuple[MonthlyBudget, ...] = ()
    warnings: Tuple[BudgetWarning, ...] = ()

    def __post_init__(self) -> None:
        _freeze(self, "other_costs_by_category")

    def to_dict(self) -> Dict[str, Any]:
        """Plain-dict form for API responses and snapshot storage."""
        return to_plain(self)
