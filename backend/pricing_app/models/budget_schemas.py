"""
Request schemas for the budget API.

These Pydantic models are the validation layer in front of the engine:
negative money, non-finite numbers, unknown cost categories, a percentage
margin of 100 % or more and contract periods under one month are rejected
here, before any calculation runs. Each model converts itself into the
engine's dataclass value objects via ``to_domain()``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from pricing_app.config import SHIFT_PRESETS
from pricing_app.services.budget_types import (
    MarginConfiguration,
    OtherCostItem,
    ScheduleEntry,
    TaxConfiguration,
    TaxRate,
    TeamMember,
)

_TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"

CostCategory = Literal[
    "infrastructure",
    "license",
    "facility",
    "training",
    "certification",
    "contingency",
    "other",
]
Jurisdiction = Literal["federal", "state", "municipal", "social_charges", "other"]


class _StrictNumbers(BaseModel):
    """Base model rejecting NaN / +-inf in every float field."""
    model_config = ConfigDict(allow_inf_nan=False)


# ── Team ──────────────────────────────────────────────────────────────────────

class TeamMemberIn(_StrictNumbers):
    member_id: str = Field(..., min_length=1)
    role: str = Field(..., min_length=1, description="e.g. N1 analyst, N2 analyst, coordinator")
    salary: float = Field(..., ge=0, description="Monthly base salary")
    benefits: float = Field(0.0, ge=0, description="Monthly benefits amount")
    shift: Optional[str] = None
    name: str = ""
    weekly_hours: float = Field(44.0, gt=0, le=168)

    def to_domain(self) -> TeamMember:
        return TeamMember(**self.model_dump())


class ScheduleEntryIn(_StrictNumbers):
    member_id: str = Field(..., min_length=1)
    schedule_id: str = ""
    shift_code: Optional[str] = Field(None, description="Preset: 8x5, 12x5, 12x7, 24x7, night")
    start_time: Optional[str] = Field(None, pattern=_TIME_PATTERN)
    end_time: Optional[str] = Field(None, pattern=_TIME_PATTERN)
    days_of_week: List[int] = Field(default_factory=list, description="0 = Sunday .. 6 = Saturday")

    @field_validator("shift_code")
    @classmethod
    def _known_shift(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in SHIFT_PRESETS:
            raise ValueError(f"unknown shift code '{v}' (expected one of {sorted(SHIFT_PRESETS)})")
        return v

    @field_validator("days_of_week")
    @classmethod
    def _valid_days(cls, v: List[int]) -> List[int]:
        if any(d < 0 or d > 6 for d in v):
            raise ValueError("days_of_week entries must be between 0 (Sunday) and 6 (Saturday)")
        return sorted(set(v))

    def to_domain(self) -> ScheduleEntry:
        data = self.model_dump()
        data["days_of_week"] = tuple(data["days_of_week"])
        return ScheduleEntry(**data)


# ── Other costs ───────────────────────────────────────────────────────────────

class OtherCostIn(_StrictNumbers):
    category: CostCategory
    quantity: float = Field(..., ge=0)
    unit_cost: float = Field(..., ge=0)
    description: str = ""
    one_time: bool = False

    def to_domain(self) -> OtherCostItem:
        return OtherCostItem(**self.model_dump())


# ── Taxes ─────────────────────────────────────────────────────────────────────

class TaxRateIn(_StrictNumbers):
    name: str = Field(..., min_length=1)
    rate: float = Field(..., ge=0, description="Percent, e.g. 5 for 5 %")
    jurisdiction: Optional[Jurisdiction] = None

    def to_domain(self) -> TaxRate:
        return TaxRate(name=self.name, rate=self.rate, jurisdiction=self.jurisdiction or "")


class TaxConfigIn(_StrictNumbers):
    """
    Either a ``{"federal": 5, "ISS": 5}`` mapping or a list of explicit rates.
    Mapping keys become tax names; their jurisdiction is inferred.
    """
    rates: Union[List[TaxRateIn], Dict[str, float]] = Field(default_factory=list)
    name: str = ""

    @field_validator("rates")
    @classmethod
    def _non_negative(cls, v):
        if isinstance(v, dict) and any(r < 0 for r in v.values()):
            raise ValueError("tax rates must be non-negative")
        return v

    def to_domain(self) -> TaxConfiguration:
        if isinstance(self.rates, dict):
            return TaxConfiguration.from_mapping(self.rates, name=self.name)
        return TaxConfiguration(rates=tuple(r.to_domain() for r in self.rates), name=self.name)


# ── Margin ────────────────────────────────────────────────────────────────────

class MarginConfigIn(_StrictNumbers):
    type: Literal["percentage", "fixed"] = "percentage"
    value: float = Field(0.0, ge=0)
    minimum_margin: float = Field(0.0, ge=0, lt=100)
    target_margin: float = Field(0.0, ge=0, lt=100)
    maximum_margin: float = Field(0.0, ge=0, lt=100)

    @model_validator(mode="after")
    def _percentage_below_100(self):
        if self.type == "percentage" and self.value >= 100:
            raise ValueError("percentage margin must be below 100")
        return self

    def to_domain(self) -> MarginConfiguration:
        return MarginConfiguration(**self.model_dump())


# ── Operation requests ────────────────────────────────────────────────────────

class TeamCostsRequest(_StrictNumbers):
    team: List[TeamMemberIn] = Field(default_factory=list)
    schedule: List[ScheduleEntryIn] = Field(default_factory=list)
    fractional_allocation: bool = False


class TaxesRequest(_StrictNumbers):
    taxable_base: float = Field(..., ge=0)
    taxes: TaxConfigIn = Field(default_factory=TaxConfigIn)
    tax_regime: Optional[str] = Field(None, description="Preset name; overrides 'taxes' when set")


class MarginsRequest(_StrictNumbers):
    total_costs: float = Field(..., ge=0)
    margin: MarginConfigIn
    other_costs: List[OtherCostIn] = Field(
        default_factory=list, description="Extra costs not already inside total_costs"
    )


class BudgetRequest(_StrictNumbers):
    """Full input set for one consolidated budget."""
    team: List[TeamMemberIn] = Field(default_factory=list)
    schedule: List[ScheduleEntryIn] = Field(default_factory=list)
    other_costs: List[OtherCostIn] = Field(default_factory=list)
    taxes: TaxConfigIn = Field(default_factory=TaxConfigIn)
    tax_regime: Optional[str] = Field(None, description="Preset name; overrides 'taxes' when set")
    margin: MarginConfigIn = Field(default_factory=MarginConfigIn)
    contract_months: int = Field(..., ge=1, le=600)
    tax_base: Optional[Literal["cost", "price"]] = None
    fractional_allocation: bool = False
    start_year: Optional[int] = Field(None, ge=1900, le=2200)
    start_month: int = Field(1, ge=1, le=12)
    label: str = Field("", max_length=200, description="Snapshot label (history routes only)")

    def to_domain(self, tax_config: Optional[TaxConfiguration] = None) -> Dict[str, Any]:
        """Keyword arguments for ``build_budget``; ``tax_config`` replaces ``taxes`` when given."""
        return {
            "roster": [m.to_domain() for m in self.team],
            "schedule": [s.to_domain() for s in self.schedule],
            "other_cost_items": [i.to_domain() for i in self.other_costs],
            "tax_config": tax_config if tax_config is not None else self.taxes.to_domain(),
            "margin_config": self.margin.to_domain(),
            "contract_months": self.contract_months,
            "tax_base": self.tax_base,
            "fractional_allocation": self.fractional_allocation,
            "start_year": self.start_year,
            "start_month": self.start_month,
        }


class ScenarioAdjustmentIn(_StrictNumbers):
    category: Literal["salary", "costs", "taxes", "margin"]
    adjustment: float = Field(..., ge=-100, description="Percent change, e.g. 10 for +10 %")


class ScenarioIn(BaseModel):
    name: str = ""
    adjustments: List[ScenarioAdjustmentIn] = Field(default_factory=list)


class ScenariosRequest(BudgetRequest):
    scenarios: List[ScenarioIn] = Field(..., min_length=1)


class CoverageRequest(BaseModel):
    schedule: List[ScheduleEntryIn] = Field(default_factory=list)


class ProfitabilityRequest(_StrictNumbers):
    """
    Investment analysis. Period returns are either given explicitly or
    taken from the monthly profit of ``budget``.
    """
    investment: float = Field(..., ge=0)
    returns: Optional[List[float]] = None
    budget: Optional[BudgetRequest] = None
    discount_rate: float = Field(0.10, ge=0, le=1)

    @model_validator(mode="after")
    def _returns_or_budget(self):
        if self.returns is None and self.budget is None:
            raise ValueError("provide either 'returns' or 'budget'")
        return self
