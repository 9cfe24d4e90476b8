"""
test_budget_schemas.py - Validation layer tests.

Malformed input must be rejected here so the engine only ever sees
well-typed, non-negative, finite values.
"""

import math

import pytest
from pydantic import ValidationError

from pricing_app.models.budget_schemas import (
    BudgetRequest,
    MarginConfigIn,
    OtherCostIn,
    ProfitabilityRequest,
    ScheduleEntryIn,
    TaxConfigIn,
    TeamMemberIn,
)
from pricing_app.services.budget_types import TaxConfiguration, TeamMember


class TestTeamMemberIn:

    def test_converts_to_domain(self):
        member = TeamMemberIn(member_id="m1", role="N1", salary=5000, benefits=500).to_domain()
        assert member == TeamMember(member_id="m1", role="N1", salary=5000.0, benefits=500.0)

    def test_negative_salary_rejected(self):
        with pytest.raises(ValidationError):
            TeamMemberIn(member_id="m1", role="N1", salary=-1)

    def test_nan_rejected(self):
        with pytest.raises(ValidationError):
            TeamMemberIn(member_id="m1", role="N1", salary=math.nan)

    def test_infinity_rejected(self):
        with pytest.raises(ValidationError):
            TeamMemberIn(member_id="m1", role="N1", salary=5000, benefits=math.inf)


class TestScheduleEntryIn:

    def test_unknown_shift_code(self):
        with pytest.raises(ValidationError):
            ScheduleEntryIn(member_id="m1", shift_code="6x1")

    def test_bad_time(self):
        with pytest.raises(ValidationError):
            ScheduleEntryIn(member_id="m1", start_time="25:00")

    def test_day_out_of_range(self):
        with pytest.raises(ValidationError):
            ScheduleEntryIn(member_id="m1", days_of_week=[7])

    def test_days_deduplicated_to_tuple(self):
        entry = ScheduleEntryIn(member_id="m1", days_of_week=[5, 1, 1]).to_domain()
        assert entry.days_of_week == (1, 5)


class TestOtherCostIn:

    def test_unknown_category_rejected(self):
        with pytest.raises(ValidationError):
            OtherCostIn(category="marketing", quantity=1, unit_cost=10)

    def test_negative_unit_cost_rejected(self):
        with pytest.raises(ValidationError):
            OtherCostIn(category="license", quantity=1, unit_cost=-10)


class TestTaxConfigIn:

    def test_mapping_form(self):
        config = TaxConfigIn(rates={"federal": 10, "ISS": 5}).to_domain()
        assert isinstance(config, TaxConfiguration)
        assert [r.name for r in config.rates] == ["federal", "ISS"]
        assert config.rates[1].resolved_jurisdiction == "municipal"

    def test_list_form(self):
        config = TaxConfigIn(rates=[{"name": "Fee", "rate": 2, "jurisdiction": "state"}]).to_domain()
        assert config.rates[0].jurisdiction == "state"

    def test_negative_rate_rejected(self):
        with pytest.raises(ValidationError):
            TaxConfigIn(rates={"federal": -1})

    def test_unknown_jurisdiction_rejected(self):
        with pytest.raises(ValidationError):
            TaxConfigIn(rates=[{"name": "Fee", "rate": 2, "jurisdiction": "galactic"}])


class TestMarginConfigIn:

    def test_percentage_of_100_rejected(self):
        with pytest.raises(ValidationError):
            MarginConfigIn(type="percentage", value=100)

    def test_large_fixed_amount_allowed(self):
        assert MarginConfigIn(type="fixed", value=250_000).to_domain().value == 250_000.0

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            MarginConfigIn(type="markup", value=10)


class TestBudgetRequest:

    def test_contract_months_minimum(self, example_request):
        example_request["contract_months"] = 0
        with pytest.raises(ValidationError):
            BudgetRequest(**example_request)

    def test_to_domain(self, example_request):
        inputs = BudgetRequest(**example_request).to_domain()
        assert inputs["contract_months"] == 12
        assert inputs["roster"][0].salary == 5000.0
        assert inputs["other_cost_items"][0].total == 300.0
        assert inputs["tax_config"].rates[0].rate == 10.0
        assert inputs["tax_base"] is None

    def test_tax_config_override(self, example_request):
        preset = TaxConfiguration.from_mapping({"ISS": 5})
        inputs = BudgetRequest(**example_request).to_domain(tax_config=preset)
        assert inputs["tax_config"] is preset

    def test_invalid_tax_base(self, example_request):
        example_request["tax_base"] = "revenue"
        with pytest.raises(ValidationError):
            BudgetRequest(**example_request)


class TestProfitabilityRequest:

    def test_requires_returns_or_budget(self):
        with pytest.raises(ValidationError):
            ProfitabilityRequest(investment=1000)

    def test_returns_only(self):
        body = ProfitabilityRequest(investment=1000, returns=[500, 600])
        assert body.budget is None
