"""
test_profitability_engine.py - Unit tests for ROI / NPV / IRR / payback and margin trend.
"""

from pricing_app.services.profitability_engine import (
    calculate_irr,
    calculate_margin_analysis,
    calculate_payback,
    calculate_roi,
)


class TestROI:

    def test_three_equal_returns(self):
        result = calculate_roi(1000.0, [500.0, 500.0, 500.0])
        assert result["roi_pct"] == 50.0
        assert result["periods"] == 3
        assert abs(result["npv"] - 243.43) < 0.01
        assert abs(result["irr_pct"] - 23.38) < 0.05

    def test_irr_zero_when_returns_only_recover_investment(self):
        assert abs(calculate_irr(1000.0, [1000.0])) < 0.01

    def test_no_returns(self):
        result = calculate_roi(1000.0, [])
        assert result["roi_pct"] == 0.0
        assert result["irr_pct"] == 0.0
        assert result["npv"] == 0.0
        assert result["periods"] == 0

    def test_zero_investment_roi_is_zero(self):
        assert calculate_roi(0.0, [100.0])["roi_pct"] == 0.0

    def test_zero_investment_long_series_has_no_irr(self):
        result = calculate_roi(0.0, [100.0] * 600)
        assert result["periods"] == 600
        assert result["irr_pct"] == 0.0
        assert result["irr_defined"] is False
        assert abs(result["npv"] - 1000.0) < 0.01

    def test_loss_making_returns_have_no_irr(self):
        result = calculate_roi(1000.0, [-10.0] * 60)
        assert result["roi_pct"] == -160.0
        assert result["irr_pct"] == 0.0
        assert result["irr_defined"] is False
        assert result["npv"] < -1000.0

    def test_irr_defined_flag_on_normal_cash_flow(self):
        assert calculate_roi(1000.0, [500.0, 500.0, 500.0])["irr_defined"] is True

    def test_high_irr_converges(self):
        # 100 returning 1000 a period for a year: 1000 / (1 + r) summed is ~1000 / r
        result = calculate_roi(100.0, [1000.0] * 12)
        assert result["irr_defined"] is True
        assert abs(result["irr_pct"] - 1000.0) < 0.1


class TestPayback:

    def test_simple_payback_without_discounted_recovery(self):
        result = calculate_payback(1000.0, [400.0, 400.0, 400.0])
        assert result["simple_payback"] == 3
        assert result["break_even_period"] == 3
        # 363.64 + 330.58 + 300.53 < 1000
        assert result["discounted_payback"] == 0

    def test_cash_flow_table(self):
        result = calculate_payback(1000.0, [600.0, 600.0])
        flow = result["cash_flow"]
        assert flow[0]["cash_out"] == 1000.0
        assert flow[1]["cash_out"] == 0.0
        assert [row["cumulative_cash_flow"] for row in flow] == [-400.0, 200.0]
        assert result["simple_payback"] == 2
        assert result["discounted_payback"] == 2

    def test_never_recovered(self):
        assert calculate_payback(1000.0, [10.0])["simple_payback"] == 0


class TestMarginAnalysis:

    def test_worked_example_margins(self, example_budget):
        result = calculate_margin_analysis(example_budget.monthly_breakdown)
        # before tax: (7975 - 5800) / 7975; after tax: 20 %
        assert abs(result["gross_margin_pct"] - 27.27) < 0.05
        assert abs(result["net_margin_pct"] - 20.0) < 0.05
        assert len(result["margin_trend"]) == 12
        assert result["margin_trend"][0]["period"] == 1

    def test_empty(self):
        result = calculate_margin_analysis([])
        assert result == {"gross_margin_pct": 0.0, "net_margin_pct": 0.0, "margin_trend": []}
