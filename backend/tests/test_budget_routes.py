"""
test_budget_routes.py - HTTP tests for /api/budget/*, /health and /metrics.

The app runs in-process through TestClient; cache and history are replaced
with fresh instances per test by the ``client`` fixture.
"""

import copy
import logging


class TestCalculationRoutes:

    def test_consolidated_worked_example(self, client, example_request):
        resp = client.post("/api/budget/consolidated", json=example_request)
        assert resp.status_code == 200
        body = resp.json()
        assert body["total_costs"] == 6380.0
        assert abs(body["total_price"] - 7975.0) < 0.01
        assert len(body["monthly_breakdown"]) == 12
        assert body["monthly_breakdown"][0]["revenue"] == 664.58
        assert body["taxes"]["by_jurisdiction"]["federal"] == 580.0

    def test_request_headers(self, client, example_request):
        resp = client.post(
            "/api/budget/consolidated", json=example_request, headers={"X-Request-ID": "abc-123"},
        )
        assert resp.headers["X-Request-ID"] == "abc-123"
        assert "X-Process-Time" in resp.headers
        assert resp.headers["X-Content-Type-Options"] == "nosniff"

    def test_request_log_names_operation(self, client, example_request, caplog):
        with caplog.at_level(logging.INFO, logger="pricing-api.middleware"):
            client.post(
                "/api/budget/consolidated", json=example_request, headers={"X-Request-ID": "op-1"},
            )
        records = [r for r in caplog.records if r.name == "pricing-api.middleware"]
        assert len(records) == 1
        assert records[0].operation == "build_budget"
        assert records[0].request_id == "op-1"
        assert records[0].http_status == 200

    def test_negative_salary_is_422(self, client, example_request):
        example_request["team"][0]["salary"] = -5000
        assert client.post("/api/budget/consolidated", json=example_request).status_code == 422

    def test_margin_of_100_is_422(self, client, example_request):
        example_request["margin"]["value"] = 100
        assert client.post("/api/budget/consolidated", json=example_request).status_code == 422

    def test_unknown_category_is_422(self, client, example_request):
        example_request["other_costs"][0]["category"] = "marketing"
        assert client.post("/api/budget/consolidated", json=example_request).status_code == 422

    def test_unknown_tax_regime_is_404(self, client, example_request):
        example_request["tax_regime"] = "offshore"
        assert client.post("/api/budget/consolidated", json=example_request).status_code == 404

    def test_consolidated_with_tax_regime(self, client, example_request):
        example_request["tax_regime"] = "simples_nacional"
        body = client.post("/api/budget/consolidated", json=example_request).json()
        assert body["taxes"]["total"] == 348.0     # 6 % of 5800

    def test_team_costs(self, client, example_request):
        resp = client.post("/api/budget/team-costs", json={"team": example_request["team"]})
        assert resp.status_code == 200
        assert resp.json()["total"] == 5500.0

    def test_taxes_with_regime(self, client):
        resp = client.post("/api/budget/taxes", json={"taxable_base": 1000, "tax_regime": "lucro_presumido"})
        body = resp.json()
        assert abs(body["total"] - 506.5) < 0.01
        assert body["by_jurisdiction"]["state"] == 180.0

    def test_taxes_unknown_regime(self, client):
        resp = client.post("/api/budget/taxes", json={"taxable_base": 1000, "tax_regime": "nope"})
        assert resp.status_code == 404

    def test_margins(self, client):
        resp = client.post(
            "/api/budget/margins",
            json={"total_costs": 80, "margin": {"type": "percentage", "value": 20}},
        )
        assert abs(resp.json()["total_price"] - 100.0) < 0.001

    def test_scenarios(self, client, example_request):
        body = dict(example_request)
        body["scenarios"] = [{"name": "Raise", "adjustments": [{"category": "salary", "adjustment": 10}]}]
        result = client.post("/api/budget/scenarios", json=body).json()
        assert abs(result["scenarios"][0]["price_delta"] - 687.5) < 0.01

    def test_scenarios_require_at_least_one(self, client, example_request):
        body = dict(example_request, scenarios=[])
        assert client.post("/api/budget/scenarios", json=body).status_code == 422

    def test_coverage(self, client):
        resp = client.post("/api/budget/coverage", json={"schedule": [{"member_id": "m1", "shift_code": "24x7"}]})
        assert resp.json()["coverage_pct"] == 100.0

    def test_profitability_from_budget(self, client, example_request):
        resp = client.post(
            "/api/budget/profitability", json={"investment": 1000, "budget": example_request},
        )
        body = resp.json()
        assert body["roi"]["periods"] == 12
        # 132.92 profit per month recovers 1000 in month 8
        assert body["payback"]["simple_payback"] == 8
        assert abs(body["margin_analysis"]["net_margin_pct"] - 20.0) < 0.05

    def test_profitability_from_returns(self, client):
        resp = client.post("/api/budget/profitability", json={"investment": 1000, "returns": [500, 500, 500]})
        body = resp.json()
        assert body["roi"]["roi_pct"] == 50.0
        assert "margin_analysis" not in body

    def test_profitability_loss_making_returns(self, client):
        resp = client.post("/api/budget/profitability", json={"investment": 1000, "returns": [-10.0] * 60})
        assert resp.status_code == 200
        body = resp.json()
        assert body["roi"]["irr_pct"] == 0.0
        assert body["roi"]["irr_defined"] is False
        assert body["payback"]["simple_payback"] == 0
        assert body["payback"]["discounted_payback"] == 0

    def test_profitability_needs_input(self, client):
        assert client.post("/api/budget/profitability", json={"investment": 1000}).status_code == 422


class TestTaxRegimeRoutes:

    def test_list(self, client):
        regimes = client.get("/api/budget/tax-regimes").json()["regimes"]
        assert {r["regime"] for r in regimes} == {"lucro_presumido", "lucro_real", "simples_nacional"}

    def test_get(self, client):
        body = client.get("/api/budget/tax-regimes/lucro_real").json()
        assert body["name"] == "Lucro Real"
        assert len(body["rates"]) == 6

    def test_unknown(self, client):
        assert client.get("/api/budget/tax-regimes/unknown").status_code == 404


class TestHistoryRoutes:

    def test_store_list_get(self, client, example_request):
        body = dict(example_request, label="v1")
        created = client.post("/api/budget/history", json=body)
        assert created.status_code == 201
        snapshot_id = created.json()["snapshot_id"]

        listed = client.get("/api/budget/history").json()["snapshots"]
        assert [s["snapshot_id"] for s in listed] == [snapshot_id]
        assert "budget" not in listed[0]

        fetched = client.get(f"/api/budget/history/{snapshot_id}").json()
        assert fetched["label"] == "v1"
        assert fetched["budget"]["total_costs"] == 6380.0

    def test_unknown_snapshot(self, client):
        assert client.get("/api/budget/history/does-not-exist").status_code == 404

    def test_compare_against_history(self, client, example_request):
        client.post("/api/budget/history", json=example_request)

        raised = copy.deepcopy(example_request)
        raised["team"][0]["salary"] = 8000
        result = client.post("/api/budget/compare", json=raised).json()

        assert result["previous_count"] == 1
        assert result["deviations"]["team_costs"]["trend"] == "up"
        assert "health" in result
        assert result["budget"]["team_costs"]["total"] == 8500.0

    def test_compare_without_history(self, client, example_request):
        result = client.post("/api/budget/compare", json=example_request).json()
        assert result["previous_count"] == 0
        assert result["health"]["category"] == "good"


class TestServiceRoutes:

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "active"

    def test_metrics(self, client, example_request):
        client.post("/api/budget/consolidated", json=example_request)
        body = client.get("/metrics").json()
        assert body["budgets_computed"] >= 1
        assert "cache" in body
        assert "uptime_seconds" in body
