"""
Budget API Routes

POST /api/budget/team-costs              - monthly team labour cost
POST /api/budget/taxes                   - taxes on a given taxable base
POST /api/budget/margins                 - sell price from costs and margin policy
POST /api/budget/consolidated            - full consolidated budget (memoised)
POST /api/budget/scenarios               - what-if scenarios against a base budget
POST /api/budget/coverage                - weekly schedule coverage and gaps
POST /api/budget/profitability           - ROI / NPV / IRR / payback
GET  /api/budget/tax-regimes             - list tax presets
GET  /api/budget/tax-regimes/{regime}    - one tax preset
POST /api/budget/history                 - compute and store a snapshot
GET  /api/budget/history                 - list snapshots
GET  /api/budget/history/{snapshot_id}   - one snapshot
POST /api/budget/compare                 - compare against history, with health score
"""
import logging

from fastapi import APIRouter, Depends, HTTPException

from pricing_app.api.deps import (
    budget_inputs,
    get_cached_engine,
    get_engine,
    get_history,
    resolve_tax_regime,
)
from pricing_app.models.budget_schemas import (
    BudgetRequest,
    CoverageRequest,
    MarginsRequest,
    ProfitabilityRequest,
    ScenariosRequest,
    TaxesRequest,
    TeamCostsRequest,
)
from pricing_app.services.budget_comparison import (
    BudgetHistory,
    budget_health_score,
    compare_budgets,
)
from pricing_app.services.budget_engine import BudgetCalculationEngine
from pricing_app.services.budget_types import to_plain
from pricing_app.services.calculation_cache import CachedBudgetEngine
from pricing_app.services.coverage_engine import calculate_coverage_analysis
from pricing_app.services.profitability_engine import (
    calculate_margin_analysis,
    calculate_payback,
    calculate_roi,
)
from pricing_app.services.tax_regimes import list_regimes

router = APIRouter(prefix="/api/budget", tags=["Budget"])
logger = logging.getLogger("pricing-api")


# ── Calculation ───────────────────────────────────────────────────────────────

@router.post("/team-costs")
async def team_costs(
    body: TeamCostsRequest,
    engine: BudgetCalculationEngine = Depends(get_engine),
):
    summary = engine.calculate_team_costs(
        [m.to_domain() for m in body.team],
        [s.to_domain() for s in body.schedule],
        fractional_allocation=body.fractional_allocation,
    )
    return to_plain(summary)


@router.post("/taxes")
async def taxes(
    body: TaxesRequest,
    engine: BudgetCalculationEngine = Depends(get_engine),
):
    config = resolve_tax_regime(body.tax_regime) if body.tax_regime else body.taxes.to_domain()
    return to_plain(engine.calculate_taxes(body.taxable_base, config))


@router.post("/margins")
async def margins(
    body: MarginsRequest,
    engine: BudgetCalculationEngine = Depends(get_engine),
):
    result = engine.calculate_margins(
        body.total_costs,
        body.margin.to_domain(),
        [i.to_domain() for i in body.other_costs],
    )
    return to_plain(result)


@router.post("/consolidated")
async def consolidated(
    body: BudgetRequest,
    cache: CachedBudgetEngine = Depends(get_cached_engine),
):
    budget = cache.build_budget(**budget_inputs(body))
    return budget.to_dict()


@router.post("/scenarios")
async def scenarios(
    body: ScenariosRequest,
    engine: BudgetCalculationEngine = Depends(get_engine),
):
    inputs = budget_inputs(body)
    return engine.calculate_scenarios(
        inputs["roster"],
        inputs["schedule"],
        inputs["other_cost_items"],
        inputs["tax_config"],
        inputs["margin_config"],
        inputs["contract_months"],
        [s.model_dump() for s in body.scenarios],
        tax_base=inputs["tax_base"],
        fractional_allocation=inputs["fractional_allocation"],
    )


@router.post("/coverage")
async def coverage(body: CoverageRequest):
    return calculate_coverage_analysis([s.to_domain() for s in body.schedule])


@router.post("/profitability")
async def profitability(
    body: ProfitabilityRequest,
    cache: CachedBudgetEngine = Depends(get_cached_engine),
):
    response = {}
    returns = body.returns
    if body.budget is not None:
        budget = cache.build_budget(**budget_inputs(body.budget))
        response["margin_analysis"] = calculate_margin_analysis(budget.monthly_breakdown)
        if returns is None:
            returns = [m.profit for m in budget.monthly_breakdown]

    response["roi"] = calculate_roi(body.investment, returns, body.discount_rate)
    response["payback"] = calculate_payback(body.investment, returns, body.discount_rate)
    return response


# ── Tax regimes ───────────────────────────────────────────────────────────────

@router.get("/tax-regimes")
async def tax_regimes():
    return {"regimes": list_regimes()}


@router.get("/tax-regimes/{regime}")
async def tax_regime(regime: str):
    config = resolve_tax_regime(regime)
    return {"regime": regime, **to_plain(config)}


# ── History & comparison ──────────────────────────────────────────────────────

@router.post("/history", status_code=201)
async def store_snapshot(
    body: BudgetRequest,
    cache: CachedBudgetEngine = Depends(get_cached_engine),
    history: BudgetHistory = Depends(get_history),
):
    budget = cache.build_budget(**budget_inputs(body))
    snapshot = history.add(budget, label=body.label)
    logger.info(
        f"Snapshot stored, history size {len(history)}",
        extra={"budget_id": snapshot.snapshot_id},
    )
    return snapshot.to_dict()


@router.get("/history")
async def list_snapshots(history: BudgetHistory = Depends(get_history)):
    return {"snapshots": [s.to_dict(include_budget=False) for s in history.list()]}


@router.get("/history/{snapshot_id}")
async def get_snapshot(snapshot_id: str, history: BudgetHistory = Depends(get_history)):
    snapshot = history.get(snapshot_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail=f"Snapshot {snapshot_id} not found")
    return snapshot.to_dict()


@router.post("/compare")
async def compare(
    body: BudgetRequest,
    cache: CachedBudgetEngine = Depends(get_cached_engine),
    history: BudgetHistory = Depends(get_history),
):
    budget = cache.build_budget(**budget_inputs(body))
    result = compare_budgets(budget, history.budgets())
    result["health"] = budget_health_score(budget)
    result["budget"] = budget.to_dict()
    return result
