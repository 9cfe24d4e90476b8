"""FastAPI dependency providers: shared engine, budget cache and snapshot history."""
from fastapi import HTTPException, status

from pricing_app.models.budget_schemas import BudgetRequest
from pricing_app.services.budget_comparison import BudgetHistory
from pricing_app.services.budget_engine import BudgetCalculationEngine
from pricing_app.services.budget_types import TaxConfiguration
from pricing_app.services.calculation_cache import CachedBudgetEngine
from pricing_app.services.tax_regimes import get_regime

_engine = BudgetCalculationEngine()
_cache = CachedBudgetEngine(_engine)
_history = BudgetHistory()


def get_engine() -> BudgetCalculationEngine:
    return _engine


def get_cached_engine() -> CachedBudgetEngine:
    return _cache


def get_history() -> BudgetHistory:
    return _history


def resolve_tax_regime(regime: str) -> TaxConfiguration:
    """Look up a tax preset or raise 404."""
    config = get_regime(regime)
    if config is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown tax regime '{regime}'",
        )
    return config


def budget_inputs(body: BudgetRequest) -> dict:
    """``build_budget`` keyword arguments for a request, with any tax preset applied."""
    preset = resolve_tax_regime(body.tax_regime) if body.tax_regime else None
    return body.to_domain(tax_config=preset)
