"""
conftest.py - Shared pytest fixtures for the pricing engine test suite.

No database or external service fixtures are defined here. The engine tests
are pure unit tests; the route tests drive the FastAPI app in-process through
TestClient with fresh cache / history instances per test.

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``pricing_app.*`` imports resolve correctly regardless of where pytest
    is invoked.
"""

import sys
import os
import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any pricing_app imports.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)


# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def engine():
    """BudgetCalculationEngine with defaults (50 % tax warning, cost tax base)."""
    from pricing_app.services.budget_engine import BudgetCalculationEngine
    return BudgetCalculationEngine()


@pytest.fixture(scope="session")
def price_base_engine():
    """Engine whose default taxable base is the pre-tax price."""
    from pricing_app.services.budget_engine import BudgetCalculationEngine
    return BudgetCalculationEngine(default_tax_base="price")


# ---------------------------------------------------------------------------
# Worked example inputs
# ---------------------------------------------------------------------------

@pytest.fixture
def example_roster():
    """Single analyst: salary 5000 + benefits 500 = 5500 / month."""
    from pricing_app.services.budget_types import TeamMember
    return [TeamMember(member_id="m1", role="N1 analyst", salary=5000.0, benefits=500.0)]


@pytest.fixture
def example_items():
    """One licence line: 1 x 300."""
    from pricing_app.services.budget_types import OtherCostItem
    return [OtherCostItem(category="license", quantity=1, unit_cost=300.0)]


@pytest.fixture
def example_taxes():
    """Flat 10 % federal tax."""
    from pricing_app.services.budget_types import TaxConfiguration
    return TaxConfiguration.from_mapping({"federal": 10.0})


@pytest.fixture
def example_margin():
    """20 % margin on price (percentage-of-cost alias)."""
    from pricing_app.services.budget_types import MarginConfiguration
    return MarginConfiguration(type="percentage-of-cost", value=20.0)


@pytest.fixture
def example_budget(engine, example_roster, example_items, example_taxes, example_margin):
    """
    Worked example, 12 months:
      team 5500 + other 300 = base 5800 -> taxes 580 -> cost 6380
      price = 6380 / 0.8 = 7975, monthly revenue 664.58
    """
    return engine.build_budget(
        example_roster, [], example_items, example_taxes, example_margin, 12,
    )


@pytest.fixture
def example_request():
    """JSON body equivalent to the worked example."""
    return {
        "team": [{"member_id": "m1", "role": "N1 analyst", "salary": 5000, "benefits": 500}],
        "other_costs": [{"category": "license", "quantity": 1, "unit_cost": 300}],
        "taxes": {"rates": {"federal": 10}},
        "margin": {"type": "percentage", "value": 20},
        "contract_months": 12,
    }


# ---------------------------------------------------------------------------
# API fixture
# ---------------------------------------------------------------------------

@pytest.fixture
def client():
    """
    TestClient over the full app with isolated cache and history.

    Dependency overrides keep snapshots and cached budgets from leaking
    between tests.
    """
    from fastapi.testclient import TestClient
    from pricing_app.main import app
    from pricing_app.api import deps
    from pricing_app.services.budget_comparison import BudgetHistory
    from pricing_app.services.budget_engine import BudgetCalculationEngine
    from pricing_app.services.calculation_cache import CachedBudgetEngine

    fresh_engine = BudgetCalculationEngine()
    fresh_cache = CachedBudgetEngine(fresh_engine)
    fresh_history = BudgetHistory(limit=10)

    app.dependency_overrides[deps.get_engine] = lambda: fresh_engine
    app.dependency_overrides[deps.get_cached_engine] = lambda: fresh_cache
    app.dependency_overrides[deps.get_history] = lambda: fresh_history
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
