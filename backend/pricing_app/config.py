"""
Pricing engine configuration - single source of truth for thresholds,
financial defaults and environment-driven settings.

Import from here in engines and routes rather than hardcoding values.
"""
from __future__ import annotations

import os


# ── Labour conversion ─────────────────────────────────────────────────────────

WEEKS_PER_MONTH: float = 4.33
FULL_TIME_WEEKLY_HOURS: float = 44.0       # CLT standard week
HOURS_PER_WEEK: int = 168                  # 24 h x 7 days


# ── Shift presets ─────────────────────────────────────────────────────────────
# code -> (start_time, end_time, days_of_week); 0 = Sunday .. 6 = Saturday
SHIFT_PRESETS: dict[str, tuple[str, str, tuple[int, ...]]] = {
    "8x5":   ("08:00", "17:00", (1, 2, 3, 4, 5)),
    "12x5":  ("07:00", "19:00", (1, 2, 3, 4, 5)),
    "12x7":  ("07:00", "19:00", (0, 1, 2, 3, 4, 5, 6)),
    "24x7":  ("00:00", "00:00", (0, 1, 2, 3, 4, 5, 6)),
    "night": ("22:00", "06:00", (0, 1, 2, 3, 4, 5, 6)),
}


# ── Tax ───────────────────────────────────────────────────────────────────────

# Any single configured rate above this (percent) raises TAX_RATE_HIGH
TAX_RATE_WARNING_PCT: float = 50.0

TAX_BASE_POLICIES: tuple[str, ...] = ("cost", "price")
DEFAULT_TAX_BASE: str = os.getenv("DEFAULT_TAX_BASE", "cost").lower()

TAX_JURISDICTIONS: tuple[str, ...] = ("federal", "state", "municipal", "social_charges", "other")

# Tax name (upper-case) -> jurisdiction, used when a rate does not declare one
TAX_NAME_JURISDICTION: dict[str, str] = {
    "FEDERAL": "federal",
    "PIS": "federal",
    "COFINS": "federal",
    "IR": "federal",
    "IRPJ": "federal",
    "CSLL": "federal",
    "STATE": "state",
    "ICMS": "state",
    "MUNICIPAL": "municipal",
    "ISS": "municipal",
    "SOCIAL_CHARGES": "social_charges",
    "INSS": "social_charges",
    "FGTS": "social_charges",
}


# ── Other costs ───────────────────────────────────────────────────────────────

COST_CATEGORIES: tuple[str, ...] = (
    "infrastructure",
    "license",
    "facility",
    "training",
    "certification",
    "contingency",
    "other",
)


# ── Margin ────────────────────────────────────────────────────────────────────

MARGIN_TYPES: tuple[str, ...] = ("percentage", "fixed")


# ── Budget comparison ─────────────────────────────────────────────────────────

DEVIATION_TREND_PCT: float = 5.0           # |deviation| above this is a trend
MARGIN_CRITICAL_PCT: float = 5.0
MARGIN_LOW_PCT: float = 10.0
MARGIN_RECOMMENDED_PCT: float = 15.0
TEAM_COST_SHARE_HIGH_PCT: float = 70.0
TAX_SHARE_HIGH_PCT: float = 30.0
TEAM_COST_DEVIATION_ALERT_PCT: float = 15.0
PRICE_DEVIATION_ALERT_PCT: float = 25.0
PRICE_INCREASE_REVIEW_PCT: float = 20.0
MARGIN_DROP_REVIEW_PCT: float = 10.0
MONTHLY_MARGIN_CV_ALERT_PCT: float = 20.0

# Health score: factor -> weight
HEALTH_SCORE_WEIGHTS: dict[str, float] = {
    "margin": 0.4,
    "team_costs": 0.3,
    "taxes": 0.2,
    "consistency": 0.1,
}

# (minimum score, category), checked top-down
HEALTH_SCORE_BANDS: list[tuple[float, str]] = [
    (90.0, "excellent"),
    (75.0, "good"),
    (60.0, "fair"),
    (40.0, "poor"),
    (0.0, "critical"),
]


# ── Profitability ─────────────────────────────────────────────────────────────

DEFAULT_DISCOUNT_RATE: float = 0.10
IRR_MAX_ITERATIONS: int = 100
IRR_TOLERANCE: float = 0.0001
# Newton-Raphson search range for the periodic IRR (fractions, not percent)
IRR_MIN_RATE: float = -0.9999
IRR_MAX_RATE: float = 1000.0


# ── Runtime settings (environment) ────────────────────────────────────────────

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON: bool = os.getenv("LOG_FORMAT", "json").lower() != "text"

BUDGET_CACHE_SIZE: int = int(os.getenv("BUDGET_CACHE_SIZE", "200"))
BUDGET_CACHE_TTL_SECONDS: float = float(os.getenv("BUDGET_CACHE_TTL_SECONDS", "600"))
BUDGET_HISTORY_LIMIT: int = int(os.getenv("BUDGET_HISTORY_LIMIT", "50"))

_cors_default = "http://localhost:3000,http://localhost:8000"
CORS_ORIGINS: list[str] = [
    o.strip() for o in os.getenv("CORS_ORIGINS", _cors_default).split(",") if o.strip()
]

APP_VERSION: str = "1.0.0"
