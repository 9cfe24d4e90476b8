"""
Service Desk / NOC Pricing Engine API v1.0
FastAPI backend exposing the budget consolidation engine: team costs, taxes,
margins, consolidated budgets, scenarios, coverage, profitability and
budget comparison.
"""
import sys
import time
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env before config reads the environment
load_dotenv()

from pricing_app.config import APP_VERSION, CORS_ORIGINS, LOG_JSON, LOG_LEVEL  # noqa: E402
from pricing_app.api.budget_routes import router as budget_router  # noqa: E402
from pricing_app.api.deps import get_cached_engine, get_history  # noqa: E402
from pricing_app.services.logging_config import setup_logging  # noqa: E402
from pricing_app.services.middleware import (  # noqa: E402
    RequestTimingMiddleware,
    SecurityHeadersMiddleware,
)
from pricing_app.services.perf_monitor import tracker as perf_tracker  # noqa: E402

setup_logging(level=LOG_LEVEL, json_output=LOG_JSON)
logger = logging.getLogger("pricing-api")

# Record process start time for uptime calculation
_PROCESS_START = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Pricing engine API {APP_VERSION} starting")
    yield
    purged = get_cached_engine().purge_expired()
    logger.info(f"Pricing engine API stopping ({purged} expired cache entries purged)")


app = FastAPI(
    title="Service Desk Pricing Engine API",
    version=APP_VERSION,
    description="Budget consolidation for Service Desk and NOC proposals",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "X-Requested-With", "X-Request-ID"],
)
app.add_middleware(SecurityHeadersMiddleware)
# Request timing + X-Request-ID must be outermost so it wraps all other middleware
app.add_middleware(RequestTimingMiddleware)

app.include_router(budget_router)


@app.get("/health")
async def health_check():
    return {
        "status": "active",
        "version": APP_VERSION,
        "snapshots_stored": len(get_history()),
    }


@app.get("/metrics")
async def metrics():
    """
    Performance metrics endpoint.

    Returns budget throughput, per-operation timings, error counts, cache
    statistics and process-level memory usage, all sourced from in-process
    state.
    """
    uptime_seconds = round(time.monotonic() - _PROCESS_START, 1)

    memory_mb: float = 0.0
    try:
        import resource  # Unix only
        usage = resource.getrusage(resource.RUSAGE_SELF)
        # ru_maxrss is in kilobytes on Linux, bytes on macOS
        if sys.platform == "darwin":
            memory_mb = round(usage.ru_maxrss / (1024 * 1024), 2)
        else:
            memory_mb = round(usage.ru_maxrss / 1024, 2)
    except ImportError:
        memory_mb = 0.0

    return {
        "uptime_seconds": uptime_seconds,
        "memory_usage_mb": memory_mb,
        **perf_tracker.get_metrics(),
        "cache": get_cached_engine().stats(),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("pricing_app.main:app", host="0.0.0.0", port=8000, reload=False)
