"""Request timing, tracing and security-header middleware for the pricing API."""
import time
import uuid
import logging
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("pricing-api.middleware")

SKIP_LOG_PATHS = {"/health", "/metrics"}

BUDGET_API_PREFIX = "/api/budget/"

# First path segment under /api/budget -> engine operation it serves
ROUTE_OPERATIONS = {
    "team-costs": "calculate_team_costs",
    "taxes": "calculate_taxes",
    "margins": "calculate_margins",
    "consolidated": "build_budget",
    "scenarios": "calculate_scenarios",
    "coverage": "calculate_coverage_analysis",
    "profitability": "calculate_roi",
    "tax-regimes": "get_regime",
    "history": "budget_history",
    "compare": "compare_budgets",
}


def budget_operation(path: str) -> Optional[str]:
    """Engine operation behind a budget API path, or None for other paths."""
    if not path.startswith(BUDGET_API_PREFIX):
        return None
    segment = path[len(BUDGET_API_PREFIX):].split("/", 1)[0]
    return ROUTE_OPERATIONS.get(segment)


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """
    Times every request and tags it for tracing.

    An incoming X-Request-ID is kept, otherwise a uuid4 is issued. Both
    X-Request-ID and X-Process-Time (ms) are set on the response. Each
    request outside SKIP_LOG_PATHS gets one structured log line that names
    the budget operation it reached.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        started = time.perf_counter()

        response: Response = await call_next(request)

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = str(elapsed_ms)

        path = request.url.path
        if path in SKIP_LOG_PATHS:
            return response

        fields = {
            "http_method": request.method,
            "http_path": path,
            "http_status": response.status_code,
            "request_id": request_id,
            "duration_ms": elapsed_ms,
        }
        operation = budget_operation(path)
        if operation:
            fields["operation"] = operation
        logger.info(f"{request.method} {path} -> {response.status_code}", extra=fields)
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds standard security headers to every response."""
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response
