"""Prometheus metrics for the application."""

import re
import time

from prometheus_client import Counter, Histogram, Info, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from georise import __version__

# --- Metrics ---

APP_INFO = Info("georise", "GEORISE application info")
APP_INFO.info({"version": __version__, "name": "georise"})

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30, 60, 120],
)

ANALYSIS_RUNS = Counter(
    "analysis_runs_total",
    "Analysis runs by terminal status",
    ["status"],
)

UPSTREAM_QUERIES = Counter(
    "upstream_queries_total",
    "Mention-check calls to the search LLM",
    ["engine", "outcome"],  # outcome: mentioned | not_mentioned | error
)

GATEWAY_CALLS = Counter(
    "ai_gateway_calls_total",
    "AI gateway chat completion calls",
    ["feature", "status"],
)


# --- Middleware ---

# UUIDs in paths would blow up label cardinality
_UUID_RE = re.compile(r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}")


def _normalize_path(path: str) -> str:
    """Replace UUID and numeric path segments with {id}."""
    path = _UUID_RE.sub("{id}", path)
    return "/".join("{id}" if part.isdigit() else part for part in path.split("/"))


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Collect HTTP request metrics for Prometheus."""

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        path = _normalize_path(request.url.path)

        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start

        REQUEST_COUNT.labels(method=method, path=path, status=response.status_code).inc()
        REQUEST_DURATION.labels(method=method, path=path).observe(duration)

        return response


def metrics_response() -> Response:
    """Generate Prometheus /metrics response."""
    return Response(
        content=generate_latest(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
