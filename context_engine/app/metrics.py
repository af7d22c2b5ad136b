from __future__ import annotations

import time

from fastapi import Request
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.responses import Response

from context_engine.app.settings import settings

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)
SELECTED_DOCUMENTS = Histogram(
    "context_selected_documents",
    "Documents selected per context selection request",
    buckets=(0, 1, 2, 3, 5, 8, 13, 21),
)
USAGE_TRACKING = Counter(
    "context_usage_tracking_total",
    "Usage tracking outcomes",
    ["status"],
)


def observe_selection(selected: int, tracking_status: str) -> None:
    if not settings.metrics_enabled:
        return
    SELECTED_DOCUMENTS.observe(selected)
    USAGE_TRACKING.labels(tracking_status).inc()


async def metrics_middleware(request: Request, call_next):
    if not settings.metrics_enabled:
        return await call_next(request)
    path = request.url.path
    if path == "/metrics":
        return await call_next(request)
    start = time.monotonic()
    status = 500
    try:
        response = await call_next(request)
        status = response.status_code
        return response
    finally:
        duration = time.monotonic() - start
        # Label by route template so project ids do not explode cardinality.
        route = request.scope.get("route")
        path = getattr(route, "path", path)
        REQUEST_COUNT.labels(request.method, path, str(status)).inc()
        REQUEST_LATENCY.labels(request.method, path).observe(duration)


def metrics_response() -> Response:
    if not settings.metrics_enabled:
        return Response(status_code=404)
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
