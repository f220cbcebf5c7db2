"""Prometheus metrics utilities for API and worker processes."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_LATENCY_SECONDS = Histogram(
    "http_request_latency_seconds",
    "Latency of HTTP requests in seconds.",
    labelnames=("method", "path"),
)
REQUEST_COUNTER = Counter(
    "http_requests_total",
    "Total number of HTTP requests processed.",
    labelnames=("method", "path", "status"),
)
REQUEST_ERROR_COUNTER = Counter(
    "http_request_errors_total",
    "Total number of HTTP requests that resulted in server errors.",
    labelnames=("method", "path", "status"),
)
AGGREGATION_LATENCY_SECONDS = Histogram(
    "loyalty_aggregation_latency_seconds",
    "Latency of aggregation engine operations in seconds.",
    labelnames=("operation",),
)
DATA_FETCH_FAILURE_COUNTER = Counter(
    "loyalty_data_fetch_failures_total",
    "Record store reads that failed or timed out.",
    labelnames=("entity", "reason"),
)
ROLLUP_BAGS_GAUGE = Gauge(
    "loyalty_rollup_bags",
    "Bags sold per reporting window and seller segment.",
    labelnames=("window", "segment"),
)
ROLLUP_POINTS_GAUGE = Gauge(
    "loyalty_rollup_points",
    "Approved points per reporting window and seller segment.",
    labelnames=("window", "segment"),
)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware that records request metrics for Prometheus scraping."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:  # type: ignore[override]
        method = request.method
        path = request.url.path
        start_time = time.perf_counter()
        status = "500"

        try:
            response = await call_next(request)
            status = str(response.status_code)
            if response.status_code >= 500:
                REQUEST_ERROR_COUNTER.labels(method=method, path=path, status=status).inc()
            return response
        except Exception:
            REQUEST_ERROR_COUNTER.labels(method=method, path=path, status="500").inc()
            raise
        finally:
            latency = time.perf_counter() - start_time
            REQUEST_LATENCY_SECONDS.labels(method=method, path=path).observe(latency)
            REQUEST_COUNTER.labels(method=method, path=path, status=status).inc()


metrics_router = APIRouter(tags=["observability"])


@metrics_router.get("/metrics", include_in_schema=False)
def metrics_endpoint() -> Response:
    """Expose Prometheus metrics for scraping."""
    payload = generate_latest()
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


def report_fetch_failure(entity: str, reason: str) -> None:
    DATA_FETCH_FAILURE_COUNTER.labels(entity=entity, reason=reason).inc()


def report_rollup(window: str, segment: str, *, bags: int, points: int) -> None:
    """Publish the latest roll-up for a window/segment pair."""
    ROLLUP_BAGS_GAUGE.labels(window=window, segment=segment).set(max(0, bags))
    ROLLUP_POINTS_GAUGE.labels(window=window, segment=segment).set(max(0, points))


__all__ = [
    "AGGREGATION_LATENCY_SECONDS",
    "DATA_FETCH_FAILURE_COUNTER",
    "PrometheusMiddleware",
    "REQUEST_COUNTER",
    "REQUEST_ERROR_COUNTER",
    "REQUEST_LATENCY_SECONDS",
    "ROLLUP_BAGS_GAUGE",
    "ROLLUP_POINTS_GAUGE",
    "metrics_endpoint",
    "metrics_router",
    "report_fetch_failure",
    "report_rollup",
]
