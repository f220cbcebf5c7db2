"""Observability utilities."""

from .metrics import (
    AGGREGATION_LATENCY_SECONDS,
    DATA_FETCH_FAILURE_COUNTER,
    REQUEST_COUNTER,
    REQUEST_ERROR_COUNTER,
    REQUEST_LATENCY_SECONDS,
    ROLLUP_BAGS_GAUGE,
    ROLLUP_POINTS_GAUGE,
    PrometheusMiddleware,
    metrics_router,
    report_fetch_failure,
    report_rollup,
)
from .tracing import (
    initialise_tracing,
    instrument_fastapi_app,
    instrument_sqlalchemy_engine,
    span_from_traceparent,
    traced_span,
)

__all__ = [
    "AGGREGATION_LATENCY_SECONDS",
    "DATA_FETCH_FAILURE_COUNTER",
    "PrometheusMiddleware",
    "REQUEST_COUNTER",
    "REQUEST_ERROR_COUNTER",
    "REQUEST_LATENCY_SECONDS",
    "ROLLUP_BAGS_GAUGE",
    "ROLLUP_POINTS_GAUGE",
    "metrics_router",
    "report_fetch_failure",
    "report_rollup",
    "initialise_tracing",
    "instrument_fastapi_app",
    "instrument_sqlalchemy_engine",
    "span_from_traceparent",
    "traced_span",
]
