from __future__ import annotations

import asyncio

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from opentelemetry import trace
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from loyalty.core.errors import DataFetchError
from loyalty.obs import (
    DATA_FETCH_FAILURE_COUNTER,
    ROLLUP_BAGS_GAUGE,
    PrometheusMiddleware,
    initialise_tracing,
    metrics_router,
    report_rollup,
    span_from_traceparent,
    traced_span,
)
from loyalty.services.aggregation import AggregationEngine


def _sample(metric, name: str, **labels: str) -> float:
    family = next(iter(metric.collect()))
    return next(
        item.value
        for item in family.samples
        if item.name == name and all(item.labels.get(key) == value for key, value in labels.items())
    )


def test_metrics_endpoint_exposes_counters() -> None:
    app = FastAPI()
    app.add_middleware(PrometheusMiddleware)
    app.include_router(metrics_router)

    client = TestClient(app)
    response = client.get("/metrics")

    assert response.status_code == 200
    assert "http_requests_total" in response.text
    assert "loyalty_aggregation_latency_seconds" in response.text


def test_report_rollup_updates_gauges() -> None:
    report_rollup("quarterly", "dealer", bags=42, points=420)
    assert _sample(ROLLUP_BAGS_GAUGE, "loyalty_rollup_bags", window="quarterly", segment="dealer") == 42

    report_rollup("quarterly", "dealer", bags=-3, points=0)
    assert _sample(ROLLUP_BAGS_GAUGE, "loyalty_rollup_bags", window="quarterly", segment="dealer") == 0


def test_failed_reads_are_counted(stores, reference_now) -> None:
    engine = AggregationEngine(stores.failing(fail_on={"users"}))
    labels = {"entity": "users", "reason": "error"}
    DATA_FETCH_FAILURE_COUNTER.labels(**labels)
    before = _sample(DATA_FETCH_FAILURE_COUNTER, "loyalty_data_fetch_failures_total", **labels)

    with pytest.raises(DataFetchError):
        asyncio.run(engine.compute_breakdown("lifetime", now=reference_now))

    after = _sample(DATA_FETCH_FAILURE_COUNTER, "loyalty_data_fetch_failures_total", **labels)
    assert after == before + 1


def test_traced_span_nests_under_current_span() -> None:
    initialise_tracing(service_name="unit-test-service", instrument_logging=False)
    tracer = trace.get_tracer(__name__)
    with tracer.start_as_current_span("parent") as parent:
        with traced_span("aggregation.test", window="yearly", dealer_id=None) as span:
            assert span.get_span_context().trace_id == parent.get_span_context().trace_id


def test_span_from_traceparent_links_context() -> None:
    initialise_tracing(service_name="unit-test-service", instrument_logging=False)
    tracer = trace.get_tracer(__name__)
    carrier: dict[str, str] = {}
    with tracer.start_as_current_span("parent"):
        TraceContextTextMapPropagator().inject(carrier)
    traceparent = carrier.get("traceparent")
    assert traceparent is not None

    with span_from_traceparent("child", traceparent) as span:
        assert span.get_span_context().trace_id == int(traceparent.split("-")[1], 16)
