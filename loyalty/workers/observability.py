"""Shared observability helpers for worker processes."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

from opentelemetry.trace import Span

from loyalty.core.config import get_settings
from loyalty.core.logging import configure_logging
from loyalty.obs import initialise_tracing, span_from_traceparent


def configure_worker(service_name: str) -> None:
    """Configure logging and, when enabled, tracing for a worker service."""

    settings = get_settings()
    configure_logging(settings.log_config_path, level=settings.log_level)
    if settings.enable_tracing:
        initialise_tracing(
            service_name=service_name,
            endpoint=settings.otel_exporter_endpoint,
            instrument_logging=False,
        )


@contextmanager
def worker_span(name: str, traceparent: str | None = None, **attributes: Any) -> Iterator[Span]:
    """Context manager that starts a worker span and attaches optional attributes."""

    with span_from_traceparent(name, traceparent, **attributes) as span:
        yield span


__all__ = ["configure_worker", "worker_span"]
