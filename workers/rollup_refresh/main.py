"""Worker refreshing the admin dashboard roll-ups as Prometheus gauges."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime

from loyalty.core.config import get_settings
from loyalty.core.errors import DataFetchError, QueryTimeoutError
from loyalty.db.session import SessionLocal
from loyalty.db.store import SqlRecordStore
from loyalty.obs import report_rollup
from loyalty.services.aggregation import AggregationEngine, RollupBreakdown
from loyalty.workers.observability import configure_worker, worker_span

LOGGER = logging.getLogger(__name__)


def publish_breakdowns(breakdowns: list[RollupBreakdown]) -> None:
    for breakdown in breakdowns:
        window = breakdown.window.kind.value
        for segment, rollup in (
            ("dealer", breakdown.dealer),
            ("sub_dealer", breakdown.sub_dealer),
            ("total", breakdown.total),
        ):
            report_rollup(window, segment, bags=rollup.bags, points=rollup.points)


async def run_once(engine: AggregationEngine, *, now: datetime | None = None) -> list[RollupBreakdown]:
    """Compute and publish one refresh cycle."""

    with worker_span("rollup_refresh.cycle"):
        breakdowns = await engine.compute_period_breakdowns(now or datetime.now(tz=UTC))
        publish_breakdowns(breakdowns)
        LOGGER.info(
            "rollup refresh cycle complete",
            extra={"windows": [item.window.kind.value for item in breakdowns]},
        )
    return breakdowns


async def run() -> None:
    """Refresh the roll-ups at the configured cadence until stopped."""

    settings = get_settings()
    configure_worker("rollup-refresh-worker")
    engine = AggregationEngine(
        SqlRecordStore(SessionLocal),
        timeout=settings.query_timeout_seconds,
        top_n=settings.top_ranking_size,
    )
    interval = max(30, settings.rollup_refresh_interval_seconds)
    LOGGER.info("starting rollup refresh worker", extra={"interval_seconds": interval})
    while True:
        try:
            await run_once(engine)
        except (DataFetchError, QueryTimeoutError):
            # Gauges keep their last published values until a cycle succeeds.
            LOGGER.exception("rollup refresh cycle failed")
        await asyncio.sleep(interval)


def main() -> None:
    try:
        asyncio.run(run())
    except KeyboardInterrupt:  # pragma: no cover - manual shutdown
        LOGGER.info("rollup refresh worker stopped")


if __name__ == "__main__":
    main()
