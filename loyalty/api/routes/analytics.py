"""Dashboard analytics endpoints backed by the aggregation engine."""
from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status

from loyalty.api.deps import get_aggregation_engine
from loyalty.api.routes.auth import AuthenticatedActor, require_role
from loyalty.core.config import get_settings
from loyalty.core.errors import DataFetchError, InvalidRangeError, QueryTimeoutError, ScopeError
from loyalty.models.enums import UserRole
from loyalty.schemas import (
    AnalyticsSnapshotRead,
    BreakdownRead,
    BreakdownResponse,
    DealerPerformanceRead,
    PendingSummaryRead,
    PerformanceResponse,
    RollupRead,
    RollupResponse,
    ScopeRead,
    Segment,
    WindowRead,
)
from loyalty.services.aggregation import AggregationEngine
from loyalty.services.scopes import ActorRole, ScopeKind, scope_for_actor
from loyalty.services.windows import WindowKind, WindowSpec, resolve_window

router = APIRouter(prefix="/analytics")

_ANALYTICS_ROLES = (UserRole.ADMIN, UserRole.DEALER)


@contextmanager
def _engine_errors() -> Iterator[None]:
    try:
        yield
    except InvalidRangeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ScopeError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except DataFetchError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    except QueryTimeoutError as exc:
        raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=str(exc)) from exc


def _window_spec(window: WindowKind, start: date | None, end: date | None) -> WindowSpec:
    if window is WindowKind.CUSTOM:
        return WindowSpec(kind=WindowKind.CUSTOM, start=start, end=end)
    return WindowSpec.named(window)


def _actor_role(actor: AuthenticatedActor) -> ActorRole:
    # Sub-dealers countersign requests like dealers do.
    if actor.role is UserRole.ADMIN:
        return ActorRole.ADMIN
    return ActorRole.DEALER


def _dealer_id(actor: AuthenticatedActor) -> str | None:
    return None if actor.role is UserRole.ADMIN else actor.user_id


@router.get("/rollup", response_model=RollupResponse)
async def read_rollup(
    window: WindowKind = Query(default=WindowKind.CURRENT_MONTH),
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    scope: ScopeKind | None = Query(default=None),
    segment: Segment = Query(default="all"),
    engine: AggregationEngine = Depends(get_aggregation_engine),
    actor: AuthenticatedActor = Depends(require_role(*_ANALYTICS_ROLES)),
) -> RollupResponse:
    """Points and bags sold by one segment of the actor's scope."""

    settings = get_settings()
    with _engine_errors():
        spec = scope_for_actor(_actor_role(actor), scope, _dealer_id(actor))
        resolved_window = resolve_window(_window_spec(window, start, end))
        id_set, rollup = await engine.compute_scope_rollup(
            spec, resolved_window, segment, timeout=settings.analytics_timeout_seconds
        )

    return RollupResponse(
        window=WindowRead.model_validate(resolved_window),
        scope=ScopeRead.model_validate(spec),
        segment=segment,
        members=len(id_set),
        rollup=RollupRead.model_validate(rollup),
    )


@router.get("/snapshot", response_model=AnalyticsSnapshotRead)
async def read_snapshot(
    window: WindowKind = Query(default=WindowKind.CURRENT_MONTH),
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    scope: ScopeKind | None = Query(default=None),
    engine: AggregationEngine = Depends(get_aggregation_engine),
    actor: AuthenticatedActor = Depends(require_role(*_ANALYTICS_ROLES)),
) -> AnalyticsSnapshotRead:
    settings = get_settings()
    with _engine_errors():
        snapshot = await engine.compute_analytics(
            _actor_role(actor),
            scope,
            _window_spec(window, start, end),
            _dealer_id(actor),
            timeout=settings.analytics_timeout_seconds,
        )
    return AnalyticsSnapshotRead.model_validate(snapshot)


@router.get("/breakdown", response_model=BreakdownResponse)
async def read_breakdown(
    start: date | None = Query(default=None, description="Start of an extra custom window"),
    end: date | None = Query(default=None, description="End of an extra custom window"),
    engine: AggregationEngine = Depends(get_aggregation_engine),
    actor: AuthenticatedActor = Depends(require_role(UserRole.ADMIN)),
) -> BreakdownResponse:
    """Dealer / sub-dealer / total roll-ups for every dashboard window."""

    settings = get_settings()
    custom = None
    if start is not None or end is not None:
        custom = WindowSpec(kind=WindowKind.CUSTOM, start=start, end=end)
    with _engine_errors():
        breakdowns = await engine.compute_period_breakdowns(
            custom=custom, timeout=settings.analytics_timeout_seconds
        )
    return BreakdownResponse(breakdowns=[BreakdownRead.model_validate(item) for item in breakdowns])


@router.get("/performance", response_model=PerformanceResponse)
async def read_performance(
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    engine: AggregationEngine = Depends(get_aggregation_engine),
    actor: AuthenticatedActor = Depends(require_role(UserRole.DEALER, UserRole.SUB_DEALER)),
) -> PerformanceResponse:
    """Purchases countersigned by the calling dealer, per window."""

    settings = get_settings()
    custom = None
    if start is not None or end is not None:
        custom = WindowSpec(kind=WindowKind.CUSTOM, start=start, end=end)
    with _engine_errors():
        rows = await engine.compute_performance_table(
            actor.user_id, custom=custom, timeout=settings.analytics_timeout_seconds
        )
    return PerformanceResponse(
        dealer_id=actor.user_id,
        rows=[DealerPerformanceRead.model_validate(row) for row in rows],
    )


@router.get("/pending", response_model=PendingSummaryRead)
async def read_pending(
    engine: AggregationEngine = Depends(get_aggregation_engine),
    actor: AuthenticatedActor = Depends(
        require_role(UserRole.ADMIN, UserRole.DEALER, UserRole.SUB_DEALER)
    ),
) -> PendingSummaryRead:
    settings = get_settings()
    with _engine_errors():
        summary = await engine.compute_pending_summary(
            _actor_role(actor), _dealer_id(actor), timeout=settings.analytics_timeout_seconds
        )
    return PendingSummaryRead.model_validate(summary)


__all__ = ["read_breakdown", "read_pending", "read_performance", "read_rollup", "read_snapshot", "router"]
