"""Scoped bag/point roll-ups and dashboard analytics.

The engine only reads through a :class:`~loyalty.services.records.RecordStore`.
Independent reads are fanned out concurrently; every read is bounded by the
engine's per-query timeout and each public operation may additionally be
bounded as a whole.  Failures are never turned into partial results.
"""
from __future__ import annotations

import asyncio
import logging
from collections import Counter, defaultdict
from collections.abc import Awaitable, Callable, Collection, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, TypeVar

from loyalty.core.errors import DataFetchError, QueryTimeoutError
from loyalty.models.enums import (
    AWAITING_STATUSES,
    EXCLUDED_STATUSES,
    SETTLED_STATUSES,
    TransactionStatus,
    TransactionType,
    UserRole,
)
from loyalty.obs.metrics import AGGREGATION_LATENCY_SECONDS, report_fetch_failure
from loyalty.obs.tracing import traced_span
from loyalty.services.records import QueryFilter, RecordStore, TransactionRecord
from loyalty.services.scopes import (
    ActorRole,
    ResolvedScope,
    ScopeKind,
    ScopeSpec,
    countersign_filter,
    partition_members,
    performance_filter,
    population_filter,
    scope_for_actor,
)
from loyalty.services.windows import (
    CANONICAL_WINDOWS,
    TimeWindow,
    WindowKind,
    WindowSpec,
    as_utc,
    resolve_window,
)

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

WindowInput = TimeWindow | WindowSpec | WindowKind | str

_REPORTED_ROLES = (UserRole.DEALER, UserRole.SUB_DEALER, UserRole.CONTRACTOR, UserRole.BUILDER)

_SEGMENTS: dict[str, Callable[[ResolvedScope], frozenset[str]]] = {
    "dealer": lambda members: members.dealer_ids,
    "sub_dealer": lambda members: members.sub_dealer_ids,
    "all": lambda members: members.member_ids,
}


@dataclass(frozen=True, slots=True)
class Rollup:
    points: int = 0
    bags: int = 0

    def __add__(self, other: "Rollup") -> "Rollup":
        if not isinstance(other, Rollup):
            return NotImplemented
        return Rollup(points=self.points + other.points, bags=self.bags + other.bags)

    @classmethod
    def of(cls, transactions: Iterable[TransactionRecord]) -> "Rollup":
        points = 0
        bags = 0
        for transaction in transactions:
            points += transaction.amount
            bags += transaction.bags
        return cls(points=points, bags=bags)


@dataclass(frozen=True, slots=True)
class RollupBreakdown:
    """Dealer and sub-dealer roll-ups computed from one fetch."""

    window: TimeWindow
    dealer: Rollup
    sub_dealer: Rollup

    @property
    def total(self) -> Rollup:
        return self.dealer + self.sub_dealer


@dataclass(frozen=True, slots=True)
class DealerRanking:
    dealer_id: str
    name: str
    role: UserRole
    bags: int
    points: int


@dataclass(frozen=True, slots=True)
class RewardRanking:
    reward_id: str
    title: str
    redemptions: int


@dataclass(frozen=True, slots=True)
class AnalyticsSnapshot:
    period: str
    window: TimeWindow
    scope: ScopeSpec
    total_users: int
    active_users: int
    new_users: int
    total_transactions: int
    total_points_issued: int
    total_bags_sold: int
    total_rewards_redeemed: int
    engagement_rate: int
    top_dealers: tuple[DealerRanking, ...] = ()
    top_rewards: tuple[RewardRanking, ...] = ()
    role_counts: Mapping[str, int] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class PendingSummary:
    """Requests still waiting on a countersignature, an approval or dispatch."""

    earned_requests: int
    points_awaiting: int
    redemption_requests: int
    awaiting_dispatch: int


@dataclass(frozen=True, slots=True)
class DealerPerformance:
    dealer_id: str
    window: TimeWindow
    bags: int
    points: int
    transactions: int
    unique_customers: int


def engagement_rate(active_users: int, total_users: int) -> int:
    """Percentage of active users, rounded half up; 0 when there are no users."""

    if total_users <= 0:
        return 0
    ratio = Decimal(active_users) * 100 / Decimal(total_users)
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _is_settled_earning(transaction: TransactionRecord) -> bool:
    return transaction.type is TransactionType.EARNED and transaction.status is TransactionStatus.APPROVED


def _is_settled_redemption(transaction: TransactionRecord) -> bool:
    return transaction.type is TransactionType.REDEEMED and transaction.status in SETTLED_STATUSES


def rollup_filter(id_set: Collection[str], window: TimeWindow) -> QueryFilter:
    """Approved earnings of ``id_set`` created inside ``window``."""
    return QueryFilter.for_window(
        window,
        equals={"type": TransactionType.EARNED, "status": TransactionStatus.APPROVED},
        within={"user_id": frozenset(id_set)},
    )


def _settled_earnings_filter(window: TimeWindow) -> QueryFilter:
    return QueryFilter.for_window(
        window,
        equals={"type": TransactionType.EARNED, "status": TransactionStatus.APPROVED},
    )


class AggregationEngine:
    """Computes roll-ups and analytics snapshots for a record store.

    The engine holds no per-call state; one instance can serve concurrent
    callers.  ``timeout`` bounds each individual store read.
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        timeout: float | None = None,
        clock: Callable[[], datetime] | None = None,
        top_n: int = 5,
    ) -> None:
        self._store = store
        self._timeout = timeout
        self._clock = clock or (lambda: datetime.now(UTC))
        self._top_n = top_n

    @property
    def store(self) -> RecordStore:
        return self._store

    def _now(self, now: datetime | None) -> datetime:
        return as_utc(now if now is not None else self._clock())

    def _window(self, window: WindowInput, now: datetime | None) -> TimeWindow:
        if isinstance(window, TimeWindow):
            return window
        return resolve_window(window, self._now(now))

    async def _fetch(self, entity: str, call: Awaitable[_T]) -> _T:
        try:
            async with asyncio.timeout(self._timeout):
                return await call
        except (DataFetchError, QueryTimeoutError) as exc:
            report_fetch_failure(exc.entity, type(exc).__name__)
            raise
        except TimeoutError as exc:
            report_fetch_failure(entity, "timeout")
            logger.warning("Record store query timed out", extra={"entity": entity, "timeout": self._timeout})
            raise QueryTimeoutError(entity, self._timeout) from exc
        except Exception as exc:
            report_fetch_failure(entity, "error")
            logger.warning("Record store query failed", extra={"entity": entity, "error": repr(exc)})
            raise DataFetchError(entity, str(exc) or type(exc).__name__) from exc

    async def _gather(self, *calls: Awaitable[Any]) -> list[Any]:
        """Run ``calls`` concurrently; the first failure cancels the rest."""

        tasks = [asyncio.ensure_future(call) for call in calls]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _bounded(
        self, operation: str, call: Awaitable[_T], timeout: float | None, **attributes: Any
    ) -> _T:
        with AGGREGATION_LATENCY_SECONDS.labels(operation=operation).time(), traced_span(
            f"aggregation.{operation}", timeout=timeout, **attributes
        ):
            try:
                async with asyncio.timeout(timeout):
                    return await call
            except QueryTimeoutError:
                raise
            except TimeoutError as exc:
                logger.warning("Aggregation timed out", extra={"operation": operation, "timeout": timeout})
                raise QueryTimeoutError(operation, timeout) from exc

    async def _resolve(self, scope: ScopeSpec) -> ResolvedScope:
        users = await self._fetch("users", self._store.query_users(population_filter(scope)))
        return partition_members(scope, users)

    async def resolve_scope(self, scope: ScopeSpec, *, timeout: float | None = None) -> ResolvedScope:
        """Fetch the members of ``scope`` and split them into dealer/sub-dealer id-sets."""
        return await self._bounded("resolve_scope", self._resolve(scope), timeout)

    async def compute_rollup(
        self,
        id_set: Collection[str],
        window: WindowInput,
        *,
        now: datetime | None = None,
        timeout: float | None = None,
    ) -> Rollup:
        """Sum approved earned points and their bag equivalent for ``id_set``.

        Raises
        ------
        InvalidRangeError
            Before any query, when a custom window is inverted.
        DataFetchError, QueryTimeoutError
            When the transactions read fails or exceeds its bound.
        """

        resolved = self._window(window, now)
        ids = frozenset(id_set)
        if not ids:
            return Rollup()

        async def run() -> Rollup:
            transactions = await self._fetch(
                "transactions", self._store.query_transactions(rollup_filter(ids, resolved))
            )
            return Rollup.of(transactions)

        return await self._bounded("rollup", run(), timeout)

    async def compute_scope_rollup(
        self,
        scope: ScopeSpec,
        window: WindowInput,
        segment: str = "all",
        *,
        now: datetime | None = None,
        timeout: float | None = None,
    ) -> tuple[frozenset[str], Rollup]:
        """Resolve ``scope`` and roll up one of its segments under a single bound.

        ``segment`` is ``"dealer"``, ``"sub_dealer"`` or ``"all"``.  Returns the
        id-set that was rolled up together with its totals.
        """

        resolved = self._window(window, now)
        if segment not in _SEGMENTS:
            raise ValueError(f"Unknown segment '{segment}'")

        async def run() -> tuple[frozenset[str], Rollup]:
            members = await self._resolve(scope)
            ids = _SEGMENTS[segment](members)
            if not ids:
                return ids, Rollup()
            transactions = await self._fetch(
                "transactions", self._store.query_transactions(rollup_filter(ids, resolved))
            )
            return ids, Rollup.of(transactions)

        return await self._bounded("scope_rollup", run(), timeout, scope=scope.kind, segment=segment)

    async def _breakdowns(self, windows: list[TimeWindow]) -> list[RollupBreakdown]:
        resolved, *per_window = await self._gather(
            self._resolve(ScopeSpec.global_scope()),
            *(
                self._fetch("transactions", self._store.query_transactions(_settled_earnings_filter(window)))
                for window in windows
            ),
        )
        breakdowns = []
        for window, transactions in zip(windows, per_window):
            breakdowns.append(
                RollupBreakdown(
                    window=window,
                    dealer=Rollup.of(t for t in transactions if t.user_id in resolved.dealer_ids),
                    sub_dealer=Rollup.of(t for t in transactions if t.user_id in resolved.sub_dealer_ids),
                )
            )
        return breakdowns

    async def compute_breakdown(
        self,
        window: WindowInput,
        *,
        now: datetime | None = None,
        timeout: float | None = None,
    ) -> RollupBreakdown:
        """Dealer / sub-dealer / total roll-up for the admin view of one window."""

        resolved = self._window(window, now)
        (breakdown,) = await self._bounded("breakdown", self._breakdowns([resolved]), timeout)
        return breakdown

    async def compute_period_breakdowns(
        self,
        now: datetime | None = None,
        custom: WindowSpec | None = None,
        *,
        timeout: float | None = None,
    ) -> list[RollupBreakdown]:
        """Breakdowns for every canonical window, plus ``custom`` when given."""

        current = self._now(now)
        windows = [resolve_window(kind, current) for kind in CANONICAL_WINDOWS]
        if custom is not None:
            windows.append(resolve_window(custom, current))
        return await self._bounded("period_breakdowns", self._breakdowns(windows), timeout)

    async def compute_analytics(
        self,
        actor_role: ActorRole | str,
        scope: ScopeSpec | ScopeKind | str | None,
        window: WindowInput,
        dealer_id: str | None = None,
        *,
        now: datetime | None = None,
        timeout: float | None = None,
    ) -> AnalyticsSnapshot:
        """Cross-sectional analytics for the actor's scope over ``window``.

        Scope and window are validated before any read is issued.
        """

        if isinstance(scope, ScopeSpec):
            spec = scope_for_actor(actor_role, scope.kind, scope.dealer_id or dealer_id)
        else:
            spec = scope_for_actor(actor_role, scope, dealer_id)
        resolved_window = self._window(window, now)

        async def run() -> AnalyticsSnapshot:
            members, rewards = await self._gather(
                self._resolve(spec),
                self._fetch("rewards", self._store.query_rewards(QueryFilter())),
            )
            transactions: list[TransactionRecord] = []
            if members.member_ids:
                transactions = await self._fetch(
                    "transactions",
                    self._store.query_transactions(
                        QueryFilter.for_window(resolved_window, within={"user_id": members.member_ids})
                    ),
                )
            return self._snapshot(spec, resolved_window, members, transactions, rewards)

        return await self._bounded(
            "analytics", run(), timeout, scope=spec.kind, dealer_id=spec.dealer_id, window=resolved_window.kind
        )

    def _snapshot(
        self,
        spec: ScopeSpec,
        window: TimeWindow,
        members: ResolvedScope,
        transactions: list[TransactionRecord],
        rewards: Iterable[Any],
    ) -> AnalyticsSnapshot:
        counted = [t for t in transactions if t.status not in EXCLUDED_STATUSES]
        earnings = [t for t in transactions if _is_settled_earning(t)]
        redemptions = [t for t in transactions if _is_settled_redemption(t)]

        total_users = len(members.member_ids)
        active_users = len({t.user_id for t in counted})
        totals = Rollup.of(earnings)

        role_counts = Counter(user.role.value for user in members.population)
        return AnalyticsSnapshot(
            period=window.label,
            window=window,
            scope=spec,
            total_users=total_users,
            active_users=active_users,
            new_users=sum(1 for user in members.users if window.contains(user.created_at)),
            total_transactions=len(counted),
            total_points_issued=totals.points,
            total_bags_sold=totals.bags,
            total_rewards_redeemed=len(redemptions),
            engagement_rate=engagement_rate(active_users, total_users),
            top_dealers=self._rank_dealers(members, earnings),
            top_rewards=self._rank_rewards(redemptions, rewards),
            role_counts={role.value: role_counts.get(role.value, 0) for role in _REPORTED_ROLES},
        )

    def _rank_dealers(
        self, members: ResolvedScope, earnings: Iterable[TransactionRecord]
    ) -> tuple[DealerRanking, ...]:
        by_user: dict[str, list[TransactionRecord]] = defaultdict(list)
        for transaction in earnings:
            if transaction.user_id in members.member_ids:
                by_user[transaction.user_id].append(transaction)

        users = {user.id: user for user in members.users}
        rankings = []
        for user_id, transactions in by_user.items():
            rollup = Rollup.of(transactions)
            user = users.get(user_id)
            rankings.append(
                DealerRanking(
                    dealer_id=user_id,
                    name=user.display_name if user else user_id,
                    role=user.role if user else UserRole.DEALER,
                    bags=rollup.bags,
                    points=rollup.points,
                )
            )
        rankings.sort(key=lambda ranking: (-ranking.bags, ranking.dealer_id))
        return tuple(rankings[: self._top_n])

    def _rank_rewards(
        self, redemptions: Iterable[TransactionRecord], rewards: Iterable[Any]
    ) -> tuple[RewardRanking, ...]:
        counts = Counter(t.reward_id for t in redemptions if t.reward_id is not None)
        titles = {reward.id: reward.title for reward in rewards}
        ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        return tuple(
            RewardRanking(reward_id=reward_id, title=titles.get(reward_id, reward_id), redemptions=count)
            for reward_id, count in ordered[: self._top_n]
        )

    async def compute_pending_summary(
        self,
        actor_role: ActorRole | str,
        dealer_id: str | None = None,
        *,
        timeout: float | None = None,
    ) -> PendingSummary:
        """Count the requests waiting on ``actor_role``, regardless of age."""

        base = countersign_filter(actor_role, dealer_id)
        earned_filter = base.narrow(equals={"type": TransactionType.EARNED}, within={"status": AWAITING_STATUSES})
        redeemed_filter = base.narrow(
            equals={"type": TransactionType.REDEEMED},
            within={"status": frozenset({TransactionStatus.PENDING, TransactionStatus.APPROVED})},
        )

        async def run() -> PendingSummary:
            earned, redeemed = await self._gather(
                self._fetch("transactions", self._store.query_transactions(earned_filter)),
                self._fetch("transactions", self._store.query_transactions(redeemed_filter)),
            )
            return PendingSummary(
                earned_requests=len(earned),
                points_awaiting=sum(t.amount for t in earned),
                redemption_requests=sum(1 for t in redeemed if t.status is TransactionStatus.PENDING),
                awaiting_dispatch=len(redeemed),
            )

        return await self._bounded("pending_summary", run(), timeout)

    async def _performance(self, dealer_id: str, window: TimeWindow) -> DealerPerformance:
        query = performance_filter(dealer_id).narrow(equals={"status": TransactionStatus.APPROVED}, window=window)
        transactions = await self._fetch("transactions", self._store.query_transactions(query))
        rollup = Rollup.of(transactions)
        return DealerPerformance(
            dealer_id=dealer_id,
            window=window,
            bags=rollup.bags,
            points=rollup.points,
            transactions=len(transactions),
            unique_customers=len({t.user_id for t in transactions}),
        )

    async def compute_dealer_performance(
        self,
        dealer_id: str,
        window: WindowInput,
        *,
        now: datetime | None = None,
        timeout: float | None = None,
    ) -> DealerPerformance:
        """Approved purchases countersigned by ``dealer_id`` in one window."""

        resolved = self._window(window, now)
        return await self._bounded("dealer_performance", self._performance(dealer_id, resolved), timeout)

    async def compute_performance_table(
        self,
        dealer_id: str,
        now: datetime | None = None,
        custom: WindowSpec | None = None,
        *,
        timeout: float | None = None,
    ) -> list[DealerPerformance]:
        current = self._now(now)
        windows = [resolve_window(kind, current) for kind in CANONICAL_WINDOWS]
        if custom is not None:
            windows.append(resolve_window(custom, current))

        async def run() -> list[DealerPerformance]:
            return await self._gather(*(self._performance(dealer_id, window) for window in windows))

        return await self._bounded("performance_table", run(), timeout)


__all__ = [
    "AggregationEngine",
    "AnalyticsSnapshot",
    "DealerPerformance",
    "DealerRanking",
    "PendingSummary",
    "RewardRanking",
    "Rollup",
    "RollupBreakdown",
    "engagement_rate",
    "rollup_filter",
]
