from __future__ import annotations

import asyncio
from datetime import UTC, datetime

from loyalty.db.session import SessionLocal
from loyalty.db.store import SqlRecordStore
from loyalty.models import TransactionStatus, TransactionType, UserRole
from loyalty.services.aggregation import AggregationEngine, Rollup
from loyalty.services.records import QueryFilter
from loyalty.services.scopes import ScopeSpec
from loyalty.services.windows import WindowSpec


def test_reads_are_filtered_in_the_database(seed_user, seed_transaction) -> None:
    dealer = seed_user("dealer@example.com", UserRole.DEALER)
    sub_dealer = seed_user("sub@example.com", UserRole.SUB_DEALER, created_by=dealer.id)
    seed_transaction(dealer, 50, "10 OPC bags", created_at=datetime(2024, 3, 10, tzinfo=UTC))
    seed_transaction(sub_dealer, 30, "no tag", created_at=datetime(2024, 3, 11, tzinfo=UTC))
    seed_transaction(dealer, 90, "18 OPC bags", status=TransactionStatus.PENDING)
    seed_transaction(dealer, 500, "50 PPC bags", created_at=datetime(2023, 5, 1, tzinfo=UTC))

    store = SqlRecordStore(SessionLocal)
    march = QueryFilter(
        equals={"type": TransactionType.EARNED, "status": TransactionStatus.APPROVED},
        within={"user_id": {dealer.id, sub_dealer.id}},
        created_from=datetime(2024, 3, 1, tzinfo=UTC),
        created_to=datetime(2024, 3, 31, tzinfo=UTC),
    )

    transactions = asyncio.run(store.query_transactions(march))

    assert [t.amount for t in transactions] == [50, 30]
    assert all(t.created_at.tzinfo is not None for t in transactions)
    assert [t.bags for t in transactions] == [10, 3]


def test_empty_inclusion_set_matches_nothing(seed_user) -> None:
    seed_user("dealer@example.com", UserRole.DEALER)
    store = SqlRecordStore(SessionLocal)

    assert asyncio.run(store.query_users(QueryFilter(within={"id": frozenset()}))) == []


def test_null_equality_selects_top_level_users(seed_user) -> None:
    dealer = seed_user("dealer@example.com", UserRole.DEALER)
    seed_user("sub@example.com", UserRole.SUB_DEALER, created_by=dealer.id)
    store = SqlRecordStore(SessionLocal)

    users = asyncio.run(store.query_users(QueryFilter(equals={"created_by": None})))

    assert [user.id for user in users] == [dealer.id]


def test_engine_reconciles_against_the_database(seed_user, seed_transaction) -> None:
    dealer = seed_user("dealer@example.com", UserRole.DEALER)
    sub_dealer = seed_user("sub@example.com", UserRole.SUB_DEALER, created_by=dealer.id)
    seed_user("builder@example.com", UserRole.BUILDER)
    seed_transaction(dealer, 50, "10 OPC bags", created_at=datetime(2024, 2, 10, tzinfo=UTC))
    seed_transaction(sub_dealer, 200, "20 PPC bags", created_at=datetime(2024, 2, 12, tzinfo=UTC))
    seed_transaction(sub_dealer, 47, "legacy import", created_at=datetime(2024, 2, 13, tzinfo=UTC))

    engine = AggregationEngine(SqlRecordStore(SessionLocal), timeout=5)
    february = WindowSpec.custom("2024-02-01", "2024-02-29")

    async def scenario():
        members = await engine.resolve_scope(ScopeSpec.global_scope())
        breakdown = await engine.compute_breakdown(february)
        combined = await engine.compute_rollup(members.member_ids, february)
        return members, breakdown, combined

    members, breakdown, combined = asyncio.run(scenario())

    assert members.dealer_ids == {dealer.id}
    assert members.sub_dealer_ids == {sub_dealer.id}
    assert breakdown.dealer == Rollup(points=50, bags=10)
    assert breakdown.sub_dealer == Rollup(points=247, bags=24)
    assert breakdown.total == combined
