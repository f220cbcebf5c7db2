from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Iterator
from datetime import UTC, datetime
from threading import Lock
from types import SimpleNamespace
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from loyalty.api.routes.auth import encode_actor_token
from loyalty.db.session import SessionLocal, engine
from loyalty.main import app
from loyalty.models import Base, Reward, Transaction, TransactionStatus, TransactionType, User, UserRole
from loyalty.services.records import QueryFilter, RewardRecord, TransactionRecord, UserRecord

REFERENCE_NOW = datetime(2024, 3, 15, 12, 0, tzinfo=UTC)


class InMemoryRecordStore:
    """Record store stub that filters in Python and logs every query."""

    def __init__(
        self,
        users: Iterable[UserRecord] = (),
        transactions: Iterable[TransactionRecord] = (),
        rewards: Iterable[RewardRecord] = (),
    ) -> None:
        self.users = list(users)
        self.transactions = list(transactions)
        self.rewards = list(rewards)
        self.calls: list[tuple[str, QueryFilter]] = []
        self._lock = Lock()

    def _record(self, entity: str, query: QueryFilter) -> None:
        with self._lock:
            self.calls.append((entity, query))

    def entities_queried(self) -> list[str]:
        with self._lock:
            return [entity for entity, _ in self.calls]

    async def _read(self, entity: str, query: QueryFilter, records: list) -> list:
        self._record(entity, query)
        await asyncio.sleep(0)
        return [record for record in records if query.matches(record)]

    async def query_users(self, query: QueryFilter) -> list[UserRecord]:
        return await self._read("users", query, self.users)

    async def query_transactions(self, query: QueryFilter) -> list[TransactionRecord]:
        return await self._read("transactions", query, self.transactions)

    async def query_rewards(self, query: QueryFilter) -> list[RewardRecord]:
        return await self._read("rewards", query, self.rewards)


class FailingRecordStore(InMemoryRecordStore):
    """Raises for the configured entities and serves the rest normally."""

    def __init__(self, *args: object, fail_on: Iterable[str] = (), **kwargs: object) -> None:
        super().__init__(*args, **kwargs)  # type: ignore[arg-type]
        self.fail_on = set(fail_on)

    async def _read(self, entity: str, query: QueryFilter, records: list) -> list:
        if entity in self.fail_on:
            self._record(entity, query)
            raise ConnectionError(f"{entity} backend unavailable")
        return await super()._read(entity, query, records)


class SlowRecordStore(InMemoryRecordStore):
    """Delays selected entities and notes which reads were cancelled."""

    def __init__(self, *args: object, delays: dict[str, float] | None = None, **kwargs: object) -> None:
        super().__init__(*args, **kwargs)  # type: ignore[arg-type]
        self.delays = delays or {}
        self.cancelled: list[str] = []
        self.started: asyncio.Event | None = None

    async def _read(self, entity: str, query: QueryFilter, records: list) -> list:
        delay = self.delays.get(entity, 0.0)
        if delay:
            if self.started is not None:
                self.started.set()
            try:
                await asyncio.sleep(delay)
            except asyncio.CancelledError:
                self.cancelled.append(entity)
                raise
        return await super()._read(entity, query, records)


@pytest.fixture()
def stores() -> SimpleNamespace:
    return SimpleNamespace(
        memory=InMemoryRecordStore,
        failing=FailingRecordStore,
        slow=SlowRecordStore,
    )


@pytest.fixture()
def make_user() -> Callable[..., UserRecord]:
    def factory(
        user_id: str,
        role: UserRole = UserRole.DEALER,
        *,
        created_at: datetime = datetime(2023, 6, 1, tzinfo=UTC),
        created_by: str | None = None,
        first_name: str = "",
        last_name: str = "",
    ) -> UserRecord:
        return UserRecord(
            id=user_id,
            role=role,
            created_at=created_at,
            created_by=created_by,
            first_name=first_name,
            last_name=last_name,
        )

    return factory


@pytest.fixture()
def make_transaction() -> Callable[..., TransactionRecord]:
    def factory(
        user_id: str,
        amount: int,
        description: str = "",
        *,
        type_: TransactionType = TransactionType.EARNED,
        status: TransactionStatus = TransactionStatus.APPROVED,
        created_at: datetime = REFERENCE_NOW,
        dealer_id: str | None = None,
        reward_id: str | None = None,
    ) -> TransactionRecord:
        return TransactionRecord(
            id=uuid4().hex,
            user_id=user_id,
            type=type_,
            amount=amount,
            description=description,
            status=status,
            created_at=created_at,
            dealer_id=dealer_id,
            reward_id=reward_id,
        )

    return factory


@pytest.fixture()
def reference_now() -> datetime:
    return REFERENCE_NOW


@pytest.fixture()
def db_session() -> Iterator[Session]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture()
def seed_user(db_session: Session) -> Callable[..., User]:
    def factory(
        email: str,
        role: UserRole,
        *,
        points: int = 0,
        created_by: str | None = None,
        first_name: str = "",
        last_name: str = "",
    ) -> User:
        user = User(
            email=email,
            role=role,
            points=points,
            created_by=created_by,
            first_name=first_name,
            last_name=last_name,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return factory


@pytest.fixture()
def seed_reward(db_session: Session) -> Callable[..., Reward]:
    def factory(title: str, points_required: int, **fields: object) -> Reward:
        reward = Reward(title=title, points_required=points_required, **fields)
        db_session.add(reward)
        db_session.commit()
        return reward

    return factory


@pytest.fixture()
def seed_transaction(db_session: Session) -> Callable[..., Transaction]:
    def factory(user: User, amount: int, description: str, **fields: object) -> Transaction:
        fields.setdefault("type", TransactionType.EARNED)
        fields.setdefault("status", TransactionStatus.APPROVED)
        transaction = Transaction(user_id=user.id, amount=amount, description=description, **fields)
        db_session.add(transaction)
        db_session.commit()
        return transaction

    return factory


@pytest.fixture()
def client(db_session: Session) -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers() -> Callable[[User], dict[str, str]]:
    def factory(user: User) -> dict[str, str]:
        token = encode_actor_token(user.id, user.role)
        return {"Authorization": f"Bearer {token}"}

    return factory
