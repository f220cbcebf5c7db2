"""SQLAlchemy-backed implementation of the record store read contract."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from sqlalchemy import Select, false, select
from sqlalchemy.orm import Session

from loyalty.models import Reward, Transaction, User
from loyalty.services.records import QueryFilter, RewardRecord, TransactionRecord, UserRecord
from loyalty.services.windows import as_utc

logger = logging.getLogger(__name__)


def _apply_filter(statement: Select[Any], model: type[Any], query: QueryFilter) -> Select[Any]:
    for name, expected in query.equals.items():
        column = getattr(model, name)
        statement = statement.where(column.is_(None) if expected is None else column == expected)
    for name, allowed in query.within.items():
        values = list(allowed)
        if not values:
            # An empty inclusion set can never match.
            return statement.where(false())
        statement = statement.where(getattr(model, name).in_(values))
    if query.created_from is not None:
        statement = statement.where(model.created_at >= query.created_from)
    if query.created_to is not None:
        statement = statement.where(model.created_at <= query.created_to)
    return statement


def _user_record(user: User) -> UserRecord:
    return UserRecord(
        id=user.id,
        role=user.role,
        created_at=as_utc(user.created_at),
        created_by=user.created_by,
        district=user.district or "",
        points=user.points or 0,
        first_name=user.first_name or "",
        last_name=user.last_name or "",
    )


def _transaction_record(transaction: Transaction) -> TransactionRecord:
    return TransactionRecord(
        id=transaction.id,
        user_id=transaction.user_id,
        type=transaction.type,
        amount=transaction.amount,
        description=transaction.description or "",
        status=transaction.status,
        created_at=as_utc(transaction.created_at),
        dealer_id=transaction.dealer_id,
        reward_id=transaction.reward_id,
    )


def _reward_record(reward: Reward) -> RewardRecord:
    return RewardRecord(
        id=reward.id,
        title=reward.title,
        points_required=reward.points_required,
        available=reward.available,
        expiry_date=reward.expiry_date,
    )


class SqlRecordStore:
    """Runs each read in its own session on a worker thread.

    ``created_at`` bounds are compared in the database; naive timestamps read
    back from SQLite are treated as UTC.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def _select(self, model: type[Any], query: QueryFilter, convert: Callable[[Any], Any]) -> list[Any]:
        statement = _apply_filter(select(model), model, query).order_by(model.created_at, model.id)
        session = self._session_factory()
        try:
            rows = session.scalars(statement).all()
            logger.debug("record store read", extra={"table": model.__tablename__, "rows": len(rows)})
            return [convert(row) for row in rows]
        finally:
            session.close()

    async def query_users(self, query: QueryFilter) -> list[UserRecord]:
        return await asyncio.to_thread(self._select, User, query, _user_record)

    async def query_transactions(self, query: QueryFilter) -> list[TransactionRecord]:
        return await asyncio.to_thread(self._select, Transaction, query, _transaction_record)

    async def query_rewards(self, query: QueryFilter) -> list[RewardRecord]:
        return await asyncio.to_thread(self._select, Reward, query, _reward_record)


__all__ = ["SqlRecordStore"]
