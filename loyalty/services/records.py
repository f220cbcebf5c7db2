"""Backend-agnostic record types and the read contract of the record store."""
from __future__ import annotations

from collections.abc import Collection, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Protocol

from loyalty.models.enums import TransactionStatus, TransactionType, UserRole
from loyalty.services.conversion import bags_from_transaction
from loyalty.services.windows import TimeWindow, as_utc


@dataclass(frozen=True, slots=True)
class UserRecord:
    id: str
    role: UserRole
    created_at: datetime
    created_by: str | None = None
    district: str = ""
    points: int = 0
    first_name: str = ""
    last_name: str = ""

    @property
    def display_name(self) -> str:
        name = f"{self.first_name} {self.last_name}".strip()
        return name or self.id


@dataclass(frozen=True, slots=True)
class TransactionRecord:
    id: str
    user_id: str
    type: TransactionType
    amount: int
    description: str
    status: TransactionStatus
    created_at: datetime
    dealer_id: str | None = None
    reward_id: str | None = None

    @property
    def bags(self) -> int:
        """Bag equivalent; always derived, never stored."""
        return bags_from_transaction(self.description, self.amount)


@dataclass(frozen=True, slots=True)
class RewardRecord:
    id: str
    title: str
    points_required: int
    available: bool = True
    expiry_date: date | None = None


@dataclass(frozen=True, slots=True)
class QueryFilter:
    """Equality, inclusion and ``created_at`` range filters on record fields."""

    equals: Mapping[str, Any] = field(default_factory=dict)
    within: Mapping[str, Collection[Any]] = field(default_factory=dict)
    created_from: datetime | None = None
    created_to: datetime | None = None

    @classmethod
    def for_window(cls, window: TimeWindow, **kwargs: Any) -> "QueryFilter":
        return cls(created_from=window.start, created_to=window.end, **kwargs)

    def narrow(
        self,
        *,
        equals: Mapping[str, Any] | None = None,
        within: Mapping[str, Collection[Any]] | None = None,
        window: TimeWindow | None = None,
    ) -> "QueryFilter":
        """Return a copy with extra conditions ANDed on."""
        created_from, created_to = self.created_from, self.created_to
        if window is not None:
            created_from, created_to = window.start, window.end
        return QueryFilter(
            equals={**self.equals, **(equals or {})},
            within={**self.within, **(within or {})},
            created_from=created_from,
            created_to=created_to,
        )

    def matches(self, record: Any) -> bool:
        for name, expected in self.equals.items():
            if getattr(record, name) != expected:
                return False
        for name, allowed in self.within.items():
            if getattr(record, name) not in allowed:
                return False
        if self.created_from is None and self.created_to is None:
            return True
        created_at = as_utc(record.created_at)
        if self.created_from is not None and created_at < as_utc(self.created_from):
            return False
        if self.created_to is not None and created_at > as_utc(self.created_to):
            return False
        return True

    def cache_key(self) -> tuple[Any, ...]:
        return (
            tuple(sorted((name, _freeze(value)) for name, value in self.equals.items())),
            tuple(
                sorted((name, tuple(sorted(map(_freeze, values)))) for name, values in self.within.items())
            ),
            self.created_from.isoformat() if self.created_from else None,
            self.created_to.isoformat() if self.created_to else None,
        )


def _freeze(value: Any) -> str:
    return str(getattr(value, "value", value))


class RecordStore(Protocol):
    """Read contract the aggregation engine needs from the data store.

    Implementations are awaited under the engine's timeout and must tolerate
    cancellation of an in-flight call.
    """

    async def query_users(self, query: QueryFilter) -> list[UserRecord]: ...

    async def query_transactions(self, query: QueryFilter) -> list[TransactionRecord]: ...

    async def query_rewards(self, query: QueryFilter) -> list[RewardRecord]: ...


__all__ = [
    "QueryFilter",
    "RecordStore",
    "RewardRecord",
    "TransactionRecord",
    "UserRecord",
]
