"""Optional read-through cache for record store queries."""
from __future__ import annotations

import logging
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable, Hashable
from threading import Lock
from typing import Any, Protocol, TypeVar

from loyalty.services.records import (
    QueryFilter,
    RecordStore,
    RewardRecord,
    TransactionRecord,
    UserRecord,
)

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


class QueryCache(Protocol):
    def get(self, key: Hashable) -> Any | None: ...

    def set(self, key: Hashable, value: Any, ttl: float | None = None) -> None: ...

    def evict(self, key: Hashable | None = None) -> None: ...


class TTLQueryCache:
    """Thread-safe, size-bounded cache whose entries expire after a TTL.

    The least recently used entry is dropped once ``max_entries`` is reached.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float = 60.0,
        max_entries: int = 256,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[Hashable, tuple[float, Any]] = OrderedDict()
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: Hashable) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return value

    def set(self, key: Hashable, value: Any, ttl: float | None = None) -> None:
        lifetime = self._ttl if ttl is None else ttl
        if lifetime <= 0:
            return
        with self._lock:
            self._entries[key] = (self._clock() + lifetime, value)
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

    def evict(self, key: Hashable | None = None) -> None:
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)


class CachingRecordStore:
    """Wrap a :class:`RecordStore` and memoise successful reads by filter.

    Results are stored as tuples so cached values cannot be mutated by callers.
    Exceptions propagate untouched and leave the cache unchanged.
    """

    def __init__(self, store: RecordStore, cache: QueryCache, *, ttl: float | None = None) -> None:
        self._store = store
        self._cache = cache
        self._ttl = ttl

    @property
    def cache(self) -> QueryCache:
        return self._cache

    async def _read(
        self, entity: str, query: QueryFilter, load: Callable[[QueryFilter], Awaitable[list[_T]]]
    ) -> list[_T]:
        key = (entity, query.cache_key())
        cached = self._cache.get(key)
        if cached is not None:
            return list(cached)
        records = await load(query)
        self._cache.set(key, tuple(records), self._ttl)
        logger.debug("Cached record store read", extra={"entity": entity, "records": len(records)})
        return list(records)

    async def query_users(self, query: QueryFilter) -> list[UserRecord]:
        return await self._read("users", query, self._store.query_users)

    async def query_transactions(self, query: QueryFilter) -> list[TransactionRecord]:
        return await self._read("transactions", query, self._store.query_transactions)

    async def query_rewards(self, query: QueryFilter) -> list[RewardRecord]:
        return await self._read("rewards", query, self._store.query_rewards)

    def invalidate(self) -> None:
        """Drop every cached read, e.g. after a write to the underlying store."""
        self._cache.evict()


__all__ = ["CachingRecordStore", "QueryCache", "TTLQueryCache"]
