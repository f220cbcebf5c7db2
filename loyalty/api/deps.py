"""Common dependencies for API routes."""
from __future__ import annotations

from collections.abc import Iterator
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from loyalty.core.config import get_settings
from loyalty.db.session import SessionLocal
from loyalty.db.store import SqlRecordStore
from loyalty.services.aggregation import AggregationEngine
from loyalty.services.cache import CachingRecordStore, TTLQueryCache
from loyalty.services.records import RecordStore


def get_db_session() -> Iterator[Session]:
    """Yield a database session for FastAPI dependencies."""

    session: Session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@lru_cache
def get_query_cache() -> TTLQueryCache:
    settings = get_settings()
    return TTLQueryCache(
        ttl_seconds=settings.analytics_cache_ttl_seconds,
        max_entries=settings.analytics_cache_max_entries,
    )


def get_record_store() -> RecordStore:
    """Return the SQL record store, wrapped in the read cache when enabled."""

    settings = get_settings()
    store = SqlRecordStore(SessionLocal)
    if not settings.analytics_cache_enabled:
        return store
    return CachingRecordStore(store, get_query_cache())


def get_aggregation_engine(store: RecordStore = Depends(get_record_store)) -> AggregationEngine:
    settings = get_settings()
    return AggregationEngine(
        store,
        timeout=settings.query_timeout_seconds,
        top_n=settings.top_ranking_size,
    )


def invalidate_cached_reads() -> None:
    """Drop cached reads after a write so dashboards see the new state."""
    get_query_cache().evict()


__all__ = [
    "get_aggregation_engine",
    "get_db_session",
    "get_query_cache",
    "get_record_store",
    "invalidate_cached_reads",
]
