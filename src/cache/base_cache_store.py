# src/cache/base_cache_store.py - v1
"""Abstract cache store interface.

Two logical tables keyed by identity hash: cache records (resolved results)
and search history (data-free counters). Every mutating method must be a
single atomic upsert/increment so concurrent hits never lose updates.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from contactcache.cache.models import (
    CacheRecord,
    EnrichmentResult,
    PurgeResult,
    SearchHistoryRecord,
    SearchOutcome,
)


class StoreUnavailableError(Exception):
    """The backing store could not be read or written."""

    def __init__(self, backend: str, operation: str, cause: Exception | None = None):
        self.backend = backend
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{backend} store unavailable during {operation}{detail}")


class BaseCacheStore(ABC):
    """Unified interface for cache storage backends."""

    backend_name: str = "base"

    @abstractmethod
    async def get(self, identity_hash: str) -> CacheRecord | None:
        """Retrieve the cache record for an identity hash."""

    @abstractmethod
    async def put(
        self,
        identity_hash: str,
        original_input: str,
        result: EnrichmentResult,
        now: datetime | None = None,
    ) -> CacheRecord:
        """Upsert a provider result. New records start with hit_count=1."""

    @abstractmethod
    async def touch(
        self, identity_hash: str, now: datetime | None = None
    ) -> CacheRecord | None:
        """Increment hit_count and refresh last_accessed_at atomically."""

    @abstractmethod
    async def record_search(
        self,
        identity_hash: str,
        outcome: SearchOutcome,
        now: datetime | None = None,
    ) -> SearchHistoryRecord:
        """Upsert search-history counters for one lookup attempt."""

    @abstractmethod
    async def get_search_history(self, identity_hash: str) -> SearchHistoryRecord | None:
        """Retrieve search-history counters for an identity hash."""

    @abstractmethod
    async def save_record(self, record: CacheRecord) -> None:
        """Write a full record as-is (tier promotion/refresh)."""

    @abstractmethod
    async def delete(self, identity_hash: str) -> None:
        """Remove a cache record (search history is kept)."""

    @abstractmethod
    async def list_records(self) -> list[CacheRecord]:
        """List all cache records (analytics)."""

    @abstractmethod
    async def list_search_history(self) -> list[SearchHistoryRecord]:
        """List all search-history rows (analytics)."""

    @abstractmethod
    async def purge_expired(
        self,
        record_cutoff: datetime,
        idle_cutoff: datetime,
        history_cutoff: datetime,
    ) -> PurgeResult:
        """Delete records updated before record_cutoff and last accessed
        before idle_cutoff, and history rows last called before history_cutoff."""

    async def close(self) -> None:
        """Release backend resources."""
