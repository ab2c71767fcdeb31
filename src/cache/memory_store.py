# src/cache/memory_store.py - v1
"""In-process cache store (CACHE_BACKEND=memory, or the hot tier of
CACHE_BACKEND=tiered).

State lives in two dicts. Methods never await between read and write, so each
mutation is atomic with respect to other tasks on the same event loop.

As a hot tier it takes `max_records` and `ttl_seconds` (CACHE_HOT_MAX_RECORDS,
CACHE_HOT_TTL_DAYS): a record copied in longer than the TTL ago reads as a
miss, matching key expiry in the Redis hot tier.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable

from contactcache.cache.base_cache_store import BaseCacheStore
from contactcache.cache.models import (
    CacheRecord,
    EnrichmentResult,
    PurgeResult,
    SearchHistoryRecord,
    SearchOutcome,
)
from contactcache.cache.records import (
    apply_search,
    history_last_seen,
    is_purgeable,
    merge_result,
    utcnow,
)

logger = logging.getLogger(__name__)


class MemoryCacheStore(BaseCacheStore):
    """Dict-backed cache store for tests and single-process deployments."""

    backend_name = "memory"

    def __init__(
        self,
        max_records: int | None = None,
        ttl_seconds: int | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._records: dict[str, CacheRecord] = {}
        self._history: dict[str, SearchHistoryRecord] = {}
        self._stored_at: dict[str, datetime] = {}
        self._max_records = max_records
        self._ttl = timedelta(seconds=ttl_seconds) if ttl_seconds else None
        self._clock = clock

    async def get(self, identity_hash: str) -> CacheRecord | None:
        return self._live(identity_hash)

    async def put(
        self,
        identity_hash: str,
        original_input: str,
        result: EnrichmentResult,
        now: datetime | None = None,
    ) -> CacheRecord:
        record = merge_result(
            self._live(identity_hash),
            identity_hash,
            original_input,
            result,
            now or utcnow(),
        )
        self._store(record)
        return record

    async def touch(
        self, identity_hash: str, now: datetime | None = None
    ) -> CacheRecord | None:
        record = self._live(identity_hash)
        if record is None:
            return None
        record = record.model_copy(
            update={
                "hit_count": record.hit_count + 1,
                "last_accessed_at": now or utcnow(),
            }
        )
        self._records[identity_hash] = record
        return record

    async def record_search(
        self,
        identity_hash: str,
        outcome: SearchOutcome,
        now: datetime | None = None,
    ) -> SearchHistoryRecord:
        history = apply_search(
            self._history.get(identity_hash), identity_hash, outcome, now or utcnow()
        )
        self._history[identity_hash] = history
        return history

    async def get_search_history(self, identity_hash: str) -> SearchHistoryRecord | None:
        return self._history.get(identity_hash)

    async def save_record(self, record: CacheRecord) -> None:
        self._store(record)

    async def delete(self, identity_hash: str) -> None:
        self._drop(identity_hash)

    async def list_records(self) -> list[CacheRecord]:
        return list(self._records.values())

    async def list_search_history(self) -> list[SearchHistoryRecord]:
        return list(self._history.values())

    async def purge_expired(
        self,
        record_cutoff: datetime,
        idle_cutoff: datetime,
        history_cutoff: datetime,
    ) -> PurgeResult:
        expired = [
            key for key, record in self._records.items()
            if is_purgeable(record, record_cutoff, idle_cutoff)
        ]
        for key in expired:
            self._drop(key)

        old_history = [
            key for key, history in self._history.items()
            if history_last_seen(history) < history_cutoff
        ]
        for key in old_history:
            del self._history[key]

        return PurgeResult(records_deleted=len(expired), history_deleted=len(old_history))

    def _store(self, record: CacheRecord) -> None:
        self._records[record.identity_hash] = record
        self._stored_at[record.identity_hash] = self._clock()
        if self._max_records is not None and len(self._records) > self._max_records:
            # Evict the least recently accessed record.
            oldest = min(
                (r for r in self._records.values() if r.identity_hash != record.identity_hash),
                key=lambda r: r.last_accessed_at,
            )
            self._drop(oldest.identity_hash)
            logger.debug("Evicted %s from memory tier", oldest.identity_hash[:12])

    def _live(self, identity_hash: str) -> CacheRecord | None:
        stored_at = self._stored_at.get(identity_hash)
        if self._ttl is not None and stored_at is not None:
            if self._clock() - stored_at > self._ttl:
                self._drop(identity_hash)
                return None
        return self._records.get(identity_hash)

    def _drop(self, identity_hash: str) -> None:
        self._records.pop(identity_hash, None)
        self._stored_at.pop(identity_hash, None)
