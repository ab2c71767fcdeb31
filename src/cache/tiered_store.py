# src/cache/tiered_store.py - v1
"""Hot/warm cache store (CACHE_BACKEND=tiered).

The warm tier (SQLite) is authoritative. The hot tier (memory or Redis) holds
short-lived copies: reads check hot first and promote warm hits into hot;
writes land in warm, then the resulting record is copied into hot. Hot-tier
errors are logged and the call proceeds against warm only.

A hot copy outside the freshness window is never served: other processes
sharing the warm tier may have refreshed the record since it was copied, so
the read falls through to warm.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from contactcache.cache.base_cache_store import BaseCacheStore, StoreUnavailableError
from contactcache.cache.models import (
    CacheRecord,
    EnrichmentResult,
    PurgeResult,
    SearchHistoryRecord,
    SearchOutcome,
)
from contactcache.cache.records import utcnow

logger = logging.getLogger(__name__)


class TieredCacheStore(BaseCacheStore):
    """Hot tier in front of an authoritative warm tier."""

    backend_name = "tiered"

    def __init__(
        self,
        hot: BaseCacheStore,
        warm: BaseCacheStore,
        freshness_window: timedelta | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.hot = hot
        self.warm = warm
        self._freshness_window = freshness_window
        self._clock = clock

    async def get(self, identity_hash: str) -> CacheRecord | None:
        try:
            record = await self.hot.get(identity_hash)
        except StoreUnavailableError as e:
            logger.warning("Hot tier read failed, falling back to warm: %s", e)
            record = None
        if record is not None and self._servable(record):
            return record

        record = await self.warm.get(identity_hash)
        if record is not None:
            await self._copy_to_hot(record)
        return record

    async def put(
        self,
        identity_hash: str,
        original_input: str,
        result: EnrichmentResult,
        now: datetime | None = None,
    ) -> CacheRecord:
        record = await self.warm.put(identity_hash, original_input, result, now=now)
        await self._copy_to_hot(record)
        return record

    async def touch(
        self, identity_hash: str, now: datetime | None = None
    ) -> CacheRecord | None:
        record = await self.warm.touch(identity_hash, now=now)
        if record is not None:
            await self._copy_to_hot(record)
        return record

    async def record_search(
        self,
        identity_hash: str,
        outcome: SearchOutcome,
        now: datetime | None = None,
    ) -> SearchHistoryRecord:
        return await self.warm.record_search(identity_hash, outcome, now=now)

    async def get_search_history(self, identity_hash: str) -> SearchHistoryRecord | None:
        return await self.warm.get_search_history(identity_hash)

    async def save_record(self, record: CacheRecord) -> None:
        await self.warm.save_record(record)
        await self._copy_to_hot(record)

    async def delete(self, identity_hash: str) -> None:
        await self.warm.delete(identity_hash)
        try:
            await self.hot.delete(identity_hash)
        except StoreUnavailableError as e:
            logger.warning("Hot tier delete failed for %s: %s", identity_hash[:12], e)

    async def list_records(self) -> list[CacheRecord]:
        return await self.warm.list_records()

    async def list_search_history(self) -> list[SearchHistoryRecord]:
        return await self.warm.list_search_history()

    async def purge_expired(
        self,
        record_cutoff: datetime,
        idle_cutoff: datetime,
        history_cutoff: datetime,
    ) -> PurgeResult:
        result = await self.warm.purge_expired(record_cutoff, idle_cutoff, history_cutoff)
        try:
            await self.hot.purge_expired(record_cutoff, idle_cutoff, history_cutoff)
        except StoreUnavailableError as e:
            logger.warning("Hot tier purge failed: %s", e)
        return result

    async def close(self) -> None:
        await self.hot.close()
        await self.warm.close()

    async def _copy_to_hot(self, record: CacheRecord) -> None:
        try:
            await self.hot.save_record(record)
        except StoreUnavailableError as e:
            logger.warning(
                "Hot tier write failed for %s: %s", record.identity_hash[:12], e
            )

    def _servable(self, record: CacheRecord) -> bool:
        if self._freshness_window is None:
            return True
        if record.resolved_email is None:
            return False
        return self._clock() - record.updated_at <= self._freshness_window
