# src/cache/redis_store.py - v1
"""Redis-based cache store (CACHE_BACKEND=redis, or the shared hot tier of
CACHE_BACKEND=tiered).

Requires 'redis' package: pip install redis.
Each record is a Redis hash holding the serialized record plus
`hit_count` / `last_accessed_at` fields that override it on read, so hits
are counted with HINCRBY inside a MULTI block and never lose updates
across processes. Record keys carry a TTL (CACHE_HOT_TTL_DAYS); search
history keys do not expire.

Sharing this store across instances does not share coalescing: each
process holds its own KeyedLock, so a cold identity requested at the same
time in two processes is paid for twice.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from contactcache.cache.base_cache_store import BaseCacheStore, StoreUnavailableError
from contactcache.cache.models import (
    CacheRecord,
    EnrichmentResult,
    PurgeResult,
    SearchHistoryRecord,
    SearchOutcome,
)
from contactcache.cache.records import (
    history_last_seen,
    is_purgeable,
    merge_result,
    utcnow,
)

logger = logging.getLogger(__name__)

_KEY_PREFIX = "contactcache:contact:"
_HISTORY_PREFIX = "contactcache:history:"
_INDEX_KEY = "contactcache:contact:__index__"
_HISTORY_INDEX_KEY = "contactcache:history:__index__"


class RedisCacheStore(BaseCacheStore):
    """Redis-backed cache store for multi-instance deployments."""

    backend_name = "redis"

    def __init__(self, redis_url: str, ttl_seconds: int | None = None) -> None:
        try:
            import redis.asyncio as aioredis
            from redis.exceptions import RedisError
        except ImportError as e:
            raise ImportError(
                "redis package required: pip install redis"
            ) from e

        self._client = aioredis.Redis.from_url(redis_url, decode_responses=True)
        self._ttl_seconds = ttl_seconds or None
        self._errors: tuple[type[Exception], ...] = (RedisError, OSError)

    async def get(self, identity_hash: str) -> CacheRecord | None:
        try:
            data = await self._client.hgetall(_KEY_PREFIX + identity_hash)
        except self._errors as e:
            raise StoreUnavailableError(self.backend_name, "get", e) from e
        return self._decode_record(identity_hash, data)

    async def put(
        self,
        identity_hash: str,
        original_input: str,
        result: EnrichmentResult,
        now: datetime | None = None,
    ) -> CacheRecord:
        existing = await self.get(identity_hash)
        record = merge_result(existing, identity_hash, original_input, result, now or utcnow())
        key = _KEY_PREFIX + identity_hash
        try:
            pipe = self._client.pipeline(transaction=True)
            pipe.hset(key, mapping={
                "record": record.model_dump_json(),
                "last_accessed_at": record.last_accessed_at.isoformat(),
            })
            # A concurrent touch may already have bumped the counter.
            pipe.hsetnx(key, "hit_count", record.hit_count)
            self._queue_expire(pipe, key)
            pipe.sadd(_INDEX_KEY, identity_hash)
            await pipe.execute()
        except self._errors as e:
            raise StoreUnavailableError(self.backend_name, "put", e) from e
        stored = await self.get(identity_hash)
        return stored or record

    async def touch(
        self, identity_hash: str, now: datetime | None = None
    ) -> CacheRecord | None:
        key = _KEY_PREFIX + identity_hash
        try:
            if not await self._client.exists(key):
                return None
            pipe = self._client.pipeline(transaction=True)
            pipe.hincrby(key, "hit_count", 1)
            pipe.hset(key, "last_accessed_at", (now or utcnow()).isoformat())
            pipe.hgetall(key)
            results = await pipe.execute()
        except self._errors as e:
            raise StoreUnavailableError(self.backend_name, "touch", e) from e
        return self._decode_record(identity_hash, results[-1])

    async def record_search(
        self,
        identity_hash: str,
        outcome: SearchOutcome,
        now: datetime | None = None,
    ) -> SearchHistoryRecord:
        key = _HISTORY_PREFIX + identity_hash
        ts = (now or utcnow()).isoformat()
        try:
            pipe = self._client.pipeline(transaction=True)
            pipe.hincrby(key, "times_searched", 1)
            pipe.hincrby(key, "successful_finds", 1 if outcome == "success" else 0)
            pipe.hincrby(key, "failed_searches", 1 if outcome == "failure" else 0)
            pipe.hsetnx(key, "first_searched_at", ts)
            if outcome != "hit":
                pipe.hset(key, "last_provider_call_at", ts)
            pipe.sadd(_HISTORY_INDEX_KEY, identity_hash)
            pipe.hgetall(key)
            results = await pipe.execute()
        except self._errors as e:
            raise StoreUnavailableError(self.backend_name, "record_search", e) from e
        return _decode_history(identity_hash, results[-1])

    async def get_search_history(self, identity_hash: str) -> SearchHistoryRecord | None:
        try:
            data = await self._client.hgetall(_HISTORY_PREFIX + identity_hash)
        except self._errors as e:
            raise StoreUnavailableError(self.backend_name, "get_search_history", e) from e
        if not data:
            return None
        return _decode_history(identity_hash, data)

    async def save_record(self, record: CacheRecord) -> None:
        key = _KEY_PREFIX + record.identity_hash
        try:
            pipe = self._client.pipeline(transaction=True)
            pipe.hset(key, mapping={
                "record": record.model_dump_json(),
                "hit_count": record.hit_count,
                "last_accessed_at": record.last_accessed_at.isoformat(),
            })
            self._queue_expire(pipe, key)
            pipe.sadd(_INDEX_KEY, record.identity_hash)
            await pipe.execute()
        except self._errors as e:
            raise StoreUnavailableError(self.backend_name, "save_record", e) from e

    async def delete(self, identity_hash: str) -> None:
        try:
            await self._client.delete(_KEY_PREFIX + identity_hash)
            await self._client.srem(_INDEX_KEY, identity_hash)
        except self._errors as e:
            raise StoreUnavailableError(self.backend_name, "delete", e) from e

    async def list_records(self) -> list[CacheRecord]:
        try:
            keys = await self._client.smembers(_INDEX_KEY)
        except self._errors as e:
            raise StoreUnavailableError(self.backend_name, "list_records", e) from e
        records: list[CacheRecord] = []
        for identity_hash in keys:
            record = await self.get(identity_hash)
            if record is None:
                # Expired by TTL; drop it from the index.
                try:
                    await self._client.srem(_INDEX_KEY, identity_hash)
                except self._errors as e:
                    raise StoreUnavailableError(self.backend_name, "list_records", e) from e
                continue
            records.append(record)
        return records

    async def list_search_history(self) -> list[SearchHistoryRecord]:
        try:
            keys = await self._client.smembers(_HISTORY_INDEX_KEY)
        except self._errors as e:
            raise StoreUnavailableError(self.backend_name, "list_search_history", e) from e
        history: list[SearchHistoryRecord] = []
        for identity_hash in keys:
            row = await self.get_search_history(identity_hash)
            if row is not None:
                history.append(row)
        return history

    async def purge_expired(
        self,
        record_cutoff: datetime,
        idle_cutoff: datetime,
        history_cutoff: datetime,
    ) -> PurgeResult:
        result = PurgeResult()
        for record in await self.list_records():
            if is_purgeable(record, record_cutoff, idle_cutoff):
                await self.delete(record.identity_hash)
                result.records_deleted += 1
        for row in await self.list_search_history():
            if history_last_seen(row) < history_cutoff:
                try:
                    await self._client.delete(_HISTORY_PREFIX + row.identity_hash)
                    await self._client.srem(_HISTORY_INDEX_KEY, row.identity_hash)
                except self._errors as e:
                    raise StoreUnavailableError(self.backend_name, "purge_expired", e) from e
                result.history_deleted += 1
        return result

    async def close(self) -> None:
        """Close the Redis connection."""
        await self._client.aclose()

    # --- helpers ---

    def _queue_expire(self, pipe: Any, key: str) -> None:
        if self._ttl_seconds:
            pipe.expire(key, self._ttl_seconds)

    def _decode_record(self, identity_hash: str, data: dict[str, str]) -> CacheRecord | None:
        if not data or "record" not in data:
            return None
        try:
            record = CacheRecord.model_validate_json(data["record"])
            return record.model_copy(update={
                "hit_count": int(data.get("hit_count", 1)),
                "last_accessed_at": datetime.fromisoformat(
                    data.get("last_accessed_at", record.updated_at.isoformat())
                ),
            })
        except ValueError as e:
            logger.warning(
                "Failed to deserialize cache entry %s: %s", identity_hash[:12], e
            )
            return None


def _decode_history(identity_hash: str, data: dict[str, str]) -> SearchHistoryRecord:
    last_call = data.get("last_provider_call_at")
    return SearchHistoryRecord(
        identity_hash=identity_hash,
        times_searched=int(data.get("times_searched", 0)),
        successful_finds=int(data.get("successful_finds", 0)),
        failed_searches=int(data.get("failed_searches", 0)),
        first_searched_at=datetime.fromisoformat(data["first_searched_at"]),
        last_provider_call_at=datetime.fromisoformat(last_call) if last_call else None,
    )
