# src/cache/cache_factory.py - v1
"""Factory for cache store instantiation."""

from __future__ import annotations

from contactcache.cache.base_cache_store import BaseCacheStore
from contactcache.config.settings import Settings


class UnsupportedCacheBackendError(ValueError):
    """Raised when CACHE_BACKEND names an unknown backend."""


def create_cache_store(settings: Settings | None = None) -> BaseCacheStore:
    """Instantiate the configured cache backend.

    Args:
        settings: Application settings. Defaults to an in-memory store.

    Returns:
        Configured BaseCacheStore implementation.
    """
    if settings is None or settings.cache_backend == "memory":
        from contactcache.cache.memory_store import MemoryCacheStore
        return MemoryCacheStore()

    backend = settings.cache_backend

    if backend == "sqlite":
        from contactcache.cache.sqlite_store import SqliteCacheStore
        return SqliteCacheStore(db_path=settings.sqlite_path)

    if backend == "redis":
        return _create_redis_store(settings)

    if backend == "tiered":
        from contactcache.cache.sqlite_store import SqliteCacheStore
        from contactcache.cache.tiered_store import TieredCacheStore
        if settings.cache_hot_backend == "redis":
            hot = _create_redis_store(settings)
        else:
            from contactcache.cache.memory_store import MemoryCacheStore
            hot = MemoryCacheStore(
                max_records=settings.cache_hot_max_records or None,
                ttl_seconds=settings.hot_cache_ttl_seconds,
            )
        return TieredCacheStore(
            hot=hot,
            warm=SqliteCacheStore(db_path=settings.sqlite_path),
            freshness_window=settings.freshness_window,
        )

    raise UnsupportedCacheBackendError(f"Unsupported cache backend: {backend!r}")


def _create_redis_store(settings: Settings) -> BaseCacheStore:
    from contactcache.cache.redis_store import RedisCacheStore
    if not settings.cache_redis_url:
        raise ValueError("CACHE_REDIS_URL must be set when a redis tier is used")
    return RedisCacheStore(
        redis_url=settings.cache_redis_url,
        ttl_seconds=settings.hot_cache_ttl_seconds,
    )
