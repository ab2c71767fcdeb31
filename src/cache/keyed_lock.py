# src/cache/keyed_lock.py - v1
"""Per-key asyncio locks.

One lock per identity hash, created on first use and dropped when the last
holder or waiter leaves, so the map only holds keys with callers in flight.

Locks are per process. Service instances sharing a SQLite file or a Redis
hot tier do not coalesce with each other: concurrent cold lookups for the
same identity in different processes each make their own paid call.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)


class LockAcquisitionError(Exception):
    """Lock for a key was not obtained within the timeout."""

    def __init__(self, key: str, timeout: float):
        self.key = key
        self.timeout = timeout
        super().__init__(f"Lock for {key[:12]} not acquired within {timeout:.1f}s")


class _Entry:
    __slots__ = ("lock", "refs")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.refs = 0


class KeyedLock:
    """Map of key -> asyncio.Lock with reference counting."""

    def __init__(self) -> None:
        self._entries: dict[str, _Entry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def locked(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.lock.locked()

    @asynccontextmanager
    async def acquire(self, key: str, timeout: float | None = None) -> AsyncIterator[None]:
        """Hold the lock for `key` for the duration of the block.

        Raises:
            LockAcquisitionError: If `timeout` elapses before the lock is free.
        """
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _Entry()
        entry.refs += 1
        try:
            try:
                if timeout is None:
                    await entry.lock.acquire()
                else:
                    await asyncio.wait_for(entry.lock.acquire(), timeout)
            except asyncio.TimeoutError as e:
                raise LockAcquisitionError(key, timeout or 0.0) from e
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            entry.refs -= 1
            if entry.refs == 0:
                del self._entries[key]
