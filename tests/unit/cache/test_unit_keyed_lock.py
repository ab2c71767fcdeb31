# tests/unit/cache/test_unit_keyed_lock.py - v1
"""Tests for cache/keyed_lock.py."""

from __future__ import annotations

import asyncio

import pytest

from contactcache.cache.keyed_lock import KeyedLock, LockAcquisitionError


class TestKeyedLock:
    @pytest.mark.asyncio
    async def test_same_key_is_serialized(self):
        locks = KeyedLock()
        active = 0
        peak = 0

        async def worker():
            nonlocal active, peak
            async with locks.acquire("k"):
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0.01)
                active -= 1

        await asyncio.gather(*(worker() for _ in range(5)))
        assert peak == 1

    @pytest.mark.asyncio
    async def test_different_keys_run_in_parallel(self):
        locks = KeyedLock()
        inside = asyncio.Event()
        release = asyncio.Event()

        async def holder():
            async with locks.acquire("a"):
                inside.set()
                await release.wait()

        task = asyncio.create_task(holder())
        await inside.wait()
        async with locks.acquire("b", timeout=0.1):
            assert locks.locked("a")
        release.set()
        await task

    @pytest.mark.asyncio
    async def test_entries_dropped_after_release(self):
        locks = KeyedLock()
        async with locks.acquire("k"):
            assert len(locks) == 1
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_timeout_raises(self):
        locks = KeyedLock()
        release = asyncio.Event()

        async def holder():
            async with locks.acquire("k"):
                await release.wait()

        task = asyncio.create_task(holder())
        await asyncio.sleep(0)
        with pytest.raises(LockAcquisitionError):
            async with locks.acquire("k", timeout=0.01):
                pass
        release.set()
        await task
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_released_on_exception(self):
        locks = KeyedLock()
        with pytest.raises(RuntimeError):
            async with locks.acquire("k"):
                raise RuntimeError("boom")
        assert not locks.locked("k")
        assert len(locks) == 0
