# tests/unit/cache/test_unit_coordinator.py - v1
"""Tests for cache/coordinator.py - lookup protocol, coalescing, accounting."""

from __future__ import annotations

import asyncio
import logging

import httpx
import pytest

from contactcache.cache.base_cache_store import StoreUnavailableError
from contactcache.cache.coordinator import LookupCoordinator
from contactcache.cache.identity import identity_key
from contactcache.cache.keyed_lock import KeyedLock
from contactcache.cache.memory_store import MemoryCacheStore
from contactcache.cache.models import EnrichmentResult, RequestContext
from contactcache.providers.base_provider import (
    ProviderNotFoundError,
    ProviderRejectedInputError,
    ProviderTransientError,
)
from contactcache.providers.findymail_adapter import FindymailAdapter
from tests.conftest import FOUND_EMAIL, LINKEDIN_URL, T0, FakeProvider

KEY = identity_key(LINKEDIN_URL)


class _FailingPutStore(MemoryCacheStore):
    def __init__(self) -> None:
        super().__init__()
        self.put_attempts = 0

    async def put(self, *args, **kwargs):
        self.put_attempts += 1
        raise StoreUnavailableError("memory", "put")


class _FailingReadStore(MemoryCacheStore):
    async def get(self, identity_hash):
        raise StoreUnavailableError("memory", "get")


class _FailingHistoryStore(MemoryCacheStore):
    async def record_search(self, *args, **kwargs):
        raise StoreUnavailableError("memory", "record_search")


def _coordinator(store, provider, clock, **kwargs):
    kwargs.setdefault("write_retry_delay", 0.0)
    return LookupCoordinator(store, provider, clock=clock, **kwargs)


class TestCacheHitAndMiss:
    @pytest.mark.asyncio
    async def test_first_call_pays_then_hits(self, coordinator, fake_provider, memory_store):
        outcomes = [await coordinator.resolve_linkedin(LINKEDIN_URL) for _ in range(5)]

        assert outcomes[0].status == "provider_success"
        assert outcomes[0].credits_charged == 1
        assert all(o.status == "cache_hit" for o in outcomes[1:])
        assert all(o.credits_charged == 0 for o in outcomes[1:])
        assert fake_provider.call_count == 1
        record = await memory_store.get(KEY)
        assert record.hit_count == 5

    @pytest.mark.asyncio
    async def test_hit_returns_cached_result(self, coordinator):
        await coordinator.resolve_linkedin(LINKEDIN_URL)
        outcome = await coordinator.resolve_linkedin(LINKEDIN_URL)
        assert outcome.result.email == FOUND_EMAIL
        assert outcome.hit_count == 2

    @pytest.mark.asyncio
    async def test_normalized_inputs_share_one_record(self, coordinator, fake_provider):
        await coordinator.resolve_linkedin(LINKEDIN_URL)
        outcome = await coordinator.resolve_linkedin(f"  {LINKEDIN_URL.upper()}  ")
        assert outcome.status == "cache_hit"
        assert fake_provider.call_count == 1

    @pytest.mark.asyncio
    async def test_provider_receives_trimmed_input(self, coordinator, fake_provider):
        await coordinator.resolve_linkedin(f"  {LINKEDIN_URL} ")
        assert fake_provider.calls == [("find_email_by_linkedin", LINKEDIN_URL)]

    @pytest.mark.asyncio
    async def test_email_verification_uses_verify(self, coordinator, fake_provider):
        outcome = await coordinator.resolve_email_verification("Someone@Gmail.com")
        assert outcome.status == "provider_success"
        assert outcome.result.email_provider == "Gmail"
        assert fake_provider.calls[0][0] == "verify_email"
        again = await coordinator.resolve_email_verification("someone@gmail.com")
        assert again.status == "cache_hit"

    @pytest.mark.asyncio
    async def test_search_history_one_entry_per_resolve(self, coordinator, memory_store):
        for _ in range(3):
            await coordinator.resolve_linkedin(LINKEDIN_URL)
        history = await memory_store.get_search_history(KEY)
        assert history.times_searched == 3
        assert history.successful_finds == 1
        assert history.failed_searches == 0


class TestFailures:
    @pytest.mark.asyncio
    async def test_not_found_is_free_and_not_cached(self, coordinator, fake_provider, memory_store):
        fake_provider.errors[LINKEDIN_URL] = ProviderNotFoundError("no email")

        outcome = await coordinator.resolve_linkedin(LINKEDIN_URL)

        assert outcome.status == "provider_failure"
        assert outcome.failure_reason == "not_found"
        assert outcome.credits_charged == 0
        assert await memory_store.get(KEY) is None
        history = await memory_store.get_search_history(KEY)
        assert history.failed_searches == 1

    @pytest.mark.asyncio
    async def test_failure_is_not_negative_cached(self, coordinator, fake_provider):
        fake_provider.errors[LINKEDIN_URL] = ProviderNotFoundError("no email")
        await coordinator.resolve_linkedin(LINKEDIN_URL)
        await coordinator.resolve_linkedin(LINKEDIN_URL)
        assert fake_provider.call_count == 2

    @pytest.mark.asyncio
    async def test_rejected_input(self, coordinator, fake_provider):
        fake_provider.errors["bad"] = ProviderRejectedInputError("malformed")
        outcome = await coordinator.resolve_email_verification("bad")
        assert outcome.failure_reason == "invalid_input"

    @pytest.mark.asyncio
    async def test_transient_error(self, coordinator, fake_provider):
        fake_provider.errors[LINKEDIN_URL] = ProviderTransientError("503", error_type="server_error")
        outcome = await coordinator.resolve_linkedin(LINKEDIN_URL)
        assert outcome.failure_reason == "transient_error"
        assert outcome.credits_charged == 0

    @pytest.mark.asyncio
    async def test_undecodable_provider_response_is_transient(self, memory_store, clock):
        def handler(request):
            return httpx.Response(200, headers={"Content-Encoding": "gzip"}, content=b"garbage")

        provider = FindymailAdapter(
            api_key="test-key",
            base_url="https://findymail.test",
            transport=httpx.MockTransport(handler),
            retry_configs={},
        )
        coordinator = _coordinator(memory_store, provider, clock)

        outcome = await coordinator.resolve_linkedin(LINKEDIN_URL)

        assert outcome.status == "provider_failure"
        assert outcome.failure_reason == "transient_error"
        history = await memory_store.get_search_history(KEY)
        assert history.times_searched == 1
        assert history.failed_searches == 1
        await provider.close()

    @pytest.mark.asyncio
    async def test_unusable_result_is_not_found(self, memory_store, clock):
        provider = FakeProvider()

        async def no_email(url):
            provider.calls.append(("find_email_by_linkedin", url))
            return EnrichmentResult(name="Nobody")

        provider.find_email_by_linkedin = no_email  # type: ignore[method-assign]
        coordinator = _coordinator(memory_store, provider, clock)
        outcome = await coordinator.resolve_linkedin(LINKEDIN_URL)
        assert outcome.failure_reason == "not_found"
        assert await memory_store.get(KEY) is None


class TestFreshness:
    @pytest.mark.asyncio
    async def test_stale_record_is_refreshed(self, coordinator, fake_provider, memory_store, clock):
        await coordinator.resolve_linkedin(LINKEDIN_URL)
        clock.advance(days=31)

        outcome = await coordinator.resolve_linkedin(LINKEDIN_URL)

        assert outcome.status == "provider_success"
        assert fake_provider.call_count == 2
        record = await memory_store.get(KEY)
        assert record.updated_at == clock.now
        assert record.created_at == T0
        assert record.hit_count == 1

    @pytest.mark.asyncio
    async def test_stale_failure_leaves_record_untouched(self, coordinator, fake_provider, memory_store, clock):
        await coordinator.resolve_linkedin(LINKEDIN_URL)
        clock.advance(days=31)
        fake_provider.errors[LINKEDIN_URL] = ProviderTransientError("timeout", error_type="timeout")

        outcome = await coordinator.resolve_linkedin(LINKEDIN_URL)

        assert outcome.status == "provider_failure"
        record = await memory_store.get(KEY)
        assert record.updated_at == T0
        assert record.hit_count == 1

    @pytest.mark.asyncio
    async def test_serve_stale_on_error(self, memory_store, fake_provider, clock):
        coordinator = _coordinator(memory_store, fake_provider, clock, serve_stale_on_error=True)
        await coordinator.resolve_linkedin(LINKEDIN_URL)
        clock.advance(days=31)
        fake_provider.errors[LINKEDIN_URL] = ProviderTransientError("timeout", error_type="timeout")

        outcome = await coordinator.resolve_linkedin(LINKEDIN_URL)

        assert outcome.status == "cache_hit"
        assert outcome.stale is True
        assert outcome.credits_charged == 0
        assert outcome.result.email == FOUND_EMAIL
        assert (await memory_store.get(KEY)).hit_count == 1


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_concurrent_cold_calls_coalesce(self, memory_store, slow_provider, clock):
        coordinator = _coordinator(memory_store, slow_provider, clock)

        outcomes = await asyncio.gather(
            *(coordinator.resolve_linkedin(LINKEDIN_URL) for _ in range(10))
        )

        assert slow_provider.call_count == 1
        statuses = [o.status for o in outcomes]
        assert statuses.count("provider_success") == 1
        assert statuses.count("cache_hit") == 9
        assert sum(o.credits_charged for o in outcomes) == 1
        assert (await memory_store.get(KEY)).hit_count == 10
        history = await memory_store.get_search_history(KEY)
        assert history.times_searched == 10
        assert history.successful_finds == 1

    @pytest.mark.asyncio
    async def test_different_identities_each_call_provider(self, memory_store, slow_provider, clock):
        coordinator = _coordinator(memory_store, slow_provider, clock)
        outcomes = await asyncio.gather(
            coordinator.resolve_linkedin("https://linkedin.com/in/a"),
            coordinator.resolve_linkedin("https://linkedin.com/in/b"),
        )
        assert [o.status for o in outcomes] == ["provider_success", "provider_success"]
        assert slow_provider.call_count == 2

    @pytest.mark.asyncio
    async def test_caller_cancellation_still_populates_cache(self, memory_store, slow_provider, clock):
        coordinator = _coordinator(memory_store, slow_provider, clock)

        task = asyncio.create_task(coordinator.resolve_linkedin(LINKEDIN_URL))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        await coordinator.wait_for_pending()

        assert slow_provider.call_count == 1
        record = await memory_store.get(KEY)
        assert record is not None
        assert record.resolved_email == FOUND_EMAIL

    @pytest.mark.asyncio
    async def test_lock_timeout_falls_back_to_direct_call(self, memory_store, fake_provider, clock, caplog):
        locks = KeyedLock()
        coordinator = _coordinator(memory_store, fake_provider, clock, locks=locks, lock_timeout=0.01)
        release = asyncio.Event()

        async def holder():
            async with locks.acquire(KEY):
                await release.wait()

        task = asyncio.create_task(holder())
        await asyncio.sleep(0)
        with caplog.at_level(logging.WARNING, logger="contactcache"):
            outcome = await coordinator.resolve_linkedin(LINKEDIN_URL)
        release.set()
        await task

        assert outcome.status == "provider_success"
        assert fake_provider.call_count == 1
        assert any(getattr(r, "event", None) == "lock_timeout" for r in caplog.records)


class TestTenants:
    @pytest.mark.asyncio
    async def test_hits_are_shared_across_organizations(self, coordinator, fake_provider, call_logger):
        first = await coordinator.resolve_linkedin(LINKEDIN_URL, RequestContext(organization_id="org-a"))
        second = await coordinator.resolve_linkedin(LINKEDIN_URL, RequestContext(organization_id="org-b"))

        assert first.status == "provider_success"
        assert second.status == "cache_hit"
        assert second.credits_charged == 0
        assert fake_provider.call_count == 1
        assert [c.organization_id for c in call_logger.records] == ["org-a"]

    @pytest.mark.asyncio
    async def test_ledger_records_failures_without_credits(self, coordinator, fake_provider, call_logger):
        fake_provider.errors[LINKEDIN_URL] = ProviderNotFoundError("no email")
        await coordinator.resolve_linkedin(
            LINKEDIN_URL, RequestContext(organization_id="org-a", user_id="u1", lead_id="l1")
        )
        [call] = call_logger.records
        assert call.status == "failure"
        assert call.failure_reason == "not_found"
        assert call.credits_charged == 0
        assert call.user_id == "u1"
        assert call.identity_hash_prefix == KEY[:12]


class TestStoreFailures:
    @pytest.mark.asyncio
    async def test_write_failure_after_paid_call(self, fake_provider, clock, caplog):
        store = _FailingPutStore()
        coordinator = _coordinator(store, fake_provider, clock, write_retries=2)

        with caplog.at_level(logging.WARNING, logger="contactcache"):
            outcome = await coordinator.resolve_linkedin(LINKEDIN_URL)

        assert outcome.status == "provider_success"
        assert outcome.cached is False
        assert outcome.credits_charged == 1
        assert outcome.result.email == FOUND_EMAIL
        assert store.put_attempts == 3
        critical = [r for r in caplog.records if r.levelno == logging.CRITICAL]
        assert len(critical) == 1
        assert critical[0].event == "paid_result_not_cached"

    @pytest.mark.asyncio
    async def test_read_failure_raises_by_default(self, fake_provider, clock):
        coordinator = _coordinator(_FailingReadStore(), fake_provider, clock)
        with pytest.raises(StoreUnavailableError):
            await coordinator.resolve_linkedin(LINKEDIN_URL)
        assert fake_provider.call_count == 0

    @pytest.mark.asyncio
    async def test_degraded_read_treated_as_miss(self, fake_provider, clock):
        coordinator = _coordinator(
            _FailingReadStore(), fake_provider, clock, allow_degraded_reads=True
        )
        outcome = await coordinator.resolve_linkedin(LINKEDIN_URL)
        assert outcome.status == "provider_success"
        assert fake_provider.call_count == 1

    @pytest.mark.asyncio
    async def test_history_failure_does_not_change_outcome(self, fake_provider, clock):
        store = _FailingHistoryStore()
        coordinator = _coordinator(store, fake_provider, clock)
        outcome = await coordinator.resolve_linkedin(LINKEDIN_URL)
        assert outcome.status == "provider_success"
        assert await store.get(KEY) is not None


class TestFromSettings:
    def test_reads_policy_flags(self, settings, memory_store, fake_provider):
        settings = settings.model_copy(
            update={"serve_stale_on_error": True, "cache_write_retries": 5, "lock_timeout_seconds": 3.0}
        )
        coordinator = LookupCoordinator.from_settings(settings, memory_store, fake_provider)
        assert coordinator._serve_stale_on_error is True
        assert coordinator._write_retries == 5
        assert coordinator._lock_timeout == 3.0
