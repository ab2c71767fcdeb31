# src/cache/coordinator.py - v1
"""Lookup coordinator: cache-first resolution with one metered call per identity.

Flow for resolve(raw_input, kind, context):
  1. Derive the identity hash.
  2. Read the store. A fresh record is a hit: touch it, record a "hit" search,
     return it at zero cost.
  3. Otherwise take the per-identity lock, re-read (a concurrent caller may
     have just populated it), and only then call the provider. A success is
     written to the store and charged one credit; a failure is recorded in
     search history only.

The miss path runs in its own task holding the lock. Callers await it through
asyncio.shield, so a cancelled caller never aborts a paid call or its write.
Every resolve records exactly one search-history outcome.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import datetime

from contactcache.cache.base_cache_store import BaseCacheStore, StoreUnavailableError
from contactcache.cache.freshness import FreshnessPolicy
from contactcache.cache.identity import identity_key
from contactcache.cache.keyed_lock import KeyedLock, LockAcquisitionError
from contactcache.cache.models import (
    CacheRecord,
    EnrichmentResult,
    LookupKind,
    LookupOutcome,
    RequestContext,
    SearchOutcome,
)
from contactcache.cache.records import utcnow
from contactcache.config.settings import Settings
from contactcache.logging.context import set_lookup_context
from contactcache.providers.base_provider import (
    BaseEnrichmentProvider,
    ProviderError,
    ProviderNotFoundError,
)
from contactcache.tracking.call_logger import ProviderCallLogger

logger = logging.getLogger(__name__)

_OPERATIONS: dict[str, str] = {
    "linkedin": "find_email_by_linkedin",
    "email": "verify_email",
}


class LookupCoordinator:
    """Resolves identities through the cache, calling the provider on misses."""

    def __init__(
        self,
        store: BaseCacheStore,
        provider: BaseEnrichmentProvider,
        policy: FreshnessPolicy | None = None,
        locks: KeyedLock | None = None,
        call_logger: ProviderCallLogger | None = None,
        *,
        serve_stale_on_error: bool = False,
        allow_degraded_reads: bool = False,
        write_retries: int = 2,
        write_retry_delay: float = 0.5,
        lock_timeout: float | None = 60.0,
        canonicalize_linkedin: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._provider = provider
        self._policy = policy or FreshnessPolicy()
        self._locks = locks or KeyedLock()
        self._call_logger = call_logger
        self._serve_stale_on_error = serve_stale_on_error
        self._allow_degraded_reads = allow_degraded_reads
        self._write_retries = write_retries
        self._write_retry_delay = write_retry_delay
        self._lock_timeout = lock_timeout
        self._canonicalize_linkedin = canonicalize_linkedin
        self._clock = clock
        self._pending: set[asyncio.Task[LookupOutcome]] = set()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: BaseCacheStore,
        provider: BaseEnrichmentProvider,
        call_logger: ProviderCallLogger | None = None,
    ) -> LookupCoordinator:
        return cls(
            store,
            provider,
            policy=FreshnessPolicy.from_settings(settings),
            call_logger=call_logger,
            serve_stale_on_error=settings.serve_stale_on_error,
            allow_degraded_reads=settings.cache_allow_degraded_reads,
            write_retries=settings.cache_write_retries,
            write_retry_delay=settings.cache_write_retry_delay_seconds,
            lock_timeout=settings.lock_timeout_seconds,
            canonicalize_linkedin=settings.linkedin_canonicalize,
        )

    async def resolve_linkedin(
        self, linkedin_url: str, context: RequestContext | None = None
    ) -> LookupOutcome:
        """Find the email behind a LinkedIn profile URL."""
        return await self.resolve(linkedin_url, "linkedin", context)

    async def resolve_email_verification(
        self, email: str, context: RequestContext | None = None
    ) -> LookupOutcome:
        """Verify an email address."""
        return await self.resolve(email, "email", context)

    async def resolve(
        self,
        raw_input: str,
        kind: LookupKind,
        context: RequestContext | None = None,
    ) -> LookupOutcome:
        """Resolve one identity. Provider failures come back as outcomes.

        Raises:
            StoreUnavailableError: If the store cannot be read and degraded
                reads are disabled.
        """
        context = context or RequestContext()
        identity_hash = identity_key(
            raw_input,
            canonicalize_linkedin=self._canonicalize_linkedin and kind == "linkedin",
        )
        set_lookup_context(f"resolve_{kind}", identity_hash)
        logger.debug("Resolving %s input %r", kind, raw_input)

        record = await self._read(identity_hash)
        if self._policy.is_fresh(record, self._clock()):
            outcome = await self._serve_hit(identity_hash, record)
            if outcome is not None:
                return outcome

        task = asyncio.create_task(
            self._resolve_miss(raw_input, kind, identity_hash, context)
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return await asyncio.shield(task)

    async def wait_for_pending(self) -> None:
        """Wait for miss paths still running after their callers went away."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # --- miss path ---

    async def _resolve_miss(
        self,
        raw_input: str,
        kind: LookupKind,
        identity_hash: str,
        context: RequestContext,
    ) -> LookupOutcome:
        try:
            async with self._locks.acquire(identity_hash, timeout=self._lock_timeout):
                record = await self._read(identity_hash)
                if self._policy.is_fresh(record, self._clock()):
                    outcome = await self._serve_hit(identity_hash, record)
                    if outcome is not None:
                        return outcome
                return await self._call_provider(raw_input, kind, identity_hash, record, context)
        except LockAcquisitionError as e:
            logger.warning(
                "Lock wait timed out, calling provider without coalescing: %s", e,
                extra={"event": "lock_timeout"},
            )
            record = await self._read(identity_hash)
            return await self._call_provider(raw_input, kind, identity_hash, record, context)

    async def _call_provider(
        self,
        raw_input: str,
        kind: LookupKind,
        identity_hash: str,
        previous: CacheRecord | None,
        context: RequestContext,
    ) -> LookupOutcome:
        operation = _OPERATIONS[kind]
        value = raw_input.strip()
        t0 = time.monotonic()
        try:
            if kind == "linkedin":
                result = await self._provider.find_email_by_linkedin(value)
            else:
                result = await self._provider.verify_email(value)
            if not result.is_usable:
                raise ProviderNotFoundError("Provider returned no usable email")
        except ProviderError as e:
            latency = int((time.monotonic() - t0) * 1000)
            reason = e.reason
            await self._record_search(identity_hash, "failure")
            self._log_call(operation, identity_hash, "failure", 0, latency, context, reason=reason)
            logger.info("Provider lookup failed (%s): %s", reason, e)

            if self._serve_stale_on_error and previous is not None and previous.resolved_email:
                logger.warning(
                    "Serving stale record after provider failure",
                    extra={"event": "stale_served"},
                )
                return LookupOutcome.cache_hit(previous, stale=True)
            return LookupOutcome.provider_failure(identity_hash, reason, str(e))  # type: ignore[arg-type]

        latency = int((time.monotonic() - t0) * 1000)
        record = await self._write(identity_hash, raw_input, result)
        await self._record_search(identity_hash, "success")
        self._log_call(
            operation, identity_hash, "success", 1, latency, context, cached=record is not None
        )
        logger.info("Provider lookup succeeded in %dms", latency)
        return LookupOutcome.provider_success(
            identity_hash,
            result,
            cached=record is not None,
            hit_count=record.hit_count if record is not None else None,
        )

    # --- store access ---

    async def _read(self, identity_hash: str) -> CacheRecord | None:
        try:
            return await self._store.get(identity_hash)
        except StoreUnavailableError as e:
            if not self._allow_degraded_reads:
                raise
            logger.warning(
                "Cache read failed, treating as miss: %s", e,
                extra={"event": "degraded_read"},
            )
            return None

    async def _serve_hit(
        self, identity_hash: str, record: CacheRecord | None
    ) -> LookupOutcome | None:
        """Touch a fresh record. None if it vanished since the read."""
        try:
            touched = await self._store.touch(identity_hash, now=self._clock())
        except StoreUnavailableError as e:
            logger.error("Failed to record cache hit: %s", e)
            touched = record
        if touched is None:
            return None
        await self._record_search(identity_hash, "hit")
        logger.debug("Cache hit (hit_count=%d)", touched.hit_count)
        return LookupOutcome.cache_hit(touched)

    async def _write(
        self, identity_hash: str, raw_input: str, result: EnrichmentResult
    ) -> CacheRecord | None:
        """Persist a paid result, retrying store failures. None if all attempts fail."""
        attempts = self._write_retries + 1
        last_error: StoreUnavailableError | None = None
        for attempt in range(1, attempts + 1):
            try:
                return await self._store.put(identity_hash, raw_input, result, now=self._clock())
            except StoreUnavailableError as e:
                last_error = e
                if attempt < attempts:
                    delay = self._write_retry_delay * (2 ** (attempt - 1))
                    logger.warning(
                        "Cache write failed (attempt %d/%d), retrying in %.1fs: %s",
                        attempt, attempts, delay, e,
                    )
                    await asyncio.sleep(delay)

        logger.critical(
            "Paid provider result could not be cached: %s", last_error,
            extra={
                "event": "paid_result_not_cached",
                "data": {"identity": identity_hash[:12], "attempts": attempts},
            },
        )
        return None

    async def _record_search(self, identity_hash: str, outcome: SearchOutcome) -> None:
        try:
            await self._store.record_search(identity_hash, outcome, now=self._clock())
        except StoreUnavailableError as e:
            logger.error("Failed to record search history (%s): %s", outcome, e)

    def _log_call(
        self,
        operation: str,
        identity_hash: str,
        status: str,
        credits: int,
        latency_ms: int,
        context: RequestContext,
        reason: str | None = None,
        cached: bool = False,
    ) -> None:
        if self._call_logger is None:
            return
        self._call_logger.record(
            operation=operation,
            provider=self._provider.provider_name,
            identity_hash=identity_hash,
            status=status,
            credits_charged=credits,
            latency_ms=latency_ms,
            failure_reason=reason,
            cached=cached,
            organization_id=context.organization_id,
            user_id=context.user_id,
            lead_id=context.lead_id,
            request_id=context.request_id,
        )
