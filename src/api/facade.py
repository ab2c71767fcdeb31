# src/api/facade.py - v1
"""Public API facade: single entry point for contact lookups.

Usage:
    from contactcache.api.facade import build_service
    service = build_service()
    outcome = await service.resolve_linkedin(url, organization_id="org-1")

Route handlers call this instead of the provider. Lookups for the same
identity are billed once per freshness window, whichever organization asks.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime

from pydantic import ValidationError

from contactcache.api.models import CleanupReport, LookupRequest
from contactcache.cache.base_cache_store import BaseCacheStore
from contactcache.cache.coordinator import LookupCoordinator
from contactcache.cache.freshness import FreshnessPolicy
from contactcache.cache.models import LookupKind, LookupOutcome
from contactcache.cache.records import utcnow
from contactcache.config.settings import Settings
from contactcache.logging.context import clear_context, set_request_context
from contactcache.providers.base_provider import BaseEnrichmentProvider, ProviderCredits
from contactcache.tracking.call_logger import ProviderCallLogger
from contactcache.tracking.models import CacheSavingsReport, TenantUsage
from contactcache.tracking.reporter import AnalyticsReporter

logger = logging.getLogger(__name__)


class InvalidLookupInputError(ValueError):
    """Lookup input was empty or blank."""


class EnrichmentService:
    """Caller-facing lookups, analytics and maintenance over one cache."""

    def __init__(
        self,
        settings: Settings,
        store: BaseCacheStore,
        provider: BaseEnrichmentProvider,
        call_logger: ProviderCallLogger | None = None,
        coordinator: LookupCoordinator | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.provider = provider
        self.call_logger = call_logger or ProviderCallLogger(
            max_records=settings.call_ledger_max_records
        )
        self.coordinator = coordinator or LookupCoordinator.from_settings(
            settings, store, provider, call_logger=self.call_logger
        )
        self.policy = FreshnessPolicy.from_settings(settings)
        self.reporter = AnalyticsReporter(
            store,
            cost_per_credit=settings.cost_per_credit,
            freshness_window=settings.freshness_window,
        )

    async def resolve_linkedin(
        self,
        linkedin_url: str,
        organization_id: str | None = None,
        user_id: str | None = None,
        lead_id: str | None = None,
        request_id: str | None = None,
    ) -> LookupOutcome:
        """Find the email behind a LinkedIn profile URL (1 credit on a miss)."""
        return await self._lookup(
            linkedin_url, "linkedin", organization_id, user_id, lead_id, request_id
        )

    async def resolve_email_verification(
        self,
        email: str,
        organization_id: str | None = None,
        user_id: str | None = None,
        lead_id: str | None = None,
        request_id: str | None = None,
    ) -> LookupOutcome:
        """Verify an email address (1 credit on a miss)."""
        return await self._lookup(
            email, "email", organization_id, user_id, lead_id, request_id
        )

    async def lookup(self, request: LookupRequest) -> LookupOutcome:
        set_request_context(request.request_id or _new_request_id(), request.organization_id)
        try:
            outcome = await self.coordinator.resolve(request.value, request.kind, request.context())
        finally:
            clear_context()
        return outcome

    async def get_analytics(self, now: datetime | None = None) -> CacheSavingsReport:
        return await self.reporter.report(now)

    def get_tenant_usage(self) -> dict[str, TenantUsage]:
        """Provider usage per organization for this process."""
        return self.call_logger.tenant_usage

    async def get_remaining_credits(self) -> ProviderCredits:
        return await self.provider.get_remaining_credits()

    async def cleanup(self, now: datetime | None = None) -> CleanupReport:
        """Purge records and history past their retention windows."""
        now = now or utcnow()
        cutoffs = self.policy.cutoffs(now)
        purged = await self.store.purge_expired(
            cutoffs.record_cutoff, cutoffs.idle_cutoff, cutoffs.history_cutoff
        )
        logger.info(
            "Cleanup removed %d records and %d history rows",
            purged.records_deleted, purged.history_deleted,
        )
        return CleanupReport(
            ran_at=now,
            record_cutoff=cutoffs.record_cutoff,
            history_cutoff=cutoffs.history_cutoff,
            purged=purged,
        )

    async def close(self) -> None:
        await self.coordinator.wait_for_pending()
        await self.provider.close()
        await self.store.close()

    async def _lookup(
        self,
        value: str,
        kind: LookupKind,
        organization_id: str | None,
        user_id: str | None,
        lead_id: str | None,
        request_id: str | None,
    ) -> LookupOutcome:
        try:
            request = LookupRequest(
                value=value,
                kind=kind,
                organization_id=organization_id,
                user_id=user_id,
                lead_id=lead_id,
                request_id=request_id,
            )
        except ValidationError as e:
            raise InvalidLookupInputError(f"Invalid {kind} lookup input: {value!r}") from e
        return await self.lookup(request)


def build_service(
    settings: Settings | None = None,
    store: BaseCacheStore | None = None,
    provider: BaseEnrichmentProvider | None = None,
) -> EnrichmentService:
    """Wire store, provider and coordinator from settings.

    Args:
        settings: Global settings. Loaded from .env if None.
        store: Cache backend. Created from CACHE_BACKEND if None.
        provider: Enrichment provider. Created from PROVIDER_DEFAULT if None.

    Returns:
        Ready-to-use EnrichmentService.
    """
    settings = settings or Settings()
    if store is None:
        from contactcache.cache.cache_factory import create_cache_store
        store = create_cache_store(settings)
    if provider is None:
        from contactcache.providers.provider_factory import create_provider
        provider = create_provider(settings=settings)
    logger.debug(
        "Built enrichment service: backend=%s, provider=%s",
        store.backend_name, provider.provider_name,
    )
    return EnrichmentService(settings, store, provider)


def _new_request_id() -> str:
    return uuid.uuid4().hex[:16]
