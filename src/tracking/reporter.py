# src/tracking/reporter.py - v1
"""Read-only analytics over a cache store."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from contactcache.cache.base_cache_store import BaseCacheStore
from contactcache.cache.records import utcnow
from contactcache.tracking.models import CacheSavingsReport
from contactcache.tracking.savings_calculator import (
    DEFAULT_COST_PER_CREDIT,
    compute_savings_report,
)

logger = logging.getLogger(__name__)


class AnalyticsReporter:
    """Builds CacheSavingsReport snapshots from the store's two tables."""

    def __init__(
        self,
        store: BaseCacheStore,
        cost_per_credit: float = DEFAULT_COST_PER_CREDIT,
        freshness_window: timedelta = timedelta(days=30),
    ) -> None:
        self._store = store
        self._cost_per_credit = cost_per_credit
        self._freshness_window = freshness_window

    async def report(self, now: datetime | None = None) -> CacheSavingsReport:
        records = await self._store.list_records()
        history = await self._store.list_search_history()
        report = compute_savings_report(
            records,
            history,
            now=now or utcnow(),
            cost_per_credit=self._cost_per_credit,
            freshness_window=self._freshness_window,
        )
        logger.debug(
            "Savings report: %d cached, %d credits saved",
            report.total_contacts_cached, report.credits_saved,
        )
        return report
