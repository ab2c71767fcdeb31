# src/cache/freshness.py - v1
"""Freshness and retention rules for cache records.

A record may be served as a hit only while it is fresh: updated within the
freshness window and carrying a resolved email. Retention is separate: a
record stays in the store (ineligible for hits) until maintenance purges it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from contactcache.cache.models import CacheRecord
from contactcache.config.settings import Settings


@dataclass(frozen=True)
class PurgeCutoffs:
    """Timestamps passed to BaseCacheStore.purge_expired."""

    record_cutoff: datetime
    idle_cutoff: datetime
    history_cutoff: datetime


@dataclass(frozen=True)
class FreshnessPolicy:
    freshness_window: timedelta = timedelta(days=30)
    record_retention: timedelta = timedelta(days=30)
    record_idle: timedelta = timedelta(days=7)
    history_retention: timedelta = timedelta(days=365)

    @classmethod
    def from_settings(cls, settings: Settings) -> FreshnessPolicy:
        return cls(
            freshness_window=settings.freshness_window,
            record_retention=timedelta(days=settings.record_retention_days),
            record_idle=timedelta(days=settings.record_idle_days),
            history_retention=timedelta(days=settings.history_retention_days),
        )

    def is_fresh(self, record: CacheRecord | None, now: datetime) -> bool:
        """True if the record can be served without calling the provider."""
        if record is None or record.resolved_email is None:
            return False
        return now - record.updated_at <= self.freshness_window

    def is_expired(self, record: CacheRecord, now: datetime) -> bool:
        """True if maintenance may delete the record."""
        cutoffs = self.cutoffs(now)
        return (
            record.updated_at < cutoffs.record_cutoff
            and record.last_accessed_at < cutoffs.idle_cutoff
        )

    def cutoffs(self, now: datetime) -> PurgeCutoffs:
        return PurgeCutoffs(
            record_cutoff=now - self.record_retention,
            idle_cutoff=now - self.record_idle,
            history_cutoff=now - self.history_retention,
        )
