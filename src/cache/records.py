# src/cache/records.py - v1
"""Pure upsert rules shared by the in-process and Redis backends.

SQLite expresses the same rules in SQL (see sqlite_store.py).
"""

from __future__ import annotations

from datetime import datetime, timezone

from contactcache.cache.models import (
    CacheRecord,
    EnrichmentResult,
    SearchHistoryRecord,
    SearchOutcome,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def merge_result(
    existing: CacheRecord | None,
    identity_hash: str,
    original_input: str,
    result: EnrichmentResult,
    now: datetime,
) -> CacheRecord:
    """Insert-or-refresh a record from a provider result.

    A refresh keeps created_at and hit_count, and keeps the previous
    name/LinkedIn URL when the new result has none.
    """
    if existing is None:
        return CacheRecord(
            identity_hash=identity_hash,
            original_input=original_input,
            resolved_email=result.email,
            resolved_name=result.name,
            resolved_linkedin_url=result.linkedin_url,
            verification_status=result.verification_status,
            provider_source=result.provider_source,
            email_provider=result.email_provider,
            hit_count=1,
            last_accessed_at=now,
            created_at=now,
            updated_at=now,
        )
    return existing.model_copy(
        update={
            "original_input": original_input,
            "resolved_email": result.email or existing.resolved_email,
            "resolved_name": result.name or existing.resolved_name,
            "resolved_linkedin_url": result.linkedin_url or existing.resolved_linkedin_url,
            "verification_status": result.verification_status or existing.verification_status,
            "provider_source": result.provider_source,
            "email_provider": result.email_provider or existing.email_provider,
            "last_accessed_at": now,
            "updated_at": now,
        }
    )


def apply_search(
    existing: SearchHistoryRecord | None,
    identity_hash: str,
    outcome: SearchOutcome,
    now: datetime,
) -> SearchHistoryRecord:
    """Increment search counters for one lookup attempt."""
    current = existing or SearchHistoryRecord(
        identity_hash=identity_hash, first_searched_at=now
    )
    update: dict[str, object] = {"times_searched": current.times_searched + 1}
    if outcome == "success":
        update["successful_finds"] = current.successful_finds + 1
        update["last_provider_call_at"] = now
    elif outcome == "failure":
        update["failed_searches"] = current.failed_searches + 1
        update["last_provider_call_at"] = now
    return current.model_copy(update=update)


def history_last_seen(history: SearchHistoryRecord) -> datetime:
    """Timestamp used by the history retention policy."""
    return history.last_provider_call_at or history.first_searched_at


def is_purgeable(
    record: CacheRecord, record_cutoff: datetime, idle_cutoff: datetime
) -> bool:
    return record.updated_at < record_cutoff and record.last_accessed_at < idle_cutoff
