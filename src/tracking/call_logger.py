# src/tracking/call_logger.py - v1
"""Provider call ledger: one entry per metered call, with tenant attribution.

Cache hits never reach the provider and are not recorded here. Only the
latest `max_records` entries are retained; call, credit and per-tenant
totals cover every call since the ledger was created.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections import deque
from datetime import datetime, timezone
from pathlib import Path

from contactcache.logging.context import IDENTITY_PREFIX_LEN
from contactcache.tracking.models import ProviderCallRecord, TenantUsage
from contactcache.tracking.savings_calculator import add_tenant_usage

DEFAULT_MAX_RECORDS = 10000

logger = logging.getLogger(__name__)


class ProviderCallLogger:
    """Accumulates provider call records for the running process."""

    def __init__(self, max_records: int | None = DEFAULT_MAX_RECORDS) -> None:
        self._records: deque[ProviderCallRecord] = deque(maxlen=max_records or None)
        self._total_calls = 0
        self._total_credits = 0
        self._tenant_usage: dict[str, TenantUsage] = {}

    def record(
        self,
        operation: str,
        provider: str,
        identity_hash: str,
        status: str,
        credits_charged: int = 0,
        latency_ms: int = 0,
        failure_reason: str | None = None,
        cached: bool = False,
        organization_id: str | None = None,
        user_id: str | None = None,
        lead_id: str | None = None,
        request_id: str | None = None,
    ) -> ProviderCallRecord:
        """Record a provider call.

        Args:
            operation: find_email_by_linkedin or verify_email.
            provider: Provider identifier (findymail).
            identity_hash: Full identity hash; only a prefix is kept.
            status: success or failure.
            credits_charged: Credits billed for the call.
            latency_ms: Provider round-trip time.
            failure_reason: not_found, invalid_input or transient_error.
            cached: Whether the paid result reached the cache.

        Returns:
            The recorded ProviderCallRecord.
        """
        record = ProviderCallRecord(
            call_id=str(uuid.uuid4()),
            timestamp=datetime.now(timezone.utc),
            operation=operation,  # type: ignore[arg-type]
            provider=provider,
            identity_hash_prefix=identity_hash[:IDENTITY_PREFIX_LEN],
            status=status,  # type: ignore[arg-type]
            failure_reason=failure_reason,
            credits_charged=credits_charged,
            latency_ms=latency_ms,
            cached=cached,
            organization_id=organization_id,
            user_id=user_id,
            lead_id=lead_id,
            request_id=request_id,
        )
        self._records.append(record)
        self._total_calls += 1
        self._total_credits += credits_charged
        add_tenant_usage(self._tenant_usage, record)
        return record

    @property
    def records(self) -> list[ProviderCallRecord]:
        """Retained calls, oldest first."""
        return list(self._records)

    @property
    def total_credits(self) -> int:
        """Credits charged across all calls."""
        return self._total_credits

    @property
    def total_calls(self) -> int:
        return self._total_calls

    @property
    def tenant_usage(self) -> dict[str, TenantUsage]:
        """Per-organization totals keyed by organization id."""
        return {org: usage.model_copy() for org, usage in self._tenant_usage.items()}

    def save(self, path: Path, drain: bool = False) -> int:
        """Append retained records to a JSON Lines file.

        With drain=True the written records are dropped from memory, so a
        periodic save keeps the ledger empty between flushes. Totals are kept.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        records = list(self._records)
        with path.open("a") as f:
            for record in records:
                f.write(json.dumps(record.model_dump(), default=str) + "\n")
        if drain:
            self._records.clear()
        logger.debug("Saved %d provider call records to %s", len(records), path)
        return len(records)
