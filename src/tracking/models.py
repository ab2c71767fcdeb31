# src/tracking/models.py - v1
"""Tracking domain models: ProviderCallRecord, CacheSavingsReport, TenantUsage."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class ProviderCallRecord(BaseModel):
    """One metered provider call, attributed to the requesting tenant.

    Tenant fields live only here; the shared cache never stores them.
    """

    call_id: str
    timestamp: datetime
    operation: Literal["find_email_by_linkedin", "verify_email"]
    provider: str
    identity_hash_prefix: str
    status: Literal["success", "failure"]
    failure_reason: str | None = None
    credits_charged: int = 0
    latency_ms: int = 0
    cached: bool = False
    organization_id: str | None = None
    user_id: str | None = None
    lead_id: str | None = None
    request_id: str | None = None


class TenantUsage(BaseModel):
    """Provider credits consumed by one organization."""

    organization_id: str
    provider_calls: int = 0
    credits_charged: int = 0
    failures: int = 0


class CacheSavingsReport(BaseModel):
    """Aggregate cache effectiveness and credit savings."""

    generated_at: datetime
    cost_per_credit: float
    total_contacts_cached: int = 0
    verified_contacts: int = 0
    credits_saved: int = 0
    estimated_money_saved: float = 0.0
    total_searches: int = 0
    total_provider_calls: int = 0
    successful_finds: int = 0
    failed_searches: int = 0
    cache_hit_rate: float = 0.0
    top_reused_identity_hash: str | None = None
    max_reuse_count: int = 0
    contacts_added_today: int = 0
    active_cache_entries: int = 0
    stale_cache_entries: int = 0
