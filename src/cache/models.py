# src/cache/models.py - v1
"""Cache domain models: EnrichmentResult, CacheRecord, SearchHistoryRecord,
RequestContext, LookupOutcome, PurgeResult.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, model_validator

VerificationStatus = Literal["verified", "unverified", "risky", "invalid"]
ProviderSource = Literal["findymail", "contactout", "manual"]
LookupKind = Literal["linkedin", "email"]
SearchOutcome = Literal["hit", "success", "failure"]
FailureReason = Literal["not_found", "invalid_input", "transient_error"]


class EnrichmentResult(BaseModel):
    """What a provider returned for one identity."""

    email: str | None = None
    name: str | None = None
    linkedin_url: str | None = None
    domain: str | None = None
    verification_status: VerificationStatus | None = None
    email_provider: str | None = None
    provider_source: ProviderSource = "findymail"

    @model_validator(mode="after")
    def _status_with_email(self) -> EnrichmentResult:
        if self.email and self.verification_status is None:
            self.verification_status = "verified"
        return self

    @property
    def is_usable(self) -> bool:
        """A result only counts as resolved when it carries an email."""
        return bool(self.email and "@" in self.email)


class CacheRecord(BaseModel):
    """Last-known enrichment result for one identity hash."""

    identity_hash: str
    original_input: str
    resolved_email: str | None = None
    resolved_name: str | None = None
    resolved_linkedin_url: str | None = None
    verification_status: VerificationStatus | None = None
    provider_source: ProviderSource = "findymail"
    email_provider: str | None = None
    hit_count: int = 1
    last_accessed_at: datetime
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="after")
    def _check_invariants(self) -> CacheRecord:
        if self.hit_count < 1:
            raise ValueError("hit_count must be >= 1")
        if self.resolved_email is not None and self.verification_status is None:
            raise ValueError("resolved_email requires verification_status")
        return self

    def to_result(self) -> EnrichmentResult:
        """Project the record back into the provider-result shape."""
        return EnrichmentResult(
            email=self.resolved_email,
            name=self.resolved_name,
            linkedin_url=self.resolved_linkedin_url,
            domain=self.resolved_email.split("@", 1)[1] if self.resolved_email else None,
            verification_status=self.verification_status,
            email_provider=self.email_provider,
            provider_source=self.provider_source,
        )


class SearchHistoryRecord(BaseModel):
    """Data-free per-identity search counters (no tenant, no requester)."""

    identity_hash: str
    times_searched: int = 0
    successful_finds: int = 0
    failed_searches: int = 0
    first_searched_at: datetime
    last_provider_call_at: datetime | None = None

    @property
    def provider_calls(self) -> int:
        return self.successful_finds + self.failed_searches


class RequestContext(BaseModel):
    """Who is asking. Used for log and ledger attribution, never cached."""

    organization_id: str | None = None
    user_id: str | None = None
    lead_id: str | None = None
    request_id: str | None = None


class LookupOutcome(BaseModel):
    """Result of one resolve() call as seen by the caller."""

    status: Literal["cache_hit", "provider_success", "provider_failure"]
    identity_hash: str
    result: EnrichmentResult | None = None
    credits_charged: int = 0
    failure_reason: FailureReason | None = None
    error: str | None = None
    hit_count: int | None = None
    stale: bool = False
    cached: bool = True

    @property
    def success(self) -> bool:
        return self.status != "provider_failure"

    @property
    def from_cache(self) -> bool:
        return self.status == "cache_hit"

    @classmethod
    def cache_hit(cls, record: CacheRecord, stale: bool = False) -> LookupOutcome:
        return cls(
            status="cache_hit",
            identity_hash=record.identity_hash,
            result=record.to_result(),
            credits_charged=0,
            hit_count=record.hit_count,
            stale=stale,
        )

    @classmethod
    def provider_success(
        cls,
        identity_hash: str,
        result: EnrichmentResult,
        cached: bool = True,
        hit_count: int | None = None,
    ) -> LookupOutcome:
        return cls(
            status="provider_success",
            identity_hash=identity_hash,
            result=result,
            credits_charged=1,
            hit_count=hit_count,
            cached=cached,
        )

    @classmethod
    def provider_failure(
        cls, identity_hash: str, reason: FailureReason, error: str | None = None
    ) -> LookupOutcome:
        return cls(
            status="provider_failure",
            identity_hash=identity_hash,
            credits_charged=0,
            failure_reason=reason,
            error=error,
            cached=False,
        )


class PurgeResult(BaseModel):
    """Counts returned by a maintenance purge."""

    records_deleted: int = 0
    history_deleted: int = 0
