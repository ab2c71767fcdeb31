# src/api/models.py - v1
"""API-level models: LookupRequest, CleanupReport."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, field_validator

from contactcache.cache.models import LookupKind, PurgeResult, RequestContext


class LookupRequest(BaseModel):
    """One caller request: what to look up and on whose behalf."""

    value: str
    kind: LookupKind
    organization_id: str | None = None
    user_id: str | None = None
    lead_id: str | None = None
    request_id: str | None = None

    @field_validator("value")
    @classmethod
    def validate_value(cls, v: str) -> str:  # noqa: N805
        if not v or not v.strip():
            raise ValueError("lookup value must not be blank")
        return v

    def context(self) -> RequestContext:
        return RequestContext(
            organization_id=self.organization_id,
            user_id=self.user_id,
            lead_id=self.lead_id,
            request_id=self.request_id,
        )


class CleanupReport(BaseModel):
    """Return value of EnrichmentService.cleanup()."""

    ran_at: datetime
    record_cutoff: datetime
    history_cutoff: datetime
    purged: PurgeResult
