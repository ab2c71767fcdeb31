# src/providers/base_provider.py - v1
"""Abstract enrichment provider interface and provider error taxonomy.

Adapters translate transport and HTTP failures into exactly one of the three
ProviderError subclasses; the lookup coordinator turns them into typed
provider_failure outcomes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel

from contactcache.cache.models import EnrichmentResult, FailureReason


class ProviderCredits(BaseModel):
    """Remaining credit balances reported by the provider."""

    finder_credits: int = 0
    verifier_credits: int = 0


class ProviderError(Exception):
    """Base class for provider call failures. No credit is charged."""

    reason: FailureReason = "transient_error"

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class ProviderNotFoundError(ProviderError):
    """The provider has no email for this identity."""

    reason: FailureReason = "not_found"


class ProviderRejectedInputError(ProviderError):
    """The provider refused the input as malformed."""

    reason: FailureReason = "invalid_input"


class ProviderTransientError(ProviderError):
    """Timeout, rate limit, server error, auth or credit exhaustion."""

    reason: FailureReason = "transient_error"

    def __init__(
        self,
        message: str,
        error_type: str = "unknown",
        status_code: int | None = None,
    ):
        self.error_type = error_type
        super().__init__(message, status_code=status_code)


class BaseEnrichmentProvider(ABC):
    """Unified interface for paid contact-lookup APIs."""

    @abstractmethod
    async def find_email_by_linkedin(self, linkedin_url: str) -> EnrichmentResult:
        """Find an email from a LinkedIn profile URL (1 finder credit)."""

    @abstractmethod
    async def verify_email(self, email: str) -> EnrichmentResult:
        """Verify an email address (1 verifier credit)."""

    @abstractmethod
    async def get_remaining_credits(self) -> ProviderCredits:
        """Current credit balances (free call)."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier stored as provider_source (findymail, ...)."""

    async def close(self) -> None:
        """Release HTTP resources."""
