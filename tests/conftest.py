# tests/conftest.py - v1
"""Shared test fixtures for all unit and integration tests.

Provides a scripted enrichment provider, a controllable clock, settings that
ignore any local .env, and in-memory stores. No network, no external services.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from contactcache.cache.coordinator import LookupCoordinator
from contactcache.cache.memory_store import MemoryCacheStore
from contactcache.cache.models import CacheRecord, EnrichmentResult
from contactcache.config.settings import Settings
from contactcache.providers.base_provider import (
    BaseEnrichmentProvider,
    ProviderCredits,
    ProviderError,
)
from contactcache.tracking.call_logger import ProviderCallLogger

T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

LINKEDIN_URL = "https://www.linkedin.com/in/janedoe"
FOUND_EMAIL = "jane.doe@acme.io"


class FakeClock:
    """Callable clock the tests move forward explicitly."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeProvider(BaseEnrichmentProvider):
    """Scripted provider that counts calls.

    `errors` maps a stripped input to an exception raised for it; anything
    else resolves to FOUND_EMAIL (or to the input itself for verify_email).
    """

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self.calls: list[tuple[str, str]] = []
        self.errors: dict[str, ProviderError] = {}
        self.closed = False

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def find_email_by_linkedin(self, linkedin_url: str) -> EnrichmentResult:
        self.calls.append(("find_email_by_linkedin", linkedin_url))
        if self.delay:
            await asyncio.sleep(self.delay)
        if linkedin_url in self.errors:
            raise self.errors[linkedin_url]
        return EnrichmentResult(
            email=FOUND_EMAIL,
            name="Jane Doe",
            linkedin_url=linkedin_url,
            domain="acme.io",
            verification_status="verified",
            email_provider="Other",
        )

    async def verify_email(self, email: str) -> EnrichmentResult:
        self.calls.append(("verify_email", email))
        if self.delay:
            await asyncio.sleep(self.delay)
        if email in self.errors:
            raise self.errors[email]
        return EnrichmentResult(
            email=email,
            domain=email.split("@", 1)[1],
            verification_status="verified",
            email_provider="Gmail" if "gmail" in email else "Other",
        )

    async def get_remaining_credits(self) -> ProviderCredits:
        return ProviderCredits(finder_credits=500, verifier_credits=250)

    @property
    def provider_name(self) -> str:
        return "findymail"

    async def close(self) -> None:
        self.closed = True


def make_record(identity_hash: str = "a" * 64, **overrides: object) -> CacheRecord:
    """Valid CacheRecord created at T0 unless overridden."""
    defaults: dict[str, object] = dict(
        identity_hash=identity_hash,
        original_input=LINKEDIN_URL,
        resolved_email=FOUND_EMAIL,
        resolved_name="Jane Doe",
        resolved_linkedin_url=LINKEDIN_URL,
        verification_status="verified",
        provider_source="findymail",
        email_provider="Other",
        hit_count=1,
        last_accessed_at=T0,
        created_at=T0,
        updated_at=T0,
    )
    defaults.update(overrides)
    return CacheRecord(**defaults)  # type: ignore[arg-type]


# === FIXTURES ===


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def slow_provider() -> FakeProvider:
    """Provider whose calls take long enough for callers to pile up."""
    return FakeProvider(delay=0.05)


@pytest.fixture
def memory_store() -> MemoryCacheStore:
    return MemoryCacheStore()


@pytest.fixture
def call_logger() -> ProviderCallLogger:
    return ProviderCallLogger()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from any .env in the working directory."""
    return Settings(_env_file=None, cache_backend="memory", cache_root=tmp_path)  # type: ignore[call-arg]


@pytest.fixture
def coordinator(
    memory_store: MemoryCacheStore,
    fake_provider: FakeProvider,
    call_logger: ProviderCallLogger,
    clock: FakeClock,
) -> LookupCoordinator:
    return LookupCoordinator(
        memory_store,
        fake_provider,
        call_logger=call_logger,
        write_retry_delay=0.0,
        clock=clock,
    )
