# tests/unit/cache/test_unit_cache_models.py - v1
"""Tests for cache/models.py - record invariants and outcome constructors."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from contactcache.cache.models import (
    CacheRecord,
    EnrichmentResult,
    LookupOutcome,
    SearchHistoryRecord,
)
from tests.conftest import FOUND_EMAIL, T0, make_record


class TestEnrichmentResult:
    def test_email_defaults_status_to_verified(self):
        result = EnrichmentResult(email="a@b.io")
        assert result.verification_status == "verified"

    def test_no_email_no_status(self):
        result = EnrichmentResult()
        assert result.verification_status is None
        assert result.is_usable is False

    def test_is_usable_requires_at_sign(self):
        assert EnrichmentResult(email="a@b.io").is_usable
        assert not EnrichmentResult(email="not-an-email").is_usable


class TestCacheRecord:
    def test_valid_record(self):
        record = make_record()
        assert record.hit_count == 1
        assert record.provider_source == "findymail"

    def test_hit_count_must_be_positive(self):
        with pytest.raises(ValidationError, match="hit_count"):
            make_record(hit_count=0)

    def test_email_requires_status(self):
        with pytest.raises(ValidationError, match="verification_status"):
            CacheRecord(
                identity_hash="a" * 64,
                original_input="x",
                resolved_email="a@b.io",
                verification_status=None,
                last_accessed_at=T0,
                created_at=T0,
                updated_at=T0,
            )

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            make_record(verification_status="maybe")

    def test_to_result(self):
        result = make_record().to_result()
        assert result.email == FOUND_EMAIL
        assert result.domain == "acme.io"
        assert result.name == "Jane Doe"


class TestSearchHistoryRecord:
    def test_provider_calls(self):
        history = SearchHistoryRecord(
            identity_hash="a" * 64,
            times_searched=5,
            successful_finds=1,
            failed_searches=2,
            first_searched_at=T0,
        )
        assert history.provider_calls == 3


class TestLookupOutcome:
    def test_cache_hit(self):
        outcome = LookupOutcome.cache_hit(make_record(hit_count=3))
        assert outcome.status == "cache_hit"
        assert outcome.credits_charged == 0
        assert outcome.hit_count == 3
        assert outcome.from_cache and outcome.success

    def test_provider_success_charges_one_credit(self):
        outcome = LookupOutcome.provider_success("h" * 64, EnrichmentResult(email="a@b.io"))
        assert outcome.credits_charged == 1
        assert outcome.cached is True
        assert not outcome.from_cache

    def test_provider_failure_is_free(self):
        outcome = LookupOutcome.provider_failure("h" * 64, "not_found", "nothing")
        assert outcome.credits_charged == 0
        assert outcome.failure_reason == "not_found"
        assert outcome.result is None
        assert not outcome.success
