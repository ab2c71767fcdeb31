# tests/unit/tracking/test_unit_call_logger.py - v1
"""Tests for tracking/call_logger.py."""

from __future__ import annotations

import json

from contactcache.tracking.call_logger import ProviderCallLogger

HASH = "f" * 64


class TestProviderCallLogger:
    def test_record(self):
        ledger = ProviderCallLogger()
        record = ledger.record(
            operation="find_email_by_linkedin",
            provider="findymail",
            identity_hash=HASH,
            status="success",
            credits_charged=1,
            latency_ms=120,
            cached=True,
            organization_id="org-a",
            request_id="req-1",
        )
        assert record.identity_hash_prefix == HASH[:12]
        assert record.organization_id == "org-a"
        assert record.call_id
        assert ledger.records == [record]

    def test_totals(self):
        ledger = ProviderCallLogger()
        ledger.record("find_email_by_linkedin", "findymail", HASH, "success", credits_charged=1)
        ledger.record("verify_email", "findymail", HASH, "failure", failure_reason="not_found")
        assert ledger.total_calls == 2
        assert ledger.total_credits == 1

    def test_records_is_a_copy(self):
        ledger = ProviderCallLogger()
        ledger.record("verify_email", "findymail", HASH, "success", credits_charged=1)
        ledger.records.clear()
        assert ledger.total_calls == 1

    def test_save_appends_jsonl(self, tmp_path):
        path = tmp_path / "calls" / "ledger.jsonl"
        ledger = ProviderCallLogger()
        ledger.record("verify_email", "findymail", HASH, "success", credits_charged=1)
        ledger.save(path)
        ledger.save(path)

        lines = path.read_text().splitlines()
        assert len(lines) == 2
        assert json.loads(lines[0])["operation"] == "verify_email"

    def test_retained_records_are_bounded(self):
        ledger = ProviderCallLogger(max_records=3)
        for i in range(5):
            ledger.record("verify_email", "findymail", f"{i}" * 64, "success", credits_charged=1)
        assert [r.identity_hash_prefix for r in ledger.records] == ["2" * 12, "3" * 12, "4" * 12]
        assert ledger.total_calls == 5
        assert ledger.total_credits == 5

    def test_tenant_usage_survives_eviction(self):
        ledger = ProviderCallLogger(max_records=1)
        ledger.record("verify_email", "findymail", HASH, "success", credits_charged=1, organization_id="org-a")
        ledger.record("verify_email", "findymail", HASH, "failure", organization_id="org-a")
        ledger.record("verify_email", "findymail", HASH, "success", credits_charged=1, organization_id="org-b")
        usage = ledger.tenant_usage
        assert usage["org-a"].provider_calls == 2
        assert usage["org-a"].credits_charged == 1
        assert usage["org-a"].failures == 1
        assert usage["org-b"].credits_charged == 1

    def test_save_with_drain_empties_ledger(self, tmp_path):
        path = tmp_path / "ledger.jsonl"
        ledger = ProviderCallLogger()
        ledger.record("verify_email", "findymail", HASH, "success", credits_charged=1)
        assert ledger.save(path, drain=True) == 1
        assert ledger.records == []
        assert ledger.total_calls == 1
        assert ledger.save(path) == 0
        assert len(path.read_text().splitlines()) == 1
