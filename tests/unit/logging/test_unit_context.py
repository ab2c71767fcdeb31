# tests/unit/logging/test_unit_context.py - v1
"""Tests for logging/context.py - per-request logging variables."""

from __future__ import annotations

import asyncio

import pytest

from contactcache.logging.context import (
    IDENTITY_PREFIX_LEN,
    clear_context,
    get_context,
    set_lookup_context,
    set_request_context,
)


class TestLogContext:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_initial_state(self):
        ctx = get_context()
        assert ctx.request_id is None
        assert ctx.organization_id is None
        assert ctx.operation is None
        assert ctx.identity is None

    def test_set_request_context(self):
        set_request_context("req-1", "org-a")
        ctx = get_context()
        assert ctx.request_id == "req-1"
        assert ctx.organization_id == "org-a"

    def test_identity_is_truncated(self):
        set_lookup_context("resolve_linkedin", "0123456789abcdef" * 4)
        ctx = get_context()
        assert ctx.operation == "resolve_linkedin"
        assert ctx.identity == "0123456789ab"
        assert len(ctx.identity) == IDENTITY_PREFIX_LEN

    def test_as_dict_filters_none(self):
        set_request_context("req-1")
        d = get_context().as_dict()
        assert d == {"request_id": "req-1"}

    def test_clear(self):
        set_request_context("req-1", "org-a")
        set_lookup_context("resolve_email", "f" * 64)
        clear_context()
        assert get_context().as_dict() == {}

    @pytest.mark.asyncio
    async def test_isolated_between_tasks(self):
        async def lookup(org: str) -> str | None:
            set_request_context(f"req-{org}", org)
            await asyncio.sleep(0)
            return get_context().organization_id

        results = await asyncio.gather(lookup("a"), lookup("b"))
        assert results == ["a", "b"]
        assert get_context().organization_id is None
