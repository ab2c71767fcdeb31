# src/logging/context.py - v1
"""Contextual logging support: attach request_id, organization_id, operation
and identity hash to log records.

The organization id lives only in log context. It is never written to the
cache or the search history.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging, set per lookup request.
_request_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)
_organization_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "organization_id", default=None
)
_operation: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "operation", default=None
)
_identity: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "identity", default=None
)

# Length of the identity hash prefix shown in logs.
IDENTITY_PREFIX_LEN = 12


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    request_id: str | None = None
    organization_id: str | None = None
    operation: str | None = None
    identity: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        request_id=_request_id.get(),
        organization_id=_organization_id.get(),
        operation=_operation.get(),
        identity=_identity.get(),
    )


def set_request_context(request_id: str, organization_id: str | None = None) -> None:
    """Set request-level context (once per caller request)."""
    _request_id.set(request_id)
    _organization_id.set(organization_id)


def set_lookup_context(operation: str, identity_hash: str | None = None) -> None:
    """Set lookup-level context (called per resolve)."""
    _operation.set(operation)
    _identity.set(identity_hash[:IDENTITY_PREFIX_LEN] if identity_hash else None)


def clear_context() -> None:
    """Reset all context variables."""
    _request_id.set(None)
    _organization_id.set(None)
    _operation.set(None)
    _identity.set(None)
