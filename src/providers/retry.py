# src/providers/retry.py - v1
"""Retry policy with exponential backoff for transient provider errors.

Only ProviderTransientError is retried, and only for error types that have a
RetryConfig. Auth failures and exhausted credits are not retried: repeating
them cannot succeed.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from contactcache.providers.base_provider import ProviderTransientError

logger = logging.getLogger(__name__)


class ProviderRetryExhausted(ProviderTransientError):
    """All retries exhausted for a provider call."""

    def __init__(self, operation: str, error_type: str, attempts: int, last_error: Exception):
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"'{operation}' failed after {attempts} attempts ({error_type}): {last_error}",
            error_type=error_type,
            status_code=getattr(last_error, "status_code", None),
        )


@dataclass(frozen=True)
class RetryConfig:
    """Retry configuration for a specific error type."""

    max_retries: int
    base_delay_s: float
    backoff_factor: float = 2.0
    jitter: bool = True


DEFAULT_RETRY_CONFIGS: dict[str, RetryConfig] = {
    "rate_limit": RetryConfig(max_retries=3, base_delay_s=2.0),
    "timeout": RetryConfig(max_retries=2, base_delay_s=1.0, backoff_factor=1.0),
    "server_error": RetryConfig(max_retries=3, base_delay_s=2.0),
    "connection": RetryConfig(max_retries=2, base_delay_s=1.0),
}


def _compute_delay(config: RetryConfig, attempt: int) -> float:
    """Compute delay for a given attempt (0-based)."""
    delay = config.base_delay_s * (config.backoff_factor ** attempt)
    if config.jitter:
        delay *= 0.5 + random.random()  # noqa: S311
    return delay


async def with_retry(
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    operation: str = "unknown",
    retry_configs: dict[str, RetryConfig] | None = None,
    **kwargs: Any,
) -> Any:
    """Execute an async provider call with retry logic.

    Raises:
        ProviderRetryExhausted: If a retryable error persists past its budget.
        ProviderError: Non-retryable errors propagate unchanged.
    """
    configs = DEFAULT_RETRY_CONFIGS if retry_configs is None else retry_configs
    attempts = 0

    while True:
        try:
            return await fn(*args, **kwargs)
        except ProviderTransientError as e:
            attempts += 1
            config = configs.get(e.error_type)
            if config is None:
                raise
            if attempts > config.max_retries:
                raise ProviderRetryExhausted(operation, e.error_type, attempts, e) from e

            delay = _compute_delay(config, attempts - 1)
            logger.warning(
                "Provider call '%s' - %s (attempt %d/%d), retrying in %.1fs",
                operation, e.error_type, attempts, config.max_retries, delay,
            )
            await asyncio.sleep(delay)
