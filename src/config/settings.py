# src/config/settings.py - v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for deployment-specific settings: provider access,
cache backends, freshness/retention policy, accounting and logging.
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === PROVIDER ===
    provider_default: str = "findymail"
    findymail_api_key: str = ""
    findymail_base_url: str = "https://app.findymail.com"
    findymail_timeout_seconds: float = 30.0
    findymail_credits_timeout_seconds: float = 10.0

    # === Cache ===
    cache_backend: Literal["memory", "sqlite", "redis", "tiered"] = "sqlite"
    cache_hot_backend: Literal["memory", "redis"] = "memory"
    cache_root: Path = Path("~/.contactcache")
    cache_redis_url: str = ""
    cache_hot_ttl_days: int = 7
    cache_hot_max_records: int = 10000

    # === Freshness / retention policy ===
    freshness_window_days: int = 30
    record_retention_days: int = 30
    record_idle_days: int = 7
    history_retention_days: int = 365
    serve_stale_on_error: bool = False
    cache_allow_degraded_reads: bool = False
    cache_write_retries: int = 2
    cache_write_retry_delay_seconds: float = 0.5
    lock_timeout_seconds: float = 60.0
    linkedin_canonicalize: bool = False

    # === Accounting ===
    cost_per_credit: float = 0.10
    call_ledger_max_records: int = 10000

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator(
        "cache_write_retries",
        "cache_hot_ttl_days",
        "cache_hot_max_records",
        "call_ledger_max_records",
    )
    @classmethod
    def validate_non_negative(cls, v: int) -> int:  # noqa: N805
        if v < 0:
            raise ValueError("value must be >= 0")
        return v

    @field_validator("cost_per_credit")
    @classmethod
    def validate_cost_per_credit(cls, v: float) -> float:  # noqa: N805
        if v < 0:
            raise ValueError("cost_per_credit must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.freshness_window_days <= 0:
            errors.append("FRESHNESS_WINDOW_DAYS must be > 0")

        if self.record_retention_days < self.freshness_window_days:
            errors.append(
                "RECORD_RETENTION_DAYS must be >= FRESHNESS_WINDOW_DAYS"
            )

        if self.history_retention_days < self.record_retention_days:
            errors.append(
                "HISTORY_RETENTION_DAYS must be >= RECORD_RETENTION_DAYS"
            )

        uses_redis = self.cache_backend == "redis" or (
            self.cache_backend == "tiered" and self.cache_hot_backend == "redis"
        )
        if uses_redis and not self.cache_redis_url:
            errors.append("CACHE_REDIS_URL must be set when a redis tier is used")

        if self.lock_timeout_seconds <= 0:
            errors.append("LOCK_TIMEOUT_SECONDS must be > 0")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def freshness_window(self) -> timedelta:
        return timedelta(days=self.freshness_window_days)

    @property
    def hot_cache_ttl_seconds(self) -> int:
        return self.cache_hot_ttl_days * 86400

    @property
    def sqlite_path(self) -> Path:
        """Location of the warm-tier database file."""
        return Path(self.cache_root).expanduser() / "contact_cache.db"


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or one-off CLI runs).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
