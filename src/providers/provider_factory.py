# src/providers/provider_factory.py - v1
"""Factory: instantiate an enrichment provider from its name."""

from __future__ import annotations

import importlib
import logging

from contactcache.config.settings import Settings
from contactcache.providers.base_provider import BaseEnrichmentProvider

logger = logging.getLogger(__name__)

# Registry of provider name -> adapter class path (lazy import).
_PROVIDER_REGISTRY: dict[str, str] = {
    "findymail": "contactcache.providers.findymail_adapter.FindymailAdapter",
}


class UnsupportedProviderError(ValueError):
    """Raised when a provider is not registered."""


def create_provider(
    provider: str | None = None,
    settings: Settings | None = None,
    **kwargs: object,
) -> BaseEnrichmentProvider:
    """Instantiate the adapter for a provider name.

    Args:
        provider: Provider identifier. Defaults to settings.provider_default.
        settings: Application settings (API key, base URL, timeouts).
        **kwargs: Extra adapter arguments (e.g. an httpx transport in tests).

    Raises:
        UnsupportedProviderError: If provider is not registered.
    """
    name = provider or (settings.provider_default if settings else "findymail")
    if name not in _PROVIDER_REGISTRY:
        raise UnsupportedProviderError(
            f"Unsupported enrichment provider: {name!r}. "
            f"Available: {', '.join(sorted(_PROVIDER_REGISTRY))}"
        )

    adapter_cls = _import_class(_PROVIDER_REGISTRY[name])

    init_kwargs = dict(kwargs)
    if settings is not None and name == "findymail":
        init_kwargs.setdefault("api_key", settings.findymail_api_key)
        init_kwargs.setdefault("base_url", settings.findymail_base_url)
        init_kwargs.setdefault("timeout", settings.findymail_timeout_seconds)
        init_kwargs.setdefault("credits_timeout", settings.findymail_credits_timeout_seconds)

    logger.debug("Creating enrichment provider: %s", name)
    return adapter_cls(**init_kwargs)


def register_provider(name: str, class_path: str) -> None:
    """Register a custom provider adapter.

    Args:
        name: Provider identifier.
        class_path: Fully qualified class path implementing BaseEnrichmentProvider.
    """
    _PROVIDER_REGISTRY[name] = class_path
    logger.info("Registered enrichment provider: %s -> %s", name, class_path)


def _import_class(class_path: str) -> type:
    """Dynamically import a class from its fully qualified path."""
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
