# src/providers/findymail_adapter.py - v1
"""FindyMail HTTP adapter implementing BaseEnrichmentProvider.

Endpoints (bearer auth):
    POST /api/search/linkedin  {"linkedin_url"} -> {"contact": {"email", "name", "domain"}}
    POST /api/verify           {"email"}        -> {"verified", "provider"}
    GET  /api/credits                           -> {"credits", "verifier_credits"}
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from contactcache.cache.models import EnrichmentResult
from contactcache.providers.base_provider import (
    BaseEnrichmentProvider,
    ProviderCredits,
    ProviderNotFoundError,
    ProviderRejectedInputError,
    ProviderTransientError,
)
from contactcache.providers.retry import RetryConfig, with_retry

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://app.findymail.com"

_TRANSIENT_STATUS = {
    401: "auth",
    402: "insufficient_credits",
    403: "auth",
    429: "rate_limit",
}


def email_provider_for(domain: str | None) -> str | None:
    """Mailbox provider label derived from the email domain."""
    if not domain:
        return None
    domain = domain.lower()
    if "gmail" in domain:
        return "Gmail"
    if "outlook" in domain or "hotmail" in domain:
        return "Outlook"
    return "Other"


class FindymailAdapter(BaseEnrichmentProvider):
    """FindyMail API adapter."""

    def __init__(
        self,
        api_key: str = "",
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        credits_timeout: float = 10.0,
        retry_configs: dict[str, RetryConfig] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_key = api_key
        self._timeout = timeout
        self._credits_timeout = credits_timeout
        self._retry_configs = retry_configs
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    async def find_email_by_linkedin(self, linkedin_url: str) -> EnrichmentResult:
        data = await with_retry(
            self._request,
            "POST",
            "/api/search/linkedin",
            json={"linkedin_url": linkedin_url},
            operation="find_email_by_linkedin",
            retry_configs=self._retry_configs,
        )
        contact = data.get("contact") or {}
        email = contact.get("email")
        if not email or "@" not in email:
            raise ProviderNotFoundError("No email found for this LinkedIn profile")

        domain = contact.get("domain") or email.split("@", 1)[1]
        return EnrichmentResult(
            email=email,
            name=contact.get("name"),
            linkedin_url=linkedin_url,
            domain=domain,
            verification_status="verified",
            email_provider=email_provider_for(domain),
            provider_source="findymail",
        )

    async def verify_email(self, email: str) -> EnrichmentResult:
        data = await with_retry(
            self._request,
            "POST",
            "/api/verify",
            json={"email": email},
            operation="verify_email",
            retry_configs=self._retry_configs,
        )
        domain = email.split("@", 1)[1] if "@" in email else None
        return EnrichmentResult(
            email=email,
            domain=domain,
            verification_status="verified" if data.get("verified") else "unverified",
            email_provider=data.get("provider") or email_provider_for(domain),
            provider_source="findymail",
        )

    async def get_remaining_credits(self) -> ProviderCredits:
        data = await with_retry(
            self._request,
            "GET",
            "/api/credits",
            timeout=self._credits_timeout,
            operation="get_remaining_credits",
            retry_configs=self._retry_configs,
        )
        return ProviderCredits(
            finder_credits=int(data.get("credits") or 0),
            verifier_credits=int(data.get("verifier_credits") or 0),
        )

    @property
    def provider_name(self) -> str:
        return "findymail"

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Send one request and map failures onto the provider error taxonomy."""
        if not self._api_key:
            raise ProviderTransientError("FINDYMAIL_API_KEY is not configured", error_type="auth")

        try:
            response = await self._client.request(
                method, path, json=json, timeout=timeout or self._timeout
            )
        except httpx.TimeoutException as e:
            raise ProviderTransientError(f"FindyMail timeout on {path}", error_type="timeout") from e
        except httpx.TransportError as e:
            raise ProviderTransientError(
                f"FindyMail connection error on {path}: {e}", error_type="connection"
            ) from e
        except httpx.HTTPError as e:
            raise ProviderTransientError(
                f"FindyMail request failed on {path}: {e}", error_type="http_error"
            ) from e

        status = response.status_code
        if status == 404:
            raise ProviderNotFoundError(f"FindyMail returned 404 for {path}", status_code=status)
        if status in (400, 422):
            raise ProviderRejectedInputError(
                f"FindyMail rejected input ({status}): {response.text[:200]}",
                status_code=status,
            )
        if status in _TRANSIENT_STATUS:
            raise ProviderTransientError(
                f"FindyMail error {status} on {path}",
                error_type=_TRANSIENT_STATUS[status],
                status_code=status,
            )
        if status >= 500:
            raise ProviderTransientError(
                f"FindyMail server error {status} on {path}",
                error_type="server_error",
                status_code=status,
            )
        if status >= 300:
            raise ProviderTransientError(
                f"Unexpected FindyMail status {status} on {path}", status_code=status
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderTransientError(
                f"Invalid JSON from FindyMail on {path}", error_type="parse_error"
            ) from e
        logger.debug("FindyMail %s %s -> %d", method, path, status)
        return data if isinstance(data, dict) else {}
