# src/cache/identity.py - v1
"""Identity key derivation: raw lookup input -> normalized identity -> hash.

The hash is SHA-256 over the trimmed, lower-cased input, which matches the
`hash_contact_input` function used by existing `contact_hashes` rows, so keys
stay stable across deployments.
"""

from __future__ import annotations

import hashlib
from urllib.parse import urlsplit

IDENTITY_HASH_LENGTH = 64


def normalize_identity(raw_input: str) -> str:
    """Trim surrounding whitespace and lower-case. Empty stays empty."""
    return raw_input.strip().lower()


def hash_identity(normalized: str) -> str:
    """SHA-256 hex digest of an already normalized identity."""
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def identity_key(raw_input: str, canonicalize_linkedin: bool = False) -> str:
    """Derive the cache key for a raw email address or LinkedIn URL.

    Args:
        raw_input: Email address or LinkedIn profile URL as the caller sent it.
        canonicalize_linkedin: Also strip scheme, www., query string, fragment
            and trailing slash from LinkedIn URLs before hashing.

    Returns:
        64-char hex identity hash.
    """
    normalized = normalize_identity(raw_input)
    if canonicalize_linkedin and is_linkedin_url(normalized):
        normalized = canonicalize_linkedin_url(normalized)
    return hash_identity(normalized)


def is_linkedin_url(value: str) -> bool:
    return "linkedin.com/" in value.lower()


def canonicalize_linkedin_url(url: str) -> str:
    """Reduce a LinkedIn profile URL to `linkedin.com/<path>`.

    `https://www.LinkedIn.com/in/JohnDoe/?utm_source=x` and
    `linkedin.com/in/johndoe` both become `linkedin.com/in/johndoe`.
    """
    value = normalize_identity(url)
    if "://" not in value:
        value = f"https://{value}"
    parts = urlsplit(value)
    host = parts.netloc
    if host.startswith("www."):
        host = host[4:]
    # Country subdomains (uk.linkedin.com) point at the same profile.
    if host.endswith(".linkedin.com"):
        host = "linkedin.com"
    path = parts.path.rstrip("/")
    return f"{host}{path}"
