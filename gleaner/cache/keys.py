"""Edge-cache key derivation.

Keys depend only on the endpoint, the target username and the response schema
version, never on request-specific query or auth state, so every caller for
one user shares a single cached artifact.
"""

from __future__ import annotations

import urllib.parse

SCHEMA_VERSION = 1


def _base(endpoint: str, username: str) -> str:
    return f"{endpoint}?{urllib.parse.urlencode({'username': username.lower()})}"


def entry_key(endpoint: str, username: str, *, version: int = SCHEMA_VERSION) -> str:
    """Return the key under which a response is cached."""
    return f"{_base(endpoint, username)}&v={version}"


def lease_key(endpoint: str, username: str, *, version: int = SCHEMA_VERSION) -> str:
    """Return the key of the revalidation lease guarding ``entry_key``."""
    return f"{entry_key(endpoint, username, version=version)}&lock=1"


def rate_limit_key(endpoint: str, username: str) -> str:
    """Return the key of the rate-limit side channel for an endpoint and user."""
    return f"{_base(endpoint, username)}&ratelimit=1"
