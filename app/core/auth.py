"""API key recognition for quota identity.

A requester only gets a per-API-key quota when the X-API-Key header names a
configured key. Any other value is ignored and the requester is limited per
client IP, so rotating made-up keys cannot buy extra quota.

Keys are configured as a comma-separated list in ``APP_API_KEYS``.
"""

from __future__ import annotations

import hmac

from app.core.config import settings


def parse_api_keys(keys_string: str | None) -> set[str]:
    """Parse comma-separated API keys into a set.

    Args:
        keys_string: Comma-separated string of API keys, or None.

    Returns:
        Set of trimmed, non-empty API keys.

    Examples:
        >>> sorted(parse_api_keys("key1, key2 , key3 "))
        ['key1', 'key2', 'key3']
        >>> parse_api_keys(None)
        set()
    """
    if not keys_string:
        return set()

    return {key.strip() for key in keys_string.split(",") if key.strip()}


def is_known_api_key(provided_key: str | None) -> bool:
    """Return True if provided_key is one of the configured API keys."""
    if not provided_key:
        return False

    return any(
        hmac.compare_digest(provided_key.encode(), key.encode())
        for key in parse_api_keys(settings.app.api_keys)
    )
