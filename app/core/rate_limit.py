"""Rate limiting dependency for FastAPI routes.

This module wires the rate limiting adapter into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on a dependency function only.
- Swap-friendly: storage backend can be replaced (e.g., Redis) behind an
  abstract interface.
- Per-route quotas: ``rate_limit()`` builds dependencies with their own
  limit/window, isolated from the global quota by a scope prefix.

Rate limiting strategy:
- Sliding-window log per requester.
- Requester is the X-API-Key header when it names a configured key
  (APP_API_KEYS), else the client IP.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Annotated, Awaitable, Callable

from fastapi import Header, HTTPException, Request, status

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from app.adapters.rate_limit.in_memory import (
    MAX_LIMIT,
    MAX_WINDOW_MS,
    InMemorySlidingWindowRateLimiter,
)
from app.core.auth import is_known_api_key
from app.core.config import settings

logger = logging.getLogger(__name__)

# request.state attribute holding the last admitted result (read by middleware)
RESULT_STATE_ATTR = "rate_limit_result"

_limiter: AbstractRateLimiter | None = None
_limiter_config: tuple | None = None


def _current_config() -> tuple:
    return (
        settings.app.rate_limit_requests,
        settings.app.rate_limit_window_ms,
        settings.app.rate_limit_max_keys,
        settings.app.rate_limit_sweep_interval_ms,
    )


def get_rate_limiter() -> AbstractRateLimiter:
    """Return the process-wide rate limiter instance.

    The instance is cached in-module to preserve state across requests.
    If configuration changes (primarily in tests), the limiter is rebuilt.
    """

    global _limiter, _limiter_config

    config = _current_config()
    if _limiter is None or _limiter_config != config:
        limit, window_ms, max_keys, sweep_interval_ms = config
        _limiter = InMemorySlidingWindowRateLimiter(
            limit=limit,
            window_ms=window_ms,
            max_keys=max_keys,
            sweep_interval_ms=sweep_interval_ms,
        )
        _limiter_config = config
        logger.info(
            "rate_limit.configured",
            extra={
                "limit": limit,
                "window_ms": window_ms,
                "max_keys": max_keys,
                "sweep_interval_ms": sweep_interval_ms,
            },
        )

    return _limiter


def set_rate_limiter(limiter: AbstractRateLimiter | None) -> None:
    """Install a limiter instance (None drops it so the next call rebuilds)."""

    global _limiter, _limiter_config

    _limiter = limiter
    _limiter_config = _current_config() if limiter is not None else None


def client_host(request: Request) -> str:
    """Resolve the client address, honoring X-Forwarded-For when trusted."""

    if settings.app.rate_limit_trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    return request.client.host if request.client else "unknown"


def build_rate_limit_key(request: Request, x_api_key: str | None, scope: str | None = None) -> str:
    """Build the namespaced limiter key for the current request.

    Args:
        request: FastAPI request.
        x_api_key: API key value from the X-API-Key header; only configured
            keys are used, anything else falls back to the client IP.
        scope: Optional quota scope for per-route limits.

    Returns:
        str: Namespaced limiter key.
    """

    if is_known_api_key(x_api_key):
        key = f"api_key:{x_api_key}"
    else:
        key = f"ip:{client_host(request)}"

    return f"{scope}:{key}" if scope else key


def hash_limiter_key(key: str) -> str:
    """Hash the rate limit key for logging without exposing secrets."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Build X-RateLimit-* (and Retry-After when blocked) headers for a result."""

    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_at),
    }
    if not result.allowed:
        headers["Retry-After"] = str(result.retry_after_seconds or 0)
    return headers


def rate_limit(
    *,
    limit: int | None = None,
    window_ms: int | None = None,
    scope: str | None = None,
) -> Callable[..., Awaitable[None]]:
    """Build a FastAPI dependency enforcing a sliding-window quota.

    Args:
        limit: Requests per window; ``APP_RATE_LIMIT_REQUESTS`` when omitted.
        window_ms: Window in milliseconds; ``APP_RATE_LIMIT_WINDOW_MS`` when omitted.
        scope: Key prefix isolating this quota from others.

    Returns:
        Async dependency raising HTTP 429 when the requester is over quota.

    Raises:
        ValueError: If limit or window_ms is given and out of range.
    """

    if limit is not None and not 1 <= limit <= MAX_LIMIT:
        raise ValueError(f"limit must be between 1 and {MAX_LIMIT}")
    if window_ms is not None and not 1 <= window_ms <= MAX_WINDOW_MS:
        raise ValueError(f"window_ms must be between 1 and {MAX_WINDOW_MS}")

    async def _enforce(
        request: Request,
        x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
    ) -> None:
        if not settings.app.rate_limit_enabled:
            return

        limiter = get_rate_limiter()
        key = build_rate_limit_key(request, x_api_key, scope)
        key_hash = hash_limiter_key(key)
        key_type = "api_key" if is_known_api_key(x_api_key) else "ip"
        effective_window = window_ms or settings.app.rate_limit_window_ms

        result = limiter.consume(key, limit=limit, window_ms=window_ms)
        if result.allowed:
            setattr(request.state, RESULT_STATE_ATTR, result)
            logger.info(
                "rate_limit.allowed",
                extra={
                    "key_type": key_type,
                    "key_hash": key_hash,
                    "scope": scope,
                    "limit": result.limit,
                    "remaining": result.remaining,
                    "window_ms": effective_window,
                },
            )
            return

        retry_after = result.retry_after_seconds or 0
        logger.warning(
            "rate_limit.exceeded",
            extra={
                "key_type": key_type,
                "key_hash": key_hash,
                "scope": scope,
                "limit": result.limit,
                "remaining": result.remaining,
                "window_ms": effective_window,
                "retry_after_s": retry_after,
                "resource": request.url.path,
            },
        )

        headers = rate_limit_headers(result) if settings.app.rate_limit_include_headers else None
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded. Try again later.",
            headers=headers,
        )

    return _enforce


# Global per-requester quota from settings
enforce_rate_limit = rate_limit()
