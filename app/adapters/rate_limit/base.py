"""Rate limiter interfaces.

The HTTP layer depends on this abstraction (not the concrete implementation)
so the storage backend can be swapped later (e.g., Redis) with minimal changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check/consume operation.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_at: UNIX epoch seconds when the oldest request in the window
            leaves it (now, when the window is empty).
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def consume(
        self,
        key: str,
        *,
        limit: int | None = None,
        window_ms: int | None = None,
    ) -> RateLimitResult:
        """Record a request for key if it fits in the quota.

        Args:
            key: Unique identifier (e.g., API key, IP address).
            limit: Max requests per window; limiter default when omitted.
            window_ms: Window size in milliseconds; limiter default when omitted.

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    def peek(
        self,
        key: str,
        *,
        limit: int | None = None,
        window_ms: int | None = None,
    ) -> RateLimitResult:
        """Return the decision consume() would make, without recording it."""
        raise NotImplementedError

    @abstractmethod
    def reset(self, key: str) -> bool:
        """Forget all state for key. Returns True if the key was tracked."""
        raise NotImplementedError

    @abstractmethod
    def stats(self) -> dict[str, Any]:
        """Return lightweight limiter metrics without exposing keys."""
        raise NotImplementedError

    def check(
        self,
        key: str,
        limit: int | None = None,
        window_ms: int | None = None,
    ) -> bool:
        """Admit (True) or reject (False) a request for key."""
        return self.consume(key, limit=limit, window_ms=window_ms).allowed
