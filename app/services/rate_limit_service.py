"""Rate limit service exposing the limiter to remote callers.

Callers that cannot embed the limiter (other processes, other languages) ask
this service for admit/reject decisions. The service owns parameter
validation: the limiter raises ``ValueError`` for non-positive limits or
windows, which is surfaced as a ``ValidationAppError``.
"""

from __future__ import annotations

import logging

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from app.adapters.rate_limit.in_memory import MAX_LIMIT, MAX_WINDOW_MS
from app.core.errors import NotFoundAppError, ValidationAppError
from app.core.rate_limit import hash_limiter_key

logger = logging.getLogger(__name__)


class RateLimitService:
    """Validate caller parameters and delegate to a rate limiter."""

    def __init__(self, limiter: AbstractRateLimiter) -> None:
        self._limiter = limiter

    def _invalid_params(self, exc: ValueError, limit: int | None, window_ms: int | None) -> ValidationAppError:
        details = {"hint": f"limit must be 1..{MAX_LIMIT}, window_ms must be 1..{MAX_WINDOW_MS}"}
        if limit is not None:
            details["limit"] = limit
        if window_ms is not None:
            details["window_ms"] = window_ms
        return ValidationAppError(
            code="invalid_rate_limit_params",
            message=str(exc),
            details=details,  # type: ignore[arg-type]
        )

    def check(self, key: str, *, limit: int | None = None, window_ms: int | None = None) -> RateLimitResult:
        """Consume one unit of quota for key.

        Raises:
            ValidationAppError: If limit or window_ms is not positive.
        """
        try:
            result = self._limiter.consume(key, limit=limit, window_ms=window_ms)
        except ValueError as exc:
            raise self._invalid_params(exc, limit, window_ms) from exc

        if not result.allowed:
            logger.info(
                "rate_limit.check_rejected",
                extra={
                    "key_hash": hash_limiter_key(key),
                    "limit": result.limit,
                    "retry_after_s": result.retry_after_seconds,
                },
            )
        return result

    def peek(self, key: str, *, limit: int | None = None, window_ms: int | None = None) -> RateLimitResult:
        try:
            return self._limiter.peek(key, limit=limit, window_ms=window_ms)
        except ValueError as exc:
            raise self._invalid_params(exc, limit, window_ms) from exc

    def reset(self, key: str) -> None:
        """Forget key's history.

        Raises:
            NotFoundAppError: If the key is not tracked.
        """
        if not self._limiter.reset(key):
            raise NotFoundAppError(
                code="rate_limit_key_not_found",
                message="No rate limit state is tracked for this key",
                details={"key_hash": hash_limiter_key(key)},
            )
        logger.info("rate_limit.reset", extra={"key_hash": hash_limiter_key(key)})

    def stats(self) -> dict:
        return self._limiter.stats()
