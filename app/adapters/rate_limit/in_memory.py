"""In-memory sliding-window-log rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: a single lock guards the keyed store, so concurrent checks for
  one key never admit more than ``limit`` requests per window.
- Bounded: idle keys are swept and the store is capped with LRU eviction.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections import OrderedDict, deque
from dataclasses import dataclass, field
from typing import Any, Callable

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
DEFAULT_WINDOW_MS = 60_000
MAX_LIMIT = 1_000_000
# One year; keeps clock arithmetic on float milliseconds exact.
MAX_WINDOW_MS = 365 * 24 * 60 * 60 * 1000


def wall_clock_ms() -> float:
    """Current UNIX time in milliseconds."""
    return time.time() * 1000


@dataclass
class _KeyLog:
    window_ms: int
    timestamps: deque[float] = field(default_factory=deque)

    def prune(self, window_start: float) -> None:
        # Timestamps equal to window_start have already left the window.
        while self.timestamps and self.timestamps[0] <= window_start:
            self.timestamps.popleft()

    def is_idle(self, now: float) -> bool:
        return not self.timestamps or self.timestamps[-1] <= now - self.window_ms


def _validate_params(limit: int, window_ms: int) -> None:
    if not 1 <= limit <= MAX_LIMIT:
        raise ValueError(f"limit must be between 1 and {MAX_LIMIT}")
    if not 1 <= window_ms <= MAX_WINDOW_MS:
        raise ValueError(f"window_ms must be between 1 and {MAX_WINDOW_MS}")


class InMemorySlidingWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter keeping a log of admitted request timestamps per key.

    A request for ``key`` is admitted when fewer than ``limit`` admitted
    requests happened during the trailing ``window_ms`` milliseconds.
    Rejected requests are never recorded, so hammering a limited key does not
    push back the moment it frees up.

    Stale timestamps are pruned lazily, only for the key being checked. Keys
    whose whole log has left the window are removed by :meth:`sweep`, which
    ``consume`` also runs at most once per ``sweep_interval_ms``.

    Important:
        This limiter is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits.
    """

    def __init__(
        self,
        *,
        limit: int = DEFAULT_LIMIT,
        window_ms: int = DEFAULT_WINDOW_MS,
        max_keys: int | None = None,
        sweep_interval_ms: int | None = None,
        clock: Callable[[], float] = wall_clock_ms,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            limit: Default maximum number of admitted requests per window.
            window_ms: Default sliding window size in milliseconds.
            max_keys: Maximum number of tracked keys (None for unbounded).
            sweep_interval_ms: Minimum delay between automatic idle-key
                sweeps (None disables automatic sweeps).
            clock: Time source returning UNIX time in milliseconds.

        Raises:
            ValueError: If any limit or interval is invalid.
        """
        _validate_params(limit, window_ms)
        if max_keys is not None and max_keys < 1:
            raise ValueError("max_keys must be >= 1")
        if sweep_interval_ms is not None and sweep_interval_ms < 1:
            raise ValueError("sweep_interval_ms must be >= 1")

        self._limit = limit
        self._window_ms = window_ms
        self._max_keys = max_keys
        self._sweep_interval_ms = sweep_interval_ms
        self._clock = clock
        self._lock = threading.RLock()
        self._logs: OrderedDict[str, _KeyLog] = OrderedDict()
        self._last_sweep = clock()
        self._admitted = 0
        self._rejected = 0
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemorySlidingWindowRateLimiter(limit={self._limit}, "
            f"window_ms={self._window_ms}, max_keys={self._max_keys}, "
            f"keys={len(self._logs)})"
        )

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_ms(self) -> int:
        return self._window_ms

    def _resolve(self, limit: int | None, window_ms: int | None) -> tuple[int, int]:
        limit = self._limit if limit is None else limit
        window_ms = self._window_ms if window_ms is None else window_ms
        _validate_params(limit, window_ms)
        return limit, window_ms

    def _build_result(
        self,
        *,
        allowed: bool,
        limit: int,
        window_ms: int,
        timestamps: deque[float],
        now: float,
    ) -> RateLimitResult:
        """Build a RateLimitResult from the pruned log of a key.

        Args:
            allowed: Decision for the current request.
            limit: Effective limit.
            window_ms: Effective window size in milliseconds.
            timestamps: In-window timestamps (after recording, if admitted).
            now: Current time in milliseconds.
        """
        remaining = max(0, limit - len(timestamps))
        frees_at = timestamps[0] + window_ms if timestamps else now
        reset_at = int(math.ceil(frees_at / 1000))

        retry_after: int | None = None
        if not allowed:
            retry_after = max(0, int(math.ceil((frees_at - now) / 1000)))

        return RateLimitResult(
            allowed=allowed,
            limit=limit,
            remaining=remaining,
            reset_at=reset_at,
            retry_after_seconds=retry_after,
        )

    def consume(
        self,
        key: str,
        *,
        limit: int | None = None,
        window_ms: int | None = None,
    ) -> RateLimitResult:
        """Admit or reject a request for key, recording it when admitted.

        Args:
            key: Rate limit key. Empty keys are accepted and share one bucket.
            limit: Max requests per window (limiter default when omitted).
            window_ms: Window size in milliseconds (limiter default when omitted).

        Returns:
            RateLimitResult with allowance decision and metadata.

        Raises:
            ValueError: If limit or window_ms is out of range.
        """
        limit, window_ms = self._resolve(limit, window_ms)

        with self._lock:
            now = self._clock()
            self._maybe_sweep_locked(now)

            log = self._logs.get(key)
            if log is None:
                log = _KeyLog(window_ms=window_ms)
            else:
                self._logs.move_to_end(key)
                log.window_ms = window_ms
            log.prune(now - window_ms)

            if len(log.timestamps) >= limit:
                # The pruned log stays in place; the rejection is not recorded.
                self._rejected += 1
                return self._build_result(
                    allowed=False,
                    limit=limit,
                    window_ms=window_ms,
                    timestamps=log.timestamps,
                    now=now,
                )

            log.timestamps.append(now)
            self._logs[key] = log
            self._admitted += 1
            self._evict_if_over_capacity_locked()
            return self._build_result(
                allowed=True,
                limit=limit,
                window_ms=window_ms,
                timestamps=log.timestamps,
                now=now,
            )

    def peek(
        self,
        key: str,
        *,
        limit: int | None = None,
        window_ms: int | None = None,
    ) -> RateLimitResult:
        """Report the decision consume() would make without mutating state."""
        limit, window_ms = self._resolve(limit, window_ms)

        with self._lock:
            now = self._clock()
            log = self._logs.get(key)
            window_start = now - window_ms
            in_window = deque(
                t for t in (log.timestamps if log else ()) if t > window_start
            )
            return self._build_result(
                allowed=len(in_window) < limit,
                limit=limit,
                window_ms=window_ms,
                timestamps=in_window,
                now=now,
            )

    def reset(self, key: str) -> bool:
        with self._lock:
            return self._logs.pop(key, None) is not None

    def clear(self) -> None:
        """Remove all tracked keys and reset counters."""

        with self._lock:
            self._logs.clear()
            self._admitted = 0
            self._rejected = 0
            self._evictions = 0
            self._last_sweep = self._clock()

    def sweep(self) -> int:
        """Evict keys with no timestamp left inside their window.

        Returns:
            Number of keys evicted.
        """

        with self._lock:
            return self._sweep_locked(self._clock())

    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "limit": self._limit,
                "window_ms": self._window_ms,
                "max_keys": self._max_keys,
                "keys": len(self._logs),
                "admitted": self._admitted,
                "rejected": self._rejected,
                "evictions": self._evictions,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._logs)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._logs

    def _maybe_sweep_locked(self, now: float) -> None:
        if self._sweep_interval_ms is None:
            return
        if now - self._last_sweep < self._sweep_interval_ms:
            return
        self._sweep_locked(now)

    def _sweep_locked(self, now: float) -> int:
        idle_keys = [k for k, log in self._logs.items() if log.is_idle(now)]
        for key in idle_keys:
            del self._logs[key]
        self._evictions += len(idle_keys)
        self._last_sweep = now

        if idle_keys:
            logger.debug(
                "rate_limit.evicted",
                extra={
                    "reason": "idle",
                    "evicted": len(idle_keys),
                    "size": len(self._logs),
                },
            )
        return len(idle_keys)

    def _evict_if_over_capacity_locked(self) -> None:
        if self._max_keys is None:
            return

        evicted = 0
        while len(self._logs) > self._max_keys:
            # popitem(last=False) removes the least recently used key
            self._logs.popitem(last=False)
            evicted += 1

        if evicted:
            self._evictions += evicted
            logger.debug(
                "rate_limit.evicted",
                extra={
                    "reason": "capacity",
                    "evicted": evicted,
                    "size": len(self._logs),
                },
            )
