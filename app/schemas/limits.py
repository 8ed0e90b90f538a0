"""Pydantic schemas for the rate limit API."""

from __future__ import annotations

from pydantic import BaseModel, Field

from app.adapters.rate_limit.in_memory import MAX_LIMIT, MAX_WINDOW_MS


class CheckRequest(BaseModel):
    """Ask whether a request for ``key`` may proceed (recorded when admitted)."""

    key: str = Field(
        ...,
        description="Opaque client identifier (e.g., IP address or API key). Empty keys share one bucket.",
    )
    limit: int | None = Field(
        default=None,
        le=MAX_LIMIT,
        description="Max admitted requests per window. Defaults to the service limit.",
    )
    window_ms: int | None = Field(
        default=None,
        le=MAX_WINDOW_MS,
        description="Sliding window size in milliseconds. Defaults to the service window.",
    )


class RateLimitResponse(BaseModel):
    """Admit/reject decision with quota metadata."""

    allowed: bool = Field(..., description="Whether the request may proceed.")
    limit: int = Field(..., description="Max admitted requests per window.")
    remaining: int = Field(..., description="Requests left in the current window.")
    reset_at: int = Field(
        ..., description="UNIX epoch seconds when the oldest request in the window leaves it."
    )
    retry_after_seconds: int | None = Field(
        default=None, description="Suggested wait before retrying (rejections only)."
    )


class ResetResponse(BaseModel):
    key: str
    reset: bool


class LimiterStatsResponse(BaseModel):
    """Limiter counters and configuration (never the tracked keys)."""

    limit: int
    window_ms: int
    max_keys: int | None = None
    keys: int
    admitted: int
    rejected: int
    evictions: int
