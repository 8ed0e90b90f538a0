from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from app.adapters.rate_limit.in_memory import (
    MAX_LIMIT,
    MAX_WINDOW_MS,
    InMemorySlidingWindowRateLimiter,
)
from app.core.config import settings
from app.core.rate_limit import enforce_rate_limit
from app.schemas.limits import (
    CheckRequest,
    LimiterStatsResponse,
    RateLimitResponse,
    ResetResponse,
)
from app.services.rate_limit_service import RateLimitService

router = APIRouter(
    prefix="/limits",
    tags=["Rate Limits"],
    dependencies=[Depends(enforce_rate_limit)],
)

# Keys submitted by remote callers live in their own store, apart from the
# limiter that protects this API.
_service = RateLimitService(
    InMemorySlidingWindowRateLimiter(
        limit=settings.app.rate_limit_requests,
        window_ms=settings.app.rate_limit_window_ms,
        max_keys=settings.app.rate_limit_max_keys,
        sweep_interval_ms=settings.app.rate_limit_sweep_interval_ms,
    )
)


def get_rate_limit_service() -> RateLimitService:
    return _service


ServiceDep = Annotated[RateLimitService, Depends(get_rate_limit_service)]


@router.post("/check", response_model=RateLimitResponse)
def check_limit(body: CheckRequest, service: ServiceDep) -> RateLimitResponse:
    """Admit or reject one request for a key.

    An admitted request is recorded against the key's quota; a rejected one
    is not. Rejection is a normal outcome (``allowed: false``), not an error.

    Raises:
        ValidationAppError: 400 when limit or window_ms is not positive.
    """
    result = service.check(body.key, limit=body.limit, window_ms=body.window_ms)
    return RateLimitResponse(**result.to_dict())


@router.get("", response_model=LimiterStatsResponse)
def limiter_stats(service: ServiceDep) -> LimiterStatsResponse:
    return LimiterStatsResponse(**service.stats())


@router.get("/{key:path}", response_model=RateLimitResponse)
def peek_limit(
    key: str,
    service: ServiceDep,
    limit: int | None = Query(default=None, le=MAX_LIMIT, description="Max requests per window"),
    window_ms: int | None = Query(default=None, le=MAX_WINDOW_MS, description="Window size in milliseconds"),
) -> RateLimitResponse:
    """Report the current quota for a key without consuming it."""
    result = service.peek(key, limit=limit, window_ms=window_ms)
    return RateLimitResponse(**result.to_dict())


@router.delete("/{key:path}", response_model=ResetResponse)
def reset_limit(key: str, service: ServiceDep) -> ResetResponse:
    """Forget all recorded requests for a key.

    Raises:
        NotFoundAppError: 404 when the key is not tracked.
    """
    service.reset(key)
    return ResetResponse(key=key, reset=True)
