"""Unit tests for RateLimitService parameter validation and delegation."""

from unittest.mock import Mock

import pytest

from app.adapters.rate_limit.base import RateLimitResult
from app.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter
from app.core.errors import NotFoundAppError, ValidationAppError
from app.services.rate_limit_service import RateLimitService


@pytest.fixture
def service(clock) -> RateLimitService:
    return RateLimitService(InMemorySlidingWindowRateLimiter(limit=2, window_ms=1000, clock=clock))


def test_check_admits_then_rejects(service: RateLimitService) -> None:
    assert service.check("k").allowed is True
    assert service.check("k").allowed is True
    assert service.check("k").allowed is False


def test_invalid_params_become_validation_errors(service: RateLimitService) -> None:
    with pytest.raises(ValidationAppError) as exc_info:
        service.check("k", limit=0)

    assert exc_info.value.code == "invalid_rate_limit_params"
    assert exc_info.value.details["limit"] == 0
    assert "window_ms" not in exc_info.value.details

    with pytest.raises(ValidationAppError):
        service.peek("k", window_ms=-1)


def test_reset_unknown_key_raises_not_found(service: RateLimitService) -> None:
    with pytest.raises(NotFoundAppError) as exc_info:
        service.reset("nope")

    assert len(exc_info.value.details["key_hash"]) == 16


def test_reset_known_key(service: RateLimitService) -> None:
    service.check("k")
    service.reset("k")

    assert service.stats()["keys"] == 0


def test_delegates_to_any_limiter() -> None:
    limiter = Mock()
    limiter.consume.return_value = RateLimitResult(
        allowed=True, limit=5, remaining=4, reset_at=100, retry_after_seconds=None
    )

    result = RateLimitService(limiter).check("k", limit=5, window_ms=2000)

    assert result.remaining == 4
    limiter.consume.assert_called_once_with("k", limit=5, window_ms=2000)


def test_oversized_window_becomes_validation_error(service: RateLimitService) -> None:
    with pytest.raises(ValidationAppError) as exc_info:
        service.check("k", window_ms=10**400)

    assert exc_info.value.code == "invalid_rate_limit_params"
