"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It sets TESTING before settings are imported so a developer's .env file
never leaks into the test run.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("APP_RATE_LIMIT_ENABLED", "true")
os.environ.setdefault("APP_RATE_LIMIT_REQUESTS", "10")
os.environ.setdefault("APP_RATE_LIMIT_WINDOW_MS", "60000")

import pytest

from app.core import rate_limit as rate_limit_module
from app.core.config import settings


class FakeClock:
    """Deterministic millisecond clock for limiter tests."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, ms: float) -> None:
        self.current += ms

    def set(self, ms: float) -> None:
        self.current = ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def _reset_global_limiter():
    """Give every test a fresh process-wide limiter and default settings."""

    saved = settings.app.model_copy()
    rate_limit_module.set_rate_limiter(None)
    yield
    for name in type(settings.app).model_fields:
        setattr(settings.app, name, getattr(saved, name))
    rate_limit_module.set_rate_limiter(None)
