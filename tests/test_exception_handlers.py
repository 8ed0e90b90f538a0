"""Tests for global exception handlers.

Validates that all exception types are handled consistently with
proper HTTP status codes, error format, and no information leakage.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core.errors import AppError, NotFoundAppError, ValidationAppError
from app.core.exception_handlers import general_exception_handler, setup_exception_handlers, status_for


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers, raise_server_exceptions=False)


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    def test_validation_error_returns_400_with_details(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-validation")
        async def test_endpoint():
            raise ValidationAppError(
                code="invalid_rate_limit_params",
                message="window_ms must be >= 1",
                details={"window_ms": 0, "hint": "use a positive window"},
            )

        response = client.get("/test-validation")

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "invalid_rate_limit_params"
        assert error["message"] == "window_ms must be >= 1"
        assert error["details"]["window_ms"] == 0
        assert "request_id" in error

    def test_not_found_error_returns_404(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-missing")
        async def test_endpoint():
            raise NotFoundAppError(code="rate_limit_key_not_found", message="missing")

        response = client.get("/test-missing")

        assert response.status_code == 404
        assert "details" not in response.json()["error"]

    def test_base_app_error_defaults_to_400(self):
        assert status_for(AppError(code="x", message="y")) == 400

    def test_app_error_str_is_message(self):
        assert str(ValidationAppError(code="x", message="bad limit")) == "bad limit"


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_unexpected_exception_returns_generic_500(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/boom")
        async def test_endpoint():
            raise RuntimeError("lock poisoned in limiter store")

        response = client.get("/boom")

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "internal_server_error"
        assert "lock poisoned" not in error["message"]

    def test_general_exception_handler_never_leaks_stack_trace(self):
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        exc = ValueError("Test error with details")
        response = asyncio.run(general_exception_handler(request, exc))

        response_text = bytes(response.body).decode()
        data = json.loads(response_text)
        assert response.status_code == 500
        assert "request_id" in data["error"]
        assert "Traceback" not in response_text
        assert "ValueError" not in response_text


def test_setup_exception_handlers_registers_handlers(app_with_handlers: FastAPI):
    assert AppError in app_with_handlers.exception_handlers
    assert Exception in app_with_handlers.exception_handlers
