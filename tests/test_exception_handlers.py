"""Tests for global exception handlers.

Every error type maps to a stable status code and the same JSON envelope,
and unexpected errors never leak their message.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from pos_vision.core.errors import (
    AppError,
    AuthenticationAppError,
    LLMAppError,
    UpstreamRateLimitAppError,
    ValidationAppError,
)
from pos_vision.core.exception_handlers import (
    general_exception_handler,
    retry_after_header,
    setup_exception_handlers,
    status_code_for,
)


@pytest.fixture
def app_with_handlers() -> FastAPI:
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers)


class TestStatusMapping:
    @pytest.mark.parametrize(
        "error, status",
        [
            (ValidationAppError(code="x", message="x"), 400),
            (AuthenticationAppError(code="x", message="x"), 403),
            (UpstreamRateLimitAppError(code="x", message="x"), 429),
            (LLMAppError(code="x", message="x"), 500),
            (AppError(code="x", message="x"), 400),
        ],
    )
    def test_status_code_for(self, error: AppError, status: int) -> None:
        assert status_code_for(error) == status

    def test_retry_after_rounds_up(self) -> None:
        error = UpstreamRateLimitAppError(code="x", message="x", details={"retry_after": 2.2})
        assert retry_after_header(error) == {"Retry-After": "3"}

    def test_retry_after_absent_without_hint(self) -> None:
        assert retry_after_header(UpstreamRateLimitAppError(code="x", message="x")) == {}
        assert retry_after_header(LLMAppError(code="x", message="x")) == {}


class TestAppErrorHandler:
    def test_validation_error_returns_400(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-validation")
        async def _endpoint():
            raise ValidationAppError(
                code="image_too_large",
                message="Image too large",
                details={"max_bytes": 100, "actual_bytes": 200},
            )

        response = client.get("/test-validation")

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "image_too_large"
        assert error["details"]["actual_bytes"] == 200
        assert "request_id" in error

    def test_upstream_rate_limit_returns_429_with_retry_after(
        self, client: TestClient, app_with_handlers: FastAPI
    ):
        @app_with_handlers.get("/test-upstream")
        async def _endpoint():
            raise UpstreamRateLimitAppError(
                code="llm_rate_limited",
                message="AI service rate limit reached",
                details={"retry_after": 5},
            )

        response = client.get("/test-upstream")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "5"
        assert response.json()["error"]["code"] == "llm_rate_limited"

    def test_authentication_error_returns_403(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-auth")
        async def _endpoint():
            raise AuthenticationAppError(code="invalid_api_key", message="Invalid or missing API key")

        response = client.get("/test-auth")

        assert response.status_code == 403
        assert "details" not in response.json()["error"]

    def test_llm_error_returns_500(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-llm")
        async def _endpoint():
            raise LLMAppError(code="llm_call_failed", message="OpenAI API error")

        response = client.get("/test-llm")

        assert response.status_code == 500
        assert "Retry-After" not in response.headers


class TestGeneralExceptionHandler:
    def test_registered(self, app_with_handlers: FastAPI):
        assert AppError in app_with_handlers.exception_handlers
        assert Exception in app_with_handlers.exception_handlers

    def test_never_leaks_error_message(self):
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "POST"

        response = asyncio.run(
            general_exception_handler(request, RuntimeError("provider key sk-123 rejected"))
        )

        data = json.loads(bytes(response.body).decode())
        assert response.status_code == 500
        assert data["error"]["code"] == "internal_server_error"
        assert "sk-123" not in data["error"]["message"]
        assert "RuntimeError" not in bytes(response.body).decode()
