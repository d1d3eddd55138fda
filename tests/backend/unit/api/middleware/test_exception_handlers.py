"""Tests for mapping raised errors to ErrorResponse JSON."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from unittest.mock import MagicMock, patch

import asyncpg
import openai
import pytest

from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient
from pydantic import BaseModel

from api.middleware.exception_handlers import register_exception_handlers
from core.errors import (
    AgentError,
    AppException,
    ConfigurationError,
    DocumentNotFoundError,
    PermissionDeniedError,
    RateLimitError,
    RevertVersionError,
    ValidationException,
)
from models.error_models import ErrorCode


class StoredPrompt(BaseModel):
    system_prompt: str


class ChatBody(BaseModel):
    text: str
    thinking: bool


def _raise(error: BaseException) -> Callable[[], None]:
    def endpoint() -> None:
        raise error

    return endpoint


def _invalid_stored_config() -> None:
    StoredPrompt.model_validate({"system_prompt": 123})


RAISERS: dict[str, Callable[[], None]] = {
    "/app": _raise(AppException(code=ErrorCode.INTERNAL_ERROR, message="Test error", details={"foo": "bar"})),
    "/document": _raise(DocumentNotFoundError("abc")),
    "/revert": _raise(RevertVersionError("Cannot revert to version 5", current_version=2, target_version=5)),
    "/limit": _raise(RateLimitError(limit=100, window_hours=24)),
    "/forbidden": _raise(PermissionDeniedError()),
    "/agent": _raise(AgentError("chatModelAgent", ErrorCode.AGENT_DISABLED, "Chat agent is disabled")),
    "/config": _raise(ConfigurationError("chat_model_agent_openai", "Invalid configuration")),
    "/validation": _raise(ValidationException(message="Invalid data")),
    "/http": _raise(HTTPException(status_code=404, detail="Nope")),
    "/stored": _invalid_stored_config,
    "/openai-auth": _raise(openai.AuthenticationError("Invalid key", response=MagicMock(), body=None)),
    "/openai-rate": _raise(openai.RateLimitError("Too many", response=MagicMock(), body=None)),
    "/db": _raise(asyncpg.PostgresError("Connection failed")),
    "/boom": _raise(ValueError("Boom")),
}


@pytest.fixture
def client() -> TestClient:
    app = FastAPI()
    register_exception_handlers(app)
    for path, endpoint in RAISERS.items():
        app.add_api_route(path, endpoint, methods=["GET"])

    @app.post("/chat")
    def chat(body: ChatBody) -> ChatBody:
        return body

    return TestClient(app, raise_server_exceptions=False)


def get_error(client: TestClient, path: str, **kwargs: Any) -> tuple[int, dict[str, Any]]:
    with patch("api.middleware.exception_handlers.logger"):
        response = client.get(path, **kwargs)
    return response.status_code, response.json()["error"]


@pytest.mark.parametrize(
    ("path", "status", "code"),
    [
        ("/app", 500, ErrorCode.INTERNAL_ERROR),
        ("/document", 404, ErrorCode.DOCUMENT_NOT_FOUND),
        ("/revert", 422, ErrorCode.VERSION_OUT_OF_RANGE),
        ("/limit", 429, ErrorCode.RATE_LIMIT_EXCEEDED),
        ("/forbidden", 403, ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS),
        ("/agent", 403, ErrorCode.AGENT_DISABLED),
        ("/validation", 422, ErrorCode.VALIDATION_ERROR),
        ("/stored", 500, ErrorCode.CONFIG_VALIDATION_FAILED),
        ("/openai-auth", 401, ErrorCode.AUTHENTICATION_FAILED),
        ("/openai-rate", 429, ErrorCode.RATE_LIMIT_EXCEEDED),
        ("/db", 500, ErrorCode.DATABASE_ERROR),
        ("/boom", 500, ErrorCode.INTERNAL_UNEXPECTED),
    ],
)
def test_status_and_code(client: TestClient, path: str, status: int, code: ErrorCode) -> None:
    actual_status, error = get_error(client, path)

    assert actual_status == status
    assert error["code"] == code.value


class TestDetails:
    def test_app_exception_details_become_fields(self, client: TestClient) -> None:
        _, error = get_error(client, "/app")

        assert error["message"] == "Test error"
        assert error["details"] == [{"field": "foo", "message": "bar"}]

    def test_document_not_found_carries_id_and_path(self, client: TestClient) -> None:
        _, error = get_error(client, "/document")

        assert error["message"] == "Document with ID abc not found"
        assert error["path"] == "/document"
        assert error["details"] == [{"field": "document_id", "message": "abc"}]

    def test_message_limit_names_window(self, client: TestClient) -> None:
        _, error = get_error(client, "/limit")

        assert "(100 per 24 hours)" in error["message"]

    def test_agent_error_names_agent(self, client: TestClient) -> None:
        _, error = get_error(client, "/agent")

        assert error["details"] == [{"field": "agent", "message": "chatModelAgent"}]

    def test_config_error_names_key(self, client: TestClient) -> None:
        _, error = get_error(client, "/config")

        assert {"field": "config_key", "message": "chat_model_agent_openai"} in error["details"]

    def test_stored_data_validation_points_at_field(self, client: TestClient) -> None:
        _, error = get_error(client, "/stored")

        assert error["message"] == "Data validation failed"
        assert error["details"][0]["field"] == "system_prompt"

    def test_openai_auth_message(self, client: TestClient) -> None:
        _, error = get_error(client, "/openai-auth")

        assert "OpenAI authentication failed" in error["message"]

    def test_database_message_hides_driver_text(self, client: TestClient) -> None:
        _, error = get_error(client, "/db")

        assert error["message"] == "Database operation failed"
        assert "Connection failed" not in str(error)

    def test_http_exception_keeps_status(self, client: TestClient) -> None:
        status, error = get_error(client, "/http")

        assert status == 404
        assert error["message"] == "Nope"


class TestRequestValidation:
    def test_body_errors_name_the_field(self, client: TestClient) -> None:
        response = client.post("/chat", json={"text": "hi", "thinking": "maybe"})

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == ErrorCode.VALIDATION_ERROR.value
        assert error["message"] == "Request validation failed"
        assert error["details"][0]["field"] == "body.thinking"


class TestDebugInfo:
    def test_hidden_by_default(self, client: TestClient) -> None:
        _, error = get_error(client, "/boom")

        assert error["message"] == "An unexpected error occurred"
        assert "debug" not in error

    def test_included_in_debug(self, client: TestClient) -> None:
        with patch("api.middleware.exception_handlers.get_settings", return_value=MagicMock(debug=True)):
            _, error = get_error(client, "/boom")

        assert error["debug"]["exception_type"] == "ValueError"
        assert error["debug"]["exception_message"] == "Boom"
