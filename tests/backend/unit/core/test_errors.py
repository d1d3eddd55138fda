"""Tests for the application exception hierarchy."""

from __future__ import annotations

from core.errors import (
    AgentError,
    AppException,
    ChatNotFoundError,
    ConfigurationError,
    DocumentNotFoundError,
    ExternalServiceError,
    MermaidValidationError,
    RevertVersionError,
    StreamingError,
    ValidationException,
)
from models.error_models import ErrorCode, ErrorDetail, get_status_code


class TestNotFound:
    def test_document(self) -> None:
        error = DocumentNotFoundError("doc-1")

        assert error.code == ErrorCode.DOCUMENT_NOT_FOUND
        assert str(error) == "Document with ID doc-1 not found"
        assert error.details == {"document_id": "doc-1", "version": None}

    def test_document_version(self) -> None:
        assert DocumentNotFoundError("d", 3).message == "Version 3 of document d not found"

    def test_custom_label(self) -> None:
        assert DocumentNotFoundError("c", label="Code").message == "Code with ID c not found"

    def test_chat(self) -> None:
        error = ChatNotFoundError("chat-1")

        assert error.code == ErrorCode.CHAT_NOT_FOUND
        assert error.message == "Chat 'chat-1' not found"
        assert get_status_code(error.code) == 404


class TestAgentErrors:
    def test_agent_error_keeps_cause(self) -> None:
        cause = RuntimeError("boom")
        error = AgentError("documentAgent", ErrorCode.STREAMING_FAILED, "Failed", cause)

        assert error.agent == "documentAgent"
        assert error.cause is cause
        assert error.details == {"agent": "documentAgent"}
        assert isinstance(error, AppException)

    def test_configuration_error(self) -> None:
        error = ConfigurationError("document_agent_openai", "Invalid configuration")

        assert error.code == ErrorCode.INVALID_CONFIGURATION
        assert error.config_key == "document_agent_openai"

    def test_streaming_error(self) -> None:
        assert get_status_code(StreamingError("stream died").code) == 500

    def test_external_service_prefix(self) -> None:
        assert ExternalServiceError("GitHub MCP", "timed out").message == "GitHub MCP: timed out"


class TestArtifactErrors:
    def test_revert_out_of_range(self) -> None:
        error = RevertVersionError("Cannot revert", current_version=2, target_version=2)

        assert get_status_code(error.code) == 422
        assert error.details == {"current_version": 2, "target_version": 2}

    def test_mermaid_validation(self) -> None:
        error = MermaidValidationError()

        assert error.code == ErrorCode.ARTIFACT_VALIDATION_FAILED
        assert error.details == {"kind": "mermaid code"}


class TestValidationException:
    def test_field_errors(self) -> None:
        error = ValidationException(errors=[ErrorDetail(field="title", message="required")])

        assert error.details == {"errors": [{"field": "title", "message": "required", "code": None}]}
        assert len(error.errors) == 1

    def test_no_errors(self) -> None:
        error = ValidationException()

        assert error.details is None
        assert error.errors == []
