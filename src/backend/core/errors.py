"""
Application exception hierarchy.

Every error raised on purpose by services, sub-agents and routes derives from
AppException so the API layer can map it to a status code and a stable
error code without inspecting message text.
"""

from __future__ import annotations

from typing import Any

from models.error_models import ErrorCode, ErrorDetail


class AppException(Exception):
    """Base application exception with error code support.

    Example:
        raise AppException(
            code=ErrorCode.DOCUMENT_NOT_FOUND,
            message="Document with ID abc not found",
            details={"document_id": "abc"},
        )
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        self.code = code
        self.message = message
        self.details = details
        self.cause = cause
        super().__init__(message)


class AuthenticationError(AppException):
    """Authentication-related errors."""

    def __init__(
        self,
        message: str = "Authentication required",
        code: ErrorCode = ErrorCode.AUTH_REQUIRED,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(code=code, message=message, details=details)


class PermissionDeniedError(AppException):
    """Caller is authenticated but does not own the resource."""

    def __init__(self, message: str = "Forbidden"):
        super().__init__(code=ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS, message=message)


class RateLimitError(AppException):
    """Per-user message quota exceeded."""

    def __init__(self, limit: int, window_hours: int):
        super().__init__(
            code=ErrorCode.RATE_LIMIT_EXCEEDED,
            message=f"You have exceeded your maximum number of messages ({limit} per {window_hours} hours)",
            details={"limit": limit, "window_hours": window_hours},
        )


class ResourceNotFoundError(AppException):
    """Resource not found errors."""

    def __init__(
        self,
        resource: str,
        resource_id: str | None = None,
        code: ErrorCode = ErrorCode.RESOURCE_NOT_FOUND,
    ):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} '{resource_id}' not found"
        super().__init__(code=code, message=message, details={"resource": resource, "id": resource_id})


class ChatNotFoundError(ResourceNotFoundError):
    """Chat not found error."""

    def __init__(self, chat_id: str):
        super().__init__(resource="Chat", resource_id=chat_id, code=ErrorCode.CHAT_NOT_FOUND)


class DocumentNotFoundError(AppException):
    """Document (or one specific version of it) does not exist."""

    def __init__(self, document_id: str, version: int | None = None, label: str = "Document"):
        if version is None:
            message = f"{label} with ID {document_id} not found"
        else:
            message = f"Version {version} of {label.lower()} {document_id} not found"
        super().__init__(
            code=ErrorCode.DOCUMENT_NOT_FOUND,
            message=message,
            details={"document_id": document_id, "version": version},
        )


class RevertVersionError(AppException):
    """Requested revert target is outside [1, current - 1]."""

    def __init__(self, message: str, current_version: int, target_version: int):
        super().__init__(
            code=ErrorCode.VERSION_OUT_OF_RANGE,
            message=message,
            details={"current_version": current_version, "target_version": target_version},
        )


class ArtifactValidationError(AppException):
    """Generated artifact content failed validation and was not saved."""

    def __init__(self, message: str, kind: str):
        super().__init__(code=ErrorCode.ARTIFACT_VALIDATION_FAILED, message=message, details={"kind": kind})


class MermaidValidationError(ArtifactValidationError):
    """Generated diagram does not start with a Mermaid declaration."""

    def __init__(self, message: str = "Generated diagram does not contain valid Mermaid syntax"):
        super().__init__(message=message, kind="mermaid code")


class ValidationException(AppException):
    """Validation errors with field-level details."""

    def __init__(
        self,
        message: str = "Validation error",
        errors: list[ErrorDetail] | None = None,
    ):
        super().__init__(
            code=ErrorCode.VALIDATION_ERROR,
            message=message,
            details={"errors": [e.model_dump() for e in errors]} if errors else None,
        )
        self.errors = errors or []


class AgentError(AppException):
    """Sub-agent or orchestrator failure attributable to one agent."""

    def __init__(
        self,
        agent: str,
        code: ErrorCode,
        message: str,
        cause: Exception | None = None,
    ):
        self.agent = agent
        super().__init__(code=code, message=message, details={"agent": agent}, cause=cause)


class ConfigurationError(AppException):
    """Admin configuration is missing, disabled or malformed."""

    def __init__(
        self,
        config_key: str,
        message: str,
        code: ErrorCode = ErrorCode.INVALID_CONFIGURATION,
        cause: Exception | None = None,
    ):
        self.config_key = config_key
        super().__init__(code=code, message=message, details={"config_key": config_key}, cause=cause)


class StreamingError(AppException):
    """Failure while streaming model output."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(code=ErrorCode.STREAMING_FAILED, message=message, cause=cause)


class ExternalServiceError(AppException):
    """External service errors (OpenAI, GitHub MCP, etc.)."""

    def __init__(
        self,
        service: str,
        message: str,
        code: ErrorCode = ErrorCode.EXTERNAL_SERVICE_ERROR,
        cause: Exception | None = None,
    ):
        super().__init__(
            code=code,
            message=f"{service}: {message}",
            details={"service": service},
            cause=cause,
        )


class DatabaseError(AppException):
    """Database-related errors."""

    def __init__(
        self,
        message: str = "Database error",
        code: ErrorCode = ErrorCode.DATABASE_ERROR,
        cause: Exception | None = None,
    ):
        super().__init__(code=code, message=message, cause=cause)


__all__ = [
    "AgentError",
    "AppException",
    "ArtifactValidationError",
    "AuthenticationError",
    "ChatNotFoundError",
    "ConfigurationError",
    "DatabaseError",
    "DocumentNotFoundError",
    "ExternalServiceError",
    "MermaidValidationError",
    "PermissionDeniedError",
    "RateLimitError",
    "ResourceNotFoundError",
    "RevertVersionError",
    "StreamingError",
    "ValidationException",
]
