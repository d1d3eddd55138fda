"""
Standardized error response models for the artifact chat API.

Provides consistent error formatting across REST and streaming endpoints
with support for request tracking, error categorization, and debugging context.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Application-specific error codes for categorization."""

    # Authentication errors (1xxx)
    AUTH_REQUIRED = "AUTH_1001"
    AUTH_INVALID_TOKEN = "AUTH_1002"
    AUTH_EXPIRED_TOKEN = "AUTH_1003"
    AUTH_INSUFFICIENT_PERMISSIONS = "AUTH_1004"
    AUTHENTICATION_FAILED = "AUTH_1010"

    # Validation errors (2xxx)
    VALIDATION_ERROR = "VAL_2001"
    VALIDATION_MISSING_FIELD = "VAL_2002"
    VALIDATION_INVALID_FORMAT = "VAL_2003"
    ARTIFACT_VALIDATION_FAILED = "VAL_2010"
    VERSION_OUT_OF_RANGE = "VAL_2011"

    # Resource errors (3xxx)
    RESOURCE_NOT_FOUND = "RES_3001"
    RESOURCE_ALREADY_EXISTS = "RES_3002"
    RESOURCE_CONFLICT = "RES_3003"
    DOCUMENT_NOT_FOUND = "RES_3010"
    CHAT_NOT_FOUND = "RES_3011"

    # Agent errors (4xxx)
    AGENT_CREATION_FAILED = "AGT_4001"
    AGENT_NOT_FOUND = "AGT_4002"
    AGENT_DISABLED = "AGT_4003"
    AGENT_TYPE_INVALID = "AGT_4004"
    TOOL_DISABLED = "AGT_4010"

    # Configuration and model errors (5xxx)
    INVALID_CONFIGURATION = "CFG_5001"
    CONFIG_NOT_FOUND = "CFG_5002"
    CONFIG_VALIDATION_FAILED = "CFG_5003"
    MODEL_NOT_SUPPORTED = "CFG_5010"
    MODEL_NOT_FOUND = "CFG_5011"
    MODEL_DISABLED = "CFG_5012"

    # Streaming errors (6xxx)
    STREAMING_FAILED = "STR_6001"
    REASONING_FAILED = "STR_6002"

    # External service errors (7xxx)
    EXTERNAL_SERVICE_ERROR = "EXT_7001"
    EXTERNAL_TIMEOUT = "EXT_7002"
    RATE_LIMIT_EXCEEDED = "EXT_7003"
    PROVIDER_UNAVAILABLE = "EXT_7004"
    PROVIDER_API_ERROR = "EXT_7010"
    MCP_SERVER_ERROR = "EXT_7020"

    # Database errors (8xxx)
    DATABASE_ERROR = "DB_8001"
    DATABASE_CONNECTION_FAILED = "DB_8002"
    DATABASE_QUERY_FAILED = "DB_8003"
    DATABASE_TRANSACTION_FAILED = "DB_8004"

    # Internal errors (9xxx)
    INTERNAL_ERROR = "INT_9001"
    INTERNAL_UNEXPECTED = "INT_9999"


class ErrorDetail(BaseModel):
    """Detailed information about a specific validation or sub-error."""

    field: str | None = None
    message: str
    code: str | None = None
    value: Any | None = Field(default=None, exclude=True)  # Excluded from response for security


class ErrorResponse(BaseModel):
    """Standardized error response model for REST endpoints.

    Example response:
    {
        "error": {
            "code": "RES_3010",
            "message": "Document with ID 4f1c... not found",
            "request_id": "req_abc123",
            "timestamp": "2025-01-15T10:30:00Z",
            "details": null,
            "path": "/api/v1/documents/4f1c..."
        }
    }
    """

    code: ErrorCode
    message: str
    request_id: str | None = None
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    details: list[ErrorDetail] | None = None
    path: str | None = None
    # Debug info - only included in development mode
    debug: dict[str, Any] | None = Field(default=None, exclude=True)

    def to_dict(self, include_debug: bool = False) -> dict[str, Any]:
        """Convert to dictionary for JSON response.

        Args:
            include_debug: Include debug information (only in development)
        """
        data = self.model_dump(exclude_none=True)
        if include_debug and self.debug:
            data["debug"] = self.debug
        return {"error": data}


# HTTP status code mappings for error codes
ERROR_CODE_TO_STATUS: dict[ErrorCode, int] = {
    # 401 Unauthorized
    ErrorCode.AUTH_REQUIRED: 401,
    ErrorCode.AUTH_INVALID_TOKEN: 401,
    ErrorCode.AUTH_EXPIRED_TOKEN: 401,
    ErrorCode.AUTHENTICATION_FAILED: 401,
    # 403 Forbidden
    ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS: 403,
    ErrorCode.AGENT_DISABLED: 403,
    ErrorCode.TOOL_DISABLED: 403,
    ErrorCode.MODEL_DISABLED: 403,
    # 404 Not Found
    ErrorCode.RESOURCE_NOT_FOUND: 404,
    ErrorCode.DOCUMENT_NOT_FOUND: 404,
    ErrorCode.CHAT_NOT_FOUND: 404,
    ErrorCode.AGENT_NOT_FOUND: 404,
    ErrorCode.CONFIG_NOT_FOUND: 404,
    ErrorCode.MODEL_NOT_FOUND: 404,
    # 409 Conflict
    ErrorCode.RESOURCE_ALREADY_EXISTS: 409,
    ErrorCode.RESOURCE_CONFLICT: 409,
    # 422 Unprocessable Entity
    ErrorCode.VALIDATION_ERROR: 422,
    ErrorCode.VALIDATION_MISSING_FIELD: 422,
    ErrorCode.VALIDATION_INVALID_FORMAT: 422,
    ErrorCode.ARTIFACT_VALIDATION_FAILED: 422,
    ErrorCode.VERSION_OUT_OF_RANGE: 422,
    ErrorCode.MODEL_NOT_SUPPORTED: 422,
    ErrorCode.AGENT_TYPE_INVALID: 422,
    # 429 Too Many Requests
    ErrorCode.RATE_LIMIT_EXCEEDED: 429,
    # 500 Internal Server Error
    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.INTERNAL_UNEXPECTED: 500,
    ErrorCode.INVALID_CONFIGURATION: 500,
    ErrorCode.CONFIG_VALIDATION_FAILED: 500,
    ErrorCode.AGENT_CREATION_FAILED: 500,
    ErrorCode.STREAMING_FAILED: 500,
    ErrorCode.REASONING_FAILED: 500,
    ErrorCode.DATABASE_ERROR: 500,
    ErrorCode.DATABASE_CONNECTION_FAILED: 500,
    ErrorCode.DATABASE_QUERY_FAILED: 500,
    ErrorCode.DATABASE_TRANSACTION_FAILED: 500,
    # 502 Bad Gateway
    ErrorCode.EXTERNAL_SERVICE_ERROR: 502,
    ErrorCode.PROVIDER_API_ERROR: 502,
    ErrorCode.MCP_SERVER_ERROR: 502,
    # 503 Service Unavailable
    ErrorCode.EXTERNAL_TIMEOUT: 503,
    ErrorCode.PROVIDER_UNAVAILABLE: 503,
}


def get_status_code(error_code: ErrorCode) -> int:
    """Get HTTP status code for an error code."""
    return ERROR_CODE_TO_STATUS.get(error_code, 500)


def get_user_friendly_message(
    code: ErrorCode,
    *,
    provider: str | None = None,
    agent: str | None = None,
    config_key: str | None = None,
    model: str | None = None,
) -> str:
    """Render a message safe to show end users for an error code."""
    provider_name = provider or "the AI provider"
    agent_name = agent or "agent"
    model_name = model or "selected model"

    messages: dict[ErrorCode, str] = {
        ErrorCode.PROVIDER_UNAVAILABLE: f"{provider_name} is currently unavailable. Please try again later.",
        ErrorCode.PROVIDER_API_ERROR: f"{provider_name} returned an error. Please try again.",
        ErrorCode.AGENT_CREATION_FAILED: f"Failed to initialize the {agent_name}. Please try again.",
        ErrorCode.AGENT_NOT_FOUND: f"The {agent_name} is not available.",
        ErrorCode.AGENT_DISABLED: f"The {agent_name} is currently disabled.",
        ErrorCode.AGENT_TYPE_INVALID: f"Unknown agent type: {agent_name}.",
        ErrorCode.INVALID_CONFIGURATION: (
            f'The configuration for "{config_key}" is invalid. Please check your settings.'
            if config_key
            else "The agent configuration is invalid. Please check your settings."
        ),
        ErrorCode.CONFIG_NOT_FOUND: (
            f'No configuration found for "{config_key}".' if config_key else "Configuration not found."
        ),
        ErrorCode.CONFIG_VALIDATION_FAILED: "The configuration failed validation. Please check your settings.",
        ErrorCode.MODEL_NOT_SUPPORTED: f"The {model_name} is not supported by this agent.",
        ErrorCode.MODEL_NOT_FOUND: f"The {model_name} could not be found.",
        ErrorCode.MODEL_DISABLED: f"The {model_name} is currently disabled.",
        ErrorCode.STREAMING_FAILED: "Failed to stream the response. Please try again.",
        ErrorCode.REASONING_FAILED: "The model failed while reasoning about your request. Please try again.",
        ErrorCode.RATE_LIMIT_EXCEEDED: "You have exceeded the rate limit. Please wait a moment and try again.",
        ErrorCode.AUTHENTICATION_FAILED: f"Authentication with {provider_name} failed. Please check your API key.",
        ErrorCode.DOCUMENT_NOT_FOUND: "The requested document could not be found.",
        ErrorCode.VERSION_OUT_OF_RANGE: "The requested version cannot be restored.",
        ErrorCode.ARTIFACT_VALIDATION_FAILED: "The generated content was not valid. Please try again.",
    }
    return messages.get(code, "An unexpected error occurred. Please try again later.")


__all__ = [
    "ERROR_CODE_TO_STATUS",
    "ErrorCode",
    "ErrorDetail",
    "ErrorResponse",
    "get_status_code",
    "get_user_friendly_message",
]
