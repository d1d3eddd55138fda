"""Health, readiness and liveness response models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class DatabaseHealth(BaseModel):
    healthy: bool = Field(..., description="Database is accessible")
    pool_size: int = Field(default=0, ge=0, description="Total pool size")
    pool_free: int = Field(default=0, ge=0, description="Idle connections")
    pool_used: int = Field(default=0, ge=0, description="Connections in use")
    error: str | None = Field(default=None, description="Error if unhealthy")


class ChatAgentHealth(BaseModel):
    """Whether chats can run with the configured provider."""

    provider: str = Field(..., description="Provider suffix of the admin config keys")
    configured: bool = Field(default=False, description="chat_model_agent config row exists and validates")
    enabled: bool = Field(default=False, description="Chat agent is enabled in its config")
    api_key_configured: bool = Field(default=False, description="Server-side API key is set")
    error: str | None = Field(default=None, description="Why the config could not be checked")


class AgentLoggingHealth(BaseModel):
    pending_records: int = Field(default=0, ge=0, description="Buffered activity records not yet written")


class HealthResponse(BaseModel):
    """``degraded`` means the database is fine but chats cannot run."""

    status: Literal["healthy", "degraded", "unhealthy"] = Field(..., description="Overall system health status")
    version: str = Field(..., description="Application version")
    database: DatabaseHealth
    chat_agent: ChatAgentHealth
    activity_log: AgentLoggingHealth = Field(default_factory=AgentLoggingHealth)


class ReadinessResponse(BaseModel):
    ready: bool = Field(..., description="Service is ready to accept traffic")
    error: str | None = Field(default=None, description="Error message if not ready")


class LivenessResponse(BaseModel):
    alive: bool = Field(default=True, description="Process is running")
