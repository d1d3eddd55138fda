"""
Health check endpoints (v1).

``/health`` reports database pool state, whether the provider's chat agent
is configured, and the activity log backlog. ``/health/ready`` only passes
once the schema is migrated; ``/health/live`` only says the process runs.
"""

from __future__ import annotations

import asyncio

import asyncpg

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from api.dependencies import DB, AppSettings, ConfigStore
from api.routes.chat import load_chat_config
from core.errors import ConfigurationError
from models.schemas.health import (
    AgentLoggingHealth,
    ChatAgentHealth,
    DatabaseHealth,
    HealthResponse,
    LivenessResponse,
    ReadinessResponse,
)
from utils.activity_logger import activity_logger
from utils.db_utils import check_pool_health
from utils.logger import logger

router = APIRouter()

# Documents is the last table created by the initial migration
SCHEMA_CHECK_QUERY = "SELECT to_regclass('public.documents') IS NOT NULL"


async def _chat_agent_health(config_store: ConfigStore, settings: AppSettings) -> ChatAgentHealth:
    provider = settings.agent_provider
    health = ChatAgentHealth(provider=provider, api_key_configured=bool(settings.openai_api_key))
    try:
        config = await load_chat_config(config_store, provider)
    except (ConfigurationError, asyncpg.PostgresError) as e:
        logger.warning(f"Chat agent config check failed: {e}", provider=provider)
        health.error = str(e)
        return health
    if config is not None:
        health.configured = True
        health.enabled = config.enabled
    return health


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Database pool statistics, chat agent configuration and activity log backlog.",
    responses={
        200: {
            "description": "System health status",
            "content": {
                "application/json": {
                    "example": {
                        "status": "healthy",
                        "version": "1.0.0",
                        "database": {"healthy": True, "pool_size": 10, "pool_free": 8, "pool_used": 2},
                        "chat_agent": {
                            "provider": "openai",
                            "configured": True,
                            "enabled": True,
                            "api_key_configured": True,
                        },
                        "activity_log": {"pending_records": 0},
                    }
                }
            },
        }
    },
)
async def health_check(db: DB, config_store: ConfigStore, settings: AppSettings) -> HealthResponse:
    pool_stats = await check_pool_health(db)
    db_healthy = bool(pool_stats.get("healthy", False))

    database = DatabaseHealth(
        healthy=db_healthy,
        pool_size=pool_stats.get("pool_size", 0),
        pool_free=pool_stats.get("free_connections", 0),
        pool_used=pool_stats.get("used_connections", 0),
        error=None if db_healthy else "Database check failed",
    )
    if not db_healthy:
        chat_agent = ChatAgentHealth(
            provider=settings.agent_provider,
            api_key_configured=bool(settings.openai_api_key),
            error="Skipped: database unavailable",
        )
        status = "unhealthy"
    else:
        chat_agent = await _chat_agent_health(config_store, settings)
        # Chats can still carry their own key via X-Api-Key, so a missing server key is not degraded
        status = "healthy" if chat_agent.configured and chat_agent.enabled else "degraded"

    return HealthResponse(
        status=status,
        version=settings.app_version,
        database=database,
        chat_agent=chat_agent,
        activity_log=AgentLoggingHealth(pending_records=activity_logger.pending),
    )


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    summary="Readiness probe",
    description="Ready once the database answers and the schema has been migrated.",
    responses={
        503: {
            "description": "Service not ready",
            "content": {"application/json": {"example": {"ready": False, "error": "Schema not migrated"}}},
        },
    },
)
async def readiness_check(db: DB) -> ReadinessResponse | JSONResponse:
    try:
        async with db.acquire(timeout=5.0) as conn:
            migrated = await conn.fetchval(SCHEMA_CHECK_QUERY)
    except (OSError, asyncio.TimeoutError, asyncpg.PostgresError) as e:
        return JSONResponse(status_code=503, content={"ready": False, "error": str(e)})
    if not migrated:
        return JSONResponse(status_code=503, content={"ready": False, "error": "Schema not migrated"})
    return ReadinessResponse(ready=True)


@router.get("/health/live", response_model=LivenessResponse, summary="Liveness probe")
async def liveness_check() -> LivenessResponse:
    return LivenessResponse(alive=True)
