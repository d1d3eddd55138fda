from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import asyncpg

from agents import set_tracing_disabled
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app

from api.middleware.exception_handlers import register_exception_handlers
from api.middleware.request_context import RequestContextMiddleware
from api.routes import chat
from api.routes.v1 import router as v1_router
from api.services.admin_config_service import AdminConfigStore
from core.constants import Settings, get_settings
from utils.activity_logger import activity_logger
from utils.db_utils import check_pool_health, create_database_pool, graceful_pool_close
from utils.logger import configure_uvicorn_logging, logger

settings = get_settings()

if settings.debug:
    from core.constants import _get_env_files

    logger.info(
        f"Env files: {[f.name for f in _get_env_files()]}; provider={settings.agent_provider}, "
        f"daily_limit={settings.chat_daily_message_limit}, "
        f"db_pool=[{settings.db_pool_min_size},{settings.db_pool_max_size}]"
    )

# Module level so reloader workers pick it up too
configure_uvicorn_logging()


async def open_database(config: Settings) -> asyncpg.Pool:
    """Create the pool and refuse to start unless a query succeeds."""
    pool = await create_database_pool(
        dsn=config.database_url,
        min_size=config.db_pool_min_size,
        max_size=config.db_pool_max_size,
        command_timeout=config.db_command_timeout,
        connection_timeout=config.db_connection_timeout,
        statement_cache_size=config.db_statement_cache_size,
        max_inactive_connection_lifetime=config.db_max_inactive_connection_lifetime,
    )
    health = await check_pool_health(pool)
    if not health["healthy"]:
        logger.error("Database health check failed during startup")
        await graceful_pool_close(pool)
        raise RuntimeError("Database connection failed")
    logger.info(f"Database pool healthy: {health}")
    return pool


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Agent runs are not exported to the hosted tracing backend
    set_tracing_disabled(True)

    pool = await open_database(settings)
    app.state.db_pool = pool

    # Activity records also go to agent_activity_logs when logging_settings enables it
    activity_logger.attach(pool, AdminConfigStore(pool))
    await activity_logger.start()

    try:
        yield
    finally:
        logger.info("Shutting down: flushing activity log, then closing the pool")
        await activity_logger.stop()
        await graceful_pool_close(pool)


app = FastAPI(
    title="Artifact Chat API",
    description="""
## Artifact Chat API

Chat backend whose top-level model delegates work to sub-agents that
create and edit versioned artifacts (text documents, Mermaid diagrams,
Python code), search the web and query GitHub.

### Features
- **Chat streaming**: `POST /api/chat` streams a UI message stream over SSE
- **Artifacts**: append-only document versions with revert and suggestions
- **Admin-driven agents**: prompts, tools and models come from `admin_config`

### Authentication
Endpoints except health checks require a JWT Bearer token.
""",
    version=settings.app_version,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Health", "description": "Liveness, readiness and dependency health"},
        {"name": "Chat", "description": "Streaming chat turns"},
        {"name": "Documents", "description": "Artifact versions and suggestions"},
        {"name": "Models", "description": "Selectable models of the active provider"},
    ],
    openapi_url="/api/v1/openapi.json",
    docs_url="/api/v1/docs",
    redoc_url="/api/v1/redoc",
)

register_exception_handlers(app)

# Last added runs first: CORS wraps the request context middleware
app.add_middleware(RequestContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-API-Key", "X-Request-ID"],
    expose_headers=["X-Request-ID", "X-Response-Time"],
)

app.include_router(chat.router, prefix="/api", tags=["Chat"])
app.include_router(v1_router, prefix="/api/v1")
app.mount("/metrics", make_asgi_app())


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        reload_dirs=["src/backend"],
        log_config=None,
    )
