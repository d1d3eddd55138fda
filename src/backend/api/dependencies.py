from __future__ import annotations

from typing import Annotated

import asyncpg

from fastapi import Depends, Request

from api.services.admin_config_service import AdminConfigStore
from api.services.chat_repository import ChatRepository
from api.services.document_service import DocumentService
from core.constants import Settings, get_settings
from subagents.config_loader import AgentConfigLoader


def get_app_settings() -> Settings:
    """Provide application settings via dependency injection.

    Settings are validated at startup and cached.

    Usage in routes:
        @router.get("/example")
        async def example(settings: AppSettings):
            return {"debug": settings.debug}
    """
    return get_settings()


async def get_db(request: Request) -> asyncpg.Pool:
    """Get database connection pool from application state."""
    return request.app.state.db_pool


def get_config_store(db: Annotated[asyncpg.Pool, Depends(get_db)]) -> AdminConfigStore:
    return AdminConfigStore(db)


def get_document_service(db: Annotated[asyncpg.Pool, Depends(get_db)]) -> DocumentService:
    return DocumentService(db)


def get_chat_repository(db: Annotated[asyncpg.Pool, Depends(get_db)]) -> ChatRepository:
    return ChatRepository(db)


def get_agent_loader(
    config_store: Annotated[AdminConfigStore, Depends(get_config_store)],
    documents: Annotated[DocumentService, Depends(get_document_service)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> AgentConfigLoader:
    """Fresh sub-agent loader per request; agents hold per-turn credentials."""
    loader = AgentConfigLoader(
        config_store,
        documents,
        provider=settings.agent_provider,
        base_url=settings.openai_base_url_str,
    )
    loader.set_github_pat(settings.github_pat)
    return loader


# Type aliases for cleaner route signatures
DB = Annotated[asyncpg.Pool, Depends(get_db)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
ConfigStore = Annotated[AdminConfigStore, Depends(get_config_store)]
Documents = Annotated[DocumentService, Depends(get_document_service)]
Chats = Annotated[ChatRepository, Depends(get_chat_repository)]
AgentLoader = Annotated[AgentConfigLoader, Depends(get_agent_loader)]
