from unittest.mock import MagicMock

import pytest

from api.dependencies import (
    get_agent_loader,
    get_chat_repository,
    get_config_store,
    get_db,
    get_document_service,
)
from api.services.admin_config_service import AdminConfigStore
from api.services.chat_repository import ChatRepository
from api.services.document_service import DocumentService
from subagents.config_loader import AgentKind


@pytest.mark.asyncio
async def test_get_db_reads_app_state() -> None:
    request = MagicMock()
    request.app.state.db_pool = pool = MagicMock()

    assert await get_db(request) is pool


def test_services_share_pool() -> None:
    pool = MagicMock()

    assert isinstance(get_config_store(pool), AdminConfigStore)
    assert get_document_service(pool).pool is pool
    assert isinstance(get_chat_repository(pool), ChatRepository)


def test_agent_loader_gets_process_credentials(mock_settings: MagicMock, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(mock_settings, "github_pat", "ghp_from_env")
    monkeypatch.setattr(mock_settings, "openai_base_url_str", "https://gateway.example.com/v1")
    pool = MagicMock()

    loader = get_agent_loader(AdminConfigStore(pool), DocumentService(pool), mock_settings)

    assert loader.config_key(AgentKind.DOCUMENT) == "document_agent_openai"
    assert loader._runtime.github_pat == "ghp_from_env"
    assert loader._runtime.base_url == "https://gateway.example.com/v1"
