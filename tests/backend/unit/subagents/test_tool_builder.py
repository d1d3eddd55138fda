"""Tests for exposing sub-agents to the chat model as function tools."""

from __future__ import annotations

import json

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from pydantic import ValidationError

from core.errors import AgentError, DocumentNotFoundError
from integrations.ui_stream import UIMessageStreamWriter
from models.agent_config import ChatModelAgentConfig
from models.error_models import ErrorCode
from subagents.config_loader import AgentKind
from subagents.runtime import AgentResult
from subagents.tool_builder import (
    GIT_MCP_NOT_READY_MESSAGE,
    AgentToolBuilder,
    DocumentAgentInput,
    tool_error_message,
)

ARTIFACT_INPUT = {
    "operation": {"parameter_description": "Operation to perform"},
    "instruction": {"parameter_description": "What to write or change"},
}
QUERY_INPUT = {"parameter_name": "input", "parameter_description": "The question"}


def chat_config(tools: dict[str, Any]) -> ChatModelAgentConfig:
    return ChatModelAgentConfig.model_validate(
        {"enabled": True, "systemPrompt": "You are helpful.", "availableModels": [{"id": "gpt-4.1"}], "tools": tools}
    )


def fake_agent(result: AgentResult | None = None, *, enabled: bool = True) -> MagicMock:
    agent = MagicMock()
    agent.enabled = enabled
    agent.execute = AsyncMock(return_value=result or AgentResult(output={"id": "doc-1"}, success=True))
    agent.is_ready = MagicMock(return_value=True)
    return agent


def fake_loader(agents: dict[AgentKind, Any]) -> MagicMock:
    loader = MagicMock()
    loader.get_agent.side_effect = agents.get
    loader.get_provider_tools_agent.side_effect = lambda: agents.get(AgentKind.PROVIDER_TOOLS)
    loader.get_git_mcp_agent.side_effect = lambda: agents.get(AgentKind.GIT_MCP)
    return loader


class TestEnabledTools:
    def test_nothing_enabled(self) -> None:
        builder = AgentToolBuilder(chat_config({}), fake_loader({}))

        assert builder.build_tools(UIMessageStreamWriter()) is None

    def test_requires_loaded_and_enabled_agent(self) -> None:
        tools = {
            "documentAgent": {"description": "Docs", "enabled": True, "tool_input": ARTIFACT_INPUT},
            "mermaidAgent": {"description": "Diagrams", "enabled": True, "tool_input": ARTIFACT_INPUT},
            "pythonAgent": {"description": "Code", "enabled": False, "tool_input": ARTIFACT_INPUT},
        }
        loader = fake_loader(
            {
                AgentKind.DOCUMENT: fake_agent(),
                AgentKind.MERMAID: fake_agent(enabled=False),
                AgentKind.PYTHON: fake_agent(),
            }
        )

        assert list(AgentToolBuilder(chat_config(tools), loader).enabled_tool_configs()) == ["documentAgent"]

    def test_description_required(self) -> None:
        tools = {"documentAgent": {"description": "", "enabled": True, "tool_input": ARTIFACT_INPUT}}
        builder = AgentToolBuilder(chat_config(tools), fake_loader({AgentKind.DOCUMENT: fake_agent()}))

        with pytest.raises(AgentError, match="documentAgent tool description is required") as exc_info:
            builder.build_tools(UIMessageStreamWriter())

        assert exc_info.value.code == ErrorCode.INVALID_CONFIGURATION

    def test_artifact_parameter_descriptions_required(self) -> None:
        tools = {"documentAgent": {"description": "Docs", "enabled": True}}
        builder = AgentToolBuilder(chat_config(tools), fake_loader({AgentKind.DOCUMENT: fake_agent()}))

        with pytest.raises(AgentError, match="operation and instruction"):
            builder.build_tools(UIMessageStreamWriter())

    def test_query_parameter_description_required(self) -> None:
        tools = {"providerToolsAgent": {"description": "Search", "enabled": True}}
        builder = AgentToolBuilder(chat_config(tools), fake_loader({AgentKind.PROVIDER_TOOLS: fake_agent()}))

        with pytest.raises(AgentError, match="providerToolsAgent tool parameter description is required"):
            builder.build_tools(UIMessageStreamWriter())


class TestArtifactTool:
    @pytest.fixture
    def document_agent(self) -> MagicMock:
        return fake_agent(AgentResult(output={"id": "doc-1", "title": "Sea", "kind": "text"}, success=True))

    @pytest.fixture
    def tool(self, document_agent: MagicMock) -> Any:
        config = chat_config({"documentAgent": {"description": "Docs", "enabled": True, "tool_input": ARTIFACT_INPUT}})
        tools = AgentToolBuilder(config, fake_loader({AgentKind.DOCUMENT: document_agent})).build_tools(
            UIMessageStreamWriter(), user_id="user-1", chat_id="chat-1"
        )
        assert tools is not None
        return tools["documentAgent"]

    def test_schema(self, tool: Any) -> None:
        schema = tool.params_json_schema()

        assert schema["additionalProperties"] is False
        assert schema["required"] == ["operation"]
        assert schema["properties"]["operation"]["description"] == "Operation to perform"
        assert schema["properties"]["operation"]["enum"] == ["create", "update", "revert", "suggestion"]
        assert "documentId" in schema["properties"]
        assert schema["properties"]["targetVersion"]["description"].startswith("Version number to revert to")
        assert "title" not in schema

    @pytest.mark.asyncio
    async def test_execute_passes_turn_context(self, tool: Any, document_agent: MagicMock) -> None:
        output = await tool.execute({"operation": "update", "instruction": "Shorter", "documentId": "doc-1"})

        assert output == {"id": "doc-1", "title": "Sea", "kind": "text"}
        kwargs = document_agent.execute.call_args.kwargs
        assert kwargs["operation"] == "update"
        assert kwargs["document_id"] == "doc-1"
        assert kwargs["target_version"] is None
        assert kwargs["context"].user_id == "user-1"
        assert kwargs["context"].chat_id == "chat-1"

    @pytest.mark.asyncio
    async def test_rejects_unknown_fields(self, tool: Any) -> None:
        with pytest.raises(ValidationError):
            await tool.execute({"operation": "create", "instruction": "x", "bogus": 1})

    def test_input_accepts_snake_case(self) -> None:
        params = DocumentAgentInput.model_validate({"operation": "revert", "document_id": "d", "target_version": 2})

        assert params.target_version == 2

    @pytest.mark.asyncio
    async def test_function_tool_serializes_output(self, tool: Any) -> None:
        function_tool = tool.to_function_tool()

        raw = await function_tool.on_invoke_tool(MagicMock(), json.dumps({"operation": "create", "instruction": "x"}))

        assert function_tool.name == "documentAgent"
        assert json.loads(raw) == {"id": "doc-1", "title": "Sea", "kind": "text"}

    @pytest.mark.asyncio
    async def test_function_tool_reports_errors_to_model(self, tool: Any, document_agent: MagicMock) -> None:
        document_agent.execute.side_effect = DocumentNotFoundError("doc-9")
        function_tool = tool.to_function_tool()

        raw = await function_tool.on_invoke_tool(
            MagicMock(), json.dumps({"operation": "update", "instruction": "x", "documentId": "doc-9"})
        )

        assert raw == "Error: Document with ID doc-9 not found"

    @pytest.mark.asyncio
    async def test_function_tool_reports_unexpected_errors_to_model(self, tool: Any, document_agent: MagicMock) -> None:
        document_agent.execute.side_effect = RuntimeError("provider timed out")
        function_tool = tool.to_function_tool()

        raw = await function_tool.on_invoke_tool(MagicMock(), json.dumps({"operation": "create", "instruction": "x"}))

        assert raw == "Error: provider timed out"

    def test_error_message_falls_back_to_exception_type(self) -> None:
        assert tool_error_message(TimeoutError()) == "Error: TimeoutError"


class TestQueryTools:
    @pytest.mark.asyncio
    async def test_provider_tools_returns_output(self) -> None:
        agent = fake_agent(AgentResult(output="It is sunny", success=True))
        config = chat_config({"providerToolsAgent": {"description": "Search", "enabled": True, "tool_input": QUERY_INPUT}})
        tools = AgentToolBuilder(config, fake_loader({AgentKind.PROVIDER_TOOLS: agent})).build_tools(
            UIMessageStreamWriter(), user_id="user-1"
        )
        assert tools is not None

        output = await tools["providerToolsAgent"].execute({"input": "Weather?"})

        assert output == "It is sunny"
        agent.execute.assert_awaited_once_with("Weather?", "user-1")
        assert tools["providerToolsAgent"].params_json_schema()["properties"]["input"]["description"] == "The question"

    @pytest.mark.asyncio
    async def test_git_mcp_not_ready(self) -> None:
        agent = fake_agent()
        agent.is_ready.return_value = False
        config = chat_config({"gitMcpAgent": {"description": "GitHub", "enabled": True, "tool_input": QUERY_INPUT}})
        tools = AgentToolBuilder(config, fake_loader({AgentKind.GIT_MCP: agent})).build_tools(UIMessageStreamWriter())
        assert tools is not None

        output = await tools["gitMcpAgent"].execute({"input": "List repos"})

        assert output == GIT_MCP_NOT_READY_MESSAGE
        agent.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_git_mcp_failure_text(self) -> None:
        agent = fake_agent(AgentResult(output="Error executing GitHub operation: x", success=False, error="x"))
        config = chat_config({"gitMcpAgent": {"description": "GitHub", "enabled": True, "tool_input": QUERY_INPUT}})
        tools = AgentToolBuilder(config, fake_loader({AgentKind.GIT_MCP: agent})).build_tools(UIMessageStreamWriter())
        assert tools is not None

        assert await tools["gitMcpAgent"].execute({"input": "List repos"}) == "Error: x"
