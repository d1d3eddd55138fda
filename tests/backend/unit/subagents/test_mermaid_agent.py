"""Tests for the Mermaid diagram sub-agent."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest

from core.errors import AgentError, ConfigurationError, MermaidValidationError
from integrations.ui_stream import UIMessageStreamWriter
from models.agent_config import MermaidAgentConfig
from subagents.mermaid_agent import MermaidAgent, validate_mermaid_syntax
from subagents.runtime import AgentRuntime, ArtifactContext

USER_ID = "11111111-1111-1111-1111-111111111111"

TEMPLATES = {
    "update": "Diagram:\n{currentContent}\n\nChange: {updateInstruction}",
    "fix": "Diagram:\n{currentContent}\n\nErrors: {errorInfo}",
}


def mermaid_config(tools: dict[str, Any] | None = None) -> MermaidAgentConfig:
    return MermaidAgentConfig.model_validate(
        {
            "enabled": True,
            "systemPrompt": "You draw diagrams.",
            "tools": tools
            or {
                "create": {"systemPrompt": "Create diagrams."},
                "generate": {"systemPrompt": "Generate diagrams."},
                "update": {"systemPrompt": "Update diagrams.", "userPromptTemplate": TEMPLATES["update"]},
                "fix": {"systemPrompt": "Fix diagrams.", "userPromptTemplate": TEMPLATES["fix"]},
            },
        }
    )


@pytest.fixture
def context() -> ArtifactContext:
    return ArtifactContext(writer=UIMessageStreamWriter(), user_id=USER_ID, chat_id="chat-1")


def build_agent(mock_documents: MagicMock, streamer_factory: Any, **streamer_kwargs: Any) -> tuple[MermaidAgent, Any]:
    streamer, factory = streamer_factory(**streamer_kwargs)
    agent = MermaidAgent(
        mermaid_config(), AgentRuntime(model_id="gpt-4.1"), mock_documents, streamer_factory=factory
    )
    return agent, streamer


class TestValidateMermaidSyntax:
    @pytest.mark.parametrize(
        "content",
        [
            "graph TD\nA-->B",
            "  flowchart LR\n  A --> B",
            "sequenceDiagram\nAlice->>Bob: Hi",
            "SEQUENCEDIAGRAM\nAlice->>Bob: Hi",
        ],
    )
    def test_valid(self, content: str) -> None:
        assert validate_mermaid_syntax(content) is True

    @pytest.mark.parametrize("content", ["", "   ", "A --> B", "hello world", "%% title\ngantt"])
    def test_invalid(self, content: str) -> None:
        assert validate_mermaid_syntax(content) is False


class TestCreate:
    @pytest.mark.asyncio
    async def test_code_deltas_replace(
        self, mock_documents: MagicMock, streamer_factory: Any, context: ArtifactContext, drain: Any
    ) -> None:
        agent, streamer = build_agent(
            mock_documents,
            streamer_factory,
            objects=[{"diagram": "graph"}, {"diagram": "graph TD"}, {"diagram": "graph TD\nA-->B"}],
        )

        result = await agent.execute(operation="create", context=context, instruction="Login flow")

        parts = drain(context.writer)
        assert parts[0].data == "mermaid code"
        assert [p.data for p in parts if p.type == "data-codeDelta"] == ["graph", "graph TD", "graph TD\nA-->B"]
        assert result.output == {"id": result.output["id"], "title": "Login flow", "kind": "mermaid code"}
        assert mock_documents.save_document.call_args.args[0].content == "graph TD\nA-->B"
        # No user template: the instruction is the prompt
        assert streamer.calls == [("object", "Create diagrams.", "Login flow")]

    @pytest.mark.asyncio
    async def test_invalid_diagram_not_saved(
        self, mock_documents: MagicMock, streamer_factory: Any, context: ArtifactContext, drain: Any
    ) -> None:
        agent, _ = build_agent(mock_documents, streamer_factory, objects=[{"diagram": "just some words"}])

        with pytest.raises(MermaidValidationError, match="Generated diagram does not contain valid Mermaid syntax"):
            await agent.execute(operation="create", context=context, instruction="Login flow")

        mock_documents.save_document.assert_not_called()
        assert drain(context.writer)[-1].type == "data-finish"


class TestGenerate:
    @pytest.mark.asyncio
    async def test_returns_code_without_artifact(
        self, mock_documents: MagicMock, streamer_factory: Any, context: ArtifactContext, drain: Any
    ) -> None:
        agent, _ = build_agent(mock_documents, streamer_factory, objects=[{"diagram": "pie\n\"A\": 1"}])

        result = await agent.execute(operation="generate", context=context, instruction="Share chart")

        assert result.output == {"code": "pie\n\"A\": 1", "generated": True}
        assert drain(context.writer) == []
        mock_documents.save_document.assert_not_called()


class TestModify:
    @pytest.mark.asyncio
    async def test_update(
        self,
        mock_documents: MagicMock,
        streamer_factory: Any,
        context: ArtifactContext,
        make_document: Any,
    ) -> None:
        mock_documents.get_document_by_id.return_value = make_document(kind="mermaid code", content="graph TD\nA-->B")
        agent, streamer = build_agent(mock_documents, streamer_factory, objects=[{"diagram": "graph TD\nA-->C"}])

        result = await agent.execute(operation="update", context=context, instruction="Point to C", document_id="doc-1")

        assert result.output == {"id": "doc-1", "kind": "mermaid code", "isUpdate": True}
        assert streamer.calls[0][2] == "Diagram:\ngraph TD\nA-->B\n\nChange: Point to C"

    @pytest.mark.asyncio
    async def test_fix_that_stays_invalid(
        self,
        mock_documents: MagicMock,
        streamer_factory: Any,
        context: ArtifactContext,
        make_document: Any,
    ) -> None:
        mock_documents.get_document_by_id.return_value = make_document(kind="mermaid code", content="grph TD")
        agent, _ = build_agent(mock_documents, streamer_factory, objects=[{"diagram": "grph TD"}])

        with pytest.raises(MermaidValidationError, match="Fixed diagram still contains invalid Mermaid syntax"):
            await agent.execute(operation="fix", context=context, instruction="typo", document_id="doc-1")

    @pytest.mark.asyncio
    async def test_fix(
        self,
        mock_documents: MagicMock,
        streamer_factory: Any,
        context: ArtifactContext,
        make_document: Any,
    ) -> None:
        mock_documents.get_document_by_id.return_value = make_document(kind="mermaid code", content="grph TD")
        agent, streamer = build_agent(mock_documents, streamer_factory, objects=[{"diagram": "graph TD"}])

        result = await agent.execute(operation="fix", context=context, instruction="typo", document_id="doc-1")

        assert result.output["isFix"] is True
        assert streamer.calls[0][2].endswith("Errors: typo")
        assert mock_documents.save_document.call_args.args[0].metadata["errorInfo"] == "typo"

    @pytest.mark.asyncio
    async def test_requires_diagram_id(
        self, mock_documents: MagicMock, streamer_factory: Any, context: ArtifactContext
    ) -> None:
        agent, _ = build_agent(mock_documents, streamer_factory)

        with pytest.raises(AgentError, match="MermaidAgent: diagramId is required for fix"):
            await agent.execute(operation="fix", context=context, instruction="typo")


class TestToolConfig:
    def test_fix_requires_template(self, mock_documents: MagicMock) -> None:
        agent = MermaidAgent(
            mermaid_config(
                {
                    "create": {"systemPrompt": "c"},
                    "generate": {"systemPrompt": "g"},
                    "update": {"systemPrompt": "u", "userPromptTemplate": "t"},
                    "fix": {"systemPrompt": "f"},
                }
            ),
            AgentRuntime(),
            mock_documents,
        )

        with pytest.raises(ConfigurationError, match="MermaidAgent: Missing userPromptTemplate for fix tool"):
            agent.load_tool_configs()
