"""Tests for the text document sub-agent."""

from __future__ import annotations

import re

from typing import Any
from unittest.mock import MagicMock

import pytest

from core.errors import AgentError, StreamingError
from integrations.ui_stream import UIMessageStreamWriter
from models.agent_config import DocumentAgentConfig
from subagents.document_agent import DocumentAgent
from subagents.runtime import AgentRuntime, ArtifactContext

USER_ID = "11111111-1111-1111-1111-111111111111"

CONFIG = {
    "enabled": True,
    "systemPrompt": "You manage documents.",
    "tools": {
        "create": {"systemPrompt": "Write documents.", "userPromptTemplate": "Title: {title}\n\n{instruction}"},
        "update": {
            "systemPrompt": "Edit documents.",
            "userPromptTemplate": "Current:\n{currentContent}\n\nChange: {updateInstruction}",
        },
        "suggestion": {
            "systemPrompt": "Suggest edits.",
            "userPromptTemplate": "Document:\n{currentContent}\n\nFocus: {instruction}",
        },
    },
}

COMPLETE = {"originalText": "foam", "suggestedText": "spray", "description": "Sharper image"}
SECOND = {"originalText": "sea", "suggestedText": "ocean", "description": "Grander"}


@pytest.fixture
def context() -> ArtifactContext:
    return ArtifactContext(writer=UIMessageStreamWriter(), user_id=USER_ID, chat_id="chat-1")


def build_agent(mock_documents: MagicMock, streamer_factory: Any, **streamer_kwargs: Any) -> tuple[DocumentAgent, Any]:
    streamer, factory = streamer_factory(**streamer_kwargs)
    agent = DocumentAgent(
        DocumentAgentConfig.model_validate(CONFIG),
        AgentRuntime(model_id="gpt-4.1", api_key="sk-test"),
        mock_documents,
        streamer_factory=factory,
    )
    return agent, streamer


class TestCreate:
    @pytest.mark.asyncio
    async def test_streams_and_saves(
        self, mock_documents: MagicMock, streamer_factory: Any, context: ArtifactContext, drain: Any
    ) -> None:
        agent, streamer = build_agent(
            mock_documents, streamer_factory, text_chunks=["```markdown\n# Sea", "\nWaves fold", "\n```"]
        )

        result = await agent.execute(operation="create", context=context, instruction="Haiku about the sea")

        assert result.success is True
        assert result.output["title"] == "Haiku about the sea"
        assert result.output["kind"] == "text"
        parts = drain(context.writer)
        assert [p.type for p in parts].count("data-textDelta") == 3
        assert parts[1].data == result.output["id"]

        saved = mock_documents.save_document.call_args.args[0]
        assert saved.id == result.output["id"]
        assert saved.content == "# Sea\nWaves fold"
        assert saved.parent_version_id is None
        assert saved.metadata["updateType"] == "create"
        assert saved.metadata["agent"] == "DocumentAgent"
        assert "createdAt" in saved.metadata

        assert streamer.calls == [("text", "Write documents.", "Title: Haiku about the sea\n\nHaiku about the sea")]

    @pytest.mark.asyncio
    async def test_streaming_failure(
        self, mock_documents: MagicMock, streamer_factory: Any, context: ArtifactContext, drain: Any
    ) -> None:
        agent, _ = build_agent(mock_documents, streamer_factory, text_chunks=["partial"], error=RuntimeError("boom"))

        with pytest.raises(StreamingError, match="Failed to create document: boom"):
            await agent.execute(operation="create", context=context, instruction="Haiku")

        assert drain(context.writer)[-1].type == "data-finish"
        mock_documents.save_document.assert_not_called()

    @pytest.mark.asyncio
    async def test_without_user_is_not_saved(self, mock_documents: MagicMock, streamer_factory: Any) -> None:
        agent, _ = build_agent(mock_documents, streamer_factory, text_chunks=["Hello"])
        context = ArtifactContext(writer=UIMessageStreamWriter())

        result = await agent.execute(operation="create", context=context, instruction="Greeting")

        assert result.success is True
        mock_documents.save_document.assert_not_called()


class TestUpdate:
    @pytest.mark.asyncio
    async def test_appends_version(
        self,
        mock_documents: MagicMock,
        streamer_factory: Any,
        context: ArtifactContext,
        make_document: Any,
    ) -> None:
        current = make_document(version=2, content="Old text")
        mock_documents.get_document_by_id.return_value = current
        agent, streamer = build_agent(mock_documents, streamer_factory, text_chunks=["New ", "text"])

        result = await agent.execute(
            operation="update", context=context, instruction="Make it new", document_id="doc-1"
        )

        assert result.output == {"id": "doc-1", "kind": "text", "isUpdate": True}
        assert streamer.calls[0][2] == "Current:\nOld text\n\nChange: Make it new"
        saved = mock_documents.save_document.call_args.args[0]
        assert saved.content == "New text"
        assert saved.title == current.title
        assert saved.parent_version_id == current.version_id
        assert saved.metadata["previousVersion"] == 2
        assert saved.metadata["updateInstruction"] == "Make it new"

    @pytest.mark.asyncio
    async def test_requires_document_id(
        self, mock_documents: MagicMock, streamer_factory: Any, context: ArtifactContext
    ) -> None:
        agent, _ = build_agent(mock_documents, streamer_factory)

        with pytest.raises(AgentError, match="DocumentAgent: documentId is required for update"):
            await agent.execute(operation="update", context=context, instruction="x")


class TestSuggestion:
    @pytest.mark.asyncio
    async def test_emits_each_completed_suggestion_once(
        self,
        mock_documents: MagicMock,
        streamer_factory: Any,
        context: ArtifactContext,
        make_document: Any,
        drain: Any,
    ) -> None:
        document = make_document(content="The sea and its foam")
        mock_documents.get_document_by_id.return_value = document
        agent, streamer = build_agent(
            mock_documents,
            streamer_factory,
            objects=[
                {"suggestions": []},
                {"suggestions": [COMPLETE]},
                {"suggestions": [COMPLETE, {"originalText": "sea"}]},
                {"suggestions": [COMPLETE, SECOND]},
                {"suggestions": [COMPLETE, SECOND]},
            ],
        )

        result = await agent.execute(
            operation="suggestion", context=context, instruction="imagery", document_id="doc-1"
        )

        assert result.output == {"id": "doc-1", "kind": "text", "isSuggestion": True, "suggestionCount": 2}
        parts = drain(context.writer)
        assert [p.type for p in parts] == [
            "data-kind",
            "data-id",
            "data-title",
            "data-suggestion",
            "data-suggestion",
            "data-finish",
        ]
        first = parts[3].data
        assert re.fullmatch(r"doc-1-suggestion-\d+-0", first["id"])
        assert first["documentId"] == "doc-1"
        assert first["originalText"] == "foam"
        assert first["suggestedText"] == "spray"
        assert "isResolved" not in first
        assert parts[4].data["originalText"] == "sea"

        saved, version_id = mock_documents.save_suggestions.call_args.args
        assert len(saved) == 2
        assert version_id == document.version_id
        assert streamer.calls[0][0] == "object"
        mock_documents.save_document.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_suggestions(
        self,
        mock_documents: MagicMock,
        streamer_factory: Any,
        context: ArtifactContext,
        make_document: Any,
    ) -> None:
        mock_documents.get_document_by_id.return_value = make_document()
        agent, _ = build_agent(mock_documents, streamer_factory, objects=[{"suggestions": []}])

        result = await agent.execute(operation="suggestion", context=context, document_id="doc-1")

        assert result.output["suggestionCount"] == 0
        mock_documents.save_suggestions.assert_not_called()

    @pytest.mark.asyncio
    async def test_failure_still_finishes_stream(
        self,
        mock_documents: MagicMock,
        streamer_factory: Any,
        context: ArtifactContext,
        make_document: Any,
        drain: Any,
    ) -> None:
        mock_documents.get_document_by_id.return_value = make_document()
        agent, _ = build_agent(mock_documents, streamer_factory, error=RuntimeError("model went away"))

        with pytest.raises(StreamingError, match="Failed to generate suggestions"):
            await agent.execute(operation="suggestion", context=context, document_id="doc-1")

        assert drain(context.writer)[-1].type == "data-finish"
