"""
Text document sub-agent.

Operations: ``create``, ``update``, ``revert`` and ``suggestion``. Content is
streamed as ``data-textDelta`` parts that the client appends; suggestions are
streamed one ``data-suggestion`` part per completed suggestion.
"""

from __future__ import annotations

import time
import uuid

from datetime import UTC, datetime
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.constants import DOCUMENT_TEMPERATURE, KIND_TEXT
from core.errors import AppException, StreamingError
from models.stream_events import DataPart, Suggestion
from subagents.base import OperationOutcome, StreamingArtifactAgent
from subagents.runtime import ArtifactContext
from utils.activity_logger import AgentOperationType, AgentType
from utils.logger import logger
from utils.text import fill_template, strip_markdown_code_fences, title_from_instruction

_PROMPT_FIELDS = ("system_prompt", "user_prompt_template")


class SuggestionItem(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    original_text: str = Field(description="The exact text from the document that needs improvement")
    suggested_text: str = Field(description="The improved replacement text")
    description: str = Field(description="Brief explanation of why this suggestion improves the text")


class SuggestionSet(BaseModel):
    suggestions: list[SuggestionItem]


def _is_complete(item: Any) -> bool:
    if not isinstance(item, dict):
        return False
    return all(isinstance(item.get(k), str) and item.get(k) for k in ("originalText", "suggestedText", "description"))


class DocumentAgent(StreamingArtifactAgent):
    agent_type: ClassVar[AgentType] = AgentType.DOCUMENT_AGENT
    name: ClassVar[str] = "DocumentAgent"
    kind = KIND_TEXT
    delta_type = "data-textDelta"
    replace_deltas = False
    operation_type = AgentOperationType.DOCUMENT_GENERATION
    operations = ("create", "update", "revert", "suggestion")
    required_tool_fields: ClassVar[dict[str, tuple[str, ...]]] = {
        "create": _PROMPT_FIELDS,
        "update": _PROMPT_FIELDS,
        "suggestion": _PROMPT_FIELDS,
    }
    resource_type = "document"
    resource_label = "Document"
    id_param = "documentId"
    default_title = "Untitled Document"
    temperature = DOCUMENT_TEMPERATURE

    async def _handle_create(
        self,
        *,
        instruction: str,
        document_id: str | None,
        target_version: int | None,
        context: ArtifactContext,
    ) -> OperationOutcome:
        tool = self.tool_config("create")
        new_id = str(uuid.uuid4())
        title = title_from_instruction(instruction, self.default_title)
        prompt = fill_template(tool.user_prompt_template or "", title=title, instruction=instruction)

        try:
            outcome = await self.artifact_operation(context.writer).run(
                document_id=new_id,
                title=title,
                chunks=self.streamer().stream_text(tool.system_prompt or "", prompt),
                user_id=context.user_id,
                chat_id=context.chat_id,
                metadata=self.base_metadata("create"),
                finalize=strip_markdown_code_fences,
            )
        except AppException:
            raise
        except Exception as e:
            raise StreamingError(f"Failed to create document: {e}", cause=e) from e

        return OperationOutcome(
            output={"id": new_id, "title": title, "kind": self.kind},
            resource_id=new_id,
            content_length=len(outcome.content),
            metadata={"chunk_count": outcome.chunk_count},
        )

    async def _handle_update(
        self,
        *,
        instruction: str,
        document_id: str | None,
        target_version: int | None,
        context: ArtifactContext,
    ) -> OperationOutcome:
        document_id = self.require_id(document_id, "update")
        tool = self.tool_config("update")
        current = await self.require_document(document_id)

        prompt = fill_template(
            tool.user_prompt_template or "",
            currentContent=current.content,
            updateInstruction=instruction,
        )
        outcome = await self.artifact_operation(context.writer).run(
            document_id=document_id,
            title=current.title,
            chunks=self.streamer().stream_text(tool.system_prompt or "", prompt),
            user_id=context.user_id,
            chat_id=context.chat_id or current.chat_id,
            parent=current,
            metadata=self.base_metadata(
                "update",
                previousVersion=current.version_number,
                updateInstruction=instruction,
            ),
            finalize=strip_markdown_code_fences,
        )
        return OperationOutcome(
            output={"id": document_id, "kind": self.kind, "isUpdate": True},
            resource_id=document_id,
            content_length=len(outcome.content),
            metadata={"previous_version": current.version_number, "chunk_count": outcome.chunk_count},
        )

    async def _handle_suggestion(
        self,
        *,
        instruction: str,
        document_id: str | None,
        target_version: int | None,
        context: ArtifactContext,
    ) -> OperationOutcome:
        document_id = self.require_id(document_id, "suggestion")
        tool = self.tool_config("suggestion")
        document = await self.require_document(document_id)
        prompt = fill_template(
            tool.user_prompt_template or "",
            currentContent=document.content,
            instruction=instruction,
        )

        writer = context.writer
        writer.write_data("data-kind", self.kind)
        writer.write_data("data-id", document_id)
        writer.write_data("data-title", document.title)

        emitted: list[Suggestion] = []
        try:
            # Only finished strings are parsed, so a present field is a complete field
            partials = self.streamer().stream_object(
                tool.system_prompt or "", prompt, SuggestionSet, partial_strings=False
            )
            async for partial in partials:
                items = partial.get("suggestions")
                if not isinstance(items, list):
                    continue
                for index in range(len(emitted), len(items)):
                    item = items[index]
                    if not _is_complete(item):
                        break
                    suggestion = Suggestion(
                        id=f"{document_id}-suggestion-{int(time.time() * 1000)}-{index}",
                        document_id=document_id,
                        original_text=item["originalText"],
                        suggested_text=item["suggestedText"],
                        description=item["description"],
                        created_at=datetime.now(UTC).isoformat(),
                        user_id=context.user_id,
                        chat_id=context.chat_id,
                    )
                    emitted.append(suggestion)
                    writer.write(
                        DataPart(
                            type="data-suggestion",
                            data=suggestion.model_dump(by_alias=True, exclude={"is_resolved"}),
                            transient=True,
                        )
                    )

            if emitted and context.user_id:
                await self.documents.save_suggestions(emitted, document.version_id)
        except AppException:
            raise
        except Exception as e:
            raise StreamingError(f"Failed to generate suggestions: {e}", cause=e) from e
        finally:
            writer.write_data("data-finish", None)

        logger.info(f"Generated {len(emitted)} suggestions for document {document_id}", document_id=document_id)
        return OperationOutcome(
            output={
                "id": document_id,
                "kind": self.kind,
                "isSuggestion": True,
                "suggestionCount": len(emitted),
            },
            resource_id=document_id,
            metadata={"suggestion_count": len(emitted)},
        )
