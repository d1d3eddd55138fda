"""
Structured-output code artifacts (Mermaid diagrams and Python code).

The model returns ``{<output_field>: "..."}`` as streamed JSON. Each time the
field grows, the whole content so far is written as one ``data-codeDelta``
part, which the client renders with replace semantics.
"""

from __future__ import annotations

import uuid

from collections.abc import AsyncIterator
from typing import Any, ClassVar

from pydantic import BaseModel

from core.errors import AppException, StreamingError
from models.agent_config import OperationToolConfig
from subagents.base import OperationOutcome, StreamingArtifactAgent, field_stream
from subagents.runtime import ArtifactContext
from utils.text import fill_template, title_from_instruction

_PROMPT_FIELDS = ("system_prompt", "user_prompt_template")


class CodeArtifactAgent(StreamingArtifactAgent):
    delta_type = "data-codeDelta"
    replace_deltas = True
    output_schema: ClassVar[type[BaseModel]]
    output_field: ClassVar[str]
    #: Noun used in failure messages, e.g. "diagram"
    noun: ClassVar[str]
    required_tool_fields: ClassVar[dict[str, tuple[str, ...]]] = {
        "create": ("system_prompt",),
        "generate": ("system_prompt",),
        "update": _PROMPT_FIELDS,
        "fix": _PROMPT_FIELDS,
    }

    def check_content(self, content: str, operation: str) -> None:
        """Raise when generated content must not be saved. No check by default."""

    def code_chunks(self, tool: OperationToolConfig, prompt: str) -> AsyncIterator[str]:
        partials = self.streamer().stream_object(tool.system_prompt or "", prompt, self.output_schema)
        return field_stream(partials, self.output_field)

    @staticmethod
    def create_prompt(tool: OperationToolConfig, instruction: str, title: str) -> str:
        if tool.user_prompt_template:
            return fill_template(tool.user_prompt_template, instruction=instruction, title=title)
        return instruction

    async def _handle_generate(
        self,
        *,
        instruction: str,
        document_id: str | None,
        target_version: int | None,
        context: ArtifactContext,
    ) -> OperationOutcome:
        """Return code to the caller without opening an artifact or saving."""
        tool = self.tool_config("generate")
        title = title_from_instruction(instruction, self.default_title)

        content = ""
        async for value in self.code_chunks(tool, self.create_prompt(tool, instruction, title)):
            content = value
        self.check_content(content, "generate")

        return OperationOutcome(
            output={"code": content, "generated": True},
            resource_id=None,
            content_length=len(content),
        )

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

        try:
            outcome = await self.artifact_operation(context.writer).run(
                document_id=new_id,
                title=title,
                chunks=self.code_chunks(tool, self.create_prompt(tool, instruction, title)),
                user_id=context.user_id,
                chat_id=context.chat_id,
                metadata=self.base_metadata("create"),
                validate=lambda content: self.check_content(content, "create"),
            )
        except AppException:
            raise
        except Exception as e:
            raise StreamingError(f"Failed to create {self.noun}: {e}", cause=e) from e

        return OperationOutcome(
            output={"id": new_id, "title": title, "kind": self.kind},
            resource_id=new_id,
            content_length=len(outcome.content),
            metadata={"chunk_count": outcome.chunk_count},
        )

    async def modify(
        self,
        *,
        operation: str,
        document_id: str | None,
        context: ArtifactContext,
        output_flag: str,
        metadata: dict[str, Any],
        **template_values: str,
    ) -> OperationOutcome:
        """Regenerate an existing artifact from one of its templates and save a new version."""
        document_id = self.require_id(document_id, operation)
        tool = self.tool_config(operation)
        current = await self.require_document(document_id)
        prompt = fill_template(tool.user_prompt_template or "", currentContent=current.content, **template_values)

        try:
            outcome = await self.artifact_operation(context.writer).run(
                document_id=document_id,
                title=current.title,
                chunks=self.code_chunks(tool, prompt),
                user_id=context.user_id,
                chat_id=context.chat_id or current.chat_id,
                parent=current,
                metadata=self.base_metadata(operation, previousVersion=current.version_number, **metadata),
                validate=lambda content: self.check_content(content, operation),
            )
        except AppException:
            raise
        except Exception as e:
            raise StreamingError(f"Failed to {operation} {self.noun}: {e}", cause=e) from e

        return OperationOutcome(
            output={"id": document_id, "kind": self.kind, output_flag: True},
            resource_id=document_id,
            content_length=len(outcome.content),
            metadata={"previous_version": current.version_number, "chunk_count": outcome.chunk_count},
        )

    async def _handle_update(
        self,
        *,
        instruction: str,
        document_id: str | None,
        target_version: int | None,
        context: ArtifactContext,
    ) -> OperationOutcome:
        return await self.modify(
            operation="update",
            document_id=document_id,
            context=context,
            output_flag="isUpdate",
            metadata={"updateInstruction": instruction},
            updateInstruction=instruction,
        )

    async def _handle_fix(
        self,
        *,
        instruction: str,
        document_id: str | None,
        target_version: int | None,
        context: ArtifactContext,
    ) -> OperationOutcome:
        return await self.modify(
            operation="fix",
            document_id=document_id,
            context=context,
            output_flag="isFix",
            metadata={"errorInfo": instruction},
            errorInfo=instruction,
        )
