"""
Shared machinery for the sub-agents.

Every artifact operation follows the same sequence:

1. resolve the existing document (update, fix, explain, revert, suggestion)
2. write ``data-kind``, ``data-id``, ``data-title`` and ``data-clear``
3. stream content deltas as the model produces them
4. validate the final content
5. persist a new version (skipped for non-persisting operations)
6. write ``data-finish`` exactly once, on success and on failure

``StreamingArtifactOperation`` owns steps 2-6. ``StreamingArtifactAgent``
owns step 1, prompt template lookup, revert, and the activity record each
call produces. Subclasses supply the per-operation prompts and validators.
"""

from __future__ import annotations

import asyncio
import copy

from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, ClassVar

from pydantic.alias_generators import to_camel

from api.services.document_service import DocumentService
from core.constants import REVERT_CHUNK_SIZE
from core.errors import (
    AgentError,
    ArtifactValidationError,
    ConfigurationError,
    DocumentNotFoundError,
    RevertVersionError,
)
from integrations.ui_stream import UIMessageStreamWriter
from models.agent_config import ArtifactAgentConfig, BaseAgentConfig, OperationToolConfig
from models.documents import ArtifactKind, Document, NewDocumentVersion
from models.error_models import ErrorCode
from models.stream_events import ArtifactPartType
from subagents.model_stream import ModelStreamer
from subagents.runtime import AgentResult, AgentRuntime, ArtifactContext
from utils.activity_logger import AgentOperationCategory, AgentOperationType, AgentType, PerformanceTracker
from utils.logger import logger
from utils.metrics import artifact_operations_total
from utils.text import chunk_text

StreamerFactory = Callable[[AgentRuntime], ModelStreamer]

_TIMESTAMP_KEYS = {
    "create": "createdAt",
    "update": "updatedAt",
    "fix": "fixedAt",
    "explain": "explainedAt",
    "revert": "revertedAt",
}


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


async def iterate(items: Iterable[str]) -> AsyncIterator[str]:
    """Async view over an already materialized sequence of chunks."""
    for item in items:
        yield item


async def field_stream(partials: AsyncIterator[dict[str, Any]], name: str) -> AsyncIterator[str]:
    """Yield the growing value of one string field of streamed partial objects."""
    last = ""
    async for partial in partials:
        value = partial.get(name)
        if isinstance(value, str) and value and value != last:
            last = value
            yield value


class BaseSubAgent:
    """Config validation and runtime binding common to every sub-agent."""

    agent_type: ClassVar[AgentType]
    name: ClassVar[str]

    def __init__(self, config: BaseAgentConfig | None, runtime: AgentRuntime):
        if config is None:
            raise ConfigurationError(self.config_key_for(runtime), f"{self.name}: Configuration is required")
        if not config.enabled:
            raise AgentError(self.agent_type.value, ErrorCode.AGENT_DISABLED, f"{self.name}: Agent is disabled")
        if not config.system_prompt.strip():
            raise ConfigurationError(self.config_key_for(runtime), f"{self.name}: systemPrompt is required")
        self.config = config
        self.runtime = runtime

    @classmethod
    def config_key_for(cls, runtime: AgentRuntime) -> str:
        return f"{cls.agent_type.value}_{runtime.provider}"

    @property
    def config_key(self) -> str:
        return self.config_key_for(self.runtime)

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def model_id(self) -> str | None:
        return self.runtime.model_id

    def rebind(self, runtime: AgentRuntime) -> BaseSubAgent:
        """Copy of this agent bound to ``runtime``; the original is untouched."""
        clone = copy.copy(self)
        clone.runtime = runtime
        return clone


@dataclass
class ArtifactOutcome:
    content: str
    document: Document | None
    chunk_count: int


@dataclass
class OperationOutcome:
    """What an operation handler hands back to ``execute``."""

    output: dict[str, Any]
    resource_id: str | None
    content_length: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)


class StreamingArtifactOperation:
    """Writes one artifact's event sequence and persists the finished content."""

    def __init__(
        self,
        *,
        kind: ArtifactKind,
        delta_type: ArtifactPartType,
        writer: UIMessageStreamWriter,
        documents: DocumentService,
        replace_deltas: bool = False,
    ):
        self.kind = kind
        self.delta_type = delta_type
        self.writer = writer
        self.documents = documents
        # Code deltas carry the whole content so far; text deltas are appended
        self.replace_deltas = replace_deltas

    async def run(
        self,
        *,
        document_id: str,
        title: str,
        chunks: AsyncIterator[str],
        user_id: str | None,
        chat_id: str | None,
        metadata: dict[str, Any],
        parent: Document | None = None,
        finalize: Callable[[str], str] | None = None,
        validate: Callable[[str], None] | None = None,
        persist: bool = True,
    ) -> ArtifactOutcome:
        self.writer.write_data("data-kind", self.kind)
        self.writer.write_data("data-id", document_id)
        self.writer.write_data("data-title", title)
        self.writer.write_data("data-clear", None)

        content = ""
        chunk_count = 0
        try:
            async for chunk in chunks:
                content = chunk if self.replace_deltas else content + chunk
                chunk_count += 1
                self.writer.write_data(self.delta_type, chunk)

            if finalize is not None:
                content = finalize(content)
            if validate is not None:
                validate(content)

            saved: Document | None = None
            if persist and user_id:
                saved = await self.documents.save_document(
                    NewDocumentVersion(
                        id=document_id,
                        title=title,
                        content=content,
                        kind=self.kind,
                        user_id=user_id,
                        chat_id=chat_id,
                        parent_version_id=parent.version_id if parent else None,
                        metadata=metadata,
                    )
                )
            elif persist:
                logger.warning(f"No user for {self.kind} artifact {document_id}; not saved", document_id=document_id)

            return ArtifactOutcome(content=content, document=saved, chunk_count=chunk_count)
        finally:
            self.writer.write_data("data-finish", None)


class StreamingArtifactAgent(BaseSubAgent):
    """Template for the Document, Mermaid and Python agents."""

    kind: ClassVar[ArtifactKind]
    delta_type: ClassVar[ArtifactPartType]
    replace_deltas: ClassVar[bool] = False
    operation_type: ClassVar[AgentOperationType]
    operations: ClassVar[tuple[str, ...]]
    #: Tool config entries that must exist, with the fields each must carry
    required_tool_fields: ClassVar[dict[str, tuple[str, ...]]]
    resource_type: ClassVar[str]
    resource_label: ClassVar[str]
    id_param: ClassVar[str]
    default_title: ClassVar[str]
    temperature: ClassVar[float | None] = None

    config: ArtifactAgentConfig

    def __init__(
        self,
        config: ArtifactAgentConfig | None,
        runtime: AgentRuntime,
        documents: DocumentService,
        streamer_factory: StreamerFactory | None = None,
    ):
        super().__init__(config, runtime)
        self.documents = documents
        self._streamer_factory = streamer_factory
        self._tool_configs: dict[str, OperationToolConfig] | None = None

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def streamer(self) -> ModelStreamer:
        if self._streamer_factory is not None:
            return self._streamer_factory(self.runtime)
        return ModelStreamer(self.runtime, temperature=self.temperature)

    def load_tool_configs(self) -> dict[str, OperationToolConfig]:
        """Validate and cache the per-operation prompt templates."""
        if self._tool_configs is not None:
            return self._tool_configs

        tools = self.config.tools
        if not tools:
            raise ConfigurationError(
                self.config_key,
                f"{self.name}: Tools configuration not found. Ensure {self.config_key} has tools defined.",
            )
        for operation, required in self.required_tool_fields.items():
            tool = tools.get(operation)
            missing = [f for f in required if tool is None or not getattr(tool, f)]
            if missing:
                names = " or ".join(to_camel(f) for f in missing)
                raise ConfigurationError(self.config_key, f"{self.name}: Missing {names} for {operation} tool")

        self._tool_configs = dict(tools)
        return self._tool_configs

    def tool_config(self, operation: str) -> OperationToolConfig:
        tool = self.load_tool_configs().get(operation)
        if tool is None or not tool.enabled:
            raise AgentError(self.agent_type.value, ErrorCode.TOOL_DISABLED, f"{self.name}: {operation} tool is not enabled")
        return tool

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(
        self,
        *,
        operation: str,
        context: ArtifactContext,
        instruction: str = "",
        document_id: str | None = None,
        target_version: int | None = None,
    ) -> AgentResult:
        """Run one operation and record exactly one activity entry for it.

        Errors are raised after the artifact stream (if opened) was finished.
        """
        if operation not in self.operations:
            raise AgentError(
                self.agent_type.value, ErrorCode.VALIDATION_ERROR, f"{self.name}: Unknown operation: {operation}"
            )
        handler: Callable[..., Awaitable[OperationOutcome]] = getattr(self, f"_handle_{operation}")

        tracker = PerformanceTracker(
            self.agent_type,
            self.operation_type,
            AgentOperationCategory.GENERATION,
            user_id=context.user_id,
        )
        metadata: dict[str, Any] = {
            "operation": operation,
            "chat_id": context.chat_id,
            "instruction_length": len(instruction),
            "streaming": True,
        }
        logger.info(
            f"{self.name} {operation} started",
            correlation_id=tracker.correlation_id,
            agent_type=self.agent_type.value,
            model_id=self.model_id,
        )

        try:
            self.load_tool_configs()
            outcome = await handler(
                instruction=instruction,
                document_id=document_id,
                target_version=target_version,
                context=context,
            )
        except (Exception, asyncio.CancelledError) as e:
            artifact_operations_total.labels(kind=self.kind, operation=operation, status="error").inc()
            await tracker.end(
                success=False,
                error=e,
                model_id=self.model_id,
                resource_id=document_id,
                resource_type=self.resource_type,
                operation_metadata=metadata,
            )
            raise

        artifact_operations_total.labels(kind=self.kind, operation=operation, status="success").inc()
        await tracker.end(
            success=True,
            model_id=self.model_id,
            resource_id=outcome.resource_id,
            resource_type=self.resource_type,
            operation_metadata={**metadata, "content_length": outcome.content_length, **outcome.metadata},
        )
        return AgentResult(output=outcome.output, success=True)

    def artifact_operation(self, writer: UIMessageStreamWriter) -> StreamingArtifactOperation:
        return StreamingArtifactOperation(
            kind=self.kind,
            delta_type=self.delta_type,
            writer=writer,
            documents=self.documents,
            replace_deltas=self.replace_deltas,
        )

    def base_metadata(self, update_type: str, **extra: Any) -> dict[str, Any]:
        return {
            "updateType": update_type,
            "agent": self.name,
            "modelUsed": self.model_id,
            _TIMESTAMP_KEYS.get(update_type, "updatedAt"): utc_now_iso(),
            **extra,
        }

    # ------------------------------------------------------------------
    # Document resolution
    # ------------------------------------------------------------------

    def require_id(self, document_id: str | None, operation: str) -> str:
        if not document_id:
            raise AgentError(
                self.agent_type.value,
                ErrorCode.VALIDATION_MISSING_FIELD,
                f"{self.name}: {self.id_param} is required for {operation}",
            )
        return document_id

    async def require_document(self, document_id: str) -> Document:
        """Latest version of ``document_id``; raises when missing or of another kind."""
        document = await self.documents.get_document_by_id(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id, label=self.resource_label)
        if document.kind != self.kind:
            raise ArtifactValidationError(
                f"Document {document_id} is not a {self.kind} document (kind: {document.kind})",
                kind=self.kind,
            )
        return document

    # ------------------------------------------------------------------
    # Revert (identical for every artifact kind apart from chunking)
    # ------------------------------------------------------------------

    def revert_chunks(self, content: str) -> list[str]:
        if self.replace_deltas:
            return [content]
        return chunk_text(content, REVERT_CHUNK_SIZE)

    async def _handle_revert(
        self,
        *,
        instruction: str,
        document_id: str | None,
        target_version: int | None,
        context: ArtifactContext,
    ) -> OperationOutcome:
        document_id = self.require_id(document_id, "revert")
        current = await self.require_document(document_id)

        target = current.version_number - 1 if target_version is None else target_version
        if target < 1:
            raise RevertVersionError("Cannot revert: No previous version exists", current.version_number, target)
        if target >= current.version_number:
            raise RevertVersionError(
                f"Cannot revert to version {target}: Current version is {current.version_number}",
                current.version_number,
                target,
            )

        previous = await self.documents.get_document_by_id_and_version(document_id, target)
        if previous is None:
            raise DocumentNotFoundError(document_id, version=target, label=self.resource_label)

        outcome = await self.artifact_operation(context.writer).run(
            document_id=document_id,
            title=previous.title,
            chunks=iterate(self.revert_chunks(previous.content)),
            user_id=context.user_id,
            chat_id=context.chat_id or current.chat_id,
            parent=current,
            metadata=self.base_metadata(
                "revert",
                revertedFrom=current.version_number,
                revertedTo=target,
            ),
        )
        logger.info(
            f"{self.name} reverted {document_id} from version {current.version_number} to {target}",
            document_id=document_id,
        )
        return OperationOutcome(
            output={
                "id": document_id,
                "kind": self.kind,
                "isRevert": True,
                "revertedFrom": current.version_number,
                "revertedTo": target,
            },
            resource_id=document_id,
            content_length=len(outcome.content),
            metadata={"target_version": target},
        )
