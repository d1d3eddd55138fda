"""
UI message stream parts.

Every part is serialized as one server-sent event: ``data: <json>\\n\\n``.
Artifact parts (``data-*``) are written by sub-agents; the remaining parts
describe the top-level assistant message and its tool calls.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

ArtifactPartType = Literal[
    "data-kind",
    "data-id",
    "data-title",
    "data-clear",
    "data-textDelta",
    "data-codeDelta",
    "data-sheetDelta",
    "data-suggestion",
    "data-finish",
]

#: Content delta part types; metadata parts must be written before any of these
CONTENT_DELTA_TYPES: frozenset[str] = frozenset(
    {"data-textDelta", "data-codeDelta", "data-sheetDelta", "data-suggestion"}
)


class _StreamPart(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        """Wire dict with camelCase keys and no nulls."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_json(self) -> str:
        json_str: str = self.model_dump_json(by_alias=True, exclude_none=True)
        return json_str


class DataPart(_StreamPart):
    """Artifact event written by a sub-agent."""

    type: ArtifactPartType
    data: Any = None
    transient: bool | None = None


class StartPart(_StreamPart):
    type: Literal["start"] = "start"
    message_id: str = Field(alias="messageId")


class StepPart(_StreamPart):
    type: Literal["start-step", "finish-step"]


class TextPart(_StreamPart):
    type: Literal["text-start", "text-delta", "text-end"]
    id: str
    delta: str | None = None


class ReasoningPart(_StreamPart):
    type: Literal["reasoning-start", "reasoning-delta", "reasoning-end"]
    id: str
    delta: str | None = None


class ToolInputPart(_StreamPart):
    type: Literal["tool-input-available"] = "tool-input-available"
    tool_call_id: str = Field(alias="toolCallId")
    tool_name: str = Field(alias="toolName")
    input: Any = None


class ToolOutputPart(_StreamPart):
    type: Literal["tool-output-available"] = "tool-output-available"
    tool_call_id: str = Field(alias="toolCallId")
    output: Any = None


class FinishPart(_StreamPart):
    type: Literal["finish"] = "finish"


class ErrorPart(_StreamPart):
    type: Literal["error"] = "error"
    error_text: str = Field(alias="errorText")


StreamPart = (
    DataPart
    | StartPart
    | StepPart
    | TextPart
    | ReasoningPart
    | ToolInputPart
    | ToolOutputPart
    | FinishPart
    | ErrorPart
)


class Suggestion(BaseModel):
    """One completed edit suggestion as streamed to the client."""

    id: str
    document_id: str = Field(alias="documentId")
    original_text: str = Field(alias="originalText")
    suggested_text: str = Field(alias="suggestedText")
    description: str
    created_at: str = Field(alias="createdAt")
    user_id: str | None = None
    chat_id: str | None = None
    is_resolved: bool = Field(default=False, alias="isResolved")

    model_config = ConfigDict(populate_by_name=True)
