"""
Chat API schemas.

Request body of POST /api/chat and the model capability listing.
"""

from __future__ import annotations

from typing import Annotated, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from core.constants import MAX_TEXT_PART_LENGTH
from models.agent_config import ModelConfig


class TextMessagePart(BaseModel):
    type: Literal["text"]
    text: str = Field(..., min_length=1, max_length=MAX_TEXT_PART_LENGTH)


class FileMessagePart(BaseModel):
    """File attachment; ``url`` is a data URL or a storage URL already uploaded."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["file"]
    media_type: str = Field(..., alias="mediaType")
    name: str = Field(..., min_length=1, max_length=255)
    url: str
    storage_path: str | None = Field(default=None, alias="storagePath")


MessagePart = Annotated[TextMessagePart | FileMessagePart, Field(discriminator="type")]


class UserMessage(BaseModel):
    id: UUID
    role: Literal["user"]
    parts: list[MessagePart] = Field(..., min_length=1)

    @property
    def text(self) -> str:
        return "\n".join(p.text for p in self.parts if isinstance(p, TextMessagePart))

    @property
    def files(self) -> list[FileMessagePart]:
        return [p for p in self.parts if isinstance(p, FileMessagePart)]


class ChatRequest(BaseModel):
    """Body of POST /api/chat."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "3c9f6b4e-0d8f-4d59-9f5e-59f4e3a0a1b2",
                "message": {
                    "id": "a1c2e3f4-5b6d-4e7f-8a9b-0c1d2e3f4a5b",
                    "role": "user",
                    "parts": [{"type": "text", "text": "Write a haiku about the sea"}],
                },
                "selectedChatModel": "gpt-4.1",
                "selectedVisibilityType": "private",
                "thinkingEnabled": False,
            }
        },
    )

    id: UUID
    message: UserMessage
    selected_chat_model: str = Field(..., min_length=1, alias="selectedChatModel")
    selected_visibility_type: Literal["public", "private"] = Field(
        default="private", alias="selectedVisibilityType"
    )
    thinking_enabled: bool = Field(default=False, alias="thinkingEnabled")
    artifact_context: str | None = Field(
        default=None,
        alias="artifactContext",
        description="Description of the artifact currently open in the client",
    )
    github_context: str | None = Field(
        default=None,
        alias="githubContext",
        description="Selected repositories, files and folders rendered as plain text",
    )
    github_pat: str | None = Field(
        default=None,
        alias="githubPAT",
        description="GitHub personal access token for the GitHub tool; falls back to the server token",
    )


class ModelCapabilitiesResponse(BaseModel):
    """Selectable models for the active provider."""

    model_config = ConfigDict(populate_by_name=True)

    provider: str
    models: list[ModelConfig] = Field(default_factory=list)
    default_model: str | None = Field(default=None, alias="defaultModel")
