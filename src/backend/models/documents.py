"""
Versioned artifact document models.

A document id names an artifact across all of its versions; each version is
its own row identified by ``version_id``. Mutations append rows and never
rewrite earlier ones.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

ArtifactKind = Literal["text", "sheet", "mermaid code", "python code"]


class Document(BaseModel):
    """One stored version of an artifact."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "0f8e3c3a-4c3b-4b8a-9d52-2a1de0f6f1a7",
                "versionId": "8d8c2f2b-1c4e-4a0d-a5d4-2b5e3b1d6f90",
                "title": "Haiku about the sea",
                "content": "Waves fold into foam...",
                "kind": "text",
                "versionNumber": 2,
                "parentVersionId": "5b3a1e0c-7c1d-4f7e-9d4f-0c6b0c9d8e21",
            }
        },
    )

    id: str
    version_id: str = Field(alias="versionId")
    title: str
    content: str = ""
    kind: ArtifactKind
    version_number: int = Field(default=1, ge=1, alias="versionNumber")
    parent_version_id: str | None = Field(default=None, alias="parentVersionId")
    chat_id: str | None = Field(default=None, alias="chatId")
    user_id: str | None = Field(default=None, alias="userId")
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = Field(default=None, alias="createdAt")


class DocumentVersionSummary(BaseModel):
    """Version list entry without content."""

    model_config = ConfigDict(populate_by_name=True)

    version_id: str = Field(alias="versionId")
    version_number: int = Field(alias="versionNumber")
    parent_version_id: str | None = Field(default=None, alias="parentVersionId")
    title: str
    update_type: str | None = Field(default=None, alias="updateType")
    created_at: datetime | None = Field(default=None, alias="createdAt")


class NewDocumentVersion(BaseModel):
    """Input to DocumentService.save_document."""

    id: str
    title: str
    content: str
    kind: ArtifactKind
    user_id: str
    chat_id: str | None = None
    parent_version_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
