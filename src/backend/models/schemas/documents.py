"""
Document API schemas.

Response models for reading artifact versions and suggestions.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from models.documents import Document, DocumentVersionSummary
from models.stream_events import Suggestion


class DocumentVersionListResponse(BaseModel):
    """All versions of one document, oldest first."""

    model_config = ConfigDict(populate_by_name=True)

    document_id: str = Field(..., alias="documentId", description="Document id shared by all versions")
    current_version: int = Field(..., alias="currentVersion", ge=1, description="Highest version number")
    versions: list[DocumentVersionSummary] = Field(default_factory=list)


class SuggestionListResponse(BaseModel):
    """Suggestions generated for a document."""

    model_config = ConfigDict(populate_by_name=True)

    document_id: str = Field(..., alias="documentId")
    suggestions: list[Suggestion] = Field(default_factory=list)


class DocumentResponse(Document):
    """One version of a document with its content."""
