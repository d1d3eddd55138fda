"""
Document endpoints (v1).

Read-only access to artifact versions and suggestions. Artifacts are
written by the sub-agents during a chat turn, never through this API.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Path

from api.dependencies import Documents
from api.middleware.auth import CurrentUser
from api.services.document_service import DocumentService
from core.errors import DocumentNotFoundError, PermissionDeniedError
from models.documents import Document
from models.schemas.auth import UserInfo
from models.schemas.documents import DocumentResponse, DocumentVersionListResponse, SuggestionListResponse
from utils.logger import logger

router = APIRouter()

DocumentIdPath = Annotated[
    str,
    Path(..., description="Document identifier shared by all versions", min_length=1, max_length=100),
]


def _check_owner(document: Document, user: UserInfo) -> None:
    if document.user_id and document.user_id != user.id:
        logger.warning(
            f"User attempted to access document {document.id} owned by another user",
            document_id=document.id,
        )
        raise PermissionDeniedError("You do not have access to this document")


async def _latest_owned(documents: DocumentService, document_id: str, user: UserInfo) -> Document:
    document = await documents.get_document_by_id(document_id)
    if document is None:
        raise DocumentNotFoundError(document_id)
    _check_owner(document, user)
    return document


@router.get(
    "/documents/{document_id}",
    response_model=DocumentResponse,
    response_model_by_alias=True,
    summary="Get latest version",
    description="Latest version of a document.",
)
async def get_document(document_id: DocumentIdPath, user: CurrentUser, documents: Documents) -> DocumentResponse:
    document = await _latest_owned(documents, document_id, user)
    return DocumentResponse.model_validate(document.model_dump())


@router.get(
    "/documents/{document_id}/versions",
    response_model=DocumentVersionListResponse,
    response_model_by_alias=True,
    summary="List versions",
    description="All versions of a document, oldest first, without content.",
)
async def list_versions(
    document_id: DocumentIdPath,
    user: CurrentUser,
    documents: Documents,
) -> DocumentVersionListResponse:
    latest = await _latest_owned(documents, document_id, user)
    versions = await documents.get_document_versions(document_id)
    return DocumentVersionListResponse(
        document_id=document_id,
        current_version=latest.version_number,
        versions=versions,
    )


@router.get(
    "/documents/{document_id}/versions/{version_number}",
    response_model=DocumentResponse,
    response_model_by_alias=True,
    summary="Get one version",
)
async def get_version(
    document_id: DocumentIdPath,
    version_number: Annotated[int, Path(..., ge=1, description="1-based version number")],
    user: CurrentUser,
    documents: Documents,
) -> DocumentResponse:
    document = await documents.get_document_by_id_and_version(document_id, version_number)
    if document is None:
        raise DocumentNotFoundError(document_id, version_number)
    _check_owner(document, user)
    return DocumentResponse.model_validate(document.model_dump())


@router.get(
    "/documents/{document_id}/suggestions",
    response_model=SuggestionListResponse,
    response_model_by_alias=True,
    summary="List suggestions",
    description="Edit suggestions generated for a document. Empty when none exist.",
)
async def list_suggestions(
    document_id: DocumentIdPath,
    user: CurrentUser,
    documents: Documents,
) -> SuggestionListResponse:
    suggestions = await documents.get_suggestions_by_document_id(document_id)
    if suggestions and suggestions[0].user_id and suggestions[0].user_id != user.id:
        raise PermissionDeniedError("You do not have access to this document")
    return SuggestionListResponse(document_id=document_id, suggestions=suggestions)
