from typing import Any
from unittest.mock import AsyncMock, MagicMock

import asyncpg
import pytest

from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.dependencies import get_document_service
from api.middleware.auth import get_current_user
from api.middleware.exception_handlers import register_exception_handlers
from api.routes.v1.documents import router
from api.services.document_service import DocumentService
from models.documents import DocumentVersionSummary
from models.error_models import ErrorCode
from models.schemas.auth import UserInfo
from models.stream_events import Suggestion

USER_ID = "11111111-1111-1111-1111-111111111111"
OTHER_USER_ID = "22222222-2222-2222-2222-222222222222"


@pytest.fixture
def app(mock_documents: MagicMock) -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(router, prefix="/api/v1")
    app.dependency_overrides[get_current_user] = lambda: UserInfo(id=USER_ID)
    app.dependency_overrides[get_document_service] = lambda: mock_documents
    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


class TestGetDocument:
    def test_latest_version(self, client: TestClient, mock_documents: MagicMock, make_document: Any) -> None:
        mock_documents.get_document_by_id.return_value = make_document(version=3, content="Latest")

        response = client.get("/api/v1/documents/doc-1")

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == "doc-1"
        assert data["versionNumber"] == 3
        assert data["versionId"] == "v-doc-1-3"
        assert data["content"] == "Latest"

    def test_not_found(self, client: TestClient) -> None:
        response = client.get("/api/v1/documents/missing")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == ErrorCode.DOCUMENT_NOT_FOUND.value

    @pytest.mark.parametrize("path", ["/api/v1/documents/not-a-uuid", "/api/v1/documents/not-a-uuid/versions/1"])
    def test_non_uuid_id_is_not_found(self, app: FastAPI, mock_db_pool: MagicMock, path: str) -> None:
        mock_db_pool.conn.fetchrow.side_effect = asyncpg.DataError("invalid input for query argument $1")
        app.dependency_overrides[get_document_service] = lambda: DocumentService(mock_db_pool)

        response = TestClient(app).get(path)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == ErrorCode.DOCUMENT_NOT_FOUND.value

    def test_other_users_document(self, client: TestClient, mock_documents: MagicMock, make_document: Any) -> None:
        mock_documents.get_document_by_id.return_value = make_document(user_id=OTHER_USER_ID)

        response = client.get("/api/v1/documents/doc-1")

        assert response.status_code == 403
        assert response.json()["error"]["code"] == ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS.value


class TestVersions:
    def test_list_versions(self, client: TestClient, mock_documents: MagicMock, make_document: Any) -> None:
        mock_documents.get_document_by_id.return_value = make_document(version=2)
        mock_documents.get_document_versions.return_value = [
            DocumentVersionSummary(version_id="v1", version_number=1, title="A Document", update_type="create"),
            DocumentVersionSummary(
                version_id="v2", version_number=2, parent_version_id="v1", title="A Document", update_type="update"
            ),
        ]

        response = client.get("/api/v1/documents/doc-1/versions")

        assert response.status_code == 200
        data = response.json()
        assert data["documentId"] == "doc-1"
        assert data["currentVersion"] == 2
        assert [v["versionNumber"] for v in data["versions"]] == [1, 2]
        assert data["versions"][1]["parentVersionId"] == "v1"

    def test_get_version(self, client: TestClient, mock_documents: MagicMock, make_document: Any) -> None:
        mock_documents.get_document_by_id_and_version.return_value = make_document(version=1, content="First")

        response = client.get("/api/v1/documents/doc-1/versions/1")

        assert response.status_code == 200
        assert response.json()["content"] == "First"
        mock_documents.get_document_by_id_and_version.assert_awaited_once_with("doc-1", 1)

    def test_missing_version(self, client: TestClient) -> None:
        response = client.get("/api/v1/documents/doc-1/versions/7")

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Version 7 of document doc-1 not found"

    def test_version_must_be_positive(self, client: TestClient) -> None:
        response = client.get("/api/v1/documents/doc-1/versions/0")

        assert response.status_code == 422
        assert response.json()["error"]["code"] == ErrorCode.VALIDATION_ERROR.value


class TestSuggestions:
    def _suggestion(self, user_id: str) -> Suggestion:
        return Suggestion(
            id="s-1",
            document_id="doc-1",
            original_text="The sea is big.",
            suggested_text="The sea is vast.",
            description="Stronger word choice",
            created_at="2025-01-15T10:30:00Z",
            user_id=user_id,
        )

    def test_empty(self, client: TestClient) -> None:
        response = client.get("/api/v1/documents/doc-1/suggestions")

        assert response.status_code == 200
        assert response.json() == {"documentId": "doc-1", "suggestions": []}

    def test_lists_suggestions(self, client: TestClient, mock_documents: MagicMock) -> None:
        mock_documents.get_suggestions_by_document_id = AsyncMock(return_value=[self._suggestion(USER_ID)])

        response = client.get("/api/v1/documents/doc-1/suggestions")

        suggestion = response.json()["suggestions"][0]
        assert suggestion["suggestedText"] == "The sea is vast."
        assert suggestion["isResolved"] is False

    def test_other_users_suggestions(self, client: TestClient, mock_documents: MagicMock) -> None:
        mock_documents.get_suggestions_by_document_id = AsyncMock(return_value=[self._suggestion(OTHER_USER_ID)])

        response = client.get("/api/v1/documents/doc-1/suggestions")

        assert response.status_code == 403
