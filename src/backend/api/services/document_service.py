"""Versioned document persistence.

Documents are append-only: every save inserts a new row whose version number
is one above the highest existing version for that document id. Nothing here
updates or deletes a stored version.

Two concurrent saves derived from the same version both succeed; each gets
its own version number and both point at the same parent, so the earlier
one becomes a side branch rather than being lost. Version numbers are
assigned inside the INSERT and a unique index on (id, version_number) makes
a collision retry instead of duplicating a number.
"""

from __future__ import annotations

import uuid

from datetime import datetime
from typing import Any

import asyncpg

from models.documents import Document, DocumentVersionSummary, NewDocumentVersion
from models.stream_events import Suggestion
from utils.db_utils import timed_query, transaction, with_retry
from utils.logger import logger
from utils.metrics import artifact_versions_saved_total


def is_document_id(value: str) -> bool:
    """Document ids are UUIDs; anything else cannot name a stored document."""
    try:
        uuid.UUID(value)
    except (ValueError, TypeError, AttributeError):
        return False
    return True


class DocumentService:
    """Document and suggestion persistence backed by PostgreSQL."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def get_document_by_id(self, document_id: str) -> Document | None:
        """Latest version of a document."""
        if not is_document_id(document_id):
            return None
        with timed_query("select"):
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    SELECT * FROM documents
                    WHERE id = $1
                    ORDER BY version_number DESC
                    LIMIT 1
                    """,
                    document_id,
                )
        return self._row_to_document(row) if row else None

    async def get_document_by_id_and_version(self, document_id: str, version_number: int) -> Document | None:
        """One specific version of a document."""
        if not is_document_id(document_id):
            return None
        with timed_query("select"):
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    SELECT * FROM documents
                    WHERE id = $1 AND version_number = $2
                    """,
                    document_id,
                    version_number,
                )
        return self._row_to_document(row) if row else None

    async def get_document_versions(self, document_id: str) -> list[DocumentVersionSummary]:
        """All versions of a document, oldest first, without content."""
        if not is_document_id(document_id):
            return []
        with timed_query("select"):
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    """
                    SELECT version_id, version_number, parent_version_id, title, metadata, created_at
                    FROM documents
                    WHERE id = $1
                    ORDER BY version_number ASC
                    """,
                    document_id,
                )
        return [
            DocumentVersionSummary(
                version_id=str(r["version_id"]),
                version_number=r["version_number"],
                parent_version_id=str(r["parent_version_id"]) if r["parent_version_id"] else None,
                title=r["title"],
                update_type=(r["metadata"] or {}).get("updateType"),
                created_at=r["created_at"],
            )
            for r in rows
        ]

    @with_retry(max_attempts=3, base_delay=0.05, retryable_exceptions=(asyncpg.UniqueViolationError,))
    async def save_document(self, new_version: NewDocumentVersion) -> Document:
        """Append a new version and return the stored row."""
        version_id = str(uuid.uuid4())
        with timed_query("insert"):
            async with transaction(self.pool) as conn:
                row = await conn.fetchrow(
                    """
                    INSERT INTO documents (
                        version_id, id, title, content, kind, user_id, chat_id,
                        parent_version_id, version_number, metadata
                    )
                    SELECT $1, $2, $3, $4, $5, $6, $7, $8, COALESCE(MAX(version_number), 0) + 1, $9
                    FROM documents
                    WHERE id = $2
                    RETURNING *
                    """,
                    version_id,
                    new_version.id,
                    new_version.title,
                    new_version.content,
                    new_version.kind,
                    new_version.user_id,
                    new_version.chat_id,
                    new_version.parent_version_id,
                    new_version.metadata,
                )

        document = self._row_to_document(row)
        artifact_versions_saved_total.labels(kind=document.kind).inc()
        logger.info(
            f"Saved {document.kind} document version {document.version_number}",
            document_id=document.id,
            version_id=document.version_id,
            version_number=document.version_number,
            update_type=new_version.metadata.get("updateType"),
        )
        return document

    async def save_suggestions(self, suggestions: list[Suggestion], document_version_id: str | None = None) -> None:
        """Store generated suggestions so the client can fetch them later."""
        if not suggestions:
            return
        with timed_query("insert"):
            async with self.pool.acquire() as conn:
                await conn.executemany(
                    """
                    INSERT INTO suggestions (
                        id, document_id, document_version_id, original_text, suggested_text,
                        description, user_id, chat_id, created_at
                    )
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                    ON CONFLICT (id) DO NOTHING
                    """,
                    [
                        (
                            s.id,
                            s.document_id,
                            document_version_id,
                            s.original_text,
                            s.suggested_text,
                            s.description,
                            s.user_id,
                            s.chat_id,
                            datetime.fromisoformat(s.created_at),
                        )
                        for s in suggestions
                    ],
                )

    async def get_suggestions_by_document_id(self, document_id: str) -> list[Suggestion]:
        """Suggestions for a document, oldest first."""
        if not is_document_id(document_id):
            return []
        with timed_query("select"):
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    """
                    SELECT * FROM suggestions
                    WHERE document_id = $1
                    ORDER BY created_at ASC
                    """,
                    document_id,
                )
        return [
            Suggestion(
                id=r["id"],
                document_id=str(r["document_id"]),
                original_text=r["original_text"],
                suggested_text=r["suggested_text"],
                description=r["description"] or "",
                created_at=r["created_at"].isoformat(),
                user_id=str(r["user_id"]) if r["user_id"] else None,
                chat_id=str(r["chat_id"]) if r["chat_id"] else None,
                is_resolved=bool(r["is_resolved"]),
            )
            for r in rows
        ]

    @staticmethod
    def _row_to_document(row: asyncpg.Record | dict[str, Any]) -> Document:
        def _opt_str(value: Any) -> str | None:
            return str(value) if value is not None else None

        return Document(
            id=str(row["id"]),
            version_id=str(row["version_id"]),
            title=row["title"],
            content=row["content"] or "",
            kind=row["kind"],
            version_number=row["version_number"],
            parent_version_id=_opt_str(row["parent_version_id"]),
            chat_id=_opt_str(row["chat_id"]),
            user_id=_opt_str(row["user_id"]),
            metadata=row["metadata"] or {},
            created_at=row["created_at"],
        )
