from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

import asyncpg

from utils.db_utils import timed_query, transaction
from utils.logger import logger


class ChatRepository:
    """Chats and their persisted UI messages backed by PostgreSQL."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def get_chat(self, chat_id: str) -> dict[str, Any] | None:
        """Get chat by ID regardless of owner."""
        with timed_query("select"):
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow("SELECT * FROM chats WHERE id = $1", chat_id)
        if not row:
            return None
        return self._row_to_chat(row)

    async def save_chat(
        self,
        chat_id: str,
        user_id: str,
        title: str,
        visibility: str = "private",
    ) -> dict[str, Any]:
        """Create a chat. Saving an existing id is a no-op returning the stored row."""
        with timed_query("insert"):
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    INSERT INTO chats (id, user_id, title, visibility)
                    VALUES ($1, $2, $3, $4)
                    ON CONFLICT (id) DO UPDATE SET id = EXCLUDED.id
                    RETURNING *
                    """,
                    chat_id,
                    user_id,
                    title,
                    visibility,
                )
        return self._row_to_chat(row)

    async def delete_chat(self, chat_id: str) -> bool:
        """Delete a chat; its messages go with it."""
        with timed_query("delete"):
            async with self.pool.acquire() as conn:
                result: str = await conn.execute("DELETE FROM chats WHERE id = $1", chat_id)
        deleted: bool = result == "DELETE 1"
        if deleted:
            logger.info(f"Deleted chat {chat_id}", chat_id=chat_id)
        return deleted

    async def get_messages(self, chat_id: str) -> list[dict[str, Any]]:
        """All messages of a chat, oldest first."""
        with timed_query("select"):
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    """
                    SELECT * FROM messages
                    WHERE chat_id = $1
                    ORDER BY created_at ASC
                    """,
                    chat_id,
                )
        return [self._row_to_message(r) for r in rows]

    async def save_messages(self, chat_id: str, messages: list[dict[str, Any]]) -> None:
        """Insert UI messages ``{id, role, parts, attachments?}``; existing ids are skipped."""
        if not messages:
            return
        with timed_query("insert"):
            async with transaction(self.pool) as conn:
                await conn.executemany(
                    """
                    INSERT INTO messages (id, chat_id, role, parts, attachments)
                    VALUES ($1, $2, $3, $4, $5)
                    ON CONFLICT (id) DO NOTHING
                    """,
                    [
                        (
                            str(m["id"]),
                            chat_id,
                            m["role"],
                            m.get("parts") or [],
                            m.get("attachments") or [],
                        )
                        for m in messages
                    ],
                )

    async def count_user_messages(self, user_id: str, hours: int) -> int:
        """Number of user-role messages sent by ``user_id`` in the last ``hours``."""
        since = datetime.now(UTC) - timedelta(hours=hours)
        with timed_query("select"):
            async with self.pool.acquire() as conn:
                count = await conn.fetchval(
                    """
                    SELECT COUNT(*)
                    FROM messages m
                    JOIN chats c ON c.id = m.chat_id
                    WHERE c.user_id = $1 AND m.role = 'user' AND m.created_at >= $2
                    """,
                    user_id,
                    since,
                )
        return int(count or 0)

    @staticmethod
    def _row_to_chat(row: asyncpg.Record) -> dict[str, Any]:
        return {
            "id": str(row["id"]),
            "user_id": str(row["user_id"]),
            "title": row["title"],
            "visibility": row["visibility"],
            "created_at": row["created_at"].isoformat() if row["created_at"] else None,
        }

    @staticmethod
    def _row_to_message(row: asyncpg.Record) -> dict[str, Any]:
        return {
            "id": str(row["id"]),
            "chat_id": str(row["chat_id"]),
            "role": row["role"],
            "parts": row["parts"] or [],
            "attachments": row["attachments"] or [],
            "created_at": row["created_at"].isoformat() if row["created_at"] else None,
        }
