"""Admin configuration store backed by the admin_config and model_config tables."""

from __future__ import annotations

from typing import Any

import asyncpg

from models.agent_config import ModelConfig, normalize_default_models
from utils.db_utils import timed_query


class AdminConfigStore:
    """Read access to admin-managed agent and model configuration.

    Rows are read fresh on every call; callers that want caching keep it
    themselves (see the activity logger's logging_settings TTL).
    """

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def get_admin_config(self, config_key: str) -> dict[str, Any] | None:
        """Fetch one config row as ``{"config_key", "config_data"}`` or None."""
        with timed_query("select"):
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    SELECT config_key, config_data, updated_at
                    FROM admin_config
                    WHERE config_key = $1
                    """,
                    config_key,
                )
        if not row:
            return None
        return {
            "config_key": row["config_key"],
            "config_data": row["config_data"] or {},
            "updated_at": row["updated_at"],
        }

    async def get_models_by_provider(self, provider: str, *, active_only: bool = False) -> list[ModelConfig]:
        """Models of a provider from model_config, with defaults normalized."""
        query = """
            SELECT model_id, name, description, is_active, is_default, thinking_enabled,
                   input_pricing_per_million_tokens, output_pricing_per_million_tokens, metadata
            FROM model_config
            WHERE provider = $1
        """
        if active_only:
            query += " AND is_active = true"
        query += " ORDER BY created_at ASC, model_id ASC"

        with timed_query("select"):
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(query, provider)

        return normalize_default_models([self._row_to_model(r) for r in rows])

    @staticmethod
    def _row_to_model(row: asyncpg.Record) -> ModelConfig:
        metadata = row["metadata"] or {}
        return ModelConfig(
            id=row["model_id"],
            name=row["name"],
            description=row["description"] or "",
            enabled=bool(row["is_active"]),
            is_default=bool(row["is_default"]),
            thinking_enabled=row["thinking_enabled"],
            supports_thinking_mode=metadata.get("supportsThinkingMode"),
            file_input_enabled=metadata.get("fileInputEnabled"),
            allowed_file_types=metadata.get("allowedFileTypes"),
            pricing_per_million_tokens={
                "input": float(row["input_pricing_per_million_tokens"] or 0),
                "output": float(row["output_pricing_per_million_tokens"] or 0),
            },
        )
