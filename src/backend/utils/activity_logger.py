"""
Agent activity logging.

Every sub-agent operation produces exactly one terminal activity record.
Records always go to the structured application log; when a database sink
is attached and the ``logging_settings`` admin config enables it, they are
also written to ``agent_activity_logs`` in batches.
"""

from __future__ import annotations

import asyncio
import time
import uuid

from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

import asyncpg

from core.constants import (
    ACTIVITY_LOG_BATCH_SIZE,
    ACTIVITY_LOG_FLUSH_INTERVAL,
    LOGGING_SETTINGS_CACHE_TTL,
    LOGGING_SETTINGS_CONFIG_KEY,
)
from utils.logger import logger
from utils.metrics import activity_flush_failures_total, activity_records_total

if TYPE_CHECKING:
    from api.services.admin_config_service import AdminConfigStore


class AgentType(str, Enum):
    CHAT_MODEL_AGENT = "chat_model_agent"
    PROVIDER_TOOLS_AGENT = "provider_tools_agent"
    DOCUMENT_AGENT = "document_agent"
    PYTHON_AGENT = "python_agent"
    MERMAID_AGENT = "mermaid_agent"
    GIT_MCP_AGENT = "git_mcp_agent"


class AgentOperationType(str, Enum):
    INITIALIZATION = "initialization"
    TOOL_INVOCATION = "tool_invocation"
    CODE_GENERATION = "code_generation"
    DOCUMENT_GENERATION = "document_generation"
    DIAGRAM_GENERATION = "diagram_generation"
    CODE_EXECUTION = "code_execution"
    SEARCH = "search"
    URL_FETCH = "url_fetch"
    MCP_OPERATION = "mcp_operation"
    STREAMING = "streaming"


class AgentOperationCategory(str, Enum):
    GENERATION = "generation"
    EXECUTION = "execution"
    TOOL_USE = "tool_use"
    STREAMING = "streaming"
    CONFIGURATION = "configuration"


def create_correlation_id() -> str:
    """New id linking every log line of one agent operation."""
    return str(uuid.uuid4())


@dataclass
class AgentActivityLog:
    """One terminal record of an agent operation."""

    correlation_id: str
    agent_type: AgentType
    operation_type: AgentOperationType
    operation_category: AgentOperationCategory
    success: bool
    duration_ms: int
    start_time: datetime
    end_time: datetime
    user_id: str | None = None
    model_id: str | None = None
    resource_id: str | None = None
    resource_type: str | None = None
    thinking_mode: bool | None = None
    error_type: str | None = None
    error_message: str | None = None
    operation_metadata: dict[str, Any] = field(default_factory=dict)

    def to_log_fields(self) -> dict[str, Any]:
        data = asdict(self)
        data["agent_type"] = self.agent_type.value
        data["operation_type"] = self.operation_type.value
        data["operation_category"] = self.operation_category.value
        data["start_time"] = self.start_time.isoformat()
        data["end_time"] = self.end_time.isoformat()
        return {k: v for k, v in data.items() if v is not None}


@dataclass
class _LoggingSettings:
    enabled: bool = False
    batch_writes: bool = True
    batch_size: int = ACTIVITY_LOG_BATCH_SIZE


class ActivityLogger:
    """Writes activity records to the log and, when enabled, to the database."""

    def __init__(self) -> None:
        self._pool: asyncpg.Pool | None = None
        self._config_store: AdminConfigStore | None = None
        self._buffer: list[AgentActivityLog] = []
        self._settings = _LoggingSettings()
        self._settings_loaded_at: float | None = None
        self._flush_lock = asyncio.Lock()
        self._flush_task: asyncio.Task[None] | None = None

    def attach(self, pool: asyncpg.Pool, config_store: AdminConfigStore) -> None:
        """Enable the database sink."""
        self._pool = pool
        self._config_store = config_store
        self._settings_loaded_at = None

    async def start(self) -> None:
        """Start the periodic background flush."""
        if self._flush_task is None or self._flush_task.done():
            self._flush_task = asyncio.create_task(self._flush_periodically())

    async def stop(self) -> None:
        """Stop the background flush and write whatever is buffered."""
        if self._flush_task is not None:
            self._flush_task.cancel()
            try:
                await self._flush_task
            except asyncio.CancelledError:
                pass
            self._flush_task = None
        await self.flush()

    @property
    def pending(self) -> int:
        return len(self._buffer)

    async def _load_settings(self) -> _LoggingSettings:
        now = time.monotonic()
        if self._settings_loaded_at is not None and now - self._settings_loaded_at < LOGGING_SETTINGS_CACHE_TTL:
            return self._settings
        if self._config_store is None:
            return self._settings

        try:
            row = await self._config_store.get_admin_config(LOGGING_SETTINGS_CONFIG_KEY)
        except (OSError, asyncpg.PostgresError) as e:
            logger.warning(f"Could not load {LOGGING_SETTINGS_CONFIG_KEY}, keeping previous values: {e}")
            self._settings_loaded_at = now
            return self._settings

        data = (row or {}).get("config_data") or {}
        perf = data.get("performance_settings") or {}
        self._settings = _LoggingSettings(
            enabled=bool(data.get("agent_activity_logging_enabled", False)),
            batch_writes=bool(perf.get("batch_writes", True)),
            batch_size=int(perf.get("batch_size", ACTIVITY_LOG_BATCH_SIZE)),
        )
        self._settings_loaded_at = now
        return self._settings

    async def log_agent_activity(self, record: AgentActivityLog) -> None:
        """Record one activity. Never raises because of the database sink."""
        activity_records_total.labels(agent_type=record.agent_type.value, success=str(record.success).lower()).inc()

        message = (
            f"{record.agent_type.value} {record.operation_type.value} "
            f"{'succeeded' if record.success else 'failed'} in {record.duration_ms}ms"
        )
        fields = record.to_log_fields()
        if record.success:
            logger.info(message, **fields)
        else:
            logger.warning(message, **fields)

        if self._pool is None:
            return

        settings = await self._load_settings()
        if not settings.enabled:
            return

        self._buffer.append(record)
        if not settings.batch_writes or len(self._buffer) >= settings.batch_size:
            await self.flush()

    async def flush(self) -> None:
        """Write all buffered records in one batch insert."""
        async with self._flush_lock:
            if not self._buffer or self._pool is None:
                return
            batch, self._buffer = self._buffer, []
            try:
                async with self._pool.acquire() as conn:
                    await conn.executemany(
                        """
                        INSERT INTO agent_activity_logs (
                            correlation_id, agent_type, operation_type, operation_category,
                            user_id, success, duration_ms, model_id, resource_id, resource_type,
                            thinking_mode, error_type, error_message, operation_metadata,
                            start_time, end_time
                        )
                        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15, $16)
                        """,
                        [
                            (
                                r.correlation_id,
                                r.agent_type.value,
                                r.operation_type.value,
                                r.operation_category.value,
                                r.user_id,
                                r.success,
                                r.duration_ms,
                                r.model_id,
                                r.resource_id,
                                r.resource_type,
                                r.thinking_mode,
                                r.error_type,
                                r.error_message,
                                r.operation_metadata,
                                r.start_time,
                                r.end_time,
                            )
                            for r in batch
                        ],
                    )
            except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
                activity_flush_failures_total.inc()
                logger.error(f"Failed to write {len(batch)} agent activity records: {e}", exc_info=True)

    async def _flush_periodically(self) -> None:
        while True:
            await asyncio.sleep(ACTIVITY_LOG_FLUSH_INTERVAL)
            await self.flush()


# Global activity logger instance
activity_logger = ActivityLogger()


class PerformanceTracker:
    """Measures one agent operation and emits exactly one terminal record.

    Example:
        tracker = PerformanceTracker(AgentType.DOCUMENT_AGENT, AgentOperationType.DOCUMENT_GENERATION,
                                     AgentOperationCategory.GENERATION, user_id=user_id)
        try:
            ...
            await tracker.end(success=True, resource_id=doc_id)
        except Exception as e:
            await tracker.end(success=False, error=e)
            raise
    """

    def __init__(
        self,
        agent_type: AgentType,
        operation_type: AgentOperationType,
        operation_category: AgentOperationCategory,
        user_id: str | None = None,
        correlation_id: str | None = None,
        sink: ActivityLogger | None = None,
    ):
        self.agent_type = agent_type
        self.operation_type = operation_type
        self.operation_category = operation_category
        self.user_id = user_id
        self.correlation_id = correlation_id or create_correlation_id()
        self._sink = sink or activity_logger
        self._start = time.perf_counter()
        self._start_time = datetime.now(UTC)
        self._ended = False

    @property
    def ended(self) -> bool:
        return self._ended

    @property
    def duration_ms(self) -> int:
        return int((time.perf_counter() - self._start) * 1000)

    async def end(
        self,
        *,
        success: bool,
        error: BaseException | str | None = None,
        model_id: str | None = None,
        resource_id: str | None = None,
        resource_type: str | None = None,
        thinking_mode: bool | None = None,
        operation_metadata: dict[str, Any] | None = None,
    ) -> AgentActivityLog | None:
        """Emit the terminal record. Later calls are ignored."""
        if self._ended:
            logger.warning(
                f"PerformanceTracker.end called twice for {self.agent_type.value}; ignoring",
                correlation_id=self.correlation_id,
            )
            return None
        self._ended = True

        error_type = None
        error_message = None
        if isinstance(error, BaseException):
            error_type = type(error).__name__
            error_message = str(error)
        elif error:
            error_type = "Error"
            error_message = error

        record = AgentActivityLog(
            correlation_id=self.correlation_id,
            agent_type=self.agent_type,
            operation_type=self.operation_type,
            operation_category=self.operation_category,
            success=success,
            duration_ms=self.duration_ms,
            start_time=self._start_time,
            end_time=datetime.now(UTC),
            user_id=self.user_id,
            model_id=model_id,
            resource_id=resource_id,
            resource_type=resource_type,
            thinking_mode=thinking_mode,
            error_type=error_type,
            error_message=error_message,
            operation_metadata=operation_metadata or {},
        )
        await self._sink.log_agent_activity(record)
        return record
