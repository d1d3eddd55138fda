"""Postgres pool, transaction and retry helpers shared by the services.

JSON and JSONB columns round-trip as Python objects: config rows, message
parts and activity metadata are stored as JSONB and services never handle
the serialized text.
"""

from __future__ import annotations

import asyncio
import functools
import random
import time

from collections.abc import AsyncGenerator, Awaitable, Callable, Iterator
from contextlib import asynccontextmanager, contextmanager
from typing import Any, ParamSpec, TypeVar

import asyncpg

from pydantic_core import from_json, to_json

from core.errors import DatabaseError
from models.error_models import ErrorCode
from utils.logger import logger
from utils.metrics import db_pool_connections, db_query_duration_seconds, db_retries_total

P = ParamSpec("P")
T = TypeVar("T")

APPLICATION_NAME = "artifact-chat-backend"

TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    asyncpg.PostgresConnectionError,
    asyncpg.InterfaceError,
)


class ConnectionPoolExhausted(DatabaseError):
    """No connection could be created or acquired in time."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message=message, code=ErrorCode.DATABASE_CONNECTION_FAILED, cause=cause)


def _json_dumps(value: Any) -> str:
    return to_json(value).decode("utf-8")


def _json_loads(value: str) -> Any:
    return from_json(value)


async def _init_connection(conn: asyncpg.Connection) -> None:
    for json_type in ("json", "jsonb"):
        await conn.set_type_codec(json_type, encoder=_json_dumps, decoder=_json_loads, schema="pg_catalog")


async def create_database_pool(
    dsn: str,
    *,
    min_size: int = 2,
    max_size: int = 10,
    command_timeout: float = 60.0,
    connection_timeout: float = 10.0,
    statement_cache_size: int = 100,
    max_inactive_connection_lifetime: float = 300.0,
) -> asyncpg.Pool:
    """Open the application pool.

    Statement and lock timeouts follow ``command_timeout`` so a stuck
    version insert cannot hold a connection longer than the client waits.

    Raises:
        ConnectionPoolExhausted: the server is unreachable or too slow to accept connections
    """
    timeout_ms = str(int(command_timeout * 1000))
    try:
        pool = await asyncio.wait_for(
            asyncpg.create_pool(
                dsn=dsn,
                min_size=min_size,
                max_size=max_size,
                command_timeout=command_timeout,
                statement_cache_size=statement_cache_size,
                max_inactive_connection_lifetime=max_inactive_connection_lifetime,
                server_settings={
                    "application_name": APPLICATION_NAME,
                    "statement_timeout": timeout_ms,
                    "lock_timeout": timeout_ms,
                },
                init=_init_connection,
            ),
            timeout=connection_timeout,
        )
    except asyncio.TimeoutError as e:
        raise ConnectionPoolExhausted(f"Connection pool creation timed out after {connection_timeout}s", e) from e
    except (OSError, asyncpg.PostgresError) as e:
        raise ConnectionPoolExhausted(f"Failed to create connection pool: {e}", e) from e

    if pool is None:
        raise ConnectionPoolExhausted("Failed to create connection pool")
    logger.info(f"Database pool ready (min={min_size}, max={max_size})")
    return pool


@asynccontextmanager
async def acquire_connection(
    pool: asyncpg.Pool,
    *,
    timeout: float | None = None,
) -> AsyncGenerator[asyncpg.Connection, None]:
    try:
        async with pool.acquire(timeout=timeout) as conn:
            yield conn
    except asyncio.TimeoutError as e:
        raise ConnectionPoolExhausted(f"No database connection available within {timeout}s", e) from e


@asynccontextmanager
async def transaction(
    pool: asyncpg.Pool,
    *,
    timeout: float | None = None,
    isolation: str = "read_committed",
) -> AsyncGenerator[asyncpg.Connection, None]:
    """Connection with an open transaction, committed when the block exits cleanly.

    Example:
        async with transaction(pool) as conn:
            await conn.execute("INSERT INTO chats ...")
            await conn.execute("INSERT INTO messages ...")
    """
    async with acquire_connection(pool, timeout=timeout) as conn, conn.transaction(isolation=isolation):
        yield conn


@contextmanager
def timed_query(query_type: str) -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    finally:
        db_query_duration_seconds.labels(query_type=query_type).observe(time.perf_counter() - start)


def _backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Exponential backoff with jitter, capped at ``max_delay``."""
    return min(base_delay * (2**attempt) + random.uniform(0, base_delay), max_delay)


def with_retry(
    max_attempts: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 5.0,
    retryable_exceptions: tuple[type[Exception], ...] = (*TRANSIENT_ERRORS, ConnectionPoolExhausted),
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Retry an async database operation on the given exceptions.

    The document service also uses this with ``asyncpg.UniqueViolationError``
    so a version number race is resolved by re-running the insert.
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        operation = getattr(func, "__qualname__", "db_operation")

        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except retryable_exceptions as e:
                    attempt += 1
                    if attempt >= max_attempts:
                        logger.error(f"{operation} failed after {max_attempts} attempts: {e}", exc_info=True)
                        raise
                    delay = _backoff_delay(attempt - 1, base_delay, max_delay)
                    db_retries_total.labels(operation=operation).inc()
                    logger.warning(
                        f"{operation} failed (attempt {attempt}/{max_attempts}), retrying in {delay:.2f}s: {e}"
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator


def _active_connections(pool: asyncpg.Pool) -> int:
    return pool.get_size() - pool.get_idle_size()


async def check_pool_health(pool: asyncpg.Pool) -> dict[str, Any]:
    """Ping the database and report pool statistics; also updates the pool gauges."""
    try:
        async with acquire_connection(pool, timeout=5.0) as conn:
            healthy = await conn.fetchval("SELECT 1") == 1
    except (OSError, asyncpg.PostgresError, ConnectionPoolExhausted) as e:
        logger.warning(f"Database health check failed: {e}")
        healthy = False

    used = _active_connections(pool)
    free = pool.get_idle_size()
    db_pool_connections.labels(state="free").set(free)
    db_pool_connections.labels(state="used").set(used)

    return {
        "healthy": healthy,
        "pool_size": pool.get_size(),
        "pool_min_size": pool.get_min_size(),
        "pool_max_size": pool.get_max_size(),
        "free_connections": free,
        "used_connections": used,
    }


async def graceful_pool_close(pool: asyncpg.Pool, timeout: float = 10.0) -> None:
    """Wait for in-flight queries (e.g. a streaming turn saving its reply), then close."""
    deadline = asyncio.get_running_loop().time() + timeout
    while _active_connections(pool) > 0:
        if asyncio.get_running_loop().time() > deadline:
            logger.warning(f"Closing pool with {_active_connections(pool)} connections still active")
            break
        await asyncio.sleep(0.1)

    await pool.close()
