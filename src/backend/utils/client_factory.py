"""
OpenAI client factory utilities.
Centralizes AsyncOpenAI and httpx client creation with consistent configuration.
"""

from __future__ import annotations

from typing import Any

import httpx

from openai import AsyncOpenAI

# Reasoning models can pause a long time before producing output,
# so streaming reads get a generous timeout
DEFAULT_CONNECT_TIMEOUT = 30.0
DEFAULT_READ_TIMEOUT = 600.0
DEFAULT_WRITE_TIMEOUT = 30.0
DEFAULT_POOL_TIMEOUT = 30.0

#: Timeout for plain page fetches done on behalf of the url context tool
FETCH_TIMEOUT = 20.0


def create_http_client(read_timeout: float | None = None) -> httpx.AsyncClient:
    """Create HTTP client with proper timeouts for streaming.

    Args:
        read_timeout: Read timeout in seconds (default: 600s for reasoning models)
    """
    timeout = httpx.Timeout(
        connect=DEFAULT_CONNECT_TIMEOUT,
        read=read_timeout if read_timeout is not None else DEFAULT_READ_TIMEOUT,
        write=DEFAULT_WRITE_TIMEOUT,
        pool=DEFAULT_POOL_TIMEOUT,
    )
    return httpx.AsyncClient(timeout=timeout)


def create_fetch_client() -> httpx.AsyncClient:
    """HTTP client for user or model chosen URLs; redirects are followed hop by hop by the caller."""
    return httpx.AsyncClient(timeout=FETCH_TIMEOUT, follow_redirects=False)


def create_openai_client(
    api_key: str,
    base_url: str | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> AsyncOpenAI:
    """Create AsyncOpenAI client with consistent configuration.

    Args:
        api_key: OpenAI API key
        base_url: Optional base URL for OpenAI-compatible endpoints
        http_client: Optional shared httpx client
    """
    kwargs: dict[str, Any] = {"api_key": api_key, "http_client": http_client or create_http_client()}
    if base_url:
        kwargs["base_url"] = base_url
    return AsyncOpenAI(**kwargs)
