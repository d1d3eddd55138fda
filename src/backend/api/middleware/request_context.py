"""
Request context middleware for the artifact chat API.

Provides request ID tracking, timing, and context propagation so that logs
emitted deep inside sub-agents still carry the request, user and chat ids.
"""

from __future__ import annotations

import secrets
import time

from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Match

from utils.metrics import request_duration_seconds

# Context variable for request-scoped data
_request_context: ContextVar[RequestContext | None] = ContextVar("request_context", default=None)

# Request ID prefix for easy identification in logs
REQUEST_ID_PREFIX = "req_"


@dataclass
class RequestContext:
    """Request-scoped context for tracking and logging.

    Stores request metadata that can be accessed anywhere in the call stack
    without passing it explicitly through function arguments.
    """

    request_id: str
    start_time: float = field(default_factory=time.monotonic)
    path: str = ""
    method: str = ""
    client_ip: str | None = None
    user_id: str | None = None
    chat_id: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def elapsed_ms(self) -> float:
        """Get elapsed time since request start in milliseconds."""
        return (time.monotonic() - self.start_time) * 1000

    @property
    def timestamp(self) -> str:
        """Get ISO timestamp for current time."""
        return datetime.now(UTC).isoformat()

    def to_log_context(self) -> dict[str, Any]:
        """Get context dict for logging."""
        ctx = {
            "request_id": self.request_id,
            "path": self.path,
            "method": self.method,
            "elapsed_ms": round(self.elapsed_ms, 2),
        }
        if self.client_ip:
            ctx["client_ip"] = self.client_ip
        if self.user_id:
            ctx["user_id"] = self.user_id
        if self.chat_id:
            ctx["chat_id"] = self.chat_id
        return ctx


def generate_request_id(prefix: str = REQUEST_ID_PREFIX) -> str:
    """Generate a unique request ID.

    Format: prefix + 16 hex characters (64 bits of entropy)
    Example: req_a1b2c3d4e5f6a7b8
    """
    return f"{prefix}{secrets.token_hex(8)}"


def get_request_context() -> RequestContext | None:
    """Get the current request context.

    Returns None if called outside of a request context.
    """
    return _request_context.get()


def get_request_id() -> str | None:
    """Get the current request ID."""
    ctx = get_request_context()
    return ctx.request_id if ctx else None


def set_request_context(context: RequestContext) -> None:
    """Set the request context for the current async context."""
    _request_context.set(context)


def clear_request_context() -> None:
    """Clear the request context."""
    _request_context.set(None)


def update_request_context(**kwargs: Any) -> None:
    """Update fields in the current request context.

    Common usage:
        update_request_context(user_id="user_123", chat_id="8c1f...")
    """
    ctx = get_request_context()
    if ctx:
        for key, value in kwargs.items():
            if hasattr(ctx, key):
                setattr(ctx, key, value)
            else:
                ctx.extra[key] = value


def _extract_path_id(path: str, segment: str) -> str | None:
    parts = path.split("/")
    if segment in parts:
        idx = parts.index(segment)
        if idx + 1 < len(parts) and parts[idx + 1]:
            return parts[idx + 1]
    return None


def _route_template(request: Request) -> str:
    """Matched route path, e.g. /api/v1/documents/{document_id}, so metric labels stay bounded."""
    for route in request.app.routes:
        match, _ = route.matches(request.scope)
        if match == Match.FULL:
            return str(getattr(route, "path", "unmatched"))
    return "unmatched"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Middleware to initialize request context for each request.

    Adds request ID to response headers and initializes context vars.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        # Honour an upstream request ID for distributed tracing
        request_id = request.headers.get("X-Request-ID")
        if not request_id:
            request_id = generate_request_id()

        client_ip = request.headers.get("X-Forwarded-For")
        if client_ip:
            # First IP in the chain is the original client
            client_ip = client_ip.split(",")[0].strip()
        elif request.client:
            client_ip = request.client.host

        # Chat id from path (/chats/{id}) or query (?id= on DELETE /api/chat)
        chat_id = _extract_path_id(request.url.path, "chats")
        if chat_id is None and request.url.path.rstrip("/").endswith("/chat"):
            chat_id = request.query_params.get("id")

        context = RequestContext(
            request_id=request_id,
            path=request.url.path,
            method=request.method,
            client_ip=client_ip,
            chat_id=chat_id,
        )
        set_request_context(context)

        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{context.elapsed_ms:.2f}ms"
            return response
        finally:
            request_duration_seconds.labels(
                method=request.method, path=_route_template(request), status=str(status)
            ).observe(context.elapsed_ms / 1000)
            clear_request_context()


__all__ = [
    "REQUEST_ID_PREFIX",
    "RequestContext",
    "RequestContextMiddleware",
    "clear_request_context",
    "generate_request_id",
    "get_request_context",
    "get_request_id",
    "set_request_context",
    "update_request_context",
]
