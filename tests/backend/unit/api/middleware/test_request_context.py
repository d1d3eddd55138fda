"""Tests for request-scoped context, ids and timing."""

from __future__ import annotations

import asyncio

from typing import Any

import pytest

from fastapi import FastAPI
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from api.middleware.request_context import (
    REQUEST_ID_PREFIX,
    RequestContext,
    RequestContextMiddleware,
    clear_request_context,
    generate_request_id,
    get_request_context,
    get_request_id,
    set_request_context,
    update_request_context,
)


def _context_dump() -> dict[str, Any]:
    ctx = get_request_context()
    assert ctx is not None
    return {"request_id": ctx.request_id, "chat_id": ctx.chat_id, "client_ip": ctx.client_ip}


@pytest.fixture
def client() -> TestClient:
    app = FastAPI()
    app.add_middleware(RequestContextMiddleware)

    @app.get("/context")
    def context() -> dict[str, Any]:
        return _context_dump()

    @app.get("/api/v1/chats/{chat_id}/messages")
    def chat_messages(chat_id: str) -> dict[str, Any]:
        return _context_dump()

    @app.delete("/api/chat")
    def delete_chat(id: str) -> dict[str, Any]:
        return _context_dump()

    @app.get("/api/v1/documents/{document_id}")
    def document(document_id: str) -> dict[str, Any]:
        return _context_dump()

    return TestClient(app)


class TestRequestContext:
    def test_log_context_omits_unset_ids(self) -> None:
        ctx = RequestContext(request_id="req_1", path="/api/chat", method="POST")

        log_context = ctx.to_log_context()

        assert log_context["request_id"] == "req_1"
        assert log_context["path"] == "/api/chat"
        assert "user_id" not in log_context
        assert "chat_id" not in log_context
        assert "client_ip" not in log_context

    def test_log_context_includes_turn_ids(self) -> None:
        ctx = RequestContext(request_id="req_1", user_id="user-1", chat_id="chat-1")

        assert ctx.to_log_context()["user_id"] == "user-1"
        assert ctx.to_log_context()["chat_id"] == "chat-1"

    def test_request_ids_are_prefixed_and_unique(self) -> None:
        ids = {generate_request_id() for _ in range(20)}

        assert len(ids) == 20
        assert all(rid.startswith(REQUEST_ID_PREFIX) and len(rid) == len(REQUEST_ID_PREFIX) + 16 for rid in ids)

    def test_update_routes_unknown_keys_to_extra(self) -> None:
        set_request_context(RequestContext(request_id="req_1"))
        try:
            update_request_context(user_id="user-1", model_id="gpt-4.1")

            ctx = get_request_context()
            assert ctx is not None
            assert ctx.user_id == "user-1"
            assert ctx.extra == {"model_id": "gpt-4.1"}
        finally:
            clear_request_context()

        assert get_request_id() is None

    def test_update_without_context_is_a_no_op(self) -> None:
        update_request_context(user_id="user-1")

        assert get_request_context() is None

    @pytest.mark.asyncio
    async def test_concurrent_turns_keep_their_own_context(self) -> None:
        async def turn(request_id: str, delay: float) -> str | None:
            set_request_context(RequestContext(request_id=request_id))
            await asyncio.sleep(delay)
            return get_request_id()

        assert await asyncio.gather(turn("req_a", 0.02), turn("req_b", 0.0)) == ["req_a", "req_b"]


class TestMiddleware:
    def test_generates_request_id_and_timing_headers(self, client: TestClient) -> None:
        response = client.get("/context")

        assert response.headers["x-request-id"].startswith(REQUEST_ID_PREFIX)
        assert response.headers["x-response-time"].endswith("ms")
        assert response.json()["request_id"] == response.headers["x-request-id"]

    def test_honours_upstream_request_id(self, client: TestClient) -> None:
        response = client.get("/context", headers={"X-Request-ID": "edge-42"})

        assert response.headers["x-request-id"] == "edge-42"
        assert response.json()["request_id"] == "edge-42"

    @pytest.mark.parametrize(
        ("method", "url", "params"),
        [
            ("GET", "/api/v1/chats/8c1f/messages", None),
            ("DELETE", "/api/chat", {"id": "8c1f"}),
        ],
    )
    def test_chat_id_is_captured(
        self, client: TestClient, method: str, url: str, params: dict[str, str] | None
    ) -> None:
        response = client.request(method, url, params=params)

        assert response.json()["chat_id"] == "8c1f"

    def test_no_chat_id_elsewhere(self, client: TestClient) -> None:
        assert client.get("/api/v1/documents/doc-1").json()["chat_id"] is None

    def test_client_ip_prefers_first_forwarded_address(self, client: TestClient) -> None:
        assert client.get("/context").json()["client_ip"] == "testclient"
        forwarded = client.get("/context", headers={"X-Forwarded-For": "10.0.0.1, 192.168.1.1"})
        assert forwarded.json()["client_ip"] == "10.0.0.1"

    def test_metrics_use_route_template(self, client: TestClient) -> None:
        labels = {"method": "GET", "path": "/api/v1/documents/{document_id}", "status": "200"}
        before = REGISTRY.get_sample_value("artifactchat_request_duration_seconds_count", labels) or 0.0

        client.get("/api/v1/documents/doc-1")
        client.get("/api/v1/documents/doc-2")

        assert REGISTRY.get_sample_value("artifactchat_request_duration_seconds_count", labels) == before + 2

    def test_context_cleared_after_request(self, client: TestClient) -> None:
        client.get("/context")

        assert get_request_context() is None
