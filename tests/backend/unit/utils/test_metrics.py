"""Tests for Prometheus metrics module.

Tests metric creation, labeling, and observation.
"""

from __future__ import annotations

from prometheus_client import REGISTRY

from utils.metrics import (
    NAMESPACE,
    activity_records_total,
    artifact_operations_total,
    chat_streams_active,
    chat_turns_total,
    db_pool_connections,
    request_duration_seconds,
    tool_calls_total,
)


class TestMetricsNamespace:
    """Test namespace configuration."""

    def test_namespace(self) -> None:
        assert NAMESPACE == "artifactchat"


class TestRequestMetrics:
    def test_request_duration_labels(self) -> None:
        """Request histogram is labelled by method, route and status."""
        assert request_duration_seconds._labelnames == ("method", "path", "status")

    def test_request_duration_can_observe(self) -> None:
        request_duration_seconds.labels(method="GET", path="/api/v1/health", status="200").observe(0.1)


class TestChatMetrics:
    def test_chat_turn_counter_increments(self) -> None:
        labels = {"model": "metrics-test-model", "status": "success"}
        before = REGISTRY.get_sample_value(f"{NAMESPACE}_chat_turns_total", labels) or 0.0

        chat_turns_total.labels(**labels).inc()

        assert REGISTRY.get_sample_value(f"{NAMESPACE}_chat_turns_total", labels) == before + 1

    def test_active_streams_gauge(self) -> None:
        chat_streams_active.inc()
        chat_streams_active.dec()


class TestToolMetrics:
    def test_label_names(self) -> None:
        assert tool_calls_total._labelnames == ("tool_name", "status")
        assert artifact_operations_total._labelnames == ("kind", "operation", "status")
        assert activity_records_total._labelnames == ("agent_type", "success")


class TestDatabaseMetrics:
    def test_pool_gauge_states(self) -> None:
        db_pool_connections.labels(state="free").set(3)
        db_pool_connections.labels(state="used").set(1)

        assert REGISTRY.get_sample_value(f"{NAMESPACE}_db_pool_connections", {"state": "free"}) == 3
