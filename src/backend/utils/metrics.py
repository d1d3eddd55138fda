"""
Prometheus metrics configuration for the artifact chat backend.

Defines custom metrics and instrumentation logic.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# Use standard Prometheus naming conventions: namespace_subsystem_name_unit
NAMESPACE = "artifactchat"

request_duration_seconds = Histogram(
    f"{NAMESPACE}_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path", "status"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0),
)


# ============================================================================
# Chat Metrics
# ============================================================================

chat_turns_total = Counter(
    f"{NAMESPACE}_chat_turns_total",
    "Total number of chat turns streamed",
    ["model", "status"],  # status: "success", "error"
)

chat_turn_duration_seconds = Histogram(
    f"{NAMESPACE}_chat_turn_duration_seconds",
    "Wall-clock duration of a streamed chat turn",
    ["model"],
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)

chat_streams_active = Gauge(
    f"{NAMESPACE}_chat_streams_active",
    "Number of chat streams currently open",
)

stream_events_total = Counter(
    f"{NAMESPACE}_stream_events_total",
    "UI stream parts written to clients",
    ["part_type"],
)


# ============================================================================
# Tool / Sub-agent Metrics
# ============================================================================

tool_calls_total = Counter(
    f"{NAMESPACE}_tool_calls_total",
    "Total number of sub-agent tool calls executed",
    ["tool_name", "status"],  # status: "success", "error"
)

tool_call_duration_seconds = Histogram(
    f"{NAMESPACE}_tool_call_duration_seconds",
    "Sub-agent tool call execution duration in seconds",
    ["tool_name"],
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

artifact_operations_total = Counter(
    f"{NAMESPACE}_artifact_operations_total",
    "Artifact operations by kind, operation and outcome",
    ["kind", "operation", "status"],
)

artifact_versions_saved_total = Counter(
    f"{NAMESPACE}_artifact_versions_saved_total",
    "Document versions persisted",
    ["kind"],
)


# ============================================================================
# Activity Log Metrics
# ============================================================================

activity_records_total = Counter(
    f"{NAMESPACE}_activity_records_total",
    "Agent activity records emitted",
    ["agent_type", "success"],
)

activity_flush_failures_total = Counter(
    f"{NAMESPACE}_activity_flush_failures_total",
    "Failed batch writes to the agent_activity_logs table",
)


# ============================================================================
# Database Metrics
# ============================================================================

db_pool_connections = Gauge(
    f"{NAMESPACE}_db_pool_connections",
    "Number of database connections by state",
    ["state"],  # "free" or "used"
)

db_query_duration_seconds = Histogram(
    f"{NAMESPACE}_db_query_duration_seconds",
    "Database query duration in seconds",
    ["query_type"],  # "select", "insert", "update", "delete"
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 5.0),
)

db_retries_total = Counter(
    f"{NAMESPACE}_db_retries_total",
    "Database operations retried after a transient failure or version race",
    ["operation"],
)
