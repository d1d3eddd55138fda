from __future__ import annotations

"""init schema"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_init_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Extensions
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto;")

    op.create_table(
        "admin_config",
        sa.Column("config_key", sa.String(length=100), primary_key=True),
        sa.Column("config_data", postgresql.JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")),
    )

    op.create_table(
        "model_config",
        sa.Column("model_id", sa.String(length=100), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("provider", sa.String(length=50), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("TRUE")),
        sa.Column("is_default", sa.Boolean, nullable=False, server_default=sa.text("FALSE")),
        sa.Column("thinking_enabled", sa.Boolean, nullable=False, server_default=sa.text("FALSE")),
        sa.Column("input_pricing_per_million_tokens", sa.Numeric(10, 4), server_default=sa.text("0")),
        sa.Column("output_pricing_per_million_tokens", sa.Numeric(10, 4), server_default=sa.text("0")),
        sa.Column("metadata", postgresql.JSONB, server_default=sa.text("'{}'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")),
    )
    op.create_index("idx_model_config_provider", "model_config", ["provider", "is_active"])

    op.create_table(
        "chats",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("visibility", sa.String(length=10), nullable=False, server_default="private"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")),
        sa.CheckConstraint("visibility IN ('public', 'private')", name="ck_chats_visibility"),
    )
    op.create_index("idx_chats_user_id", "chats", ["user_id", "created_at"])

    op.create_table(
        "messages",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "chat_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("chats.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("parts", postgresql.JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("attachments", postgresql.JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")),
    )
    op.create_index("idx_messages_chat_id", "messages", ["chat_id", "created_at"])
    op.create_index("idx_messages_role_created_at", "messages", ["role", "created_at"])

    # One row per version; (id, version_number) names a version
    op.create_table(
        "documents",
        sa.Column(
            "version_id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("content", sa.Text),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("chat_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("chats.id", ondelete="SET NULL")),
        sa.Column(
            "parent_version_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("documents.version_id", ondelete="SET NULL"),
        ),
        sa.Column("version_number", sa.Integer, nullable=False),
        sa.Column("metadata", postgresql.JSONB, server_default=sa.text("'{}'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")),
        sa.UniqueConstraint("id", "version_number", name="uq_documents_id_version"),
        sa.CheckConstraint("version_number >= 1", name="ck_documents_version_positive"),
        sa.CheckConstraint(
            "kind IN ('text', 'sheet', 'mermaid code', 'python code')",
            name="ck_documents_kind",
        ),
    )
    op.create_index("idx_documents_user_id", "documents", ["user_id"])

    op.create_table(
        "suggestions",
        sa.Column("id", sa.String(length=200), primary_key=True),
        sa.Column("document_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "document_version_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("documents.version_id", ondelete="CASCADE"),
        ),
        sa.Column("original_text", sa.Text, nullable=False),
        sa.Column("suggested_text", sa.Text, nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("is_resolved", sa.Boolean, nullable=False, server_default=sa.text("FALSE")),
        sa.Column("user_id", postgresql.UUID(as_uuid=True)),
        sa.Column("chat_id", postgresql.UUID(as_uuid=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")),
    )
    op.create_index("idx_suggestions_document_id", "suggestions", ["document_id", "created_at"])

    op.create_table(
        "agent_activity_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("correlation_id", sa.String(length=64), nullable=False),
        sa.Column("agent_type", sa.String(length=50), nullable=False),
        sa.Column("operation_type", sa.String(length=50), nullable=False),
        sa.Column("operation_category", sa.String(length=50), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True)),
        sa.Column("success", sa.Boolean, nullable=False),
        sa.Column("duration_ms", sa.Integer, nullable=False),
        sa.Column("model_id", sa.String(length=100)),
        sa.Column("resource_id", sa.String(length=200)),
        sa.Column("resource_type", sa.String(length=50)),
        sa.Column("thinking_mode", sa.Boolean),
        sa.Column("error_type", sa.String(length=100)),
        sa.Column("error_message", sa.Text),
        sa.Column("operation_metadata", postgresql.JSONB, server_default=sa.text("'{}'::jsonb")),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")),
    )
    op.create_index("idx_agent_activity_logs_correlation", "agent_activity_logs", ["correlation_id"])
    op.create_index("idx_agent_activity_logs_agent_time", "agent_activity_logs", ["agent_type", "start_time"])


def downgrade() -> None:
    op.drop_table("agent_activity_logs")
    op.drop_table("suggestions")
    op.drop_table("documents")
    op.drop_table("messages")
    op.drop_table("chats")
    op.drop_table("model_config")
    op.drop_table("admin_config")
