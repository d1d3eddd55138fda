from __future__ import annotations

"""seed agent configs and models for the openai provider"""

from typing import Any

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0002_seed_agent_configs"
down_revision = "0001_init_schema"
branch_labels = None
depends_on = None


def _param(description: str) -> dict[str, str]:
    return {"parameter_description": description}


MODELS: list[dict[str, Any]] = [
    {
        "id": "gpt-4.1",
        "name": "GPT-4.1",
        "description": "Flagship general purpose model",
        "enabled": True,
        "isDefault": True,
        "supportsThinkingMode": False,
        "fileInputEnabled": True,
    },
    {
        "id": "gpt-4.1-mini",
        "name": "GPT-4.1 Mini",
        "description": "Faster, more affordable GPT-4.1",
        "enabled": True,
        "isDefault": False,
        "supportsThinkingMode": False,
        "fileInputEnabled": True,
    },
    {
        "id": "o4-mini",
        "name": "o4-mini",
        "description": "Reasoning model with visible thinking summaries",
        "enabled": True,
        "isDefault": False,
        "supportsThinkingMode": True,
        "fileInputEnabled": True,
    },
]

CHAT_MODEL_AGENT = {
    "enabled": True,
    "systemPrompt": (
        "You are a helpful AI assistant. Be concise, accurate, and friendly. "
        "Delegate tasks to specialized agents when appropriate."
    ),
    "capabilities": {"thinkingReasoning": True, "fileInput": True},
    "fileInputEnabled": True,
    "fileInputTypes": {
        "codeFiles": {ext: {"enabled": True} for ext in ("py", "js", "jsx", "ts", "tsx", "json", "sql", "sh")},
        "textFiles": {ext: {"enabled": True} for ext in ("txt", "md", "yaml", "yml", "toml", "csv", "log")},
        "pdf": {"enabled": True},
        "images": {"enabled": True},
    },
    "rateLimit": {"perMinute": 5, "perHour": 50, "perDay": 200},
    "availableModels": MODELS,
    "tools": {
        "providerToolsAgent": {
            "description": "Search the web, read web pages and run code to answer questions that need fresh or computed facts",
            "enabled": True,
            "tool_input": {
                "parameter_name": "input",
                "parameter_description": "The complete question or task, including any URLs to read",
            },
        },
        "documentAgent": {
            "description": "Create, update, revert and review text documents shown to the user as artifacts",
            "enabled": True,
            "tool_input": {
                "operation": _param("One of create, update, revert or suggestion"),
                "instruction": _param("What to write or change, in the user's words"),
                "documentId": _param("ID of the document to update, revert or review"),
                "targetVersion": _param("Version to revert to; defaults to the previous version"),
            },
        },
        "mermaidAgent": {
            "description": "Create, update, fix and revert Mermaid diagrams shown to the user as artifacts",
            "enabled": True,
            "tool_input": {
                "operation": _param("One of generate, create, update, fix or revert"),
                "instruction": _param("The diagram to draw, the change to make, or the error to fix"),
                "diagramId": _param("ID of the diagram to update, fix or revert"),
                "targetVersion": _param("Version to revert to; defaults to the previous version"),
            },
        },
        "pythonAgent": {
            "description": "Create, update, fix, explain and revert Python code shown to the user as artifacts",
            "enabled": True,
            "tool_input": {
                "operation": _param("One of generate, create, update, fix, explain or revert"),
                "instruction": _param("The code to write, the change to make, or the error to fix"),
                "codeId": _param("ID of the code artifact to update, fix, explain or revert"),
                "targetVersion": _param("Version to revert to; defaults to the previous version"),
            },
        },
        "gitMcpAgent": {
            "description": "Read GitHub repositories, files, issues and pull requests",
            "enabled": False,
            "tool_input": {
                "parameter_name": "input",
                "parameter_description": "The GitHub question, naming the repository as owner/name",
            },
        },
    },
}

PROVIDER_TOOLS_AGENT = {
    "enabled": True,
    "systemPrompt": (
        "You are a specialized agent for external lookups. Search the web, read the pages you are given "
        "and execute code when it helps. Cite the sources you used."
    ),
    "rateLimit": {"perMinute": 4, "perHour": 40, "perDay": 150},
    "tools": {
        "webSearch": {"description": "Search the web", "enabled": True},
        "urlContext": {"description": "Fetch and read a web page", "enabled": True},
        "codeExecution": {"description": "Execute Python in a sandbox", "enabled": True},
    },
}

DOCUMENT_AGENT = {
    "enabled": True,
    "systemPrompt": "You are a document writing assistant.",
    "rateLimit": {"perMinute": 3, "perHour": 30, "perDay": 100},
    "tools": {
        "create": {
            "enabled": True,
            "systemPrompt": (
                "Write a well-structured Markdown document on the requested topic. "
                "Use headings where helpful. Output only the document."
            ),
            "userPromptTemplate": "Title: {title}\n\nInstruction: {instruction}",
        },
        "update": {
            "enabled": True,
            "systemPrompt": (
                "Improve the given document according to the instruction. "
                "Output the full updated document and nothing else."
            ),
            "userPromptTemplate": "Current document:\n{currentContent}\n\nInstruction: {updateInstruction}",
        },
        "suggestion": {
            "enabled": True,
            "systemPrompt": (
                "You are a writing assistant. Suggest concrete improvements to the document. "
                "Each suggestion quotes the original sentence, gives a replacement and explains the change. "
                "Return at most 5 suggestions."
            ),
            "userPromptTemplate": "Document:\n{currentContent}\n\nFocus: {instruction}",
        },
        "revert": {"enabled": True},
    },
}

MERMAID_AGENT = {
    "enabled": True,
    "systemPrompt": "You are a Mermaid diagram specialist.",
    "rateLimit": {"perMinute": 2, "perHour": 15, "perDay": 60},
    "tools": {
        "generate": {
            "enabled": True,
            "systemPrompt": "Return only valid Mermaid syntax for the requested diagram, without code fences.",
            "userPromptTemplate": "{instruction}",
        },
        "create": {
            "enabled": True,
            "systemPrompt": "Return only valid Mermaid syntax for the requested diagram, without code fences.",
            "userPromptTemplate": "Diagram: {title}\n\n{instruction}",
        },
        "update": {
            "enabled": True,
            "systemPrompt": "Modify the Mermaid diagram as instructed. Return the full diagram in valid Mermaid syntax.",
            "userPromptTemplate": "Current diagram:\n{currentContent}\n\nChange: {updateInstruction}",
        },
        "fix": {
            "enabled": True,
            "systemPrompt": "Fix the Mermaid syntax error. Return the full corrected diagram only.",
            "userPromptTemplate": "Diagram:\n{currentContent}\n\nError: {errorInfo}",
        },
        "revert": {"enabled": True},
    },
}

PYTHON_AGENT = {
    "enabled": True,
    "systemPrompt": "You are a Python code generation specialist.",
    "rateLimit": {"perMinute": 2, "perHour": 20, "perDay": 80},
    "tools": {
        "generate": {
            "enabled": True,
            "systemPrompt": "Write clean, runnable Python 3 code. Return code only, without code fences.",
            "userPromptTemplate": "{instruction}",
        },
        "create": {
            "enabled": True,
            "systemPrompt": "Write clean, runnable Python 3 code. Return code only, without code fences.",
            "userPromptTemplate": "Program: {title}\n\n{instruction}",
        },
        "update": {
            "enabled": True,
            "systemPrompt": "Modify the Python code as instructed. Return the full updated code only.",
            "userPromptTemplate": "Current code:\n{currentContent}\n\nChange: {updateInstruction}",
        },
        "fix": {
            "enabled": True,
            "systemPrompt": "Fix the error in the Python code. Return the full corrected code only.",
            "userPromptTemplate": "Code:\n{currentContent}\n\nError: {errorInfo}",
        },
        "explain": {
            "enabled": True,
            "systemPrompt": (
                "Add clear comments and docstrings explaining the Python code without changing its behaviour. "
                "Return the full commented code only."
            ),
            "userPromptTemplate": "Code:\n{currentContent}\n\nFocus: {updateInstruction}",
        },
        "revert": {"enabled": True},
    },
}

GIT_MCP_AGENT = {
    "enabled": False,
    "systemPrompt": (
        "You are a GitHub specialist with read-only access to repositories through MCP tools. "
        "Answer with facts taken from the tools and name the files you read."
    ),
    "rateLimit": {"perMinute": 1, "perHour": 10, "perDay": 40},
    "tools": {},
}

LOGGING_SETTINGS = {
    "agent_activity_logging_enabled": True,
    "performance_settings": {"batch_writes": True, "batch_size": 50},
}


def upgrade() -> None:
    admin_config = sa.table(
        "admin_config",
        sa.column("config_key", sa.String),
        sa.column("config_data", postgresql.JSONB),
    )
    op.bulk_insert(
        admin_config,
        [
            {"config_key": "chat_model_agent_openai", "config_data": CHAT_MODEL_AGENT},
            {"config_key": "provider_tools_agent_openai", "config_data": PROVIDER_TOOLS_AGENT},
            {"config_key": "document_agent_openai", "config_data": DOCUMENT_AGENT},
            {"config_key": "mermaid_agent_openai", "config_data": MERMAID_AGENT},
            {"config_key": "python_agent_openai", "config_data": PYTHON_AGENT},
            {"config_key": "git_mcp_agent_openai", "config_data": GIT_MCP_AGENT},
            {"config_key": "logging_settings", "config_data": LOGGING_SETTINGS},
        ],
    )

    model_config = sa.table(
        "model_config",
        sa.column("model_id", sa.String),
        sa.column("name", sa.String),
        sa.column("description", sa.Text),
        sa.column("provider", sa.String),
        sa.column("is_active", sa.Boolean),
        sa.column("is_default", sa.Boolean),
        sa.column("thinking_enabled", sa.Boolean),
        sa.column("input_pricing_per_million_tokens", sa.Numeric),
        sa.column("output_pricing_per_million_tokens", sa.Numeric),
        sa.column("metadata", postgresql.JSONB),
    )
    pricing = {"gpt-4.1": (2.0, 8.0), "gpt-4.1-mini": (0.4, 1.6), "o4-mini": (1.1, 4.4)}
    op.bulk_insert(
        model_config,
        [
            {
                "model_id": m["id"],
                "name": m["name"],
                "description": m["description"],
                "provider": "openai",
                "is_active": m["enabled"],
                "is_default": m["isDefault"],
                "thinking_enabled": m["supportsThinkingMode"],
                "input_pricing_per_million_tokens": pricing[m["id"]][0],
                "output_pricing_per_million_tokens": pricing[m["id"]][1],
                "metadata": {
                    "supportsThinkingMode": m["supportsThinkingMode"],
                    "fileInputEnabled": m["fileInputEnabled"],
                },
            }
            for m in MODELS
        ],
    )


def downgrade() -> None:
    op.execute("DELETE FROM model_config WHERE provider = 'openai'")
    op.execute(
        "DELETE FROM admin_config WHERE config_key IN ("
        "'chat_model_agent_openai', 'provider_tools_agent_openai', 'document_agent_openai', "
        "'mermaid_agent_openai', 'python_agent_openai', 'git_mcp_agent_openai', 'logging_settings')"
    )
