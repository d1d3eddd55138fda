"""
Artifact Chat - chat backend with artifact-producing sub-agents
===============================================================

FastAPI backend where the chat model delegates work to sub-agents exposed as tools.

Key Features:
    - **Streaming**: One UI message stream per turn, served as server-sent events
    - **Artifacts**: Text documents, Mermaid diagrams and Python code, versioned in PostgreSQL
    - **Sub-agents**: Provider tools (web search, URL fetch, code execution) and GitHub over MCP
    - **Admin configuration**: Prompts, models and tools per agent, read from the database
    - **Activity logging**: One record per sub-agent operation, to the log and optionally the database

Modules:
    api: FastAPI app, routes, services and middleware
    core: Settings, constants, error hierarchy and Agents SDK setup
    models: Pydantic models for configs, documents, stream parts and API schemas
    subagents: Chat orchestrator, tool builder, config loader and the sub-agents
    integrations: UI message stream writer and SDK event translation
    utils: Logging, activity logging, metrics and database helpers
"""
