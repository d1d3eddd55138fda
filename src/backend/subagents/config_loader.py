"""
Sub-agent registry backed by admin configuration.

Each sub-agent kind is described by an ``AgentSpec``. ``AgentConfigLoader``
fetches the ``{agentType}_{provider}`` row, validates it into the typed
config and builds the agent with an immutable ``AgentRuntime``. Model and
credential changes rebind loaded agents to a new runtime.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import ValidationError

from api.services.admin_config_service import AdminConfigStore
from api.services.document_service import DocumentService
from core.constants import GIT_MCP_DEFAULT_MODEL
from core.errors import ConfigurationError
from models.agent_config import (
    BaseAgentConfig,
    DocumentAgentConfig,
    GitMcpAgentConfig,
    MermaidAgentConfig,
    ProviderToolsAgentConfig,
    PythonAgentConfig,
)
from subagents.base import BaseSubAgent, StreamerFactory
from subagents.document_agent import DocumentAgent
from subagents.git_mcp_agent import GitMcpAgent
from subagents.mermaid_agent import MermaidAgent
from subagents.provider_tools_agent import ProviderToolsAgent
from subagents.python_agent import PythonAgent
from subagents.runtime import AgentRuntime
from utils.activity_logger import AgentOperationCategory, AgentOperationType, AgentType, PerformanceTracker
from utils.logger import logger


class AgentKind(str, Enum):
    PROVIDER_TOOLS = "provider_tools"
    DOCUMENT = "document"
    MERMAID = "mermaid"
    PYTHON = "python"
    GIT_MCP = "git_mcp"


@dataclass(frozen=True)
class AgentSpec:
    agent_type: AgentType
    config_model: type[BaseAgentConfig]
    agent_class: type[BaseSubAgent]
    #: Artifact agents need the document store
    uses_documents: bool = False
    default_model: str | None = None


AGENT_SPECS: dict[AgentKind, AgentSpec] = {
    AgentKind.PROVIDER_TOOLS: AgentSpec(AgentType.PROVIDER_TOOLS_AGENT, ProviderToolsAgentConfig, ProviderToolsAgent),
    AgentKind.DOCUMENT: AgentSpec(AgentType.DOCUMENT_AGENT, DocumentAgentConfig, DocumentAgent, uses_documents=True),
    AgentKind.MERMAID: AgentSpec(AgentType.MERMAID_AGENT, MermaidAgentConfig, MermaidAgent, uses_documents=True),
    AgentKind.PYTHON: AgentSpec(AgentType.PYTHON_AGENT, PythonAgentConfig, PythonAgent, uses_documents=True),
    AgentKind.GIT_MCP: AgentSpec(
        AgentType.GIT_MCP_AGENT, GitMcpAgentConfig, GitMcpAgent, default_model=GIT_MCP_DEFAULT_MODEL
    ),
}


class AgentConfigLoader:
    """Loads, holds and rebinds the sub-agents of one chat turn."""

    def __init__(
        self,
        config_store: AdminConfigStore,
        documents: DocumentService,
        provider: str = "openai",
        base_url: str | None = None,
        streamer_factory: StreamerFactory | None = None,
    ):
        self.config_store = config_store
        self.documents = documents
        self.provider = provider
        self._streamer_factory = streamer_factory
        self._runtime = AgentRuntime(provider=provider, base_url=base_url)
        self._agents: dict[AgentKind, BaseSubAgent] = {}
        self._configs: dict[AgentKind, BaseAgentConfig] = {}

    def config_key(self, kind: AgentKind) -> str:
        return f"{AGENT_SPECS[kind].agent_type.value}_{self.provider}"

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def set_api_key(self, api_key: str | None) -> None:
        """Store the provider key and push it into every loaded agent."""
        self._runtime = self._runtime.with_api_key(api_key)
        for kind, agent in self._agents.items():
            self._agents[kind] = agent.rebind(agent.runtime.with_api_key(api_key))

    def set_github_pat(self, github_pat: str | None) -> None:
        self._runtime = self._runtime.with_github_pat(github_pat)
        agent = self._agents.get(AgentKind.GIT_MCP)
        if agent is not None:
            self._agents[AgentKind.GIT_MCP] = agent.rebind(agent.runtime.with_github_pat(github_pat))

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _build(self, kind: AgentKind, config: BaseAgentConfig) -> BaseSubAgent:
        spec = AGENT_SPECS[kind]
        runtime = self._runtime
        if spec.default_model and not runtime.model_id:
            runtime = runtime.with_model(spec.default_model)
        if spec.uses_documents:
            return spec.agent_class(config, runtime, self.documents, self._streamer_factory)  # type: ignore[call-arg]
        return spec.agent_class(config, runtime)

    async def load_config(self, kind: AgentKind) -> BaseSubAgent | None:
        """Load one sub-agent. Returns None when its config is missing or disabled."""
        spec = AGENT_SPECS[kind]
        config_key = self.config_key(kind)
        tracker = PerformanceTracker(
            spec.agent_type,
            AgentOperationType.INITIALIZATION,
            AgentOperationCategory.CONFIGURATION,
        )

        try:
            row = await self.config_store.get_admin_config(config_key)
        except Exception as e:
            logger.error(f"Failed to load {config_key}: {e}", config_key=config_key)
            await tracker.end(success=False, error=e, operation_metadata={"config_key": config_key})
            raise

        data: dict[str, Any] = row["config_data"] if row else {}
        if not row or not data.get("enabled"):
            reason = "config not found" if not row else "agent disabled"
            logger.info(f"{config_key} not loaded: {reason}", config_key=config_key)
            await tracker.end(
                success=True,
                operation_metadata={"config_key": config_key, "loaded": False, "reason": reason},
            )
            self._agents.pop(kind, None)
            self._configs.pop(kind, None)
            return None

        try:
            config = spec.config_model.model_validate(data)
            agent = self._build(kind, config)
        except ValidationError as e:
            error = ConfigurationError(config_key, f"Invalid configuration for {config_key}: {e}", cause=e)
            await tracker.end(success=False, error=error, operation_metadata={"config_key": config_key})
            raise error from e
        except Exception as e:
            logger.error(f"Failed to build agent from {config_key}: {e}", config_key=config_key)
            await tracker.end(success=False, error=e, operation_metadata={"config_key": config_key})
            raise

        self._configs[kind] = config
        self._agents[kind] = agent
        await tracker.end(
            success=True,
            model_id=agent.model_id,
            operation_metadata={"config_key": config_key, "loaded": True},
        )
        logger.info(f"Loaded {config_key}", config_key=config_key)
        return agent

    async def load_all_configs(self) -> None:
        for kind in AgentKind:
            await self.load_config(kind)

    async def load_provider_tools_config(self) -> BaseSubAgent | None:
        return await self.load_config(AgentKind.PROVIDER_TOOLS)

    async def load_document_agent_config(self) -> BaseSubAgent | None:
        return await self.load_config(AgentKind.DOCUMENT)

    async def load_mermaid_agent_config(self) -> BaseSubAgent | None:
        return await self.load_config(AgentKind.MERMAID)

    async def load_python_agent_config(self) -> BaseSubAgent | None:
        return await self.load_config(AgentKind.PYTHON)

    async def load_git_mcp_agent_config(self) -> BaseSubAgent | None:
        return await self.load_config(AgentKind.GIT_MCP)

    # ------------------------------------------------------------------
    # Model binding
    # ------------------------------------------------------------------

    def set_model(self, kind: AgentKind, model_id: str) -> None:
        """Rebind a loaded agent to ``model_id``; agents never loaded are left alone."""
        agent = self._agents.get(kind)
        if agent is None:
            return
        self._agents[kind] = agent.rebind(agent.runtime.with_model(model_id))

    def set_model_for_all(self, model_id: str) -> None:
        for kind in list(self._agents):
            self.set_model(kind, model_id)

    def set_provider_tools_model(self, model_id: str) -> None:
        self.set_model(AgentKind.PROVIDER_TOOLS, model_id)

    def set_document_agent_model(self, model_id: str) -> None:
        self.set_model(AgentKind.DOCUMENT, model_id)

    def set_mermaid_agent_model(self, model_id: str) -> None:
        self.set_model(AgentKind.MERMAID, model_id)

    def set_python_agent_model(self, model_id: str) -> None:
        self.set_model(AgentKind.PYTHON, model_id)

    def set_git_mcp_agent_model(self, model_id: str) -> None:
        self.set_model(AgentKind.GIT_MCP, model_id)

    # ------------------------------------------------------------------
    # Getters
    # ------------------------------------------------------------------

    def get_agent(self, kind: AgentKind) -> BaseSubAgent | None:
        return self._agents.get(kind)

    def get_config(self, kind: AgentKind) -> BaseAgentConfig | None:
        return self._configs.get(kind)

    def get_provider_tools_agent(self) -> ProviderToolsAgent | None:
        return self._agents.get(AgentKind.PROVIDER_TOOLS)  # type: ignore[return-value]

    def get_document_agent(self) -> DocumentAgent | None:
        return self._agents.get(AgentKind.DOCUMENT)  # type: ignore[return-value]

    def get_mermaid_agent(self) -> MermaidAgent | None:
        return self._agents.get(AgentKind.MERMAID)  # type: ignore[return-value]

    def get_python_agent(self) -> PythonAgent | None:
        return self._agents.get(AgentKind.PYTHON)  # type: ignore[return-value]

    def get_git_mcp_agent(self) -> GitMcpAgent | None:
        return self._agents.get(AgentKind.GIT_MCP)  # type: ignore[return-value]
