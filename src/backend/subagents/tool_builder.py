"""
Sub-agents exposed to the top-level chat model as function tools.

A tool is exposed only when its sub-agent was loaded, the sub-agent's own
config is enabled, and the chat config enables the tool by name. Each
tool returns just the sub-agent's ``output`` value.
"""

from __future__ import annotations

import json
import time

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Literal

from agents import FunctionTool, RunContextWrapper
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from core.errors import AgentError, AppException
from integrations.ui_stream import UIMessageStreamWriter
from models.agent_config import ChatModelAgentConfig, ToolConfig
from models.error_models import ErrorCode
from subagents.config_loader import AgentConfigLoader, AgentKind
from subagents.runtime import ArtifactContext
from utils.activity_logger import AgentType
from utils.logger import logger
from utils.metrics import tool_call_duration_seconds, tool_calls_total

GIT_MCP_NOT_READY_MESSAGE = (
    "Error: GitHub MCP Agent is not properly configured. "
    "Please ensure the GitHub PAT, model and API key are set."
)


def tool_error_message(error: Exception) -> str:
    """Text handed back to the chat model when a tool call fails."""
    message = error.message if isinstance(error, AppException) else str(error)
    return f"Error: {message or type(error).__name__}"

# ============================================================================
# Tool inputs
# ============================================================================


class _ToolInput(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class QueryInput(_ToolInput):
    input: str


class DocumentAgentInput(_ToolInput):
    operation: Literal["create", "update", "revert", "suggestion"]
    instruction: str = ""
    document_id: str | None = None
    target_version: int | None = None


class MermaidAgentInput(_ToolInput):
    operation: Literal["generate", "create", "update", "fix", "revert"]
    instruction: str = ""
    diagram_id: str | None = None
    target_version: int | None = None


class PythonAgentInput(_ToolInput):
    operation: Literal["generate", "create", "update", "fix", "explain", "revert"]
    instruction: str = ""
    code_id: str | None = None
    target_version: int | None = None


ToolRunner = Callable[[Any], Awaitable[Any]]


@dataclass
class AgentTool:
    """One sub-agent as a tool the chat model can call."""

    name: str
    description: str
    input_model: type[BaseModel]
    runner: ToolRunner
    parameter_descriptions: dict[str, str] = field(default_factory=dict)

    def params_json_schema(self) -> dict[str, Any]:
        schema = self.input_model.model_json_schema(by_alias=True)
        schema.pop("title", None)
        for name, prop in schema.get("properties", {}).items():
            prop.pop("title", None)
            description = self.parameter_descriptions.get(name)
            if description:
                prop["description"] = description
        schema["additionalProperties"] = False
        return schema

    async def execute(self, args: dict[str, Any] | BaseModel) -> Any:
        """Validate ``args`` and run the sub-agent. Sub-agent errors propagate."""
        params = args if isinstance(args, BaseModel) else self.input_model.model_validate(args)
        return await self.runner(params)

    def to_function_tool(self) -> FunctionTool:
        async def on_invoke_tool(ctx: RunContextWrapper[Any], raw_args: str) -> str:
            start = time.perf_counter()
            try:
                output = await self.execute(json.loads(raw_args or "{}"))
            except Exception as e:
                tool_calls_total.labels(tool_name=self.name, status="error").inc()
                logger.error(f"{self.name} tool failed: {e}", exc_info=True, tool_name=self.name)
                return tool_error_message(e)
            finally:
                tool_call_duration_seconds.labels(tool_name=self.name).observe(time.perf_counter() - start)

            tool_calls_total.labels(tool_name=self.name, status="success").inc()
            return output if isinstance(output, str) else json.dumps(output)

        return FunctionTool(
            name=self.name,
            description=self.description,
            params_json_schema=self.params_json_schema(),
            on_invoke_tool=on_invoke_tool,
            strict_json_schema=False,
        )


# ============================================================================
# Builder
# ============================================================================

_ARTIFACT_TOOLS: dict[str, tuple[AgentKind, type[_ToolInput], str]] = {
    "documentAgent": (AgentKind.DOCUMENT, DocumentAgentInput, "document_id"),
    "mermaidAgent": (AgentKind.MERMAID, MermaidAgentInput, "diagram_id"),
    "pythonAgent": (AgentKind.PYTHON, PythonAgentInput, "code_id"),
}

_DEFAULT_OPTIONAL_DESCRIPTIONS = {
    "documentId": "ID of an existing document (required for update, revert and suggestion)",
    "diagramId": "ID of an existing diagram (required for update, fix and revert)",
    "codeId": "ID of existing code (required for update, fix, explain and revert)",
    "targetVersion": "Version number to revert to (defaults to the previous version)",
}


class AgentToolBuilder:
    def __init__(self, config: ChatModelAgentConfig, loader: AgentConfigLoader):
        self.config = config
        self.loader = loader

    def _configuration_error(self, message: str) -> AgentError:
        return AgentError(AgentType.CHAT_MODEL_AGENT.value, ErrorCode.INVALID_CONFIGURATION, message)

    def tool_config(self, name: str, kind: AgentKind) -> ToolConfig | None:
        """The chat config entry for ``name`` when the tool should be exposed."""
        agent = self.loader.get_agent(kind)
        if agent is None or not agent.enabled:
            return None
        tool = self.config.tools.get(name)
        if tool is None or not tool.enabled:
            return None
        if not tool.description:
            raise self._configuration_error(f"{name} tool description is required when tool is enabled")
        return tool

    def enabled_tool_configs(self) -> dict[str, ToolConfig]:
        kinds = {
            "providerToolsAgent": AgentKind.PROVIDER_TOOLS,
            **{name: spec[0] for name, spec in _ARTIFACT_TOOLS.items()},
            "gitMcpAgent": AgentKind.GIT_MCP,
        }
        enabled: dict[str, ToolConfig] = {}
        for name, kind in kinds.items():
            tool = self.tool_config(name, kind)
            if tool is not None:
                enabled[name] = tool
        return enabled

    def _query_description(self, name: str, tool: ToolConfig) -> str:
        description = tool.tool_input.parameter_description if tool.tool_input else None
        if not description:
            raise self._configuration_error(f"{name} tool parameter description is required when tool is enabled")
        return description

    def _provider_tools(self, tool: ToolConfig, user_id: str | None) -> AgentTool:
        agent = self.loader.get_provider_tools_agent()
        assert agent is not None

        async def run(params: QueryInput) -> Any:
            logger.info(f"providerToolsAgent executing: {logger.preview(params.input)}")
            result = await agent.execute(params.input, user_id)
            return result.output

        return AgentTool(
            name="providerToolsAgent",
            description=tool.description,
            input_model=QueryInput,
            runner=run,
            parameter_descriptions={"input": self._query_description("providerToolsAgent", tool)},
        )

    def _git_mcp(self, tool: ToolConfig, user_id: str | None) -> AgentTool:
        agent = self.loader.get_git_mcp_agent()
        assert agent is not None

        async def run(params: QueryInput) -> Any:
            if not agent.is_ready():
                logger.warning("gitMcpAgent called before it was configured")
                return GIT_MCP_NOT_READY_MESSAGE
            result = await agent.execute(params.input, user_id)
            if not result.success:
                return f"Error: {result.error or result.output}"
            return result.output

        return AgentTool(
            name="gitMcpAgent",
            description=tool.description,
            input_model=QueryInput,
            runner=run,
            parameter_descriptions={"input": self._query_description("gitMcpAgent", tool)},
        )

    def _artifact(self, name: str, tool: ToolConfig, context: ArtifactContext) -> AgentTool:
        kind, input_model, id_field = _ARTIFACT_TOOLS[name]
        agent = self.loader.get_agent(kind)
        assert agent is not None

        tool_input = tool.tool_input
        operation = tool_input.describe("operation") if tool_input else None
        instruction = tool_input.describe("instruction") if tool_input else None
        if not operation or not instruction:
            raise self._configuration_error(
                f"{name} tool parameter descriptions (operation and instruction) are required when tool is enabled"
            )
        id_param = to_camel(id_field)
        descriptions = {
            "operation": operation,
            "instruction": instruction,
            id_param: (tool_input.describe(id_param) if tool_input else None)
            or _DEFAULT_OPTIONAL_DESCRIPTIONS[id_param],
            "targetVersion": (tool_input.describe("targetVersion") if tool_input else None)
            or _DEFAULT_OPTIONAL_DESCRIPTIONS["targetVersion"],
        }

        async def run(params: Any) -> Any:
            logger.info(f"{name} executing {params.operation}: {logger.preview(params.instruction)}")
            result = await agent.execute(  # type: ignore[attr-defined]
                operation=params.operation,
                context=context,
                instruction=params.instruction,
                document_id=getattr(params, id_field),
                target_version=params.target_version,
            )
            return result.output

        return AgentTool(
            name=name,
            description=tool.description,
            input_model=input_model,
            runner=run,
            parameter_descriptions=descriptions,
        )

    def build_tools(
        self,
        writer: UIMessageStreamWriter,
        user_id: str | None = None,
        chat_id: str | None = None,
    ) -> dict[str, AgentTool] | None:
        """Tools for one chat turn, or None when nothing is enabled."""
        context = ArtifactContext(writer=writer, user_id=user_id, chat_id=chat_id)
        tools: dict[str, AgentTool] = {}

        for name, tool in self.enabled_tool_configs().items():
            if name == "providerToolsAgent":
                tools[name] = self._provider_tools(tool, user_id)
            elif name == "gitMcpAgent":
                tools[name] = self._git_mcp(tool, user_id)
            else:
                tools[name] = self._artifact(name, tool, context)

        if not tools:
            logger.info("No tools enabled")
            return None
        logger.info(f"Enabled tools: {', '.join(tools)}")
        return tools
