"""
Provider tools sub-agent.

Answers one query with hosted tools (web search, code interpreter) and a
URL fetch function tool, then returns the final text to the chat model.
"""

from __future__ import annotations

from typing import Any, ClassVar

import httpx

from agents import CodeInterpreterTool, Runner, WebSearchTool, function_tool

from core.agent import collect_reasoning, collect_tool_calls, create_agent, create_run_config
from core.constants import FETCH_MAX_BYTES, FETCH_MAX_CHARS, PROVIDER_TOOLS_TEMPERATURE, is_reasoning_model
from core.errors import ConfigurationError
from models.agent_config import ProviderToolsAgentConfig
from subagents.base import BaseSubAgent
from subagents.runtime import AgentResult
from utils.activity_logger import AgentOperationCategory, AgentOperationType, AgentType, PerformanceTracker
from utils.client_factory import create_fetch_client, create_openai_client
from utils.logger import logger
from utils.url_fetch import FetchError, fetch_public_url


async def fetch_page(url: str) -> str:
    """Fetch a web page and return its text content.

    Args:
        url: Absolute http(s) URL of the page to read.
    """
    try:
        async with create_fetch_client() as client:
            fetched = await fetch_public_url(client, url, FETCH_MAX_BYTES)
    except (FetchError, httpx.HTTPError) as e:
        logger.warning(f"fetch_url failed for {url}: {e}")
        return f"Error: could not fetch {url}: {e}"
    return fetched.text[:FETCH_MAX_CHARS]


fetch_url = function_tool(fetch_page, name_override="fetch_url")


def _web_search() -> WebSearchTool:
    return WebSearchTool()


def _code_interpreter() -> CodeInterpreterTool:
    return CodeInterpreterTool(tool_config={"type": "code_interpreter", "container": {"type": "auto"}})


def _url_context() -> Any:
    return fetch_url


#: Config tool name -> factory for the SDK tool it enables
TOOL_FACTORIES = {
    "googleSearch": _web_search,
    "webSearch": _web_search,
    "urlContext": _url_context,
    "codeExecution": _code_interpreter,
}


class ProviderToolsAgent(BaseSubAgent):
    agent_type: ClassVar[AgentType] = AgentType.PROVIDER_TOOLS_AGENT
    name: ClassVar[str] = "ProviderToolsAgent"

    config: ProviderToolsAgentConfig

    def enabled_tool_names(self) -> list[str]:
        """Configured tool names that are enabled and map to an SDK tool."""
        return [name for name, tool in self.config.tools.items() if tool.enabled and name in TOOL_FACTORIES]

    def build_tools(self) -> list[Any]:
        tools: list[Any] = []
        seen: set[str] = set()
        for name in self.enabled_tool_names():
            tool = TOOL_FACTORIES[name]()
            # googleSearch and webSearch both map to the one hosted search tool
            if tool.name in seen:
                continue
            seen.add(tool.name)
            tools.append(tool)
        return tools

    async def execute(self, input: str, user_id: str | None = None) -> AgentResult:
        """Run the query and return the collected text; failures come back as ``Error: ...``."""
        thinking_mode = is_reasoning_model(self.model_id)
        tracker = PerformanceTracker(
            self.agent_type,
            AgentOperationType.TOOL_INVOCATION,
            AgentOperationCategory.TOOL_USE,
            user_id=user_id,
        )
        metadata: dict[str, Any] = {
            "query_length": len(input),
            "tools_enabled": ", ".join(self.enabled_tool_names()),
        }

        try:
            if not self.model_id:
                raise ConfigurationError(self.config_key, f"{self.name}: Model ID not set")
            if not self.runtime.api_key:
                raise ConfigurationError(self.config_key, f"{self.name}: API key not set")

            tools = self.build_tools()
            logger.info(f"{self.name} starting with tools: {[t.name for t in tools]}", model_id=self.model_id)

            agent = create_agent(
                name=self.name,
                model_id=self.model_id,
                instructions=self.config.system_prompt,
                tools=tools,
                temperature=PROVIDER_TOOLS_TEMPERATURE,
            )
            client = create_openai_client(self.runtime.api_key, self.runtime.base_url)
            try:
                result = await Runner.run(
                    agent,
                    input,
                    run_config=create_run_config(client, workflow_name=self.name),
                )
            finally:
                await client.close()
        except Exception as e:
            logger.error(f"{self.name} execution failed: {e}", correlation_id=tracker.correlation_id)
            await tracker.end(
                success=False,
                error=e,
                model_id=self.model_id,
                thinking_mode=thinking_mode,
                operation_metadata=metadata,
            )
            return AgentResult(output=f"Error: {e}", success=False, error=str(e))

        output = str(result.final_output or "")
        tool_calls = collect_tool_calls(result.new_items)
        logger.info(
            f"{self.name} completed, output length: {len(output)}, tool calls: {len(tool_calls)}",
            correlation_id=tracker.correlation_id,
        )
        await tracker.end(
            success=True,
            model_id=self.model_id,
            thinking_mode=thinking_mode,
            operation_metadata={**metadata, "output_length": len(output), "tool_calls_count": len(tool_calls)},
        )
        return AgentResult(
            output=output,
            success=True,
            tool_calls=tool_calls,
            reasoning=collect_reasoning(result.new_items),
        )
