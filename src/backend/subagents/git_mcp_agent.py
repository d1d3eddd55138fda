"""
GitHub MCP sub-agent.

Answers repository questions through GitHub's hosted, read-only MCP server.
The connection is opened per call and always closed afterwards.
"""

from __future__ import annotations

from typing import Any, ClassVar

from agents import Runner
from agents.mcp import MCPServerStreamableHttp, MCPServerStreamableHttpParams

from core.agent import collect_tool_calls, create_agent, create_run_config
from core.constants import GIT_MCP_MAX_TURNS, GIT_MCP_TEMPERATURE, GITHUB_MCP_TIMEOUT_SECONDS, GITHUB_MCP_URL
from core.errors import AgentError, ConfigurationError
from models.agent_config import GitMcpAgentConfig
from models.error_models import ErrorCode
from subagents.base import BaseSubAgent
from subagents.runtime import AgentResult
from utils.activity_logger import AgentOperationCategory, AgentOperationType, AgentType, PerformanceTracker
from utils.client_factory import create_openai_client
from utils.logger import logger

AUTH_FAILURE_GUIDANCE = """Authentication failed (401). Please verify:
1. Your GitHub PAT is valid and not expired
2. Token has required scopes: repo, read:packages, read:org
3. You have access to GitHub Copilot
4. Token format is correct (ghp_xxx or github_pat_xxx)"""

EMPTY_OUTPUT_MESSAGE = "Operation completed successfully"


def describe_connection_error(error: BaseException) -> str:
    message = str(error) or type(error).__name__
    if "401" in message or "Unauthorized" in message:
        return AUTH_FAILURE_GUIDANCE
    return message


class GitMcpAgent(BaseSubAgent):
    agent_type: ClassVar[AgentType] = AgentType.GIT_MCP_AGENT
    name: ClassVar[str] = "GitMcpAgent"

    config: GitMcpAgentConfig

    def is_ready(self) -> bool:
        """True when the PAT, a model and a provider key are all present."""
        return bool(self.runtime.github_pat and self.model_id and self.runtime.api_key)

    def create_server(self) -> MCPServerStreamableHttp:
        if not self.runtime.github_pat:
            raise ConfigurationError(self.config_key, f"{self.name}: GitHub PAT not set")
        params: MCPServerStreamableHttpParams = {
            "url": GITHUB_MCP_URL,
            "headers": {
                "Authorization": f"Bearer {self.runtime.github_pat}",
                "X-MCP-Readonly": "true",
            },
            "timeout": GITHUB_MCP_TIMEOUT_SECONDS,
        }
        return MCPServerStreamableHttp(
            params=params,
            name="github",
            client_session_timeout_seconds=GITHUB_MCP_TIMEOUT_SECONDS,
        )

    async def connect(self, server: MCPServerStreamableHttp) -> None:
        try:
            await server.connect()
        except Exception as e:
            raise AgentError(
                self.agent_type.value,
                ErrorCode.MCP_SERVER_ERROR,
                f"{self.name}: Failed to connect to GitHub MCP server: {describe_connection_error(e)}",
                cause=e,
            ) from e

    async def execute(self, input: str, user_id: str | None = None) -> AgentResult:
        tracker = PerformanceTracker(
            self.agent_type,
            AgentOperationType.MCP_OPERATION,
            AgentOperationCategory.TOOL_USE,
            user_id=user_id,
        )

        if not input or not input.strip():
            await tracker.end(
                success=False,
                error="Empty input",
                model_id=self.model_id,
                operation_metadata={"query_length": 0, "tool_calls_count": 0, "mcp_connection_status": "not_attempted"},
            )
            return AgentResult(output="Error: Input query cannot be empty", success=False, error="Empty input")

        metadata: dict[str, Any] = {"query_length": len(input)}
        server: MCPServerStreamableHttp | None = None
        try:
            if not self.model_id:
                raise ConfigurationError(self.config_key, f"{self.name}: Model ID not set")
            if not self.runtime.api_key:
                raise ConfigurationError(self.config_key, f"{self.name}: API key not set")

            server = self.create_server()
            logger.info(f"{self.name} connecting to GitHub MCP server", correlation_id=tracker.correlation_id)
            await self.connect(server)

            agent = create_agent(
                name=self.name,
                model_id=self.model_id,
                instructions=self.config.system_prompt,
                mcp_servers=[server],
                temperature=GIT_MCP_TEMPERATURE,
            )
            client = create_openai_client(self.runtime.api_key, self.runtime.base_url)
            try:
                result = await Runner.run(
                    agent,
                    input,
                    max_turns=GIT_MCP_MAX_TURNS,
                    run_config=create_run_config(client, workflow_name=self.name),
                )
            finally:
                await client.close()
        except Exception as e:
            message = str(e)
            logger.error(f"{self.name} execution failed: {message}", correlation_id=tracker.correlation_id)
            await tracker.end(
                success=False,
                error=e,
                model_id=self.model_id,
                operation_metadata={**metadata, "tool_calls_count": 0, "mcp_connection_status": "error"},
            )
            return AgentResult(
                output=f"Error executing GitHub operation: {message}",
                success=False,
                error=message,
            )
        finally:
            if server is not None:
                await server.cleanup()

        output = str(result.final_output or "").strip() or EMPTY_OUTPUT_MESSAGE
        tool_calls = collect_tool_calls(result.new_items)
        logger.info(
            f"{self.name} completed with {len(tool_calls)} tool calls, output length: {len(output)}",
            correlation_id=tracker.correlation_id,
        )
        await tracker.end(
            success=True,
            model_id=self.model_id,
            operation_metadata={
                **metadata,
                "tool_calls_count": len(tool_calls),
                "mcp_connection_status": "connected",
                "output_length": len(output),
                "tools_used": ", ".join(call["toolName"] for call in tool_calls),
            },
        )
        return AgentResult(output=output, success=True, tool_calls=tool_calls)
