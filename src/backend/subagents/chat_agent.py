"""
Top-level chat orchestrator.

One ``ChatAgent.chat`` call handles one user turn:

1. load every sub-agent config and bind the selected model into each
2. decide thinking mode (requested AND supported by the model)
3. expose enabled sub-agents as function tools
4. run the model with a bounded tool loop, translating SDK events and
   sub-agent artifact events into a single UI message stream

Setup errors raise to the caller. Errors after streaming has started are
logged and sent to the client as one ``error`` part.
"""

from __future__ import annotations

import asyncio
import time
import uuid

from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from agents import Agent, RunConfig, Runner
from agents.exceptions import MaxTurnsExceeded
from fastapi.responses import StreamingResponse

from core.agent import create_agent, create_run_config
from core.constants import (
    CHAT_STREAM_ERROR_MESSAGE,
    CHAT_TEMPERATURE,
    DEFAULT_REASONING_EFFORT,
    MAX_TOOL_STEPS,
)
from core.errors import AgentError, AppException, StreamingError
from integrations.sdk_events import SDKEventTranslator
from integrations.ui_stream import SSE_DONE, UIMessageStreamWriter, encode_sse
from models.agent_config import ChatModelAgentConfig, ModelConfig, get_default_model
from models.error_models import ErrorCode
from models.stream_events import ErrorPart, FinishPart, StartPart
from subagents.config_loader import AgentConfigLoader
from subagents.tool_builder import AgentTool, AgentToolBuilder
from utils.activity_logger import AgentType
from utils.client_factory import create_openai_client
from utils.logger import logger
from utils.metrics import chat_streams_active, chat_turn_duration_seconds, chat_turns_total

AGENT_NAME = AgentType.CHAT_MODEL_AGENT.value

OnFinish = Callable[[list[dict[str, Any]]], Awaitable[None]]

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@dataclass
class ChatParams:
    """One chat turn as the orchestrator sees it.

    ``messages`` are ``{"role", "content"}`` dicts, oldest first, ending with
    the new user message.
    """

    model_id: str
    messages: list[dict[str, Any]]
    api_key: str | None = None
    base_url: str | None = None
    github_pat: str | None = None
    user_id: str | None = None
    chat_id: str | None = None
    thinking_mode: bool = False
    artifact_context: str | None = None
    on_finish: OnFinish | None = None
    message_id: str = field(default_factory=lambda: str(uuid.uuid4()))


def map_chat_error(error: BaseException, model_id: str | None = None) -> AppException:
    """Classify a model/provider failure into an application error."""
    if isinstance(error, AppException):
        return error
    cause = error if isinstance(error, Exception) else None
    message = str(error)
    lowered = message.lower()
    if "api key" in lowered or "authentication" in lowered or "unauthorized" in lowered or "401" in lowered:
        return AgentError(AGENT_NAME, ErrorCode.AUTHENTICATION_FAILED, "Invalid or missing API key", cause)
    if "quota" in lowered or "rate limit" in lowered or "429" in lowered:
        return AgentError(AGENT_NAME, ErrorCode.RATE_LIMIT_EXCEEDED, "API quota or rate limit exceeded", cause)
    if "model" in lowered and ("not found" in lowered or "does not exist" in lowered or "not supported" in lowered):
        return AgentError(
            AGENT_NAME,
            ErrorCode.MODEL_NOT_SUPPORTED,
            f"Model {model_id} is not supported or available.",
            cause,
        )
    return StreamingError(f"Failed to generate response: {message or type(error).__name__}", cause)


def with_artifact_context(messages: list[dict[str, Any]], artifact_context: str | None) -> list[dict[str, Any]]:
    """Copy of ``messages`` with the context appended to the latest user message."""
    if not artifact_context:
        return list(messages)
    result = [dict(m) for m in messages]
    for message in reversed(result):
        if message.get("role") == "user":
            message["content"] = f"{message.get('content', '')}\n\n{artifact_context}"
            break
    return result


class ChatAgent:
    def __init__(self, config: ChatModelAgentConfig | None, loader: AgentConfigLoader):
        if config is None:
            raise AgentError(AGENT_NAME, ErrorCode.INVALID_CONFIGURATION, "Chat agent configuration is required")
        if not config.enabled:
            raise AgentError(AGENT_NAME, ErrorCode.AGENT_DISABLED, "Chat agent is disabled")
        if config.available_models and not any(m.enabled for m in config.available_models):
            raise AgentError(AGENT_NAME, ErrorCode.INVALID_CONFIGURATION, "At least one model must be enabled")
        self.config = config
        self.loader = loader
        self.tool_builder = AgentToolBuilder(config, loader)
        self._tasks: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Model capabilities
    # ------------------------------------------------------------------

    def get_model_config(self, model_id: str) -> ModelConfig | None:
        for model in self.config.available_models or []:
            if model.id == model_id:
                return model
        return None

    def supports_thinking(self, model_id: str) -> bool:
        model = self.get_model_config(model_id)
        return model.thinking_supported if model else False

    def get_default_model(self) -> ModelConfig | None:
        return get_default_model(self.config.available_models)

    def supports_file_input(self, model_id: str) -> bool:
        model = self.get_model_config(model_id)
        if model is not None and model.file_input_enabled is not None:
            return model.file_input_enabled
        return bool(self.config.file_input_enabled)

    def get_allowed_file_types(self, model_id: str) -> list[str]:
        """Model-level allowed types, else the enabled provider-level ``fileInputTypes``."""
        model = self.get_model_config(model_id)
        if model is not None and model.allowed_file_types:
            return list(model.allowed_file_types)
        if self.config.allowed_file_types:
            return list(self.config.allowed_file_types)
        return _enabled_file_types(self.config.file_input_types or {})

    # ------------------------------------------------------------------
    # Prompt
    # ------------------------------------------------------------------

    def build_system_prompt(self, tools: dict[str, AgentTool] | None = None) -> str:
        prompt = self.config.system_prompt
        if not tools:
            return prompt
        lines = [f"- {name}: {tool.description}" for name, tool in tools.items()]
        return (
            f"{prompt}\n\n## Tools\n"
            "You can delegate work to these tools. After a tool returns, use its result to answer the user; "
            "artifacts created by a tool are already visible to the user.\n" + "\n".join(lines)
        )

    # ------------------------------------------------------------------
    # Turn
    # ------------------------------------------------------------------

    async def chat(self, params: ChatParams) -> StreamingResponse:
        """Prepare the turn and return the SSE response streaming it."""
        thinking = False
        try:
            self.loader.set_api_key(params.api_key)
            if params.github_pat:
                self.loader.set_github_pat(params.github_pat)
            await self.loader.load_all_configs()
            self.loader.set_model_for_all(params.model_id)
            thinking = params.thinking_mode and self.supports_thinking(params.model_id)

            writer = UIMessageStreamWriter()
            tools = self.tool_builder.build_tools(writer, params.user_id, params.chat_id)
            agent = create_agent(
                name="ChatAgent",
                model_id=params.model_id,
                instructions=self.build_system_prompt(tools),
                tools=[tool.to_function_tool() for tool in (tools or {}).values()],
                temperature=CHAT_TEMPERATURE,
                reasoning_effort=DEFAULT_REASONING_EFFORT if thinking else None,
            )
            if not params.api_key:
                raise AgentError(AGENT_NAME, ErrorCode.AUTHENTICATION_FAILED, "Invalid or missing API key")
            client = create_openai_client(params.api_key, params.base_url)
        except Exception as e:
            self._log_failure("Chat setup failed", e, params, thinking)
            raise map_chat_error(e, params.model_id) from e

        messages = with_artifact_context(params.messages, params.artifact_context)
        run_config = create_run_config(client, workflow_name="ChatAgent")
        task = asyncio.create_task(self._run(agent, messages, run_config, writer, params, thinking, client))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        return StreamingResponse(self._sse(writer), media_type="text/event-stream", headers=SSE_HEADERS)

    async def _sse(self, writer: UIMessageStreamWriter) -> AsyncIterator[str]:
        try:
            async for part in writer.parts():
                yield encode_sse(part)
            yield SSE_DONE
        finally:
            # Client went away; the turn keeps running and its writes are dropped
            writer.close()

    async def _run(
        self,
        agent: Agent,
        messages: list[dict[str, Any]],
        run_config: RunConfig,
        writer: UIMessageStreamWriter,
        params: ChatParams,
        thinking: bool,
        client: Any,
    ) -> None:
        translator = SDKEventTranslator(thinking=thinking)
        start = time.perf_counter()
        status = "success"
        chat_streams_active.inc()
        writer.write(StartPart(message_id=params.message_id))
        try:
            result = Runner.run_streamed(agent, input=messages, max_turns=MAX_TOOL_STEPS, run_config=run_config)  # type: ignore[arg-type]
            try:
                async for event in result.stream_events():
                    for part in translator.translate(event):
                        writer.write(part)
            except MaxTurnsExceeded:
                logger.warning(f"Tool loop stopped after {MAX_TOOL_STEPS} turns", chat_id=params.chat_id)

            for part in translator.finish():
                writer.write(part)

            # FinishPart stays last; a failed save ends the stream with the error part instead
            if params.on_finish is not None:
                await params.on_finish(
                    [{"id": params.message_id, "role": "assistant", "parts": translator.message_parts}]
                )
            writer.write(FinishPart())
            logger.log_chat_turn(
                chat_id=params.chat_id,
                model_id=params.model_id,
                user_input=str(messages[-1].get("content", "")) if messages else "",
                response="".join(p.get("text", "") for p in translator.message_parts if p.get("type") == "text"),
                tool_names=[p["type"][5:] for p in translator.message_parts if p.get("type", "").startswith("tool-")],
                duration_ms=(time.perf_counter() - start) * 1000,
                thinking_mode=thinking,
            )
        except Exception as e:
            status = "error"
            self._log_failure("Chat stream failed", e, params, thinking)
            for part in translator.finish():
                writer.write(part)
            writer.write(ErrorPart(error_text=CHAT_STREAM_ERROR_MESSAGE))
        finally:
            chat_streams_active.dec()
            chat_turns_total.labels(model=params.model_id, status=status).inc()
            chat_turn_duration_seconds.labels(model=params.model_id).observe(time.perf_counter() - start)
            await client.close()
            writer.close()

    def _log_failure(self, message: str, error: BaseException, params: ChatParams, thinking: bool) -> None:
        mapped = map_chat_error(error, params.model_id)
        logger.error(
            f"{message}: {error}",
            exc_info=True,
            model_id=params.model_id,
            thinking_mode=thinking,
            message_count=len(params.messages),
            chat_id=params.chat_id,
            error_code=mapped.code.value,
        )


def _enabled_file_types(file_input_types: dict[str, Any]) -> list[str]:
    """Flatten ``{category: {ext: {enabled}}}`` / ``{category: {enabled}}`` into enabled names."""
    enabled: list[str] = []
    for category, value in file_input_types.items():
        if not isinstance(value, dict):
            continue
        if "enabled" in value:
            if value.get("enabled"):
                enabled.append(category)
            continue
        enabled.extend(name for name, entry in value.items() if isinstance(entry, dict) and entry.get("enabled"))
    return enabled
