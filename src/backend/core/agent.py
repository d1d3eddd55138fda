"""
Agents SDK setup shared by the chat orchestrator and the tool-using sub-agents.
"""

from __future__ import annotations

from typing import Any, Literal, TypeGuard, get_args

from agents import Agent, ModelSettings, RunConfig
from agents.models.openai_provider import OpenAIProvider
from openai import AsyncOpenAI
from openai.types.shared import Reasoning

from core.constants import DEFAULT_REASONING_EFFORT, is_reasoning_model
from utils.logger import logger

ReasoningEffort = Literal["minimal", "low", "medium", "high"]


def is_valid_reasoning_effort(value: str) -> TypeGuard[ReasoningEffort]:
    return value in get_args(ReasoningEffort)


def build_model_settings(
    model_id: str,
    *,
    temperature: float | None = None,
    reasoning_effort: str | None = None,
) -> ModelSettings:
    """Model settings for one run.

    Reasoning models get ``reasoning.effort`` (and a reasoning summary when
    ``reasoning_effort`` is given) and no temperature; other models get the
    temperature only.
    """
    if not is_reasoning_model(model_id):
        return ModelSettings(temperature=temperature)

    effort = reasoning_effort or DEFAULT_REASONING_EFFORT
    if not is_valid_reasoning_effort(effort):
        logger.warning(f"Invalid reasoning_effort '{effort}', defaulting to '{DEFAULT_REASONING_EFFORT}'")
        effort = DEFAULT_REASONING_EFFORT
    summary = "auto" if reasoning_effort else None
    return ModelSettings(reasoning=Reasoning(effort=effort, summary=summary))  # type: ignore[arg-type]


def create_agent(
    *,
    name: str,
    model_id: str,
    instructions: str,
    tools: list[Any] | None = None,
    mcp_servers: list[Any] | None = None,
    temperature: float | None = None,
    reasoning_effort: str | None = None,
) -> Agent:
    """Create an Agent with model settings matched to the model family.

    Note:
        For concurrent request isolation, pass a per-request model provider
        via ``create_run_config`` rather than setting a client on the Agent.
    """
    agent = Agent(
        name=name,
        model=model_id,
        instructions=instructions,
        tools=tools or [],
        mcp_servers=mcp_servers or [],
        model_settings=build_model_settings(model_id, temperature=temperature, reasoning_effort=reasoning_effort),
    )
    logger.info(
        f"{name} agent created - Model: {model_id}, {len(agent.tools)} tools, {len(agent.mcp_servers)} MCP servers"
    )
    return agent


def create_run_config(client: AsyncOpenAI, *, workflow_name: str) -> RunConfig:
    """RunConfig bound to ``client`` so concurrent runs never share a client."""
    return RunConfig(
        model_provider=OpenAIProvider(openai_client=client),
        workflow_name=workflow_name,
        tracing_disabled=True,
    )


def _tool_name(raw_item: Any) -> str:
    if isinstance(raw_item, dict):
        return str(raw_item.get("name") or raw_item.get("type") or "tool")
    return str(getattr(raw_item, "name", None) or getattr(raw_item, "type", None) or "tool")


def collect_tool_calls(items: list[Any]) -> list[dict[str, Any]]:
    """Tool calls of a finished run, each paired with the output that followed it."""
    calls: list[dict[str, Any]] = []
    for item in items:
        if item.type == "tool_call_item":
            raw = item.raw_item
            args = raw.get("arguments") if isinstance(raw, dict) else getattr(raw, "arguments", None)
            calls.append({"toolName": _tool_name(raw), "args": args, "result": None})
        elif item.type == "tool_call_output_item" and calls:
            calls[-1]["result"] = item.output
    return calls


def collect_reasoning(items: list[Any]) -> str | None:
    """Joined reasoning summary text of a finished run, if any."""
    texts = [
        summary.text
        for item in items
        if item.type == "reasoning_item"
        for summary in getattr(item.raw_item, "summary", None) or []
        if getattr(summary, "text", None)
    ]
    return "\n".join(texts) or None
