"""
Agents SDK stream events -> UI message stream parts.

Handles the two event families ``Runner.run_streamed`` produces:
- raw_response_event: token-level Responses API events (text, reasoning, step lifecycle)
- run_item_stream_event: tool calls and their outputs

Handlers share one ``StreamState`` per turn and return the parts to write,
possibly none. Reasoning parts are produced only when thinking is enabled
for the turn.
"""

from __future__ import annotations

import json

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from models.stream_events import ReasoningPart, StepPart, StreamPart, TextPart, ToolInputPart, ToolOutputPart
from utils.logger import logger

RAW_RESPONSE_EVENT = "raw_response_event"
RUN_ITEM_STREAM_EVENT = "run_item_stream_event"


@dataclass
class StreamState:
    """Open text/reasoning blocks and in-flight tool calls of one turn."""

    thinking: bool = False
    text_id: str | None = None
    reasoning_id: str | None = None
    step_open: bool = False
    active_calls: dict[str, str] = field(default_factory=dict)  # {call_id: tool_name}
    text: list[str] = field(default_factory=list)
    #: Finished message parts in the stored message format
    message_parts: list[dict[str, Any]] = field(default_factory=list)

    def close_text(self) -> list[StreamPart]:
        if self.text_id is None:
            return []
        parts: list[StreamPart] = [TextPart(type="text-end", id=self.text_id)]
        self.message_parts.append({"type": "text", "text": "".join(self.text)})
        self.text_id = None
        self.text = []
        return parts

    def close_reasoning(self) -> list[StreamPart]:
        if self.reasoning_id is None:
            return []
        parts: list[StreamPart] = [ReasoningPart(type="reasoning-end", id=self.reasoning_id)]
        self.reasoning_id = None
        return parts

    def close_all(self) -> list[StreamPart]:
        parts = self.close_reasoning() + self.close_text()
        if self.step_open:
            parts.append(StepPart(type="finish-step"))
            self.step_open = False
        return parts


RawHandler = Callable[[Any, StreamState], list[StreamPart]]
ItemHandler = Callable[[Any, StreamState], list[StreamPart]]


def _item_id(data: Any) -> str:
    return str(getattr(data, "item_id", None) or getattr(data, "output_index", 0))


# -----------------------------------------------------------------------------
# Raw response events
# -----------------------------------------------------------------------------


def handle_response_created(data: Any, state: StreamState) -> list[StreamPart]:
    parts = state.close_all()
    state.step_open = True
    parts.append(StepPart(type="start-step"))
    return parts


def handle_response_completed(data: Any, state: StreamState) -> list[StreamPart]:
    return state.close_all()


def handle_text_delta_event(data: Any, state: StreamState) -> list[StreamPart]:
    delta = getattr(data, "delta", None)
    if not delta:
        return []
    parts = state.close_reasoning()
    item_id = _item_id(data)
    if state.text_id != item_id:
        parts += state.close_text()
        state.text_id = item_id
        parts.append(TextPart(type="text-start", id=item_id))
    state.text.append(delta)
    parts.append(TextPart(type="text-delta", id=item_id, delta=delta))
    return parts


def handle_reasoning_delta_event(data: Any, state: StreamState) -> list[StreamPart]:
    delta = getattr(data, "delta", None)
    if not delta or not state.thinking:
        return []
    parts: list[StreamPart] = []
    item_id = _item_id(data)
    if state.reasoning_id != item_id:
        parts += state.close_reasoning()
        state.reasoning_id = item_id
        parts.append(ReasoningPart(type="reasoning-start", id=item_id))
    parts.append(ReasoningPart(type="reasoning-delta", id=item_id, delta=delta))
    return parts


def handle_output_item_done(data: Any, state: StreamState) -> list[StreamPart]:
    item_type = getattr(getattr(data, "item", None), "type", None)
    if item_type == "message":
        return state.close_text()
    if item_type == "reasoning":
        return state.close_reasoning()
    return []


RAW_EVENT_TYPE_HANDLERS: dict[str, RawHandler] = {
    "response.created": handle_response_created,
    "response.completed": handle_response_completed,
    "response.output_text.delta": handle_text_delta_event,
    "response.reasoning_summary_text.delta": handle_reasoning_delta_event,
    "response.reasoning_text.delta": handle_reasoning_delta_event,
    "response.output_item.done": handle_output_item_done,
}


# -----------------------------------------------------------------------------
# Run item events
# -----------------------------------------------------------------------------


def _parse_json(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError:
        return value


def handle_tool_call(item: Any, state: StreamState) -> list[StreamPart]:
    raw = item.raw_item
    tool_name = getattr(raw, "name", None) or "unknown"
    call_id = getattr(raw, "call_id", None) or getattr(raw, "id", None) or ""
    if not call_id:
        return []
    state.active_calls[call_id] = tool_name
    logger.info(f"Function executing: {tool_name} (call_id: {call_id})")
    arguments = _parse_json(getattr(raw, "arguments", None) or "{}")
    parts = state.close_text()
    parts.append(ToolInputPart(tool_call_id=call_id, tool_name=tool_name, input=arguments))
    state.message_parts.append(
        {"type": f"tool-{tool_name}", "toolCallId": call_id, "state": "input-available", "input": arguments}
    )
    return parts


def handle_tool_output(item: Any, state: StreamState) -> list[StreamPart]:
    raw = item.raw_item
    call_id = raw.get("call_id") if isinstance(raw, dict) else getattr(raw, "call_id", None)
    if not call_id or call_id not in state.active_calls:
        logger.warning(f"Tool output for unknown call_id: {call_id}")
        return []
    state.active_calls.pop(call_id)
    output = _parse_json(item.output)
    for part in state.message_parts:
        if part.get("toolCallId") == call_id:
            part["state"] = "output-available"
            part["output"] = output
    return [ToolOutputPart(tool_call_id=call_id, output=output)]


RUN_ITEM_HANDLERS: dict[str, ItemHandler] = {
    "tool_called": handle_tool_call,
    "tool_output": handle_tool_output,
}


class SDKEventTranslator:
    """Turns one run's SDK stream events into UI message stream parts."""

    def __init__(self, thinking: bool = False):
        self.state = StreamState(thinking=thinking)

    def translate(self, event: Any) -> list[StreamPart]:
        event_type = getattr(event, "type", None)
        if event_type == RAW_RESPONSE_EVENT:
            data = event.data
            handler = RAW_EVENT_TYPE_HANDLERS.get(getattr(data, "type", ""))
            return handler(data, self.state) if handler else []
        if event_type == RUN_ITEM_STREAM_EVENT:
            item_handler = RUN_ITEM_HANDLERS.get(event.name)
            return item_handler(event.item, self.state) if item_handler else []
        return []

    def finish(self) -> list[StreamPart]:
        """Close any block still open at the end of the run."""
        return self.state.close_all()

    @property
    def message_parts(self) -> list[dict[str, Any]]:
        return self.state.message_parts
