"""Immutable per-agent runtime settings and shared result types."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from integrations.ui_stream import UIMessageStreamWriter


@dataclass(frozen=True)
class AgentRuntime:
    """Model and credentials a sub-agent generates with.

    Agents never mutate their runtime; changing the model or a credential
    produces a new runtime and a rebound agent.
    """

    provider: str = "openai"
    model_id: str | None = None
    api_key: str | None = None
    base_url: str | None = None
    github_pat: str | None = None

    def with_model(self, model_id: str) -> AgentRuntime:
        return replace(self, model_id=model_id)

    def with_api_key(self, api_key: str | None) -> AgentRuntime:
        return replace(self, api_key=api_key)

    def with_github_pat(self, github_pat: str | None) -> AgentRuntime:
        return replace(self, github_pat=github_pat)


@dataclass
class AgentResult:
    """Outcome of one sub-agent execution.

    Only ``output`` is handed back to the top-level model; the rest is for
    logging and tests.
    """

    output: Any
    success: bool
    tool_calls: list[dict[str, Any]] = field(default_factory=list)
    reasoning: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class ArtifactContext:
    """Per-turn collaborators handed to a sub-agent call."""

    writer: UIMessageStreamWriter
    user_id: str | None = None
    chat_id: str | None = None
