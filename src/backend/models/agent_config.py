"""
Agent configuration models.

These validate the JSON stored in ``admin_config.config_data``. Stored
configs use camelCase keys; models accept both the camelCase alias and the
snake_case field name and dump back to camelCase.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class _ConfigModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


class RateLimitConfig(_ConfigModel):
    per_minute: int | None = None
    per_hour: int | None = None
    per_day: int | None = None


class ToolInput(BaseModel):
    """Descriptions for the parameters the top-level model fills in.

    Single-input tools carry ``parameter_description`` directly. Tools with
    several parameters nest one entry per parameter name, e.g.
    ``{"operation": {"parameter_description": "..."}}``.
    """

    model_config = ConfigDict(extra="allow")

    parameter_name: str | None = None
    parameter_description: str | None = None

    def describe(self, parameter: str) -> str | None:
        """Description of a nested parameter, or None when absent."""
        entry = (self.model_extra or {}).get(parameter)
        if isinstance(entry, dict):
            description = entry.get("parameter_description")
            return description if isinstance(description, str) and description else None
        return None


class ToolConfig(_ConfigModel):
    """A tool the chat model may call (or a hosted tool of a sub-agent)."""

    description: str = ""
    enabled: bool = False
    tool_input: ToolInput | None = Field(default=None, alias="tool_input")


class OperationToolConfig(_ConfigModel):
    """Prompt templates for one operation of a streaming artifact sub-agent."""

    enabled: bool = True
    description: str | None = None
    system_prompt: str | None = None
    user_prompt_template: str | None = None


class ModelConfig(_ConfigModel):
    """One selectable model of a provider."""

    id: str
    name: str = ""
    description: str = ""
    enabled: bool = True
    is_default: bool = False
    supports_thinking_mode: bool | None = None
    thinking_enabled: bool | None = None
    file_input_enabled: bool | None = None
    allowed_file_types: list[str] | None = None
    pricing_per_million_tokens: dict[str, float] | None = None

    @property
    def thinking_supported(self) -> bool:
        """supportsThinkingMode, falling back to the older thinkingEnabled flag."""
        if self.supports_thinking_mode is not None:
            return self.supports_thinking_mode
        return bool(self.thinking_enabled)


class ProviderCapabilities(_ConfigModel):
    thinking_reasoning: bool | None = None
    file_input: bool | None = None


class BaseAgentConfig(_ConfigModel):
    """Fields shared by every ``{agentType}_{provider}`` config row."""

    enabled: bool = False
    system_prompt: str = ""
    rate_limit: RateLimitConfig | None = None
    available_models: list[ModelConfig] | None = None


class ChatModelAgentConfig(BaseAgentConfig):
    capabilities: ProviderCapabilities | None = None
    file_input_enabled: bool | None = None
    allowed_file_types: list[str] | None = None
    file_input_types: dict[str, Any] | None = None
    tools: dict[str, ToolConfig] = Field(default_factory=dict)


class ArtifactAgentConfig(BaseAgentConfig):
    """Document, Mermaid and Python agents: per-operation prompt templates."""

    tools: dict[str, OperationToolConfig] = Field(default_factory=dict)


class DocumentAgentConfig(ArtifactAgentConfig):
    pass


class MermaidAgentConfig(ArtifactAgentConfig):
    pass


class PythonAgentConfig(ArtifactAgentConfig):
    pass


class ProviderToolsAgentConfig(BaseAgentConfig):
    tools: dict[str, ToolConfig] = Field(default_factory=dict)


class GitMcpAgentConfig(BaseAgentConfig):
    tools: dict[str, ToolConfig] = Field(default_factory=dict)

    @model_validator(mode="after")
    def require_rate_limit_when_enabled(self) -> GitMcpAgentConfig:
        if self.enabled and self.rate_limit is None:
            raise ValueError("rateLimit is required for the GitHub MCP agent")
        return self


def normalize_default_models(models: list[ModelConfig]) -> list[ModelConfig]:
    """Return copies of ``models`` with exactly one default where possible.

    The first model marked default keeps the flag and later ones are demoted.
    When none is marked default, the first enabled model becomes the default.
    A list with no enabled model and no default is returned unchanged.
    """
    result: list[ModelConfig] = []
    seen_default = False
    for model in models:
        if model.is_default and not seen_default:
            seen_default = True
            result.append(model.model_copy())
        elif model.is_default:
            result.append(model.model_copy(update={"is_default": False}))
        else:
            result.append(model.model_copy())

    if not seen_default:
        for idx, model in enumerate(result):
            if model.enabled:
                result[idx] = model.model_copy(update={"is_default": True})
                break

    return result


def get_default_model(models: list[ModelConfig] | None) -> ModelConfig | None:
    """Default model of a list after normalization, or None."""
    if not models:
        return None
    for model in normalize_default_models(models):
        if model.is_default:
            return model
    return None
