"""Mermaid diagram sub-agent."""

from __future__ import annotations

from typing import ClassVar

from pydantic import BaseModel, Field

from core.constants import KIND_MERMAID, MERMAID_DIAGRAM_TYPES
from core.errors import MermaidValidationError
from subagents.code_artifact import CodeArtifactAgent
from utils.activity_logger import AgentOperationType, AgentType

_INVALID_MESSAGES = {
    "generate": "Generated diagram does not contain valid Mermaid syntax",
    "create": "Generated diagram does not contain valid Mermaid syntax",
    "update": "Updated diagram does not contain valid Mermaid syntax",
    "fix": "Fixed diagram still contains invalid Mermaid syntax",
}


def validate_mermaid_syntax(content: str) -> bool:
    """Basic check: the first line must declare a known diagram type."""
    trimmed = content.strip()
    if not trimmed:
        return False
    first_line = trimmed.split("\n", 1)[0].lower()
    return any(diagram_type.lower() in first_line for diagram_type in MERMAID_DIAGRAM_TYPES)


class DiagramOutput(BaseModel):
    diagram: str = Field(description="Complete Mermaid diagram with valid syntax and proper formatting")


class MermaidAgent(CodeArtifactAgent):
    agent_type: ClassVar[AgentType] = AgentType.MERMAID_AGENT
    name: ClassVar[str] = "MermaidAgent"
    kind = KIND_MERMAID
    operation_type = AgentOperationType.DIAGRAM_GENERATION
    operations = ("generate", "create", "update", "fix", "revert")
    resource_type = "diagram"
    resource_label = "Diagram"
    id_param = "diagramId"
    default_title = "Mermaid Diagram"
    output_schema = DiagramOutput
    output_field = "diagram"
    noun = "diagram"

    def check_content(self, content: str, operation: str) -> None:
        if not validate_mermaid_syntax(content):
            raise MermaidValidationError(_INVALID_MESSAGES.get(operation, _INVALID_MESSAGES["create"]))
