"""
Python code sub-agent.

Same flow as the Mermaid agent without a syntax check, plus ``explain``,
which rewrites existing code with explanatory comments.
"""

from __future__ import annotations

from typing import ClassVar

from pydantic import BaseModel, Field

from core.constants import KIND_PYTHON
from subagents.base import OperationOutcome
from subagents.code_artifact import CodeArtifactAgent
from subagents.runtime import ArtifactContext
from utils.activity_logger import AgentOperationType, AgentType

_PROMPT_FIELDS = ("system_prompt", "user_prompt_template")

DEFAULT_EXPLAIN_INSTRUCTION = (
    "Add detailed comments to explain what this code does, including function purposes, "
    "complex logic, and key implementation details."
)


class CodeOutput(BaseModel):
    code: str = Field(description="Complete, runnable Python code")


class PythonAgent(CodeArtifactAgent):
    agent_type: ClassVar[AgentType] = AgentType.PYTHON_AGENT
    name: ClassVar[str] = "PythonAgent"
    kind = KIND_PYTHON
    operation_type = AgentOperationType.CODE_GENERATION
    operations = ("generate", "create", "update", "fix", "explain", "revert")
    required_tool_fields: ClassVar[dict[str, tuple[str, ...]]] = {
        **CodeArtifactAgent.required_tool_fields,
        "explain": _PROMPT_FIELDS,
    }
    resource_type = "code"
    resource_label = "Code"
    id_param = "codeId"
    default_title = "Python Code"
    output_schema = CodeOutput
    output_field = "code"
    noun = "Python code"

    async def _handle_explain(
        self,
        *,
        instruction: str,
        document_id: str | None,
        target_version: int | None,
        context: ArtifactContext,
    ) -> OperationOutcome:
        instruction = instruction.strip() or DEFAULT_EXPLAIN_INSTRUCTION
        return await self.modify(
            operation="explain",
            document_id=document_id,
            context=context,
            output_flag="isExplain",
            metadata={"explainInstruction": instruction},
            updateInstruction=instruction,
        )
