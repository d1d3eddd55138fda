"""Small text helpers shared by the artifact sub-agents."""

from __future__ import annotations

import re

from core.constants import TITLE_MAX_LENGTH

_FENCE_OPEN = re.compile(r"^\s*```[\w+-]*[ \t]*\n")
_FENCE_CLOSE = re.compile(r"\n?```\s*$")
_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def strip_markdown_code_fences(content: str) -> str:
    """Remove a single wrapping ```lang ... ``` fence around model output.

    Content that is not wrapped in a fence is returned unchanged apart from
    surrounding whitespace.
    """
    stripped = content.strip()
    if not stripped.startswith("```"):
        return stripped
    stripped = _FENCE_OPEN.sub("", stripped, count=1)
    stripped = _FENCE_CLOSE.sub("", stripped, count=1)
    return stripped.strip()


def title_from_instruction(instruction: str, fallback: str) -> str:
    """First line of the instruction, trimmed to TITLE_MAX_LENGTH, or the fallback."""
    first_line = instruction.strip().split("\n", 1)[0] if instruction else ""
    title = first_line[:TITLE_MAX_LENGTH].strip()
    return title or fallback


def fill_template(template: str, **values: str) -> str:
    """Replace every ``{name}`` placeholder present in ``values``.

    Unlike str.format, unknown braces (code samples, JSON in prompts) are left alone.
    Substituted values are never scanned for placeholders again.
    """
    return _PLACEHOLDER.sub(lambda m: values.get(m.group(1), m.group(0)), template)


def chunk_text(text: str, size: int) -> list[str]:
    """Split text into consecutive slices of at most ``size`` characters."""
    if size < 1:
        raise ValueError("size must be positive")
    return [text[i : i + size] for i in range(0, len(text), size)]
