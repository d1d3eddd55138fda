"""
Streaming model primitives used by the artifact sub-agents.

``stream_text`` yields plain text deltas. ``stream_object`` asks the model for
JSON matching a pydantic schema and yields each successively larger partial
object as the JSON arrives, so callers can render structured output live.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from openai import AsyncOpenAI
from pydantic import BaseModel
from pydantic_core import from_json

from core.constants import DEFAULT_REASONING_EFFORT, is_reasoning_model
from core.errors import ConfigurationError
from subagents.runtime import AgentRuntime
from utils.client_factory import create_openai_client
from utils.logger import logger


class ModelStreamer:
    """Chat-completions streaming bound to one runtime (model, key, endpoint)."""

    def __init__(
        self,
        runtime: AgentRuntime,
        *,
        temperature: float | None = None,
        client: AsyncOpenAI | None = None,
    ):
        self.runtime = runtime
        self.temperature = temperature
        self._client = client

    def _request_kwargs(self, system: str, prompt: str) -> dict[str, Any]:
        if not self.runtime.model_id:
            raise ConfigurationError(self.runtime.provider, "No model selected for sub-agent generation")
        kwargs: dict[str, Any] = {
            "model": self.runtime.model_id,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "stream": True,
        }
        # Reasoning models reject temperature
        if is_reasoning_model(self.runtime.model_id):
            kwargs["reasoning_effort"] = DEFAULT_REASONING_EFFORT
        elif self.temperature is not None:
            kwargs["temperature"] = self.temperature
        return kwargs

    def _open_client(self) -> tuple[AsyncOpenAI, bool]:
        if self._client is not None:
            return self._client, False
        if not self.runtime.api_key:
            raise ConfigurationError(self.runtime.provider, f"API key not configured for provider {self.runtime.provider}")
        return create_openai_client(api_key=self.runtime.api_key, base_url=self.runtime.base_url), True

    async def _deltas(self, kwargs: dict[str, Any]) -> AsyncIterator[str]:
        client, owned = self._open_client()
        try:
            stream = await client.chat.completions.create(**kwargs)
            async for chunk in stream:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content
        finally:
            if owned:
                await client.close()

    async def stream_text(self, system: str, prompt: str) -> AsyncIterator[str]:
        """Yield text deltas as the model produces them."""
        async for delta in self._deltas(self._request_kwargs(system, prompt)):
            yield delta

    async def stream_object(
        self,
        system: str,
        prompt: str,
        schema: type[BaseModel],
        *,
        partial_strings: bool = True,
    ) -> AsyncIterator[dict[str, Any]]:
        """Yield partial objects of ``schema`` while its JSON streams in.

        With ``partial_strings`` an unfinished trailing string is included, so
        a long field grows between yields. Without it only completed strings
        appear, which is what callers need when they act on finished values.
        """
        kwargs = self._request_kwargs(system, prompt)
        kwargs["response_format"] = {
            "type": "json_schema",
            "json_schema": {"name": schema.__name__, "schema": schema.model_json_schema()},
        }
        mode = "trailing-strings" if partial_strings else True

        buffer = ""
        last: Any = None
        async for delta in self._deltas(kwargs):
            buffer += delta
            try:
                partial = from_json(buffer, allow_partial=mode)
            except ValueError:
                # Not yet a parseable prefix (e.g. leading whitespace only)
                continue
            if isinstance(partial, dict) and partial != last:
                last = partial
                yield partial

        if last is None and buffer.strip():
            logger.warning(
                f"Structured output for {schema.__name__} never parsed as an object",
                model_id=self.runtime.model_id,
            )
