"""LiteLLM-backed operation service.

Routes every model call through litellm so any provider it supports
(OpenAI, Anthropic, Together, Ollama, ...) works with a model string like
'anthropic/claude-3-5-haiku-latest'.
"""

import json
import logging
import re
from collections.abc import AsyncIterator
from typing import Any

import litellm

from nodeflow.config import EngineConfig
from nodeflow.graph.errors import NodeOperationError
from nodeflow.llm.provider import LLMResponse, NodeOperationService
from nodeflow.llm.stream_events import (
    FinishEvent,
    StreamErrorEvent,
    StreamEvent,
    TextDeltaEvent,
    TextEndEvent,
)

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"

_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def parse_json_content(content: str) -> Any:
    """Parse a model's JSON answer, tolerating a surrounding code fence."""
    text = content.strip()
    fenced = _FENCE_PATTERN.match(text)
    if fenced:
        text = fenced.group(1)
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise NodeOperationError(f"Model did not return valid JSON: {e}") from e


class LiteLLMService(NodeOperationService):
    """
    Operation service using litellm's async completion and embedding APIs.

    Usage:
        service = LiteLLMService(EngineConfig(model="openai/gpt-4o-mini"))
        response = await service.generate_text("Say hi")
    """

    def __init__(self, config: EngineConfig | None = None, embedding_model: str | None = None):
        self.config = config or EngineConfig()
        self.embedding_model = embedding_model or DEFAULT_EMBEDDING_MODEL

    def _request_kwargs(
        self,
        model: str | None,
        temperature: float | None,
        max_tokens: int | None,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": model or self.config.model,
            "temperature": self.config.temperature if temperature is None else temperature,
            "max_tokens": max_tokens or self.config.max_tokens,
        }
        if self.config.api_key:
            kwargs["api_key"] = self.config.api_key
        if self.config.api_base:
            kwargs["api_base"] = self.config.api_base
        return kwargs

    @staticmethod
    def _messages(prompt: str, system_prompt: str | None) -> list[dict[str, str]]:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        return messages

    @staticmethod
    def _to_response(response: Any, model: str) -> LLMResponse:
        choice = response.choices[0]
        usage = getattr(response, "usage", None)
        return LLMResponse(
            content=choice.message.content or "",
            model=getattr(response, "model", None) or model,
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
            stop_reason=choice.finish_reason or "",
            raw_response=response,
        )

    async def generate_text(
        self,
        prompt: str,
        system_prompt: str | None = None,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        kwargs = self._request_kwargs(model, temperature, max_tokens)
        logger.debug("LLM text request to %s", kwargs["model"])
        response = await litellm.acompletion(
            messages=self._messages(prompt, system_prompt), **kwargs
        )
        return self._to_response(response, kwargs["model"])

    async def generate_structured(
        self,
        prompt: str,
        schema: dict[str, Any],
        system_prompt: str | None = None,
        model: str | None = None,
        temperature: float | None = None,
        schema_name: str | None = None,
        schema_description: str | None = None,
    ) -> LLMResponse:
        kwargs = self._request_kwargs(model, temperature, None)
        instructions = [system_prompt] if system_prompt else []
        if schema_description:
            instructions.append(schema_description)
        instructions.append(
            "Respond only with a JSON object matching this schema:\n" + json.dumps(schema)
        )
        response = await litellm.acompletion(
            messages=self._messages(prompt, "\n\n".join(instructions)),
            response_format={"type": "json_object"},
            **kwargs,
        )
        result = self._to_response(response, kwargs["model"])
        result.data = parse_json_content(result.content)
        return result

    async def stream_text(
        self,
        prompt: str,
        system_prompt: str | None = None,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> AsyncIterator[StreamEvent]:
        kwargs = self._request_kwargs(model, temperature, max_tokens)
        snapshot = ""
        stop_reason = ""
        input_tokens = output_tokens = 0
        try:
            response = await litellm.acompletion(
                messages=self._messages(prompt, system_prompt),
                stream=True,
                stream_options={"include_usage": True},
                **kwargs,
            )
            async for chunk in response:
                usage = getattr(chunk, "usage", None)
                if usage:
                    input_tokens = getattr(usage, "prompt_tokens", 0) or input_tokens
                    output_tokens = getattr(usage, "completion_tokens", 0) or output_tokens
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                delta = getattr(choice.delta, "content", None) or ""
                if delta:
                    snapshot += delta
                    yield TextDeltaEvent(content=delta, snapshot=snapshot)
                if choice.finish_reason:
                    stop_reason = choice.finish_reason
        except litellm.exceptions.APIError as e:
            logger.warning("Stream from %s failed: %s", kwargs["model"], e)
            yield StreamErrorEvent(error=str(e), recoverable=False)
            return

        yield TextEndEvent(full_text=snapshot)
        yield FinishEvent(
            stop_reason=stop_reason,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            model=kwargs["model"],
        )

    async def embed(self, texts: list[str], model: str | None = None) -> list[list[float]]:
        if not texts:
            return []
        kwargs: dict[str, Any] = {"model": model or self.embedding_model, "input": texts}
        if self.config.api_key:
            kwargs["api_key"] = self.config.api_key
        if self.config.api_base:
            kwargs["api_base"] = self.config.api_base
        response = await litellm.aembedding(**kwargs)
        return [item["embedding"] for item in response.data]
