"""Deterministic operation service for tests and offline runs."""

import hashlib
import math
import re
from collections.abc import Callable
from typing import Any

from nodeflow.llm.provider import LLMResponse, NodeOperationService

EMBEDDING_DIMENSIONS = 64

_WORD_PATTERN = re.compile(r"\w+")

_EMPTY_BY_TYPE: dict[str, Any] = {
    "string": "",
    "number": 0,
    "integer": 0,
    "boolean": False,
    "object": {},
    "array": [],
}


def _token_count(text: str) -> int:
    return len(_WORD_PATTERN.findall(text))


class MockOperationService(NodeOperationService):
    """
    Operation service that answers without network access.

    - generate_text echoes the prompt, or returns ``text_response``
    - generate_structured fills every schema property with an empty value of its type,
      or returns ``structured_response``
    - embed hashes words into a fixed-size bag-of-words vector, so texts sharing
      words have positive cosine similarity

    Every call is recorded in ``calls`` as (method, kwargs).
    """

    def __init__(
        self,
        text_response: str | Callable[[str], str] | None = None,
        structured_response: dict[str, Any] | None = None,
        model: str = "mock",
    ):
        self.text_response = text_response
        self.structured_response = structured_response
        self.model = model
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def _text_for(self, prompt: str) -> str:
        if self.text_response is None:
            return prompt
        if callable(self.text_response):
            return self.text_response(prompt)
        return self.text_response

    async def generate_text(
        self,
        prompt: str,
        system_prompt: str | None = None,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        self.calls.append(
            (
                "generate_text",
                {
                    "prompt": prompt,
                    "system_prompt": system_prompt,
                    "model": model,
                    "temperature": temperature,
                },
            )
        )
        content = self._text_for(prompt)
        return LLMResponse(
            content=content,
            model=model or self.model,
            input_tokens=_token_count(prompt),
            output_tokens=_token_count(content),
            stop_reason="stop",
        )

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
        self.calls.append(
            (
                "generate_structured",
                {"prompt": prompt, "schema": schema, "schema_name": schema_name},
            )
        )
        if self.structured_response is not None:
            data = dict(self.structured_response)
        else:
            properties = schema.get("properties", {})
            data = {
                name: _EMPTY_BY_TYPE.get(spec.get("type", "string"), None)
                for name, spec in properties.items()
            }
        return LLMResponse(
            content="",
            model=model or self.model,
            input_tokens=_token_count(prompt),
            stop_reason="stop",
            data=data,
        )

    async def embed(self, texts: list[str], model: str | None = None) -> list[list[float]]:
        self.calls.append(("embed", {"texts": list(texts), "model": model}))
        vectors = []
        for text in texts:
            vector = [0.0] * EMBEDDING_DIMENSIONS
            for word in _WORD_PATTERN.findall(text.lower()):
                digest = hashlib.md5(word.encode("utf-8")).digest()
                vector[digest[0] % EMBEDDING_DIMENSIONS] += 1.0
            norm = math.sqrt(sum(v * v for v in vector)) or 1.0
            vectors.append([v / norm for v in vector])
        return vectors
