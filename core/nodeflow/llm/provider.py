"""Node Operation Service abstraction for pluggable model backends."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

from nodeflow.graph.errors import NodeOperationError


@dataclass
class LLMResponse:
    """Response from a generation call."""

    content: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    stop_reason: str = ""
    data: Any = None  # parsed object for structured generation
    raw_response: Any = None

    @property
    def usage(self) -> dict[str, int]:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.input_tokens + self.output_tokens,
        }


class NodeOperationService(ABC):
    """
    Abstract backend for model-driven node kinds.

    Implementations should handle:
    - API authentication
    - Request/response formatting
    - Token counting
    - Error handling (raise, the engine records the failure on the node)
    """

    @abstractmethod
    async def generate_text(
        self,
        prompt: str,
        system_prompt: str | None = None,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """
        Generate free text.

        Args:
            prompt: Fully resolved user prompt
            system_prompt: Optional system instructions
            model: Model override; None uses the service default
            temperature: Sampling temperature override
            max_tokens: Maximum tokens to generate

        Returns:
            LLMResponse with content and token usage
        """

    @abstractmethod
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
        """
        Generate an object matching a JSON schema.

        Returns:
            LLMResponse whose ``data`` holds the parsed object
        """

    async def stream_text(
        self,
        prompt: str,
        system_prompt: str | None = None,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> AsyncIterator["StreamEvent"]:
        """
        Stream a completion as an async iterator of StreamEvents.

        Default implementation wraps generate_text() with synthetic events.
        Subclasses SHOULD override for true streaming.
        """
        from nodeflow.llm.stream_events import FinishEvent, TextDeltaEvent, TextEndEvent

        response = await self.generate_text(
            prompt,
            system_prompt=system_prompt,
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        yield TextDeltaEvent(content=response.content, snapshot=response.content)
        yield TextEndEvent(full_text=response.content)
        yield FinishEvent(
            stop_reason=response.stop_reason,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
            model=response.model,
        )

    async def embed(self, texts: list[str], model: str | None = None) -> list[list[float]]:
        """Embed each text as a vector. Optional capability."""
        raise NodeOperationError(f"{type(self).__name__} does not support embeddings")


# Deferred import target for type annotation
from nodeflow.llm.stream_events import StreamEvent as StreamEvent  # noqa: E402, F401
