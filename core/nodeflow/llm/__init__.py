"""Node operation services: the model backends behind generation and retrieval nodes."""

from nodeflow.llm.litellm import LiteLLMService
from nodeflow.llm.mock import MockOperationService
from nodeflow.llm.provider import LLMResponse, NodeOperationService
from nodeflow.llm.stream_events import (
    FinishEvent,
    StreamErrorEvent,
    StreamEvent,
    TextDeltaEvent,
    TextEndEvent,
)

__all__ = [
    "NodeOperationService",
    "LLMResponse",
    "LiteLLMService",
    "MockOperationService",
    "StreamEvent",
    "TextDeltaEvent",
    "TextEndEvent",
    "FinishEvent",
    "StreamErrorEvent",
]
