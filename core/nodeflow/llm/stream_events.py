"""Stream event types for streaming text generation.

A discriminated union of frozen dataclasses. Generation nodes consume these
to publish partial ``streaming_text`` updates before the final result.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class TextDeltaEvent:
    """A chunk of generated text."""

    type: Literal["text_delta"] = "text_delta"
    content: str = ""  # this chunk's text
    snapshot: str = ""  # accumulated text so far


@dataclass(frozen=True)
class TextEndEvent:
    """Signals that text generation is complete."""

    type: Literal["text_end"] = "text_end"
    full_text: str = ""


@dataclass(frozen=True)
class FinishEvent:
    """The model has finished generating."""

    type: Literal["finish"] = "finish"
    stop_reason: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    model: str = ""


@dataclass(frozen=True)
class StreamErrorEvent:
    """An error occurred during streaming."""

    type: Literal["error"] = "error"
    error: str = ""
    recoverable: bool = False


StreamEvent = TextDeltaEvent | TextEndEvent | FinishEvent | StreamErrorEvent
