"""Splitter and aggregator kinds, plus text helpers shared with other kinds."""

import json
import re
from typing import Any

from nodeflow.graph.errors import NodeOperationError
from nodeflow.graph.node import AggregatorConfig, SplitterConfig
from nodeflow.nodes.base import NodeOperationContext, as_text

# Flags accepted in regexFlags. "g" and "u" are implied by Python's re.
REGEX_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
    "g": 0,
    "u": 0,
}

SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")


def compile_pattern(pattern: str, flags: str | None = None) -> re.Pattern:
    """Compile a user regex with letter flags; raise NodeOperationError if invalid."""
    compiled_flags = 0
    for letter in flags or "":
        if letter not in REGEX_FLAGS:
            raise NodeOperationError(f"Invalid regular expression flag '{letter}'")
        compiled_flags |= REGEX_FLAGS[letter]
    try:
        return re.compile(pattern, compiled_flags)
    except re.error as e:
        raise NodeOperationError(f"Invalid regular expression: {e}") from e


def chunk_by_length(text: str, size: int, overlap: int = 0) -> list[str]:
    """Fixed-size windows; overlap is clamped to ``size - 1`` so windows always advance."""
    size = max(1, size)
    overlap = max(0, min(size - 1, overlap))
    chunks = []
    start = 0
    while start < len(text):
        chunks.append(text[start : start + size])
        start += size - overlap
    return chunks


def split_text(
    text: str,
    strategy: str,
    chunk_size: int = 1000,
    overlap: int = 0,
    regex_pattern: str | None = None,
    regex_flags: str | None = None,
) -> list[str]:
    match strategy:
        case "length":
            return chunk_by_length(text, chunk_size, overlap)
        case "lines":
            return [line for line in text.splitlines() if line.strip()]
        case "sentences":
            return [s.strip() for s in SENTENCE_BOUNDARY.split(text) if s.strip()]
        case "regex":
            if not regex_pattern:
                raise NodeOperationError("Regex pattern is required for the regex strategy")
            pattern = compile_pattern(regex_pattern, regex_flags)
            return [part for part in pattern.split(text) if part and part.strip()]
    raise NodeOperationError(f"Unknown split strategy '{strategy}'")


async def run_splitter(ctx: NodeOperationContext, config: SplitterConfig) -> list[str]:
    text = as_text(ctx.resolve_raw(config.input))
    return split_text(
        text,
        config.strategy,
        chunk_size=config.chunk_size,
        overlap=config.overlap,
        regex_pattern=config.regex_pattern,
        regex_flags=config.regex_flags,
    )


def _parse_items(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    return value


def aggregate(items: Any, mode: str, delimiter: str = "\n") -> Any:
    parsed = _parse_items(items)
    match mode:
        case "concat-text":
            values = parsed if isinstance(parsed, list) else [as_text(items)]
            return delimiter.join(as_text(v) for v in values)
        case "flatten-array":
            if not isinstance(parsed, list):
                raise NodeOperationError("Expected an array for flatten")
            flat: list[Any] = []
            for item in parsed:
                if isinstance(item, list):
                    flat.extend(item)
                else:
                    flat.append(item)
            return flat
        case "merge-objects":
            if not isinstance(parsed, list) or not all(isinstance(i, dict) for i in parsed):
                raise NodeOperationError("Expected an array of objects to merge")
            merged: dict[str, Any] = {}
            for item in parsed:
                merged.update(item)
            return merged
    raise NodeOperationError(f"Unknown aggregator mode '{mode}'")


async def run_aggregator(ctx: NodeOperationContext, config: AggregatorConfig) -> Any:
    return aggregate(ctx.resolve_raw(config.items), config.mode, config.delimiter)
