"""Text and structured generation kinds."""

import logging
from typing import Any

from nodeflow.graph.errors import NodeOperationError
from nodeflow.graph.node import GenerateConfig
from nodeflow.llm.stream_events import FinishEvent, StreamErrorEvent, TextDeltaEvent, TextEndEvent
from nodeflow.nodes.base import NodeOperationContext, NodeOutput, as_text

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA_NAME = "response"

GENERATION_CANCELLED = "Generation cancelled"


def build_schema(config: GenerateConfig) -> dict[str, Any] | None:
    """
    The JSON schema for structured generation.

    An explicit ``schema`` key on the config wins; otherwise one is built
    from ``schema_fields``. Returns None when neither is usable.
    """
    extra = config.model_extra or {}
    explicit = extra.get("schema") or extra.get("jsonSchema")
    if isinstance(explicit, dict) and explicit:
        return explicit

    fields = [f for f in config.schema_fields if f.name.strip()]
    if not fields:
        return None
    properties: dict[str, Any] = {}
    for f in fields:
        prop: dict[str, Any] = {"type": f.type}
        if f.description:
            prop["description"] = f.description
        properties[f.name] = prop
    return {
        "type": "object",
        "properties": properties,
        "required": [f.name for f in fields],
    }


def _prompt_for(ctx: NodeOperationContext, config: GenerateConfig) -> str:
    # An empty template means "use whatever came in"
    if config.prompt.strip():
        prompt = ctx.resolve(config.prompt)
    else:
        prompt = as_text(ctx.merged_input())
    if not prompt.strip():
        raise NodeOperationError("Prompt is required")
    return prompt


async def _stream(ctx: NodeOperationContext, config: GenerateConfig, prompt: str, system: str | None):
    service = ctx.services.require_operations()
    text = ""
    usage: dict[str, int] = {}
    async for event in service.stream_text(
        prompt,
        system_prompt=system,
        model=config.model,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
    ):
        if ctx.execution.cancellation.cancelled:
            raise NodeOperationError(GENERATION_CANCELLED)
        match event:
            case TextDeltaEvent():
                text = event.snapshot or text + event.content
                await ctx.publish(streaming_text=text)
            case TextEndEvent():
                text = event.full_text or text
            case FinishEvent():
                usage = {
                    "input_tokens": event.input_tokens,
                    "output_tokens": event.output_tokens,
                    "total_tokens": event.input_tokens + event.output_tokens,
                }
            case StreamErrorEvent():
                raise NodeOperationError(event.error or "Text generation failed")
    return text, usage


async def run_generate(ctx: NodeOperationContext, config: GenerateConfig) -> NodeOutput:
    prompt = _prompt_for(ctx, config)
    system = ctx.resolve(config.system_prompt) if config.system_prompt else None
    service = ctx.services.require_operations()

    if config.mode == "structured":
        schema = build_schema(config)
        if schema is None:
            raise NodeOperationError("Schema is required for structured data generation")
        response = await ctx.cancellable(
            service.generate_structured(
                prompt,
                schema,
                system_prompt=system,
                model=config.model,
                temperature=config.temperature,
                schema_name=config.schema_name or DEFAULT_SCHEMA_NAME,
                schema_description=config.schema_description,
            ),
            GENERATION_CANCELLED,
        )
        if response.data is None:
            raise NodeOperationError("Structured data generation failed")
        return NodeOutput(
            value=response.data, fields={"result": response.data, "usage": response.usage}
        )

    if config.stream:
        text, usage = await _stream(ctx, config, prompt, system)
        return NodeOutput(value=text, fields={"result": text, "usage": usage})

    response = await ctx.cancellable(
        service.generate_text(
            prompt,
            system_prompt=system,
            model=config.model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
        ),
        GENERATION_CANCELLED,
    )
    logger.debug(
        "Generated %d chars for %s (%d tokens)",
        len(response.content),
        ctx.node_id,
        response.input_tokens + response.output_tokens,
    )
    return NodeOutput(value=response.content, fields={"result": response.content, "usage": response.usage})
