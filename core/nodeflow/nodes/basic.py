"""Entry, terminal and deterministic data-shaping kinds."""

from typing import Any

from nodeflow.graph.errors import NodeOperationError
from nodeflow.graph.node import (
    EntryConfig,
    MergeConfig,
    TemplateConfig,
    TransformConfig,
)
from nodeflow.nodes.base import NodeOperationContext, NodeOutput, as_text

CONCAT_SEPARATOR = "\n\n"


async def run_entry(ctx: NodeOperationContext, config: EntryConfig) -> Any:
    # The editing layer has already parsed the value for its value_type
    return config.value


async def run_terminal(ctx: NodeOperationContext) -> NodeOutput:
    # A branch whose every input failed reports the failure; partial input still settles
    failed = ctx.failed_upstream()
    if failed and not ctx.inputs():
        raise NodeOperationError(f"Upstream node failed: {', '.join(failed)}")
    value = ctx.merged_input()
    return NodeOutput(value=value, fields={"value": value})


async def run_transform(ctx: NodeOperationContext, config: TransformConfig) -> Any:
    if not config.transform_code.strip():
        raise NodeOperationError("Transform code is required")
    return await ctx.run_snippet(config.transform_code, ctx.merged_input())


def merge_values(inputs: list[Any], strategy: str) -> Any:
    """
    Combine upstream values:

    - array: the values as a list
    - concat: the values as text, separated by a blank line
    - object: ``{"input1": v1, "input2": v2, ...}``
    """
    if strategy == "array":
        return list(inputs)
    if strategy == "concat":
        return CONCAT_SEPARATOR.join(as_text(v) for v in inputs)
    return {f"input{i}": value for i, value in enumerate(inputs, start=1)}


async def run_merge(ctx: NodeOperationContext, config: MergeConfig) -> Any:
    return merge_values(ctx.inputs(), config.merge_strategy)


async def run_template(ctx: NodeOperationContext, config: TemplateConfig) -> str:
    return ctx.resolve(config.template)
