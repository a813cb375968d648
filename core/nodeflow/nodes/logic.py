"""Condition and loop kinds."""

import json
import logging
import operator
from typing import Any

from nodeflow.config import MAX_LOOP_ITERATIONS
from nodeflow.graph.errors import IterationLimitError, NodeOperationError
from nodeflow.graph.node import ConditionConfig, LoopConfig
from nodeflow.nodes.base import NodeOperationContext, NodeOutput
from nodeflow.nodes.text import compile_pattern

logger = logging.getLogger(__name__)

NUMERIC_OPERATORS = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
    "==": operator.eq,
    "!=": operator.ne,
}

DEFAULT_CONDITION_CODE = "return bool(input)"


def _to_number(text: str) -> float | None:
    try:
        return float(text.strip())
    except ValueError:
        return None


async def evaluate_condition(ctx: NodeOperationContext, config: ConditionConfig) -> bool:
    text = ctx.resolve(config.input)

    match config.condition_type:
        case "length":
            low = config.min_length or 0
            return len(text) >= low and (config.max_length is None or len(text) <= config.max_length)
        case "contains":
            needle = config.contains_text or ""
            if not needle:
                return False
            if config.case_sensitive:
                return needle in text
            return needle.casefold() in text.casefold()
        case "regex":
            if not config.regex_pattern:
                return False
            return compile_pattern(config.regex_pattern, config.regex_flags).search(text) is not None
        case "numeric":
            number = _to_number(text)
            if number is None:
                return False
            return NUMERIC_OPERATORS[config.numeric_operator](number, float(config.numeric_value))
        case "custom":
            code = (config.condition_code or DEFAULT_CONDITION_CODE).strip()
            return bool(await ctx.run_snippet(code, ctx.resolve_raw(config.input)))


async def run_condition(ctx: NodeOperationContext, config: ConditionConfig) -> NodeOutput:
    met = await evaluate_condition(ctx, config)
    return NodeOutput(value=met, fields={"result": met, "condition_met": met})


def _loop_array(ctx: NodeOperationContext, config: LoopConfig) -> list[Any]:
    source = config.array if config.array is not None else ctx.merged_input()
    if isinstance(source, str):
        try:
            source = json.loads(source)
        except json.JSONDecodeError as e:
            raise NodeOperationError("Loop input is not a JSON array") from e
    if not isinstance(source, list):
        raise NodeOperationError("Loop input must be an array")
    return source


async def run_loop(ctx: NodeOperationContext, config: LoopConfig) -> NodeOutput:
    """
    Repeat an optional body snippet.

    - count: ``count`` times, each item is the iteration index
    - array: once per element of ``array`` (or the upstream value)
    - condition: while ``condition_code`` is truthy, each item is the upstream value

    Snippets see ``iteration`` and the ``results`` collected so far. Going past
    the iteration ceiling raises instead of running on.
    """
    limit = ctx.config.max_loop_iterations or MAX_LOOP_ITERATIONS
    input_value = ctx.merged_input()
    results: list[Any] = []

    async def step(iteration: int, item: Any) -> None:
        if ctx.execution.cancellation.cancelled:
            raise NodeOperationError("Loop cancelled")
        if config.body_code:
            item = await ctx.run_snippet(
                config.body_code, item, {"iteration": iteration, "results": list(results)}
            )
        results.append(item)
        await ctx.publish(current_iteration=iteration + 1)

    match config.loop_type:
        case "count":
            if config.count > limit:
                raise IterationLimitError(limit, node_id=ctx.node_id)
            for iteration in range(max(config.count, 0)):
                await step(iteration, iteration)
        case "array":
            items = _loop_array(ctx, config)
            if len(items) > limit:
                raise IterationLimitError(limit, node_id=ctx.node_id)
            for iteration, item in enumerate(items):
                await step(iteration, item)
        case "condition":
            if not config.condition_code:
                raise NodeOperationError("Condition code is required for condition loops")
            iteration = 0
            while await ctx.run_snippet(
                config.condition_code,
                input_value,
                {"iteration": iteration, "results": list(results)},
            ):
                if iteration >= limit:
                    raise IterationLimitError(limit, node_id=ctx.node_id)
                await step(iteration, input_value)
                iteration += 1

    logger.debug("Loop %s finished after %d iteration(s)", ctx.node_id, len(results))
    value = {"results": results, "iterations": len(results)}
    return NodeOutput(
        value=value,
        fields={"result": value, "results": results, "current_iteration": len(results)},
    )
