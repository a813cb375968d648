"""Cache kind: get/set against the run-scoped cache."""

from typing import Any

from nodeflow.graph.node import CacheConfig
from nodeflow.nodes.base import NodeOperationContext, NodeOutput


async def run_cache(ctx: NodeOperationContext, config: CacheConfig) -> NodeOutput:
    """
    ``get`` returns the cached value for the resolved key, or None on a miss.
    With ``write_if_miss`` a miss stores the resolved value template first.
    ``set`` stores the resolved value template and reports whether the key
    already existed.
    """
    cache = ctx.execution.cache
    key = ctx.resolve(config.key_template or "{{input}}")
    value: Any = None

    if config.operation == "set":
        hit = key in cache
        value = ctx.resolve(config.value_template)
        cache.set(key, value)
    else:
        hit, value = cache.get(key)
        if not hit and config.write_if_miss and config.value_template:
            value = ctx.resolve(config.value_template)
            cache.set(key, value)

    return NodeOutput(value=value, fields={"result": value, "value": value, "hit": hit})
