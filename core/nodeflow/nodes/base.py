"""
Node operation plumbing shared by every kind.

An operation is an async function ``(ctx) -> value | NodeOutput``. It reads
its config from ``ctx.node``, upstream values through ``ctx`` and the
resolver, and talks to the outside world only through ``ctx.services``.
It never writes results or errors itself; the scheduler does that.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeVar

import httpx

from nodeflow.code.evaluator import CodeEvaluator, evaluate
from nodeflow.config import EngineConfig
from nodeflow.graph.context import ExecutionContext
from nodeflow.graph.dependencies import upstream_ids
from nodeflow.graph.edge import Edge
from nodeflow.graph.errors import NodeOperationError
from nodeflow.graph.node import Node
from nodeflow.graph.resolver import VariableResolver, render_value
from nodeflow.llm.provider import NodeOperationService

PartialUpdate = Callable[..., Awaitable[None]]

T = TypeVar("T")


@dataclass
class NodeOutput:
    """
    An operation's result plus the extra fields to report on the node.

    Operations that only produce a value may return it directly; the
    dispatcher then reports it as ``result``.
    """

    value: Any
    fields: dict[str, Any] = field(default_factory=dict)
    warning: bool = False


@dataclass
class NodeServices:
    """External capabilities available to node operations."""

    operations: NodeOperationService | None = None
    evaluator: CodeEvaluator | None = None
    http_client: httpx.AsyncClient | None = None

    def require_operations(self) -> NodeOperationService:
        if self.operations is None:
            raise NodeOperationError("No node operation service configured")
        return self.operations


@dataclass
class NodeOperationContext:
    """Everything one node operation may read during a run."""

    node: Node
    nodes: Sequence[Node]
    edges: Sequence[Edge]
    execution: ExecutionContext
    resolver: VariableResolver
    services: NodeServices
    config: EngineConfig
    emit: PartialUpdate | None = None

    @property
    def node_id(self) -> str:
        return self.node.id

    def inputs(self) -> list[Any]:
        """Upstream results in edge declaration order, skipping absent ones."""
        results = self.execution.node_results
        return [
            results[edge.source]
            for edge in self.edges
            if edge.target == self.node.id and edge.source in results
        ]

    def failed_upstream(self) -> list[str]:
        """Direct upstream node ids whose operation recorded an error."""
        errors = self.execution.errors
        return [node_id for node_id in upstream_ids(self.node.id, self.edges) if node_id in errors]

    def merged_input(self) -> Any:
        """The single upstream value, a list of several, or None when there are none."""
        inputs = self.inputs()
        if not inputs:
            return None
        if len(inputs) == 1:
            return inputs[0]
        return inputs

    def resolve(self, template: str | None) -> str:
        return self.resolver.resolve(template or "", self.node.id)

    def resolve_raw(self, template: str | None) -> Any:
        return self.resolver.resolve_raw(template or "", self.node.id)

    async def run_snippet(
        self, source: str, input_value: Any, variables: dict[str, Any] | None = None
    ) -> Any:
        return await evaluate(self.services.evaluator, source, input_value, variables)

    async def publish(self, **fields: Any) -> None:
        """Report a partial update (streaming text, loop progress) before settlement."""
        if self.emit is not None:
            await self.emit(self.node.id, **fields)

    async def cancellable(self, awaitable: Awaitable[T], message: str = "Request cancelled") -> T:
        """Await ``awaitable`` unless the run is cancelled first."""
        token = self.execution.cancellation
        if token.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise NodeOperationError(message)
        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
        if not work.done():
            work.cancel()
            raise NodeOperationError(message)
        return work.result()


def as_text(value: Any) -> str:
    """Coerce a value to text the way templates render it."""
    if value is None:
        return ""
    return render_value(value)
