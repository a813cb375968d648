"""
Workflow Executor - Runs a graph wave by wave.

Each iteration collects every node whose dependencies have all settled
(the ready set), runs them concurrently, waits for all of them, and
records each outcome before looking for the next ready set. A node that
fails is recorded as an error; its dependents still run and simply see
no value for that input.
"""

import asyncio
import logging
import time
from collections.abc import Sequence

from nodeflow.config import EngineConfig
from nodeflow.graph.context import CancellationToken, ExecutionContext, RunStatus
from nodeflow.graph.dependencies import build_dependency_graph, get_ready_nodes
from nodeflow.graph.edge import Edge
from nodeflow.graph.errors import (
    SchedulingDeadlockError,
    WorkflowCancelledError,
    WorkflowValidationError,
)
from nodeflow.graph.node import Node, NodeStatus
from nodeflow.graph.resolver import VariableResolver
from nodeflow.graph.updates import NodeUpdateSink, UpdateCallback, UpdateDispatcher
from nodeflow.graph.validator import ValidationResult, WorkflowValidator
from nodeflow.nodes.base import NodeOperationContext, NodeOutput, NodeServices
from nodeflow.nodes.dispatcher import NodeDispatcher
from nodeflow.observability import reset_trace_context, set_trace_context


class WorkflowExecutor:
    """
    Executes workflow graphs.

    Usage:
        executor = WorkflowExecutor(
            services=NodeServices(operations=LiteLLMService(), evaluator=PythonSnippetEvaluator()),
        )
        context = await executor.execute(workflow.nodes, workflow.edges, on_update=tracker)
    """

    def __init__(
        self,
        services: NodeServices | None = None,
        config: EngineConfig | None = None,
        dispatcher: NodeDispatcher | None = None,
    ):
        self.services = services or NodeServices()
        self.config = config or EngineConfig()
        self.dispatcher = dispatcher or NodeDispatcher()
        self.validator = WorkflowValidator()
        self.logger = logging.getLogger(__name__)

    def validate(self, nodes: Sequence[Node], edges: Sequence[Edge]) -> ValidationResult:
        return self.validator.validate(nodes, edges)

    async def execute(
        self,
        nodes: Sequence[Node],
        edges: Sequence[Edge],
        on_update: NodeUpdateSink | UpdateCallback | None = None,
        cancellation: CancellationToken | None = None,
        validate: bool = True,
    ) -> ExecutionContext:
        """
        Run every node once, respecting edge order.

        Args:
            nodes: Nodes in declaration order (ties in the ready set follow it)
            edges: Edges in declaration order (``{{input}}`` follows it)
            on_update: Sink for status transitions and result fields
            cancellation: Token checked before each wave
            validate: Run structural validation first

        Returns:
            The ExecutionContext with every node's result or error

        Raises:
            WorkflowValidationError: The graph is structurally invalid
            SchedulingDeadlockError: No node could become ready
            WorkflowCancelledError: The token fired between waves
        """
        nodes = list(nodes)
        edges = list(edges)

        if validate:
            validation = self.validate(nodes, edges)
            if not validation.valid:
                self.logger.error("❌ Workflow validation failed:")
                for err in validation.errors:
                    self.logger.error(f"   • {err}")
                raise WorkflowValidationError(validation.errors)

        context = ExecutionContext(cancellation=cancellation or CancellationToken())
        updates = UpdateDispatcher(on_update)

        token = set_trace_context(run_id=context.run_id)
        try:
            return await self._run_waves(nodes, edges, context, updates)
        finally:
            reset_trace_context(token)

    async def _run_waves(
        self,
        nodes: list[Node],
        edges: list[Edge],
        context: ExecutionContext,
        updates: UpdateDispatcher,
    ) -> ExecutionContext:
        resolver = VariableResolver(nodes, edges, context.node_results)
        dependencies = build_dependency_graph(nodes, edges)
        executed: set[str] = set()

        self.logger.info(f"🚀 Starting workflow run ({len(nodes)} nodes, {len(edges)} edges)")

        await updates.update_many(
            {
                node.id: {"status": NodeStatus.IDLE, "error": None, "execution_time_ms": None}
                for node in nodes
            }
        )

        while len(executed) < len(nodes):
            if context.cancellation.cancelled:
                self.logger.warning(f"⏹ Cancelled before wave {len(context.waves) + 1}")
                context.finish(RunStatus.CANCELLED)
                raise WorkflowCancelledError(context)

            ready = get_ready_nodes(nodes, dependencies, executed)
            if not ready:
                pending = [node.id for node in nodes if node.id not in executed]
                self.logger.error(f"❌ No runnable nodes, still pending: {pending}")
                context.finish(RunStatus.FAILED)
                raise SchedulingDeadlockError(context, pending)

            wave = len(context.waves) + 1
            context.waves.append([node.id for node in ready])
            set_trace_context(wave=wave)
            self.logger.info(f"▶ Wave {wave}: {', '.join(node.alias for node in ready)}")

            outcomes = await asyncio.gather(
                *(self._run_node(node, nodes, edges, context, resolver, updates) for node in ready),
                return_exceptions=True,
            )

            # Single writer: outcomes are recorded only here, after the whole wave settled
            for node, outcome in zip(ready, outcomes):
                if isinstance(outcome, NodeOutput):
                    context.record_result(node.id, outcome.value)
                elif isinstance(outcome, Exception):
                    context.record_error(node.id, _error_message(outcome))
                else:
                    raise outcome
                executed.add(node.id)

        context.finish()
        self.logger.info(
            f"✓ Workflow run {context.status}: {len(context.node_results)} succeeded, "
            f"{len(context.errors)} failed in {context.duration_ms}ms"
        )
        return context

    async def _run_node(
        self,
        node: Node,
        nodes: list[Node],
        edges: list[Edge],
        context: ExecutionContext,
        resolver: VariableResolver,
        updates: UpdateDispatcher,
    ) -> NodeOutput:
        """Run one node and report its transitions. Re-raises the node's error."""
        # Runs inside its own task, so this only affects this node's logs
        set_trace_context(node_id=node.id)
        start = time.perf_counter()

        ctx = NodeOperationContext(
            node=node,
            nodes=nodes,
            edges=edges,
            execution=context,
            resolver=resolver,
            services=self.services,
            config=self.config,
            emit=updates.update,
        )
        try:
            # A sink failure here still ends in an error update below
            await updates.update(node.id, status=NodeStatus.RUNNING)
            output = await self.dispatcher.execute(ctx)
        except Exception as e:
            elapsed = _elapsed_ms(start)
            self.logger.error(
                f"✗ {node.alias} ({node.kind}) failed: {_error_message(e)}",
                extra={"node_kind": str(node.kind), "latency_ms": elapsed, "status": "error"},
            )
            await updates.update(
                node.id,
                status=NodeStatus.ERROR,
                error=_error_message(e),
                execution_time_ms=elapsed,
            )
            raise

        elapsed = _elapsed_ms(start)
        status = NodeStatus.WARNING if output.warning else NodeStatus.SUCCESS
        self.logger.info(
            f"✓ {node.alias} ({node.kind}) {status} in {elapsed}ms",
            extra={"node_kind": str(node.kind), "latency_ms": elapsed, "status": str(status)},
        )
        await updates.update(
            node.id, **output.fields, status=status, execution_time_ms=elapsed
        )
        return output


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _error_message(error: BaseException) -> str:
    return str(error) or type(error).__name__


async def execute_workflow(
    nodes: Sequence[Node],
    edges: Sequence[Edge],
    on_update: NodeUpdateSink | UpdateCallback | None = None,
    cancellation: CancellationToken | None = None,
    services: NodeServices | None = None,
    config: EngineConfig | None = None,
) -> ExecutionContext:
    """Validate then run a graph. Raises WorkflowValidationError on an invalid graph."""
    executor = WorkflowExecutor(services=services, config=config)
    return await executor.execute(nodes, edges, on_update=on_update, cancellation=cancellation)
