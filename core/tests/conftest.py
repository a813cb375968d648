"""Shared fixtures for nodeflow tests.

Snippets are served by ``StubEvaluator`` so tests pin exact behaviour
without running user code; model calls go to ``MockOperationService``.
"""

from collections.abc import Callable
from typing import Any

import pytest

from nodeflow import (
    Edge,
    EngineConfig,
    MockOperationService,
    Node,
    NodeServices,
    NodeStateTracker,
    WorkflowExecutor,
)
from nodeflow.graph.errors import NodeOperationError
from nodeflow.observability import clear_trace_context


class StubEvaluator:
    """Maps snippet source text to Python callables ``(input, variables) -> value``."""

    def __init__(self, handlers: dict[str, Callable[[Any, dict], Any]] | None = None):
        self.handlers = dict(handlers or {})
        self.calls: list[tuple[str, Any, dict]] = []

    def add(self, source: str, handler: Callable[[Any, dict], Any]) -> None:
        self.handlers[source.strip()] = handler

    def invoke(self, source: str, input_value: Any, variables: dict | None = None) -> Any:
        variables = variables or {}
        self.calls.append((source, input_value, variables))
        handler = self.handlers.get(source.strip())
        if handler is None:
            raise NodeOperationError(f"No stub registered for snippet: {source}")
        return handler(input_value, variables)


def _link(source: str, target: str) -> Edge:
    return Edge(id=f"{source}->{target}", source=source, target=target)


@pytest.fixture
def link():
    """Edge factory: ``link("a", "b")``."""
    return _link


@pytest.fixture(autouse=True)
def _clean_trace_context():
    yield
    clear_trace_context()


@pytest.fixture
def evaluator() -> StubEvaluator:
    return StubEvaluator()


@pytest.fixture
def mock_service() -> MockOperationService:
    return MockOperationService()


@pytest.fixture
def tracker() -> NodeStateTracker:
    return NodeStateTracker()


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig(model="mock", api_key=None, api_base=None)


@pytest.fixture
def run(evaluator, mock_service, tracker, engine_config):
    """Run a graph with the stub evaluator and mock service; returns the context."""

    async def _run(nodes, edges, validate=True, http_client=None, cancellation=None):
        executor = WorkflowExecutor(
            services=NodeServices(
                operations=mock_service, evaluator=evaluator, http_client=http_client
            ),
            config=engine_config,
        )
        return await executor.execute(
            nodes, edges, on_update=tracker, cancellation=cancellation, validate=validate
        )

    return _run


@pytest.fixture
def run_single(run):
    """Run ``Start(value) -> node -> Stop`` and return the context."""

    async def _run_single(node, value=None, **kwargs):
        nodes = [
            Node(id="start", kind="start", label="Start", config={"value": value}),
            node,
            Node(id="stop", kind="stop", label="Stop"),
        ]
        edges = [_link("start", node.id), _link(node.id, "stop")]
        return await run(nodes, edges, **kwargs)

    return _run_single
