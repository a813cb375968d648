"""Graph model, validation, resolution and scheduling.

The executor is exported from the top-level ``nodeflow`` package; importing
it here would make the node operations a dependency of the graph model.
"""

from nodeflow.graph.context import CancellationToken, ExecutionContext, RunCache, RunStatus
from nodeflow.graph.dependencies import build_dependency_graph, get_ready_nodes
from nodeflow.graph.edge import Edge, Workflow, load_workflow
from nodeflow.graph.errors import (
    IterationLimitError,
    NodeOperationError,
    SchedulingDeadlockError,
    WorkflowCancelledError,
    WorkflowError,
    WorkflowValidationError,
)
from nodeflow.graph.node import Node, NodeKind, NodeStatus
from nodeflow.graph.resolver import VariableResolver, available_variables, resolve_variables
from nodeflow.graph.updates import NodeStateTracker, NodeUpdateSink
from nodeflow.graph.validator import ValidationResult, validate_workflow

__all__ = [
    "Node",
    "NodeKind",
    "NodeStatus",
    "Edge",
    "Workflow",
    "load_workflow",
    "ExecutionContext",
    "CancellationToken",
    "RunCache",
    "RunStatus",
    "build_dependency_graph",
    "get_ready_nodes",
    "VariableResolver",
    "resolve_variables",
    "available_variables",
    "ValidationResult",
    "validate_workflow",
    "NodeUpdateSink",
    "NodeStateTracker",
    "WorkflowError",
    "WorkflowValidationError",
    "SchedulingDeadlockError",
    "WorkflowCancelledError",
    "NodeOperationError",
    "IterationLimitError",
]
