"""
nodeflow - Execution engine for node-based AI workflows.

A workflow is a directed graph of typed nodes. The engine validates it,
then runs it wave by wave: every node whose inputs have settled runs
concurrently with its peers, and each result flows to the nodes downstream.

    from nodeflow import NodeServices, PythonSnippetEvaluator, execute_workflow, load_workflow

    workflow = load_workflow("workflow.json")
    context = await execute_workflow(
        workflow.nodes,
        workflow.edges,
        services=NodeServices(evaluator=PythonSnippetEvaluator()),
    )
    context.node_results, context.errors
"""

from nodeflow.code import CodeEvaluator, PythonSnippetEvaluator
from nodeflow.config import EngineConfig
from nodeflow.graph import (
    CancellationToken,
    Edge,
    ExecutionContext,
    IterationLimitError,
    Node,
    NodeKind,
    NodeOperationError,
    NodeStateTracker,
    NodeStatus,
    NodeUpdateSink,
    RunStatus,
    SchedulingDeadlockError,
    ValidationResult,
    Workflow,
    WorkflowCancelledError,
    WorkflowError,
    WorkflowValidationError,
    load_workflow,
    resolve_variables,
    validate_workflow,
)
from nodeflow.graph.executor import WorkflowExecutor, execute_workflow
from nodeflow.llm import LiteLLMService, MockOperationService, NodeOperationService
from nodeflow.nodes import NodeDispatcher, NodeOutput, NodeServices

__all__ = [
    # Graph model
    "Node",
    "NodeKind",
    "NodeStatus",
    "Edge",
    "Workflow",
    "load_workflow",
    # Running
    "WorkflowExecutor",
    "execute_workflow",
    "validate_workflow",
    "resolve_variables",
    "ValidationResult",
    "ExecutionContext",
    "RunStatus",
    "CancellationToken",
    "NodeUpdateSink",
    "NodeStateTracker",
    "NodeDispatcher",
    "NodeOutput",
    "NodeServices",
    "EngineConfig",
    # Capabilities
    "NodeOperationService",
    "LiteLLMService",
    "MockOperationService",
    "CodeEvaluator",
    "PythonSnippetEvaluator",
    # Errors
    "WorkflowError",
    "WorkflowValidationError",
    "SchedulingDeadlockError",
    "WorkflowCancelledError",
    "NodeOperationError",
    "IterationLimitError",
]
