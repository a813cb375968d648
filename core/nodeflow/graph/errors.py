"""Exception taxonomy for workflow runs.

Structural problems (validation, deadlock, cancellation) abort a run and
carry enough state to report what happened. Node-level failures are raised
by operations and recorded by the scheduler; they never abort the run.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from nodeflow.graph.context import ExecutionContext


class WorkflowError(Exception):
    """Base class for every error raised by the engine."""


class WorkflowValidationError(WorkflowError):
    """The graph failed structural validation; nothing was executed."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("Workflow validation failed: " + "; ".join(self.errors))


class SchedulingDeadlockError(WorkflowError):
    """No node became ready while some were still pending."""

    def __init__(self, context: ExecutionContext, pending: list[str]):
        self.context = context
        self.pending = list(pending)
        super().__init__("Workflow has circular dependencies or disconnected nodes")


class WorkflowCancelledError(WorkflowError):
    """The run was cancelled at a wave boundary."""

    def __init__(self, context: ExecutionContext):
        self.context = context
        super().__init__("Workflow execution cancelled")


class NodeOperationError(WorkflowError):
    """A node operation failed. Recorded against the node, not fatal to the run."""

    def __init__(self, message: str, node_id: str | None = None):
        self.node_id = node_id
        super().__init__(message)


class IterationLimitError(NodeOperationError):
    """A loop node hit its hard iteration ceiling."""

    def __init__(self, limit: int, node_id: str | None = None):
        self.limit = limit
        super().__init__(f"Loop exceeded maximum iterations ({limit})", node_id=node_id)
