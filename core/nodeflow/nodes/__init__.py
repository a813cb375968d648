"""Node operations, one module per family of kinds."""

from nodeflow.nodes.base import NodeOperationContext, NodeOutput, NodeServices
from nodeflow.nodes.dispatcher import NodeDispatcher

__all__ = ["NodeDispatcher", "NodeOperationContext", "NodeOutput", "NodeServices"]
