"""
Edge Protocol - How nodes connect in a workflow graph.

An edge is a directed dependency: the target consumes the source's output
and may only start once the source has reached a terminal status.

Multiple edges may enter one node (multi-input) and leave one node (fan-out).
Self-loops and duplicate edges are representable here so that documents load
as-is; the validator rejects them before a run.
"""

import json
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from nodeflow.graph.node import Node


class Edge(BaseModel):
    """
    Specification of an edge between nodes.

    Examples:
        Edge(id="e1", source="start-1", target="transform-1")

        # Handles are carried through for the editing layer; the engine ignores them
        Edge(id="e2", source="cond-1", target="stop-1", source_handle="pass")
    """

    id: str
    source: str = Field(description="Source node ID")
    target: str = Field(description="Target node ID")
    source_handle: str | None = Field(
        default=None, validation_alias=AliasChoices("sourceHandle", "source_handle")
    )
    target_handle: str | None = Field(
        default=None, validation_alias=AliasChoices("targetHandle", "target_handle")
    )

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class Workflow(BaseModel):
    """
    A graph document: the nodes and edges of one workflow.

    This is the persisted shape owned by the editing layer. The engine reads it
    at run start and never changes its membership.

        workflow = Workflow.model_validate({
            "nodes": [
                {"id": "s", "kind": "start", "label": "Start", "config": {"value": "5"}},
                {"id": "t", "kind": "stop", "label": "Stop"},
            ],
            "edges": [{"id": "e1", "source": "s", "target": "t"}],
        })
    """

    id: str | None = None
    name: str = ""
    description: str = ""
    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)

    model_config = ConfigDict(extra="allow")

    def get_node(self, node_id: str) -> Node | None:
        """Get a node by ID."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def get_incoming_edges(self, node_id: str) -> list[Edge]:
        """Get all edges entering a node, in declaration order."""
        return [e for e in self.edges if e.target == node_id]

    def get_outgoing_edges(self, node_id: str) -> list[Edge]:
        """Get all edges leaving a node, in declaration order."""
        return [e for e in self.edges if e.source == node_id]


def load_workflow(path: str | Path) -> Workflow:
    """Load a workflow document from a JSON file."""
    with open(path, encoding="utf-8-sig") as f:
        data: dict[str, Any] = json.load(f)
    return Workflow.model_validate(data)
