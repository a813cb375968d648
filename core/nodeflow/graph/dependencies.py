"""Dependency map and readiness computation."""

from collections.abc import Iterable, Sequence

from nodeflow.graph.edge import Edge
from nodeflow.graph.node import Node


def build_dependency_graph(nodes: Sequence[Node], edges: Iterable[Edge]) -> dict[str, set[str]]:
    """
    Map every node id to the set of node ids it waits on.

    Edges whose endpoints are not in ``nodes`` are ignored.
    """
    deps: dict[str, set[str]] = {node.id: set() for node in nodes}
    for edge in edges:
        if edge.target in deps and edge.source in deps:
            deps[edge.target].add(edge.source)
    return deps


def get_ready_nodes(
    nodes: Sequence[Node], deps: dict[str, set[str]], executed: set[str]
) -> list[Node]:
    """Unexecuted nodes whose dependencies have all executed, in declaration order."""
    return [
        node
        for node in nodes
        if node.id not in executed and deps.get(node.id, set()) <= executed
    ]


def upstream_ids(node_id: str, edges: Iterable[Edge]) -> list[str]:
    """Direct upstream node ids in edge declaration order, without repeats."""
    seen: list[str] = []
    for edge in edges:
        if edge.target == node_id and edge.source not in seen:
            seen.append(edge.source)
    return seen


def ancestors(node_id: str, deps: dict[str, set[str]]) -> set[str]:
    """All transitive upstream node ids."""
    found: set[str] = set()
    stack = list(deps.get(node_id, ()))
    while stack:
        current = stack.pop()
        if current in found:
            continue
        found.add(current)
        stack.extend(deps.get(current, ()))
    return found
