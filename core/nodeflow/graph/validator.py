"""Structural validation for workflow graphs.

Runs before any node executes. Every check contributes its errors so the
caller sees all problems at once rather than fixing them one at a time.
"""

import logging
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field

from nodeflow.graph.dependencies import build_dependency_graph
from nodeflow.graph.edge import Edge
from nodeflow.graph.node import Node

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of validating a graph."""

    valid: bool
    errors: list[str] = field(default_factory=list)

    @property
    def error(self) -> str:
        """Get combined error message."""
        return "; ".join(self.errors) if self.errors else ""


class WorkflowValidator:
    """
    Static checks on a graph:

    - at least one entry (start/input) and one terminal (stop/output) node
    - every non-entry node touches an edge
    - no cycles
    - unique node ids, edges between known nodes, no self-loops or duplicate edges
    """

    def validate(self, nodes: Sequence[Node], edges: Sequence[Edge]) -> ValidationResult:
        errors: list[str] = []
        errors.extend(self._check_required_kinds(nodes))
        errors.extend(self._check_node_ids(nodes))
        errors.extend(self._check_edges(nodes, edges))
        errors.extend(self._check_connected(nodes, edges))
        errors.extend(self._check_cycles(nodes, edges))

        if errors:
            logger.debug("Workflow validation failed with %d error(s)", len(errors))
        return ValidationResult(valid=not errors, errors=errors)

    def _check_required_kinds(self, nodes: Sequence[Node]) -> list[str]:
        errors = []
        if not any(node.is_entry for node in nodes):
            errors.append("Workflow must have at least one Start or Input node")
        if not any(node.is_terminal for node in nodes):
            errors.append("Workflow must have at least one Stop or Output node")
        return errors

    def _check_node_ids(self, nodes: Sequence[Node]) -> list[str]:
        counts = Counter(node.id for node in nodes)
        return [f"Duplicate node id '{node_id}'" for node_id, n in counts.items() if n > 1]

    def _check_edges(self, nodes: Sequence[Node], edges: Sequence[Edge]) -> list[str]:
        errors = []
        known = {node.id for node in nodes}
        seen_pairs: set[tuple[str, str]] = set()
        for edge in edges:
            for endpoint in (edge.source, edge.target):
                if endpoint not in known:
                    errors.append(f"Edge '{edge.id}' references unknown node '{endpoint}'")
            if edge.source == edge.target:
                errors.append(f"Edge '{edge.id}' connects node '{edge.source}' to itself")
            pair = (edge.source, edge.target)
            if pair in seen_pairs:
                errors.append(
                    f"Duplicate edge '{edge.id}' from '{edge.source}' to '{edge.target}'"
                )
            seen_pairs.add(pair)
        return errors

    def _check_connected(self, nodes: Sequence[Node], edges: Sequence[Edge]) -> list[str]:
        connected: set[str] = set()
        for edge in edges:
            connected.add(edge.source)
            connected.add(edge.target)
        return [
            f'Node "{node.label or node.id}" is not connected'
            for node in nodes
            if not node.is_entry and node.id not in connected
        ]

    def _check_cycles(self, nodes: Sequence[Node], edges: Sequence[Edge]) -> list[str]:
        # Self-loops are reported by _check_edges
        deps = build_dependency_graph(
            nodes, [e for e in edges if e.source != e.target]
        )
        errors: list[str] = []
        visited: set[str] = set()

        def find_cycle(node_id: str, stack: list[str]) -> list[str] | None:
            visited.add(node_id)
            stack.append(node_id)
            for dep in sorted(deps.get(node_id, ())):
                if dep in stack:
                    return stack[stack.index(dep):] + [dep]
                if dep not in visited:
                    cycle = find_cycle(dep, stack)
                    if cycle:
                        return cycle
            stack.pop()
            return None

        for node in nodes:
            if node.id in visited:
                continue
            cycle = find_cycle(node.id, [])
            if cycle:
                # Walked along dependencies, so reverse to read in edge direction
                path = " -> ".join(reversed(cycle))
                errors.append(f"Workflow contains circular dependencies: {path}")
        return errors


def validate_workflow(nodes: Sequence[Node], edges: Sequence[Edge]) -> ValidationResult:
    """Validate a graph's structure. Never raises for structural problems."""
    return WorkflowValidator().validate(nodes, edges)
