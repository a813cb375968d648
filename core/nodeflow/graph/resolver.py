"""
Variable Resolver - Substitutes ``{{ref}}`` tokens with upstream results.

References:
- ``{{input}}``: result of the first direct upstream node (edge order); left
  unchanged when that node has no result
- ``{{alias}}``: a node matched by name, then label (both case-insensitive), then id
- ``{{alias.path.to.value}}``: dotted access into mappings and lists

Only nodes that already have a result are candidates, so a reference to a
failed or not-yet-run node is left in the text unchanged. Resolution reads
results and never writes them; resolving the same template twice against
unchanged results gives the same string.
"""

import json
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from nodeflow.graph.dependencies import ancestors, build_dependency_graph, upstream_ids
from nodeflow.graph.edge import Edge
from nodeflow.graph.node import Node

TOKEN_PATTERN = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")

# Keys that return the whole value when the value has no such key
WHOLE_VALUE_KEYS = ("data", "result")

MEDIA_TYPES = frozenset({"image", "audio", "video"})

_MISSING = object()


def render_value(value: Any) -> str:
    """Render a result for substitution into text."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, default=str)
    return str(value)


def _is_media(value: Any) -> bool:
    return isinstance(value, Mapping) and value.get("type") in MEDIA_TYPES and "data" in value


def _step(value: Any, key: str) -> Any:
    if _is_media(value) and key == value["type"]:
        return value["data"]
    if isinstance(value, Mapping):
        if key in value:
            return value[key]
    elif isinstance(value, Sequence) and not isinstance(value, str):
        if key.lstrip("-").isdigit():
            index = int(key)
            if -len(value) <= index < len(value):
                return value[index]
    if key in WHOLE_VALUE_KEYS:
        return value
    return _MISSING


class VariableResolver:
    """
    Resolves references for nodes of one graph against a results map.

    The results map is read on every call, so one resolver can be reused
    across waves while the scheduler fills it in.
    """

    def __init__(
        self,
        nodes: Sequence[Node],
        edges: Sequence[Edge],
        results: Mapping[str, Any],
    ):
        self.nodes = nodes
        self.edges = edges
        self.results = results

    def find_node(self, alias: str) -> Node | None:
        """Node with a result matching ``alias``: name, then label, then id."""
        candidates = [n for n in self.nodes if n.id in self.results]
        folded = alias.casefold()
        for node in candidates:
            if node.name and node.name.casefold() == folded:
                return node
        for node in candidates:
            if node.label and node.label.casefold() == folded:
                return node
        for node in candidates:
            if node.id == alias:
                return node
        return None

    def input_source(self, for_node_id: str) -> str | None:
        """The first direct upstream node in edge order, whether or not it has a result."""
        sources = upstream_ids(for_node_id, self.edges)
        return sources[0] if sources else None

    def lookup(self, ref: str, for_node_id: str) -> Any:
        """Raw value for a reference, or ``_MISSING``."""
        head, _, rest = ref.partition(".")
        head = head.strip()
        if head == "input":
            source_id = self.input_source(for_node_id)
        else:
            node = self.find_node(head)
            source_id = node.id if node else None
            if source_id is None and rest:
                # Aliases may themselves contain dots ("v1.2 output")
                node = self.find_node(ref.strip())
                if node is not None:
                    return self.results[node.id]
        if source_id is None or source_id not in self.results:
            return _MISSING

        value = self.results[source_id]
        if not rest:
            return value
        for key in rest.split("."):
            value = _step(value, key.strip())
            if value is _MISSING:
                return _MISSING
        return value

    def resolve(self, template: str, for_node_id: str) -> str:
        """Substitute every resolvable token; leave the rest verbatim."""

        def replace(match: re.Match) -> str:
            value = self.lookup(match.group(1), for_node_id)
            if value is _MISSING:
                return match.group(0)
            return render_value(value)

        return TOKEN_PATTERN.sub(replace, template)

    def resolve_raw(self, template: str, for_node_id: str) -> Any:
        """
        Like ``resolve`` but keeps the value's type when the template is a
        single token, so ``"{{input}}"`` can yield a list or a mapping.
        """
        match = TOKEN_PATTERN.fullmatch(template.strip())
        if match:
            value = self.lookup(match.group(1), for_node_id)
            if value is not _MISSING:
                return value
        return self.resolve(template, for_node_id)

    def available_variables(self, for_node_id: str) -> list["VariableInfo"]:
        """Tokens a node can reference: its transitive upstream nodes and their keys."""
        deps = build_dependency_graph(self.nodes, self.edges)
        upstream = ancestors(for_node_id, deps)
        found: list[VariableInfo] = []

        if deps.get(for_node_id):
            source = self.input_source(for_node_id)
            found.append(
                VariableInfo(
                    name="input",
                    node_id=source or "",
                    value=self.results.get(source) if source else None,
                    available=source in self.results,
                )
            )

        for node in self.nodes:
            if node.id == for_node_id or node.id not in upstream:
                continue
            has_result = node.id in self.results
            value = self.results.get(node.id)
            found.append(
                VariableInfo(name=node.alias, node_id=node.id, value=value, available=has_result)
            )
            if isinstance(value, Mapping) and not _is_media(value):
                for key, item in value.items():
                    found.append(
                        VariableInfo(
                            name=f"{node.alias}.{key}",
                            node_id=node.id,
                            value=item,
                            available=True,
                        )
                    )
        return found


@dataclass
class VariableInfo:
    """A referenceable value, for editor hints."""

    name: str
    node_id: str
    value: Any = None
    available: bool = True

    @property
    def variable(self) -> str:
        return "{{" + self.name + "}}"

    @property
    def type(self) -> str:
        value = self.value
        if _is_media(value):
            return value["type"]
        if isinstance(value, bool):
            return "boolean"
        if isinstance(value, (int, float)):
            return "number"
        if isinstance(value, list):
            return "array"
        if isinstance(value, Mapping):
            return "object"
        return "text"

    @property
    def preview(self) -> str:
        if not self.available:
            return "(not executed yet)"
        kind = self.type
        if kind == "array":
            return f"Array ({len(self.value)} items)"
        if kind == "object":
            keys = list(self.value)
            more = "..." if len(keys) > 3 else ""
            return "Object {" + ", ".join(keys[:3]) + more + "}"
        if kind in MEDIA_TYPES:
            return f"{kind} data"
        text = render_value(self.value)
        return text[:100] + "..." if len(text) > 100 else text


def resolve_variables(
    template: str,
    for_node_id: str,
    nodes: Sequence[Node],
    edges: Sequence[Edge],
    results: Mapping[str, Any],
) -> str:
    """Resolve ``{{ref}}`` tokens in ``template`` on behalf of ``for_node_id``."""
    return VariableResolver(nodes, edges, results).resolve(template, for_node_id)


def available_variables(
    for_node_id: str,
    nodes: Sequence[Node],
    edges: Sequence[Edge],
    results: Mapping[str, Any],
) -> list[VariableInfo]:
    return VariableResolver(nodes, edges, results).available_variables(for_node_id)
