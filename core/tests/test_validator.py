"""Tests for structural validation and the dependency map."""

from nodeflow.graph.dependencies import (
    ancestors,
    build_dependency_graph,
    get_ready_nodes,
    upstream_ids,
)
from nodeflow.graph.edge import Edge
from nodeflow.graph.node import Node
from nodeflow.graph.validator import ValidationResult, validate_workflow


def _nodes(*specs):
    return [Node(id=node_id, kind=kind, label=node_id.upper()) for node_id, kind in specs]


def test_valid_linear_graph(link):
    nodes = _nodes(("s", "start"), ("m", "merge"), ("t", "stop"))
    result = validate_workflow(nodes, [link("s", "m"), link("m", "t")])
    assert result == ValidationResult(valid=True, errors=[])
    assert result.error == ""


def test_missing_entry_and_terminal():
    nodes = _nodes(("m", "merge"))
    result = validate_workflow(nodes, [])
    assert not result.valid
    assert "Workflow must have at least one Start or Input node" in result.errors
    assert "Workflow must have at least one Stop or Output node" in result.errors


def test_input_and_output_kinds_count_as_entry_and_terminal(link):
    nodes = _nodes(("i", "input"), ("o", "output"))
    assert validate_workflow(nodes, [link("i", "o")]).valid


def test_disconnected_node_reported_by_label(link):
    nodes = _nodes(("s", "start"), ("t", "stop"), ("lonely", "merge"))
    result = validate_workflow(nodes, [link("s", "t")])
    assert 'Node "LONELY" is not connected' in result.errors


def test_unconnected_entry_node_is_allowed(link):
    nodes = _nodes(("s", "start"), ("s2", "start"), ("t", "stop"))
    assert validate_workflow(nodes, [link("s", "t")]).valid


def test_cycle_reported_with_path(link):
    nodes = _nodes(("s", "start"), ("a", "merge"), ("b", "merge"), ("t", "stop"))
    edges = [link("s", "a"), link("a", "b"), link("b", "a"), link("b", "t")]
    result = validate_workflow(nodes, edges)
    cycle_errors = [e for e in result.errors if "circular" in e]
    assert len(cycle_errors) == 1
    assert "a -> b -> a" in cycle_errors[0] or "b -> a -> b" in cycle_errors[0]


def test_each_independent_cycle_reported(link):
    nodes = _nodes(
        ("s", "start"), ("a", "merge"), ("b", "merge"), ("c", "merge"), ("d", "merge"), ("t", "stop")
    )
    edges = [
        link("s", "a"),
        link("a", "b"),
        link("b", "a"),
        link("s", "c"),
        link("c", "d"),
        link("d", "c"),
        link("d", "t"),
    ]
    result = validate_workflow(nodes, edges)
    assert len([e for e in result.errors if "circular" in e]) == 2


def test_errors_accumulate():
    nodes = _nodes(("a", "merge"), ("b", "merge"))
    edges = [Edge(id="e1", source="a", target="b"), Edge(id="e2", source="b", target="a")]
    result = validate_workflow(nodes, edges)
    assert len(result.errors) >= 3
    assert "; " in result.error


def test_duplicate_ids_unknown_endpoints_self_loops_and_duplicate_edges(link):
    nodes = _nodes(("s", "start"), ("s", "start"), ("m", "merge"), ("t", "stop"))
    edges = [
        link("s", "m"),
        Edge(id="dup", source="s", target="m"),
        Edge(id="ghost", source="m", target="nowhere"),
        Edge(id="self", source="m", target="m"),
        link("m", "t"),
    ]
    errors = validate_workflow(nodes, edges).errors
    assert "Duplicate node id 's'" in errors
    assert "Duplicate edge 'dup' from 's' to 'm'" in errors
    assert "Edge 'ghost' references unknown node 'nowhere'" in errors
    assert "Edge 'self' connects node 'm' to itself" in errors


class TestDependencies:
    def test_build_dependency_graph(self, link):
        nodes = _nodes(("s", "start"), ("a", "merge"), ("t", "stop"))
        deps = build_dependency_graph(
            nodes, [link("s", "a"), link("a", "t"), link("s", "t"), link("x", "t")]
        )
        assert deps == {"s": set(), "a": {"s"}, "t": {"a", "s"}}

    def test_ready_nodes_in_declaration_order(self, link):
        nodes = _nodes(("b", "merge"), ("s", "start"), ("a", "merge"))
        deps = build_dependency_graph(nodes, [link("s", "a"), link("s", "b")])
        assert [n.id for n in get_ready_nodes(nodes, deps, set())] == ["s"]
        assert [n.id for n in get_ready_nodes(nodes, deps, {"s"})] == ["b", "a"]

    def test_upstream_ids_follow_edge_order(self, link):
        edges = [link("b", "t"), link("a", "t"), link("b", "t")]
        assert upstream_ids("t", edges) == ["b", "a"]

    def test_ancestors_are_transitive(self, link):
        nodes = _nodes(("s", "start"), ("a", "merge"), ("b", "merge"), ("t", "stop"))
        deps = build_dependency_graph(nodes, [link("s", "a"), link("a", "b"), link("b", "t")])
        assert ancestors("t", deps) == {"s", "a", "b"}
        assert ancestors("s", deps) == set()
