"""Tests for {{variable}} resolution."""

import pytest

from nodeflow.graph.edge import Edge
from nodeflow.graph.node import Node
from nodeflow.graph.resolver import (
    VariableResolver,
    available_variables,
    render_value,
    resolve_variables,
)


@pytest.fixture
def graph(link):
    nodes = [
        Node(id="start-1", kind="start", label="Start", config={"value": "hello"}),
        Node(id="http-1", kind="http-request", label="Fetch", name="api"),
        Node(id="img-1", kind="template", label="Picture"),
        Node(id="target", kind="template", label="Target"),
    ]
    edges = [link("start-1", "target"), link("http-1", "target"), link("img-1", "target")]
    results = {
        "start-1": "hello",
        "http-1": {"status": 200, "data": {"items": [{"name": "a"}, {"name": "b"}]}},
        "img-1": {"type": "image", "data": "base64data"},
    }
    return nodes, edges, results


def resolve(template, graph, for_node="target"):
    nodes, edges, results = graph
    return resolve_variables(template, for_node, nodes, edges, results)


class TestRendering:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("text", "text"),
            (True, "true"),
            (False, "false"),
            (10.0, "10"),
            (2.5, "2.5"),
            (7, "7"),
            (None, "null"),
            ({"a": 1}, '{"a": 1}'),
            ([1, "x"], '[1, "x"]'),
        ],
    )
    def test_render_value(self, value, expected):
        assert render_value(value) == expected


class TestReferences:
    def test_input_is_first_upstream(self, graph):
        assert resolve("Say {{input}}", graph) == "Say hello"

    def test_input_without_result_stays_verbatim(self, graph):
        # The first upstream node has no result; later upstream nodes never stand in
        nodes, edges, results = graph
        results = {k: v for k, v in results.items() if k != "start-1"}
        assert resolve_variables("got={{input}}", "target", nodes, edges, results) == "got={{input}}"
        assert resolve_variables("{{input.status}}", "target", nodes, edges, results) == "{{input.status}}"

    def test_whitespace_inside_braces(self, graph):
        assert resolve("{{ input }}", graph) == "hello"

    def test_by_name_label_and_id(self, graph):
        assert resolve("{{api.status}}", graph) == "200"
        assert resolve("{{fetch.status}}", graph) == "200"
        assert resolve("{{FETCH.status}}", graph) == "200"
        assert resolve("{{http-1.status}}", graph) == "200"

    def test_id_match_is_case_sensitive(self, graph):
        assert resolve("{{HTTP-1.status}}", graph) == "{{HTTP-1.status}}"

    def test_nested_path_and_list_index(self, graph):
        assert resolve("{{api.data.items.1.name}}", graph) == "b"
        assert resolve("{{api.data.items.-1.name}}", graph) == "b"

    def test_containers_render_as_json(self, graph):
        assert resolve("{{api.data.items.0}}", graph) == '{"name": "a"}'

    def test_data_on_mapping_without_key_returns_whole_value(self, graph):
        assert resolve("{{api.result}}", graph) == render_value(graph[2]["http-1"])

    def test_string_answers_data_and_result_with_itself(self, graph):
        assert resolve("{{start.data}} {{start.result}} {{start}}", graph) == "hello hello hello"

    def test_media_value_unwraps_by_type(self, graph):
        assert resolve("{{picture.image}}", graph) == "base64data"

    def test_unresolvable_tokens_left_verbatim(self, graph):
        template = "{{missing}} {{api.nope}} {{start.nope}} {{api.data.items.9}}"
        assert resolve(template, graph) == template

    def test_no_upstream_leaves_input_verbatim(self, graph):
        assert resolve("{{input}}", graph, for_node="start-1") == "{{input}}"

    def test_node_without_result_is_not_a_candidate(self, graph):
        assert resolve("{{target}}", graph) == "{{target}}"

    def test_resolution_is_idempotent(self, graph):
        template = "{{input}} / {{api.data.items}} / {{picture.image}}"
        assert resolve(template, graph) == resolve(template, graph)


class TestAliasPrecedence:
    def test_name_beats_label(self, link):
        nodes = [
            Node(id="a", kind="start", label="Shared", config={"value": "from-label"}),
            Node(id="b", kind="start", label="Shared", name="shared", config={"value": "from-name"}),
            Node(id="t", kind="stop", label="T"),
        ]
        results = {"a": "from-label", "b": "from-name"}
        edges = [link("a", "t"), link("b", "t")]
        assert resolve_variables("{{shared}}", "t", nodes, edges, results) == "from-name"

    def test_first_declared_wins_within_tier(self, link):
        nodes = [
            Node(id="a", kind="start", label="Same"),
            Node(id="b", kind="start", label="Same"),
            Node(id="t", kind="stop"),
        ]
        results = {"a": "first", "b": "second"}
        assert resolve_variables("{{same}}", "t", nodes, [link("a", "t")], results) == "first"

    def test_label_beats_id(self):
        nodes = [
            Node(id="x", kind="start", label="other"),
            Node(id="y", kind="start", label="x"),
            Node(id="t", kind="stop"),
        ]
        results = {"x": "by-id", "y": "by-label"}
        assert resolve_variables("{{x}}", "t", nodes, [], results) == "by-label"


class TestRawResolution:
    def test_single_token_keeps_type(self, graph):
        nodes, edges, results = graph
        resolver = VariableResolver(nodes, edges, results)
        assert resolver.resolve_raw("{{api.data.items}}", "target") == [
            {"name": "a"},
            {"name": "b"},
        ]

    def test_mixed_template_is_text(self, graph):
        nodes, edges, results = graph
        resolver = VariableResolver(nodes, edges, results)
        assert resolver.resolve_raw("n={{api.status}}", "target") == "n=200"

    def test_resolver_sees_later_results(self, graph):
        nodes, edges, _ = graph
        results = {}
        resolver = VariableResolver(nodes, edges, results)
        assert resolver.resolve("{{input}}", "target") == "{{input}}"
        results["start-1"] = "late"
        assert resolver.resolve("{{input}}", "target") == "late"


class TestAvailableVariables:
    def test_lists_transitive_upstream_and_keys(self, link):
        nodes = [
            Node(id="s", kind="start", label="Start"),
            Node(id="h", kind="http-request", label="Fetch"),
            Node(id="t", kind="stop", label="Stop"),
            Node(id="other", kind="start", label="Other"),
        ]
        edges = [link("s", "h"), link("h", "t")]
        results = {"s": "x", "h": {"status": 200}}

        found = available_variables("t", nodes, edges, results)
        names = [v.name for v in found]

        assert names == ["input", "Start", "Fetch", "Fetch.status"]
        assert found[0].value == {"status": 200}
        fetch = found[2]
        assert fetch.variable == "{{Fetch}}"
        assert fetch.type == "object"
        assert fetch.preview == "Object {status}"

    def test_pending_node_listed_as_unavailable(self, link):
        nodes = [Node(id="s", kind="start", label="Start"), Node(id="t", kind="stop")]
        found = available_variables("t", nodes, [link("s", "t")], {})
        assert found[0].node_id == "s"
        assert found[0].available is False
        assert found[1].available is False
        assert found[1].preview == "(not executed yet)"
