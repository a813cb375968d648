"""Tests for the splitter and aggregator kinds and their text helpers."""

import re

import pytest

from nodeflow.graph.errors import NodeOperationError
from nodeflow.graph.node import Node
from nodeflow.nodes.text import aggregate, chunk_by_length, compile_pattern, split_text


class TestCompilePattern:
    def test_letter_flags(self):
        pattern = compile_pattern("^b", "mi")
        assert pattern.flags & re.MULTILINE
        assert pattern.flags & re.IGNORECASE
        assert pattern.findall("a\nB") == ["B"]

    def test_global_and_unicode_flags_accepted(self):
        assert compile_pattern("x", "gu").search("x")

    def test_unknown_flag(self):
        with pytest.raises(NodeOperationError, match="Invalid regular expression flag 'z'"):
            compile_pattern("x", "z")

    def test_invalid_pattern(self):
        with pytest.raises(NodeOperationError, match="Invalid regular expression"):
            compile_pattern("[", None)


class TestSplitting:
    def test_length_chunks(self):
        assert chunk_by_length("abcdefg", 3) == ["abc", "def", "g"]

    def test_length_chunks_with_overlap(self):
        assert chunk_by_length("abcdef", 4, overlap=2) == ["abcd", "cdef", "ef"]

    def test_overlap_clamped_so_chunks_advance(self):
        assert chunk_by_length("abc", 2, overlap=10) == ["ab", "bc", "c"]

    def test_empty_text(self):
        assert chunk_by_length("", 5) == []

    def test_lines_drop_blank(self):
        assert split_text("one\n\n  \ntwo\n", "lines") == ["one", "two"]

    def test_sentences(self):
        text = "First one. Second?  Third! trailing"
        assert split_text(text, "sentences") == ["First one.", "Second?", "Third!", "trailing"]

    def test_regex_split(self):
        assert split_text("a1b22c", "regex", regex_pattern=r"\d+") == ["a", "b", "c"]

    def test_regex_requires_pattern(self):
        with pytest.raises(NodeOperationError, match="Regex pattern is required"):
            split_text("abc", "regex")

    @pytest.mark.asyncio
    async def test_splitter_node(self, run_single):
        node = Node(id="n", kind="splitter", config={"strategy": "length", "chunkSize": 2})
        context = await run_single(node, value="abcde")
        assert context.node_results["n"] == ["ab", "cd", "e"]


class TestAggregate:
    def test_concat_list(self):
        assert aggregate(["a", 1, {"k": True}], "concat-text", ", ") == 'a, 1, {"k": true}'

    def test_concat_json_text(self):
        assert aggregate('["x", "y"]', "concat-text", "|") == "x|y"

    def test_concat_plain_text(self):
        assert aggregate("just text", "concat-text") == "just text"

    def test_flatten_one_level(self):
        assert aggregate([[1, 2], 3, [[4]]], "flatten-array") == [1, 2, 3, [4]]

    def test_flatten_requires_array(self):
        with pytest.raises(NodeOperationError, match="Expected an array for flatten"):
            aggregate({"a": 1}, "flatten-array")

    def test_merge_objects_later_wins(self):
        assert aggregate([{"a": 1, "b": 1}, {"b": 2}], "merge-objects") == {"a": 1, "b": 2}

    def test_merge_objects_requires_objects(self):
        with pytest.raises(NodeOperationError, match="Expected an array of objects to merge"):
            aggregate([{"a": 1}, 2], "merge-objects")

    @pytest.mark.asyncio
    async def test_aggregator_node_reads_raw_upstream(self, run_single):
        node = Node(id="n", kind="aggregator", config={"mode": "flatten-array"})
        context = await run_single(node, value=[["a"], ["b", "c"]])
        assert context.node_results["n"] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_aggregator_failure_is_node_error(self, run_single, tracker):
        node = Node(id="n", kind="aggregator", config={"mode": "merge-objects"})
        context = await run_single(node, value="plain")
        assert context.errors["n"] == "Expected an array of objects to merge"
        assert tracker.status_of("n") == "error"
