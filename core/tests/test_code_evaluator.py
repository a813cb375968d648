"""Tests for snippet evaluation."""

import pytest

from nodeflow.code.evaluator import PythonSnippetEvaluator, evaluate
from nodeflow.graph.errors import NodeOperationError


@pytest.fixture
def python():
    return PythonSnippetEvaluator()


class TestPythonSnippetEvaluator:
    def test_function_body(self, python):
        assert python.invoke("return float(input) * 2", "5") == 10.0

    def test_bare_expression(self, python):
        assert python.invoke("input + 1", 1) == 2

    def test_variables_are_locals(self, python):
        code = "return input * iteration + len(results)"
        assert python.invoke(code, 2, {"iteration": 3, "results": [1, 2]}) == 8

    def test_multi_line_and_indented(self, python):
        code = """
            total = 0
            for item in input:
                total += item
            return total
        """
        assert python.invoke(code, [1, 2, 3]) == 6

    def test_json_module_available(self, python):
        assert python.invoke("return json.loads(input)['a']", '{"a": 7}') == 7

    def test_extra_globals(self):
        evaluator = PythonSnippetEvaluator(extra_globals={"double": lambda x: x * 2})
        assert evaluator.invoke("double(input)", 4) == 8

    def test_runtime_error_wrapped(self, python):
        with pytest.raises(NodeOperationError, match="Snippet raised ZeroDivisionError: division by zero"):
            python.invoke("return input / 0", 1)

    def test_restricted_builtins(self, python):
        with pytest.raises(NodeOperationError, match="Snippet raised NameError"):
            python.invoke("return open('secrets.txt')", None)

    def test_syntax_error_reports_snippet_line(self, python):
        with pytest.raises(NodeOperationError, match=r"Snippet has a syntax error: .* \(line 2\)"):
            python.invoke("x = 1\nreturn (", None)

    def test_empty_snippet(self, python):
        with pytest.raises(NodeOperationError, match="Snippet is empty"):
            python.invoke("   ", None)

    def test_invalid_variable_name(self, python):
        with pytest.raises(NodeOperationError, match="Invalid snippet variable name 'not valid'"):
            python.invoke("return input", 1, {"not valid": 1})


class TestEvaluate:
    @pytest.mark.asyncio
    async def test_no_evaluator(self):
        with pytest.raises(
            NodeOperationError, match="No code evaluator configured for snippet execution"
        ):
            await evaluate(None, "return input", 1)

    @pytest.mark.asyncio
    async def test_sync_evaluator(self, python):
        assert await evaluate(python, "return input", "x") == "x"

    @pytest.mark.asyncio
    async def test_async_evaluator(self):
        class Remote:
            async def invoke(self, source, input_value, variables=None):
                return {"source": source, "input": input_value, "variables": variables}

        result = await evaluate(Remote(), "code", 1, {"iteration": 0})
        assert result == {"source": "code", "input": 1, "variables": {"iteration": 0}}
