"""Code Evaluation Capability.

Transform, condition and loop nodes carry user-written snippets. The engine
never runs them itself: it hands them to an injected ``CodeEvaluator``.
"""

import builtins
import inspect
import logging
import textwrap
from collections.abc import Awaitable
from typing import Any, Protocol, runtime_checkable

from nodeflow.graph.errors import NodeOperationError

logger = logging.getLogger(__name__)


@runtime_checkable
class CodeEvaluator(Protocol):
    """
    Runs a snippet against an input value.

    ``variables`` carries extra names a snippet may reference (a loop's
    ``iteration`` and ``results``). Implementations may be sync or async and
    raise on failure.
    """

    def invoke(
        self, source: str, input_value: Any, variables: dict[str, Any] | None = None
    ) -> Any | Awaitable[Any]: ...


async def evaluate(
    evaluator: CodeEvaluator | None,
    source: str,
    input_value: Any,
    variables: dict[str, Any] | None = None,
) -> Any:
    """Call ``evaluator`` and await the result if it is awaitable."""
    if evaluator is None:
        raise NodeOperationError("No code evaluator configured for snippet execution")
    result = evaluator.invoke(source, input_value, variables)
    if inspect.isawaitable(result):
        result = await result
    return result


SAFE_BUILTINS = (
    "abs all any bool dict enumerate filter float format int isinstance len list map max "
    "min range reversed round set sorted str sum tuple zip ValueError TypeError KeyError"
).split()


class PythonSnippetEvaluator:
    """
    Runs snippets as the body of a Python function.

    The snippet sees ``input`` plus any ``variables`` as local names and
    should ``return`` its value:

        evaluator = PythonSnippetEvaluator()
        evaluator.invoke("return float(input) * 2", "5")  # 10.0

    A snippet that is a bare expression is evaluated as-is. Builtins are
    reduced to a small whitelist, but this is not a security boundary: only
    run snippets you trust.
    """

    def __init__(self, extra_globals: dict[str, Any] | None = None):
        self._globals: dict[str, Any] = {
            "__builtins__": {name: getattr(builtins, name) for name in SAFE_BUILTINS},
            "json": __import__("json"),
            "math": __import__("math"),
            "re": __import__("re"),
        }
        if extra_globals:
            self._globals.update(extra_globals)

    def invoke(
        self, source: str, input_value: Any, variables: dict[str, Any] | None = None
    ) -> Any:
        local_names = {"input": input_value, **(variables or {})}
        for name in local_names:
            if not name.isidentifier():
                raise NodeOperationError(f"Invalid snippet variable name '{name}'")

        code = textwrap.dedent(source).strip()
        if not code:
            raise NodeOperationError("Snippet is empty")

        try:
            expression = compile(code, "<snippet>", "eval")
        except SyntaxError:
            expression = None
        if expression is not None:
            return self._run(lambda: eval(expression, dict(self._globals), local_names))

        params = ", ".join(local_names)
        body = textwrap.indent(code, "    ")
        wrapper = f"def __snippet__({params}):\n{body}\n"
        namespace = dict(self._globals)
        try:
            exec(compile(wrapper, "<snippet>", "exec"), namespace)
        except SyntaxError as e:
            # Line 1 of the wrapper is the def
            line = max((e.lineno or 1) - 1, 1)
            raise NodeOperationError(f"Snippet has a syntax error: {e.msg} (line {line})") from e
        return self._run(lambda: namespace["__snippet__"](**local_names))

    @staticmethod
    def _run(call: Any) -> Any:
        try:
            return call()
        except NodeOperationError:
            raise
        except Exception as e:
            raise NodeOperationError(f"Snippet raised {type(e).__name__}: {e}") from e
