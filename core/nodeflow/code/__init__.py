"""Snippet evaluation for transform, condition and loop nodes."""

from nodeflow.code.evaluator import CodeEvaluator, PythonSnippetEvaluator, evaluate

__all__ = ["CodeEvaluator", "PythonSnippetEvaluator", "evaluate"]
