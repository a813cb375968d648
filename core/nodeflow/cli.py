"""
Command-line interface for nodeflow.

Usage:
    nodeflow validate workflow.json
    nodeflow run workflow.json --mock
    nodeflow run workflow.json --model openai/gpt-4o-mini --python-snippets

``run`` prints a JSON report (statuses, results, errors) to stdout; logs go
to stderr. The exit code is 0 only when every node succeeded.
"""

import argparse
import asyncio
import json
import sys
from typing import Any

from pydantic import ValidationError

from nodeflow.code import PythonSnippetEvaluator
from nodeflow.config import EngineConfig
from nodeflow.graph import (
    NodeStateTracker,
    RunStatus,
    SchedulingDeadlockError,
    Workflow,
    WorkflowCancelledError,
    WorkflowValidationError,
    load_workflow,
    validate_workflow,
)
from nodeflow.graph.executor import WorkflowExecutor
from nodeflow.llm import LiteLLMService, MockOperationService
from nodeflow.nodes import NodeServices
from nodeflow.observability import configure_logging


def _print_json(data: dict[str, Any]) -> None:
    print(json.dumps(data, indent=2, default=str))


def _load(path: str) -> Workflow | None:
    try:
        return load_workflow(path)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        print(f"Error: could not load workflow '{path}': {e}", file=sys.stderr)
        return None


def cmd_validate(args: argparse.Namespace) -> int:
    """Validate a workflow file's structure."""
    workflow = _load(args.file)
    if workflow is None:
        return 1
    result = validate_workflow(workflow.nodes, workflow.edges)
    _print_json({"valid": result.valid, "errors": result.errors})
    return 0 if result.valid else 1


def build_services(args: argparse.Namespace) -> tuple[NodeServices, EngineConfig]:
    config = EngineConfig(model=args.model) if args.model else EngineConfig()
    operations = MockOperationService() if args.mock else LiteLLMService(config)
    evaluator = PythonSnippetEvaluator() if args.python_snippets else None
    return NodeServices(operations=operations, evaluator=evaluator), config


def cmd_run(args: argparse.Namespace) -> int:
    """Run a workflow file and print the report."""
    configure_logging(level=args.log_level, format=args.log_format)
    workflow = _load(args.file)
    if workflow is None:
        return 1

    services, config = build_services(args)
    executor = WorkflowExecutor(services=services, config=config)
    tracker = NodeStateTracker()

    try:
        context = asyncio.run(executor.execute(workflow.nodes, workflow.edges, on_update=tracker))
    except WorkflowValidationError as e:
        _print_json({"valid": False, "errors": e.errors})
        return 1
    except (SchedulingDeadlockError, WorkflowCancelledError) as e:
        report = e.context.to_dict()
        report["error"] = str(e)
        report["nodes"] = tracker.state
        _print_json(report)
        return 1

    report = context.to_dict()
    report["nodes"] = tracker.state
    _print_json(report)
    return 0 if context.status == RunStatus.COMPLETED else 1


def register_commands(subparsers: argparse._SubParsersAction) -> None:
    validate_parser = subparsers.add_parser("validate", help="Check a workflow's structure")
    validate_parser.add_argument("file", help="Path to a workflow JSON document")
    validate_parser.set_defaults(func=cmd_validate)

    run_parser = subparsers.add_parser("run", help="Execute a workflow")
    run_parser.add_argument("file", help="Path to a workflow JSON document")
    run_parser.add_argument(
        "--mock",
        action="store_true",
        help="Use the offline mock service instead of a real model",
    )
    run_parser.add_argument("--model", default=None, help="Model for generation nodes")
    run_parser.add_argument(
        "--python-snippets",
        action="store_true",
        help="Run transform/condition/loop code as Python snippets (trusted input only)",
    )
    run_parser.add_argument("--log-level", default="WARNING", help="Log level")
    run_parser.add_argument(
        "--log-format",
        default="auto",
        choices=["auto", "human", "json"],
        help="Log output format",
    )
    run_parser.set_defaults(func=cmd_run)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="nodeflow",
        description="nodeflow - Validate and run node-based AI workflows",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    register_commands(subparsers)

    args = parser.parse_args(argv)

    if hasattr(args, "func"):
        sys.exit(args.func(args))


if __name__ == "__main__":
    main()
