"""Tests for the nodeflow command line and the bundled example workflows."""

import json
import logging
from pathlib import Path

import pytest

from nodeflow.cli import main
from nodeflow.graph.edge import load_workflow
from nodeflow.graph.validator import validate_workflow

EXAMPLES_DIR = Path(__file__).resolve().parents[2] / "examples" / "workflows"


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def write_workflow(tmp_path):
    def _write(nodes, edges, name="workflow.json"):
        path = tmp_path / name
        path.write_text(json.dumps({"name": "test", "nodes": nodes, "edges": edges}), encoding="utf-8")
        return str(path)

    return _write


def run_cli(argv, capsys):
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    captured = capsys.readouterr()
    return exc_info.value.code, captured.out, captured.err


START = {"id": "s", "kind": "start", "label": "Start", "config": {"value": "5"}}
STOP = {"id": "t", "kind": "stop", "label": "Stop"}


class TestValidateCommand:
    def test_valid(self, write_workflow, capsys):
        path = write_workflow([START, STOP], [{"id": "e", "source": "s", "target": "t"}])
        code, out, _ = run_cli(["validate", path], capsys)
        assert code == 0
        assert json.loads(out) == {"valid": True, "errors": []}

    def test_invalid(self, write_workflow, capsys):
        path = write_workflow([STOP], [])
        code, out, _ = run_cli(["validate", path], capsys)
        assert code == 1
        assert json.loads(out)["errors"] == [
            "Workflow must have at least one Start or Input node",
            'Node "Stop" is not connected',
        ]

    def test_unreadable_file(self, tmp_path, capsys):
        code, out, err = run_cli(["validate", str(tmp_path / "missing.json")], capsys)
        assert code == 1
        assert out == ""
        assert "could not load workflow" in err

    def test_malformed_node(self, write_workflow, capsys):
        path = write_workflow([{"id": "x", "kind": "teleport"}], [])
        code, _, err = run_cli(["validate", path], capsys)
        assert code == 1
        assert "could not load workflow" in err


class TestRunCommand:
    def test_mock_run_completes(self, write_workflow, capsys):
        template = {"id": "m", "kind": "template", "label": "Greet", "config": {"template": "Hi {{input}}"}}
        path = write_workflow(
            [START, template, STOP],
            [{"id": "e1", "source": "s", "target": "m"}, {"id": "e2", "source": "m", "target": "t"}],
        )

        code, out, _ = run_cli(["run", path, "--mock"], capsys)

        report = json.loads(out)
        assert code == 0
        assert report["status"] == "completed"
        assert report["results"]["t"] == "Hi 5"
        assert report["waves"] == [["s"], ["m"], ["t"]]
        assert report["nodes"]["t"]["status"] == "success"
        assert report["nodes"]["t"]["value"] == "Hi 5"

    def test_snippets_need_flag(self, write_workflow, capsys):
        transform = {"id": "x", "kind": "transform", "label": "X", "config": {"transformCode": "return input"}}
        path = write_workflow(
            [START, transform, STOP],
            [{"id": "e1", "source": "s", "target": "x"}, {"id": "e2", "source": "x", "target": "t"}],
        )

        code, out, _ = run_cli(["run", path, "--mock"], capsys)

        report = json.loads(out)
        assert code == 1
        assert report["status"] == "partial"
        assert report["errors"]["x"] == "No code evaluator configured for snippet execution"
        assert report["nodes"]["x"]["status"] == "error"

    def test_invalid_workflow(self, write_workflow, capsys):
        path = write_workflow([START], [])
        code, out, _ = run_cli(["run", path, "--mock"], capsys)
        assert code == 1
        assert json.loads(out)["valid"] is False


class TestExampleWorkflows:
    @pytest.mark.parametrize("path", sorted(EXAMPLES_DIR.glob("*.json")), ids=lambda p: p.stem)
    def test_examples_are_valid(self, path):
        workflow = load_workflow(path)
        result = validate_workflow(workflow.nodes, workflow.edges)
        assert result.valid, result.errors

    def test_double_number(self, capsys):
        path = str(EXAMPLES_DIR / "double_number.json")
        code, out, _ = run_cli(["run", path, "--mock", "--python-snippets"], capsys)
        report = json.loads(out)
        assert code == 0
        assert report["results"]["stop-1"] == "21 doubled is 42 (big: true)"

    def test_document_qa(self, capsys):
        path = str(EXAMPLES_DIR / "document_qa.json")
        code, out, _ = run_cli(["run", path, "--mock"], capsys)
        report = json.loads(out)
        assert code == 0
        answer = report["results"]["qa"]
        assert len(answer["citations"]) == 2
        assert report["nodes"]["guard"]["status"] in ("success", "warning")
