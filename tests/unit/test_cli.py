"""Unit tests for the devflow CLI."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import Mock

import pytest
import uvicorn
from fastapi import FastAPI

from devflow_orchestrator.orchestrator.main import main


@pytest.fixture(autouse=True)
def cli_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Isolate the CLI from the developer's environment and `.env` file."""
    for name in ("PROJECT_PATH", "VIBE_DEFAULT_WORKFLOW", "COMMIT_BEHAVIOR", "VIBE_REQUIRE_REVIEWS"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TASK_BACKEND", "markdown")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    monkeypatch.chdir(tmp_path)

    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def _run(capsys: pytest.CaptureFixture[str], *argv: str) -> tuple[int, str, str]:
    code = main(list(argv))
    captured = capsys.readouterr()
    return code, captured.out, captured.err


def test_start_whats_next_and_proceed(project_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code, out, _ = _run(capsys, "--project", str(project_dir), "start", "--workflow", "epcc")
    assert code == 0
    started = json.loads(out)
    assert set(started) == {"conversation_id", "workflow", "phase", "instructions", "plan_file_path"}
    assert started["phase"] == "explore"

    code, out, _ = _run(capsys, "--project", str(project_dir), "whats-next")
    assert code == 0
    assert json.loads(out)["phase"] == "explore"

    code, out, _ = _run(capsys, "--project", str(project_dir), "proceed", "plan")
    assert code == 0
    proceeded = json.loads(out)
    assert proceeded["phase"] == "plan"
    assert proceeded["is_modeled_transition"] is True


def test_whats_next_without_conversation(
    project_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    code, out, err = _run(capsys, "--project", str(project_dir), "whats-next")

    assert code == 4
    assert out == ""
    assert "start_development" in err


def test_unknown_phase_exit_code(project_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _run(capsys, "--project", str(project_dir), "start", "--workflow", "minor")

    code, _, err = _run(capsys, "--project", str(project_dir), "proceed", "nonexistent")

    assert code == 2
    assert "nonexistent" in err


def test_unknown_workflow_exit_code(project_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code, _, err = _run(capsys, "--project", str(project_dir), "start", "--workflow", "nope")

    assert code == 2
    assert "Unknown workflow" in err


def test_review_gate_exit_code(project_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _run(capsys, "--project", str(project_dir), "start", "--require-reviews")
    assert _run(capsys, "--project", str(project_dir), "proceed", "design")[0] == 0

    code, _, err = _run(capsys, "--project", str(project_dir), "proceed", "implementation")
    assert code == 3
    assert "review" in err

    code, out, _ = _run(
        capsys,
        "--project",
        str(project_dir),
        "proceed",
        "implementation",
        "--review-state",
        "performed",
    )
    assert code == 0
    assert json.loads(out)["phase"] == "implementation"


def test_transitions_and_reset(project_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _run(capsys, "--project", str(project_dir), "start", "--workflow", "bugfix")

    code, out, _ = _run(capsys, "--project", str(project_dir), "transitions")
    assert code == 0
    assert all("transition_reason" in t for t in json.loads(out))

    code, out, _ = _run(capsys, "--project", str(project_dir), "reset")
    assert code == 0
    assert json.loads(out) == {"reset": True}


def test_list_workflows_and_system_prompt(capsys: pytest.CaptureFixture[str]) -> None:
    code, out, _ = _run(capsys, "list-workflows")
    assert code == 0
    assert "waterfall" in [w["name"] for w in json.loads(out)]

    code, out, _ = _run(capsys, "system-prompt")
    assert code == 0
    assert "whats_next()" in out


def test_serve_runs_rest_app_for_project(
    project_dir: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    run = Mock()
    monkeypatch.setattr(uvicorn, "run", run)

    code, out, _ = _run(capsys, "--project", str(project_dir), "serve", "--port", "9123")

    assert code == 0
    assert out == ""
    app = run.call_args.args[0]
    assert isinstance(app, FastAPI)
    assert app.state.settings.project_path == project_dir
    assert run.call_args.kwargs["host"] == "127.0.0.1"
    assert run.call_args.kwargs["port"] == 9123
