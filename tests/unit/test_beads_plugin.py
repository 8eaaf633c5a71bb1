from __future__ import annotations

import json
import subprocess
from pathlib import Path
from unittest.mock import Mock

import pytest

from devflow_orchestrator.orchestrator.planning import render_initial_plan
from devflow_orchestrator.orchestrator.plugins import (
    HookName,
    PluginHookContext,
    PluginRegistry,
    StartDevelopmentArgs,
    TransitionBlockedError,
)
from devflow_orchestrator.orchestrator.plugins.beads import (
    TBD_MARKER,
    BeadsPlugin,
    IncompleteTasksError,
    fill_phase_markers,
    insert_phase_markers,
)
from devflow_orchestrator.orchestrator.tasks import (
    BeadsClient,
    BeadsCommandError,
    BeadsConversationState,
    BeadsPhaseTask,
    BeadsStateStore,
    BeadsTask,
    parse_created_id,
)
from devflow_orchestrator.orchestrator.workflow import WorkflowDefinition


@pytest.fixture
def context(project_dir: Path, two_phase_definition: WorkflowDefinition) -> PluginHookContext:
    return PluginHookContext(
        conversation_id="my-project-main-abc123",
        plan_file_path=project_dir / ".vibe" / "development-plan-main.md",
        current_phase="a",
        workflow="two-phase",
        project_path=project_dir,
        git_branch="main",
        definition=two_phase_definition,
    )


def _plugin(client: Mock) -> BeadsPlugin:
    return BeadsPlugin("beads", client_factory=lambda _p: client)


@pytest.mark.parametrize(
    ("output", "expected"),
    [
        ("✓ Created issue: my-project-12\n", "my-project-12"),
        ("Created issue: proj-7", "proj-7"),
        ("Created bd-a1b2.3 (task)", "bd-a1b2.3"),
        ("nothing useful", None),
    ],
)
def test_parse_created_id(output: str, expected: str | None) -> None:
    assert parse_created_id(output) == expected


def test_enabled_only_for_beads_backend() -> None:
    assert BeadsPlugin("beads").is_enabled() is True
    assert BeadsPlugin("markdown").is_enabled() is False


def test_markers_inserted_under_phase_headers_only(
    two_phase_definition: WorkflowDefinition,
) -> None:
    content = render_initial_plan(two_phase_definition, project_name="p", git_branch="main")

    marked = insert_phase_markers(content)

    assert marked.count(TBD_MARKER) == 2
    assert f"## A\n{TBD_MARKER}\n### Tasks" in marked
    assert f"## Goal\n{TBD_MARKER}" not in marked


def test_fill_phase_markers() -> None:
    content = f"## A\n{TBD_MARKER}\n### Tasks\n## B\n{TBD_MARKER}\n### Tasks\n"

    filled = fill_phase_markers(content, {"A": "p-1", "B": "p-2"})

    assert "<!-- beads-phase-id: p-1 -->" in filled
    assert "<!-- beads-phase-id: p-2 -->" in filled
    assert TBD_MARKER not in filled


def test_start_creates_epic_and_chained_phase_tasks(
    context: PluginHookContext, two_phase_definition: WorkflowDefinition
) -> None:
    plan = context.plan_file_path
    plan.parent.mkdir(parents=True)
    plan.write_text(
        insert_phase_markers(
            render_initial_plan(two_phase_definition, project_name="p", git_branch="main")
        ),
        encoding="utf-8",
    )
    client = Mock(spec=BeadsClient)
    client.create_issue.side_effect = ["epic-1", "task-a", "task-b"]

    _plugin(client).after_start_development(
        context,
        StartDevelopmentArgs(
            workflow="two-phase",
            commit_behavior="none",
            require_reviews=False,
            project_path=context.project_path,
        ),
        {},
    )

    client.ensure_initialized.assert_called_once()
    assert client.create_issue.call_args_list[0].args == ("Development: my-project",)
    assert client.create_issue.call_args_list[1].kwargs["parent"] == "epic-1"
    client.add_dependency.assert_called_once_with("task-b", "task-a")

    content = plan.read_text(encoding="utf-8")
    assert "## A\n<!-- beads-phase-id: task-a -->" in content
    assert "## B\n<!-- beads-phase-id: task-b -->" in content

    state = BeadsStateStore(context.project_path).load(context.conversation_id)
    assert state is not None
    assert state.epic_id == "epic-1"
    assert state.task_for_phase("b") == "task-b"


def test_restart_reuses_recorded_tasks(
    context: PluginHookContext, two_phase_definition: WorkflowDefinition
) -> None:
    plan = context.plan_file_path
    plan.parent.mkdir(parents=True)
    plan.write_text(
        insert_phase_markers(
            render_initial_plan(two_phase_definition, project_name="p", git_branch="main")
        ),
        encoding="utf-8",
    )
    store = BeadsStateStore(context.project_path)
    store.save(_state_with_task(context.conversation_id, context.project_path))
    client = Mock(spec=BeadsClient)

    _plugin(client).after_start_development(
        context,
        StartDevelopmentArgs(
            workflow="two-phase",
            commit_behavior="none",
            require_reviews=False,
            project_path=context.project_path,
        ),
        {},
    )

    client.create_issue.assert_not_called()
    assert "## A\n<!-- beads-phase-id: task-a -->" in plan.read_text(encoding="utf-8")
    state = store.load(context.conversation_id)
    assert state is not None
    assert state.epic_id == "epic-1"


def test_incomplete_tasks_block_transition(
    context: PluginHookContext, project_dir: Path
) -> None:
    plan = context.plan_file_path
    plan.parent.mkdir(parents=True)
    plan.write_text("## A\n<!-- beads-phase-id: task-a -->\n### Tasks\n", encoding="utf-8")
    client = Mock(spec=BeadsClient)
    client.open_children.return_value = [BeadsTask(id="task-a.1", title="Write tests", status="open")]

    with pytest.raises(IncompleteTasksError) as exc_info:
        _plugin(client).before_phase_transition(context, "a", "b")

    assert isinstance(exc_info.value, TransitionBlockedError)
    assert "Cannot proceed to b - 1 incomplete task(s)" in str(exc_info.value)
    assert "task-a.1 - Write tests" in str(exc_info.value)
    client.open_children.assert_called_once_with("task-a")


def test_transition_allowed_when_tasks_done_or_unknown(context: PluginHookContext) -> None:
    client = Mock(spec=BeadsClient)
    client.open_children.return_value = []
    plugin = _plugin(client)

    # No phase task recorded anywhere: nothing to check.
    plugin.before_phase_transition(context, "a", "b")
    client.open_children.assert_not_called()

    BeadsStateStore(context.project_path).save(
        _state_with_task(context.conversation_id, context.project_path)
    )
    plugin.before_phase_transition(context, "a", "b")
    client.open_children.assert_called_once_with("task-a")


def test_beads_failure_allows_transition(context: PluginHookContext) -> None:
    BeadsStateStore(context.project_path).save(
        _state_with_task(context.conversation_id, context.project_path)
    )
    client = Mock(spec=BeadsClient)
    client.open_children.side_effect = BeadsCommandError("bd not found")

    _plugin(client).before_phase_transition(context, "a", "b")


def test_gate_through_registry_propagates(context: PluginHookContext) -> None:
    BeadsStateStore(context.project_path).save(
        _state_with_task(context.conversation_id, context.project_path)
    )
    client = Mock(spec=BeadsClient)
    client.open_children.return_value = [BeadsTask(id="x", title="t", status="open")]
    registry = PluginRegistry()
    registry.register(_plugin(client))

    with pytest.raises(IncompleteTasksError):
        registry.execute_hook(HookName.BEFORE_PHASE_TRANSITION, context, "a", "b")


def test_client_open_children_parses_json(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    run = Mock(
        return_value=subprocess.CompletedProcess(
            args=[], returncode=0, stdout=json.dumps([{"id": "t-1", "title": "Do it"}, {"x": 1}])
        )
    )
    monkeypatch.setattr(subprocess, "run", run)

    tasks = BeadsClient(tmp_path).open_children("phase-1")

    assert tasks == [BeadsTask(id="t-1", title="Do it", status="open")]
    assert run.call_args.args[0] == ["bd", "list", "--parent", "phase-1", "--status", "open", "--json"]


def test_client_wraps_command_failures(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        subprocess,
        "run",
        Mock(side_effect=subprocess.CalledProcessError(1, ["bd"], stderr="no db")),
    )

    with pytest.raises(BeadsCommandError, match="no db"):
        BeadsClient(tmp_path).create_issue("Title")


def _state_with_task(conversation_id: str, project_path: Path) -> BeadsConversationState:
    return BeadsConversationState(
        conversation_id=conversation_id,
        project_path=str(project_path),
        epic_id="epic-1",
        phase_tasks=[BeadsPhaseTask(phase_id="a", phase_name="A", task_id="task-a")],
    )
