"""Unit tests for workflow definition validation and loading."""

from __future__ import annotations

import copy
import logging
from pathlib import Path

import pytest

from devflow_orchestrator.orchestrator.workflow import (
    DefinitionError,
    WorkflowLoader,
    load_definition,
    parse_definition,
)
from devflow_orchestrator.orchestrator.workflow.loader import PACKAGED_WORKFLOWS_DIR


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_parse_valid_definition(two_phase_raw: dict[str, object]) -> None:
    definition = parse_definition(two_phase_raw)

    assert definition.name == "two-phase"
    assert definition.initial_state == "a"
    assert definition.phases == ["a", "b"]
    assert definition.states["a"].transitions[0].trigger == "go"


def test_undeclared_initial_state_is_rejected(two_phase_raw: dict[str, object]) -> None:
    raw = copy.deepcopy(two_phase_raw)
    raw["initial_state"] = "zzz"

    with pytest.raises(DefinitionError, match="initial state"):
        parse_definition(raw)


def test_undeclared_transition_target_is_rejected(two_phase_raw: dict[str, object]) -> None:
    raw = copy.deepcopy(two_phase_raw)
    raw["states"]["a"]["transitions"][0]["to"] = "nowhere"  # type: ignore[index]

    with pytest.raises(DefinitionError, match="unknown state"):
        parse_definition(raw)


@pytest.mark.parametrize("reason", [None, "", "   "])
def test_transition_without_reason_is_rejected(
    two_phase_raw: dict[str, object], reason: str | None
) -> None:
    raw = copy.deepcopy(two_phase_raw)
    transition = raw["states"]["a"]["transitions"][0]  # type: ignore[index]
    if reason is None:
        del transition["transition_reason"]
    else:
        transition["transition_reason"] = reason

    with pytest.raises(DefinitionError):
        parse_definition(raw)


def test_blank_default_instructions_are_rejected(two_phase_raw: dict[str, object]) -> None:
    raw = copy.deepcopy(two_phase_raw)
    raw["states"]["b"]["default_instructions"] = ""  # type: ignore[index]

    with pytest.raises(DefinitionError):
        parse_definition(raw)


def test_non_mapping_document_is_rejected() -> None:
    with pytest.raises(DefinitionError, match="must be a mapping"):
        parse_definition(["not", "a", "workflow"])


def test_invalid_yaml_is_a_definition_error(tmp_path: Path) -> None:
    path = tmp_path / "broken.yaml"
    _write(path, "name: [unclosed\n")

    with pytest.raises(DefinitionError, match="not valid YAML"):
        load_definition(path)


def test_all_packaged_workflows_validate() -> None:
    loader = WorkflowLoader()

    summaries = loader.list_workflows()

    names = [s.name for s in summaries]
    assert names == sorted(names)
    assert {"waterfall", "epcc", "bugfix", "minor"} <= set(names)
    for name in names:
        definition = loader.load_packaged(name)
        assert definition.initial_state in definition.states
    assert (PACKAGED_WORKFLOWS_DIR / "waterfall.yaml").is_file()


def test_waterfall_declares_review_perspectives() -> None:
    definition = WorkflowLoader().load_packaged("waterfall")

    design = definition.states["design"]
    to_implementation = next(t for t in design.transitions if t.to == "implementation")
    assert to_implementation.review_perspectives


def test_loader_prefers_project_local_definition(
    packaged_dir: Path, project_dir: Path
) -> None:
    _write(
        project_dir / ".vibe" / "workflows" / "two-phase.yaml",
        "name: local\ndescription: Local override\ninitial_state: only\nstates:\n"
        "  only:\n    description: Only phase\n    default_instructions: Do it.\n"
        "    transitions: []\n",
    )
    loader = WorkflowLoader(default_workflow="two-phase", packaged_dir=packaged_dir)

    definition = loader.load(project_dir, "two-phase")

    assert definition.name == "local"


def test_loader_custom_uses_vibe_workflow_file(packaged_dir: Path, project_dir: Path) -> None:
    _write(
        project_dir / ".vibe" / "workflow.yml",
        "name: custom-flow\ndescription: Custom\ninitial_state: x\nstates:\n"
        "  x:\n    description: X\n    default_instructions: Do X.\n    transitions: []\n",
    )
    loader = WorkflowLoader(default_workflow="two-phase", packaged_dir=packaged_dir)

    assert loader.load(project_dir, "custom").name == "custom-flow"


def test_loader_invalid_local_file_falls_back_with_warning(
    packaged_dir: Path, project_dir: Path, caplog: pytest.LogCaptureFixture
) -> None:
    _write(project_dir / ".vibe" / "workflows" / "two-phase.yaml", "name: broken\n")
    loader = WorkflowLoader(default_workflow="two-phase", packaged_dir=packaged_dir)

    with caplog.at_level(logging.WARNING):
        definition = loader.load(project_dir, "two-phase")

    assert definition.name == "two-phase"
    assert any("Skipping invalid project workflow" in r.getMessage() for r in caplog.records)


def test_loader_custom_without_local_file_uses_default(
    packaged_dir: Path, project_dir: Path
) -> None:
    loader = WorkflowLoader(default_workflow="two-phase", packaged_dir=packaged_dir)

    assert loader.load(project_dir, None).name == "two-phase"


def test_loader_unknown_packaged_workflow_is_fatal(packaged_dir: Path, project_dir: Path) -> None:
    loader = WorkflowLoader(default_workflow="two-phase", packaged_dir=packaged_dir)

    with pytest.raises(DefinitionError, match="Unknown workflow"):
        loader.load(project_dir, "does-not-exist")


def test_loader_invalid_packaged_workflow_is_fatal(tmp_path: Path, project_dir: Path) -> None:
    packaged = tmp_path / "bad-packaged"
    _write(packaged / "bad.yaml", "name: bad\ninitial_state: nope\n")
    loader = WorkflowLoader(default_workflow="bad", packaged_dir=packaged)

    with pytest.raises(DefinitionError):
        loader.load(project_dir, "bad")
    with pytest.raises(DefinitionError):
        loader.list_workflows()


def test_loader_caches_per_project_and_name(packaged_dir: Path, project_dir: Path) -> None:
    loader = WorkflowLoader(default_workflow="two-phase", packaged_dir=packaged_dir)

    first = loader.load(project_dir, "two-phase")
    (packaged_dir / "two-phase.yaml").unlink()
    second = loader.load(project_dir, "two-phase")

    assert first is second
