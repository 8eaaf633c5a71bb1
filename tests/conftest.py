"""Test configuration and fixtures."""

from pathlib import Path

import pytest

from devflow_orchestrator.orchestrator.conductor import ConversationOrchestrator
from devflow_orchestrator.orchestrator.conversation import InMemoryConversationStore
from devflow_orchestrator.orchestrator.instructions import (
    InstructionComposer,
    MarkdownTaskGuidance,
)
from devflow_orchestrator.orchestrator.plugins import PluginRegistry
from devflow_orchestrator.orchestrator.workflow import WorkflowDefinition, WorkflowLoader

TWO_PHASE_WORKFLOW = """\
name: two-phase
description: Minimal workflow used in tests
initial_state: a
states:
  a:
    description: First phase
    default_instructions: Work on A.
    transitions:
      - trigger: go
        to: b
        transition_reason: ready
      - trigger: again
        to: a
        transition_reason: keep going
        additional_instructions: Stay focused on A.
  b:
    description: Second phase
    default_instructions: Work on B.
    transitions:
      - trigger: back
        to: a
        transition_reason: rework needed
        instructions: Revisit A with fresh eyes.
"""


@pytest.fixture
def two_phase_raw() -> dict[str, object]:
    """Provide a fresh raw (already parsed) two-phase workflow document."""
    return {
        "name": "two-phase",
        "description": "Minimal workflow used in tests",
        "initial_state": "a",
        "states": {
            "a": {
                "description": "First phase",
                "default_instructions": "Work on A.",
                "transitions": [{"trigger": "go", "to": "b", "transition_reason": "ready"}],
            },
            "b": {
                "description": "Second phase",
                "default_instructions": "Work on B.",
                "transitions": [],
            },
        },
    }


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Provide an empty project directory (not a git repository)."""
    project = tmp_path / "my-project"
    project.mkdir()
    return project


@pytest.fixture
def two_phase_definition(two_phase_raw: dict[str, object]) -> WorkflowDefinition:
    """Provide the two-phase (a -> b) workflow definition."""
    return WorkflowDefinition.model_validate(two_phase_raw)


@pytest.fixture
def packaged_dir(tmp_path: Path) -> Path:
    """Provide a packaged-workflows directory holding the two-phase workflow."""
    directory = tmp_path / "packaged"
    directory.mkdir()
    (directory / "two-phase.yaml").write_text(TWO_PHASE_WORKFLOW, encoding="utf-8")
    return directory


@pytest.fixture
def registry() -> PluginRegistry:
    """Provide an empty plugin registry."""
    return PluginRegistry()


@pytest.fixture
def store() -> InMemoryConversationStore:
    """Provide an in-memory conversation store."""
    return InMemoryConversationStore()


@pytest.fixture
def orchestrator(
    packaged_dir: Path, registry: PluginRegistry, store: InMemoryConversationStore
) -> ConversationOrchestrator:
    """Provide an orchestrator on the two-phase workflow with markdown guidance."""
    return ConversationOrchestrator(
        loader=WorkflowLoader(default_workflow="two-phase", packaged_dir=packaged_dir),
        composer=InstructionComposer(MarkdownTaskGuidance()),
        registry=registry,
        store_factory=lambda _project: store,
        branch_detector=lambda _project: "main",
    )
