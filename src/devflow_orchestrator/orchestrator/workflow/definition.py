"""Declarative workflow definitions.

A workflow is a graph of phases (states) connected by transitions. Definitions
are written in YAML and validated all-or-nothing: a definition either satisfies
every structural rule or fails to load.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)

logger = logging.getLogger(__name__)


class DefinitionError(ValueError):
    """Raised when a workflow definition is malformed or inconsistent."""


class PhaseNotFoundError(KeyError):
    """Raised when a phase is referenced that the active workflow does not declare."""

    def __init__(self, phase: str, workflow: str) -> None:
        super().__init__(phase)
        self.phase = phase
        self.workflow = workflow

    def __str__(self) -> str:
        return f"Phase {self.phase!r} is not declared in workflow {self.workflow!r}"


def _require_text(value: str, field: str) -> str:
    if not value.strip():
        raise ValueError(f"{field} must not be empty")
    return value


class ReviewPerspective(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    perspective: str
    prompt: str


class TransitionDef(BaseModel):
    """A directed, declared move from one phase to another."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    trigger: str | None = None
    to: str
    transition_reason: str
    instructions: str | None = None
    additional_instructions: str | None = None
    review_perspectives: list[ReviewPerspective] = Field(default_factory=list)

    @field_validator("transition_reason")
    @classmethod
    def _reason_not_blank(cls, value: str) -> str:
        return _require_text(value, "transition_reason")


class StateDef(BaseModel):
    """A single phase of a workflow."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    description: str
    default_instructions: str
    transitions: list[TransitionDef]

    @field_validator("description", "default_instructions")
    @classmethod
    def _text_not_blank(cls, value: str, info: ValidationInfo) -> str:
        return _require_text(value, info.field_name or "field")


class WorkflowDefinition(BaseModel):
    """A validated workflow graph."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    description: str
    initial_state: str
    states: dict[str, StateDef]
    metadata: dict[str, object] = Field(default_factory=dict)

    @field_validator("name", "description", "initial_state")
    @classmethod
    def _text_not_blank(cls, value: str, info: ValidationInfo) -> str:
        return _require_text(value, info.field_name or "field")

    @model_validator(mode="after")
    def _check_graph(self) -> WorkflowDefinition:
        if not self.states:
            raise ValueError("workflow declares no states")
        if self.initial_state not in self.states:
            raise ValueError(f'initial state "{self.initial_state}" is not defined in states')
        for state_name, state in self.states.items():
            for transition in state.transitions:
                if transition.to not in self.states:
                    raise ValueError(
                        f'state "{state_name}" has transition to unknown state "{transition.to}"'
                    )
        return self

    @property
    def phases(self) -> list[str]:
        return list(self.states)


def parse_definition(raw: object, *, source: str = "<memory>") -> WorkflowDefinition:
    """Validate an already-parsed YAML document.

    Raises:
        DefinitionError: If the document violates any structural rule.
    """

    if not isinstance(raw, Mapping):
        raise DefinitionError(f"Workflow definition {source} must be a mapping")
    try:
        return WorkflowDefinition.model_validate(dict(raw))
    except ValidationError as e:
        raise DefinitionError(f"Invalid workflow definition {source}: {e}") from e


def load_definition(path: Path) -> WorkflowDefinition:
    """Read and validate a workflow definition from a YAML file."""

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise DefinitionError(f"Workflow definition not found: {path}") from e
    except yaml.YAMLError as e:
        raise DefinitionError(f"Workflow definition {path} is not valid YAML: {e}") from e

    definition = parse_definition(raw, source=str(path))
    logger.debug(
        "Workflow definition loaded",
        extra={"path": str(path), "workflow": definition.name, "phases": definition.phases},
    )
    return definition
