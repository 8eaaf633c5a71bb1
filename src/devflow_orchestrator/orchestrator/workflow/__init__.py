"""Workflow graphs.

This package provides:
- Declarative, validated workflow definitions (phases + transitions)
- A loader with project-local overrides and packaged defaults
- A resolver that turns phase moves into instructions and reasons
"""

from .definition import (
    DefinitionError,
    PhaseNotFoundError,
    ReviewPerspective,
    StateDef,
    TransitionDef,
    WorkflowDefinition,
    load_definition,
    parse_definition,
)
from .loader import WorkflowLoader, WorkflowSummary
from .resolver import TransitionResolution, TransitionResolver

__all__ = [
    "DefinitionError",
    "PhaseNotFoundError",
    "ReviewPerspective",
    "StateDef",
    "TransitionDef",
    "TransitionResolution",
    "TransitionResolver",
    "WorkflowDefinition",
    "WorkflowLoader",
    "WorkflowSummary",
    "load_definition",
    "parse_definition",
]
