"""Plugin hook vocabulary.

Plugins extend the orchestrator only through named lifecycle hooks. Each hook
name carries a declared dispatch policy:

- GATING: the first failing handler aborts dispatch; its error reaches the caller
- SIDE_EFFECT: failures are logged and the remaining handlers still run
- TRANSFORM: handlers form a pipeline over the hook's last argument

Plugins never receive core components. They get an immutable
`PluginHookContext` snapshot plus the hook's arguments.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from devflow_orchestrator.orchestrator.workflow import WorkflowDefinition


class HookPolicy(str, Enum):
    GATING = "gating"
    SIDE_EFFECT = "side_effect"
    TRANSFORM = "transform"


class HookName(str, Enum):
    BEFORE_START_DEVELOPMENT = "before_start_development"
    AFTER_START_DEVELOPMENT = "after_start_development"
    BEFORE_PHASE_TRANSITION = "before_phase_transition"
    AFTER_PHASE_TRANSITION = "after_phase_transition"
    AFTER_PLAN_FILE_CREATED = "after_plan_file_created"
    AFTER_INSTRUCTIONS_GENERATED = "after_instructions_generated"

    @property
    def policy(self) -> HookPolicy:
        return HOOK_POLICIES[self]


HOOK_POLICIES: dict[HookName, HookPolicy] = {
    HookName.BEFORE_START_DEVELOPMENT: HookPolicy.GATING,
    HookName.AFTER_START_DEVELOPMENT: HookPolicy.SIDE_EFFECT,
    HookName.BEFORE_PHASE_TRANSITION: HookPolicy.GATING,
    HookName.AFTER_PHASE_TRANSITION: HookPolicy.SIDE_EFFECT,
    HookName.AFTER_PLAN_FILE_CREATED: HookPolicy.TRANSFORM,
    HookName.AFTER_INSTRUCTIONS_GENERATED: HookPolicy.TRANSFORM,
}


class TransitionBlockedError(RuntimeError):
    """Raised by gating hooks to refuse a start or a phase transition."""


@dataclass(frozen=True, slots=True)
class PluginHookContext:
    """Read-only snapshot handed to every hook handler."""

    conversation_id: str
    plan_file_path: Path
    current_phase: str
    workflow: str
    project_path: Path
    git_branch: str
    target_phase: str | None = None
    # Only populated for the start-development hooks.
    definition: WorkflowDefinition | None = None


@dataclass(frozen=True, slots=True)
class StartDevelopmentArgs:
    workflow: str
    commit_behavior: str
    require_reviews: bool
    project_path: Path


HookHandler = Callable[..., Any]


class Plugin(ABC):
    """A named, ordered bundle of hook handlers.

    `hooks()` returns a partial map: a plugin only lists the hooks it handles.
    `is_enabled()` is consulted on every dispatch.
    """

    name: str
    sequence: int

    def is_enabled(self) -> bool:
        return True

    @abstractmethod
    def hooks(self) -> Mapping[HookName, HookHandler]:
        raise NotImplementedError
