"""Task-management guidance strategies.

Exactly one strategy is active per process. It is chosen once, from the
resolved task backend, and injected into the instruction composer.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Protocol

from devflow_orchestrator.orchestrator.planning import capitalize_phase, read_phase_task_id


class InstructionSource(str, Enum):
    WHATS_NEXT = "whats_next"
    PROCEED_TO_PHASE = "proceed_to_phase"
    START_DEVELOPMENT = "start_development"


class TaskGuidanceStrategy(Protocol):
    """Renders the task-management block of composed instructions."""

    @property
    def tracker_label(self) -> str: ...

    def guidance(self, *, phase: str, plan_file_path: Path, source: InstructionSource) -> str: ...


class MarkdownTaskGuidance:
    """Tasks are tracked as checklists inside the plan file."""

    @property
    def tracker_label(self) -> str:
        return "the development plan"

    def guidance(self, *, phase: str, plan_file_path: Path, source: InstructionSource) -> str:
        lines = [
            "**Plan File Guidance:**",
            f"- Work on the tasks listed in the {capitalize_phase(phase)} section",
            "- Mark completed tasks with [x] as you finish them",
        ]
        if source is InstructionSource.WHATS_NEXT:
            lines.extend(
                [
                    "- Add new tasks as they are identified during your work with the user",
                    '- Update the "Key Decisions" section with important choices made',
                    "- Add relevant notes to help maintain context",
                ]
            )
        return "\n".join(lines)


class BeadsTaskGuidance:
    """Tasks are tracked with the `bd` CLI; the plan file holds context only."""

    @property
    def tracker_label(self) -> str:
        return "bd CLI tool"

    def guidance(self, *, phase: str, plan_file_path: Path, source: InstructionSource) -> str:
        lines = [
            "**Plan File Guidance:**",
            "Use the plan file as memory for the current objective",
            '- Update the "Key Decisions" section with important choices made',
            "- Add relevant notes to help maintain context",
            "- Do NOT enter tasks in the plan file, use beads CLI exclusively for task management",
        ]
        if source is not InstructionSource.WHATS_NEXT:
            return "\n".join(lines)

        lines.extend(["", "**bd Task Management:**"])
        task_id = read_phase_task_id(plan_file_path, phase)
        if task_id is None:
            lines.extend(
                [
                    "- Use bd CLI tool exclusively",
                    "- **Start by listing ready tasks**: "
                    "`bd list --parent <phase-task-id> --status open`",
                    "- **Create new tasks**: "
                    "`bd create 'Task title' --parent <phase-task-id> -p <priority>`",
                    "- **Update status when working**: `bd update <task-id> --status in_progress`",
                    "- **Complete tasks**: `bd close <task-id>`",
                    "- **Focus on ready tasks first** - let beads handle dependencies",
                    "- Add new tasks as they are identified during your work with the user",
                ]
            )
            return "\n".join(lines)

        lines.extend(
            [
                f"**Focus on subtasks of `{task_id}`**:",
                f"- `bd list --parent {task_id} --status open` - List ready work items",
                "- `bd update <task-id> --status in_progress` - Start working on a specific task",
                "- `bd close <task-id>` - Mark task complete when finished",
                "",
                "**New Tasks for Current Phase**:",
                f"- `bd create 'Task description' --parent {task_id} -p <priority>` "
                "- Create work item under current phase",
                "- `bd dep add <task-id> <depends-on-id>` - Define dependencies for a task",
            ]
        )
        return "\n".join(lines)


def guidance_for_backend(backend: str) -> TaskGuidanceStrategy:
    if backend == "beads":
        return BeadsTaskGuidance()
    return MarkdownTaskGuidance()
