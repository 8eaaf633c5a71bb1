"""Compose the instructions returned to the agent.

Resolver output is turned into final instructions in two steps:
1) placeholder substitution (`$ARCHITECTURE_DOC`, ...)
2) structural enhancement, always in the same order:
   header, instructions, task guidance, project context, phase context,
   plan-file note, reminders
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from devflow_orchestrator.orchestrator.planning import capitalize_phase
from devflow_orchestrator.orchestrator.workflow import WorkflowDefinition

from .guidance import InstructionSource, TaskGuidanceStrategy
from .variables import project_doc_substitutions, substitute_variables

logger = logging.getLogger(__name__)

PLAN_FILE_NOTE = "**Note**: Plan file will be created when you first update it."


@dataclass(frozen=True, slots=True)
class InstructionContext:
    phase: str
    project_path: Path
    git_branch: str
    plan_file_path: Path
    plan_file_exists: bool
    source: InstructionSource
    transition_reason: str | None = None
    is_modeled: bool = False


class InstructionComposer:
    def __init__(self, guidance: TaskGuidanceStrategy) -> None:
        self._guidance = guidance

    @property
    def guidance(self) -> TaskGuidanceStrategy:
        return self._guidance

    def compose(self, instructions: str, context: InstructionContext) -> str:
        substituted = substitute_variables(
            instructions,
            project_doc_substitutions(context.project_path, context.git_branch),
        )
        phase_title = capitalize_phase(context.phase)

        sections = [
            f'Check your plan file at `{context.plan_file_path}` and focus on the "{phase_title}" section.',
            substituted,
        ]

        task_guidance = self._guidance.guidance(
            phase=context.phase,
            plan_file_path=context.plan_file_path,
            source=context.source,
        )
        if task_guidance:
            sections.append(task_guidance)

        sections.append(
            "\n".join(
                [
                    "**Project Context:**",
                    f"- Project: {context.project_path}",
                    f"- Branch: {context.git_branch}",
                    f"- Current Phase: {context.phase}",
                ]
            )
        )

        if context.is_modeled and context.transition_reason:
            sections.append(f"**Phase Context:**\n- {context.transition_reason}")

        if not context.plan_file_exists:
            sections.append(PLAN_FILE_NOTE)

        sections.append(
            "\n".join(
                [
                    "**Important Reminders:**",
                    f"- Use ONLY {self._guidance.tracker_label} for task management - "
                    "do not use your own task management tools",
                    "- Call whats_next() after the next user message to maintain the "
                    "development workflow",
                ]
            )
        )

        composed = "\n\n".join(sections)
        logger.debug(
            "Instructions composed",
            extra={"phase": context.phase, "source": context.source.value, "length": len(composed)},
        )
        return composed


def system_prompt(definition: WorkflowDefinition) -> str:
    """Static system prompt for an agent driven by this orchestrator."""

    phases = ", ".join(capitalize_phase(p) for p in definition.phases)
    return "\n\n".join(
        [
            "You are an AI assistant that helps users develop software features "
            "using a phase-based development workflow.",
            "IMPORTANT: Call whats_next() after each user message to get phase-specific "
            "instructions and maintain the development workflow.",
            'Each tool call returns a JSON response with an "instructions" field. '
            "Follow these instructions immediately after you receive them.",
            f"The {definition.name} workflow moves through these phases: {phases}. "
            "Use proceed_to_phase() when the current phase is complete.",
            "Do not use your own task management tools. Use the development plan which "
            "you will retrieve via whats_next() for all task tracking and project management.",
        ]
    )
