from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from pathlib import Path

from devflow_orchestrator.orchestrator.config import DEFAULT_COMMIT_MESSAGE_TEMPLATE
from devflow_orchestrator.orchestrator.git import GitRepository
from devflow_orchestrator.orchestrator.instructions import InstructionSource

from .hooks import (
    HookHandler,
    HookName,
    Plugin,
    PluginHookContext,
    StartDevelopmentArgs,
)

logger = logging.getLogger(__name__)

_ACTIVE_BEHAVIORS = {"step", "phase", "end"}
_NON_PHASE_SECTIONS = ("Goal", "Key Decisions", "Notes")


def add_final_commit_task(content: str, task: str) -> str | None:
    """Insert `task` under the Tasks list of the `Commit` phase, or the last phase.

    Returns None when the plan has no phase section.
    """

    lines = content.split("\n")
    section_index = next(
        (i for i, line in enumerate(lines) if line.strip() == "## Commit"),
        None,
    )
    if section_index is None:
        for i in range(len(lines) - 1, -1, -1):
            line = lines[i]
            if line.startswith("## ") and line[3:].strip() not in _NON_PHASE_SECTIONS:
                section_index = i
                break
    if section_index is None:
        return None

    tasks_index = None
    for i in range(section_index + 1, len(lines)):
        stripped = lines[i].strip()
        if stripped.startswith("## "):
            break
        if stripped == "### Tasks":
            tasks_index = i
            break

    if tasks_index is None:
        lines[section_index + 1 : section_index + 1] = ["", "### Tasks", task]
    else:
        lines.insert(tasks_index + 1, task)
    return "\n".join(lines)


class CommitPlugin(Plugin):
    """Creates git commits around the development workflow.

    Modes (COMMIT_BEHAVIOR):
      - step: WIP commit after each transition, plus a commit reminder on every whats_next
      - phase: WIP commit after each transition
      - end: a single final commit task in the plan file
    """

    name = "CommitPlugin"
    sequence = 50

    def __init__(
        self,
        commit_behavior: str,
        *,
        message_template: str = DEFAULT_COMMIT_MESSAGE_TEMPLATE,
        repository_factory: Callable[[Path], GitRepository] = GitRepository,
    ) -> None:
        self.commit_behavior = commit_behavior
        self.message_template = message_template
        self._repository_factory = repository_factory
        self.initial_commits: dict[str, str] = {}

    def is_enabled(self) -> bool:
        return self.commit_behavior in _ACTIVE_BEHAVIORS

    def hooks(self) -> Mapping[HookName, HookHandler]:
        return {
            HookName.AFTER_START_DEVELOPMENT: self.after_start_development,
            HookName.AFTER_PHASE_TRANSITION: self.after_phase_transition,
            HookName.AFTER_PLAN_FILE_CREATED: self.after_plan_file_created,
            HookName.AFTER_INSTRUCTIONS_GENERATED: self.after_instructions_generated,
        }

    def after_start_development(
        self,
        context: PluginHookContext,
        _args: StartDevelopmentArgs,
        _result: Mapping[str, object],
    ) -> None:
        repo = self._repository_factory(context.project_path)
        head = repo.head_commit()
        if head is None:
            return
        self.initial_commits[context.conversation_id] = head
        logger.debug(
            "Stored initial commit",
            extra={"conversation_id": context.conversation_id, "commit": head},
        )

    def after_phase_transition(
        self, context: PluginHookContext, previous_phase: str, new_phase: str
    ) -> None:
        if self.commit_behavior not in {"step", "phase"}:
            return

        repo = self._repository_factory(context.project_path)
        if not repo.is_repository():
            logger.debug("Not a git repository, skipping WIP commit")
            return
        if not repo.has_uncommitted_changes():
            logger.debug("No uncommitted changes, skipping WIP commit")
            return

        repo.commit_all(f"WIP: transition to {new_phase}")
        logger.info(
            "Created WIP commit",
            extra={
                "conversation_id": context.conversation_id,
                "from_phase": previous_phase,
                "to_phase": new_phase,
            },
        )

    def after_plan_file_created(
        self, context: PluginHookContext, plan_file_path: Path, content: str
    ) -> str:
        if self.commit_behavior == "end":
            task = f"- [ ] {self.message_template}"
        else:
            task = (
                "- [ ] Squash WIP commits: `git reset --soft <first commit of this branch>`. "
                f"Then, {self.message_template}"
            )

        updated = add_final_commit_task(content, task)
        if updated is None:
            logger.warning(
                "Could not find a phase section for the final commit task",
                extra={"conversation_id": context.conversation_id, "plan_file": str(plan_file_path)},
            )
            return content
        return updated

    def after_instructions_generated(
        self, context: PluginHookContext, source: InstructionSource, instructions: str
    ) -> str:
        if self.commit_behavior != "step" or source is not InstructionSource.WHATS_NEXT:
            return instructions
        return (
            f"{instructions}\n\n"
            "**Git Commit Required:**\n"
            "Once the current step is done and tests pass, commit your work: "
            f'`git add . && git commit -m "WIP: {context.current_phase} - <short summary>"`'
        )
