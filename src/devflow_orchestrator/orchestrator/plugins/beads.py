from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from pathlib import Path

from devflow_orchestrator.orchestrator.planning import capitalize_phase, read_phase_task_id
from devflow_orchestrator.orchestrator.planning.plan_file import PHASE_ID_MARKER_PREFIX
from devflow_orchestrator.orchestrator.tasks import (
    BeadsClient,
    BeadsCommandError,
    BeadsConversationState,
    BeadsPhaseTask,
    BeadsStateStore,
)

from .hooks import (
    HookHandler,
    HookName,
    Plugin,
    PluginHookContext,
    StartDevelopmentArgs,
    TransitionBlockedError,
)

logger = logging.getLogger(__name__)

TBD_MARKER = f"{PHASE_ID_MARKER_PREFIX} TBD -->"


class IncompleteTasksError(TransitionBlockedError):
    """The current phase still has open beads tasks."""


def insert_phase_markers(content: str) -> str:
    """Add a TBD phase-id marker under every phase header (a `##` section with Tasks)."""

    lines = content.split("\n")
    out: list[str] = []
    for i, line in enumerate(lines):
        out.append(line)
        if not line.startswith("## "):
            continue
        following = lines[i + 1].strip() if i + 1 < len(lines) else ""
        if following == "### Tasks":
            out.append(TBD_MARKER)
    return "\n".join(out)


def fill_phase_markers(content: str, task_ids: Mapping[str, str]) -> str:
    """Replace TBD markers with task ids, keyed by the capitalized phase header."""

    lines = content.split("\n")
    current_header: str | None = None
    for i, line in enumerate(lines):
        if line.startswith("## "):
            current_header = line[3:].strip()
            continue
        if line.strip() == TBD_MARKER and current_header in task_ids:
            lines[i] = f"{PHASE_ID_MARKER_PREFIX} {task_ids[current_header]} -->"
    return "\n".join(lines)


class BeadsPlugin(Plugin):
    """Mirrors the workflow's phases as beads tasks and gates transitions on them."""

    name = "BeadsPlugin"
    sequence = 100

    def __init__(
        self,
        task_backend: str,
        *,
        client_factory: Callable[[Path], BeadsClient] = BeadsClient,
        state_store_factory: Callable[[Path], BeadsStateStore] = BeadsStateStore,
    ) -> None:
        self.task_backend = task_backend
        self._client_factory = client_factory
        self._state_store_factory = state_store_factory

    def is_enabled(self) -> bool:
        return self.task_backend == "beads"

    def hooks(self) -> Mapping[HookName, HookHandler]:
        return {
            HookName.AFTER_PLAN_FILE_CREATED: self.after_plan_file_created,
            HookName.AFTER_START_DEVELOPMENT: self.after_start_development,
            HookName.BEFORE_PHASE_TRANSITION: self.before_phase_transition,
        }

    def after_plan_file_created(
        self, _context: PluginHookContext, _plan_file_path: Path, content: str
    ) -> str:
        return insert_phase_markers(content)

    def after_start_development(
        self,
        context: PluginHookContext,
        _args: StartDevelopmentArgs,
        _result: Mapping[str, object],
    ) -> None:
        definition = context.definition
        if definition is None:
            logger.warning(
                "No workflow definition in hook context; skipping beads setup",
                extra={"conversation_id": context.conversation_id},
            )
            return

        existing = self._load_state(context)
        if existing is not None:
            # Reuse the recorded tasks; only a freshly created plan still has TBD markers.
            self._fill_plan_markers(context.plan_file_path, existing.phase_tasks)
            logger.info(
                "Beads tasks already exist for conversation; skipping setup",
                extra={"conversation_id": context.conversation_id, "epic_id": existing.epic_id},
            )
            return

        client = self._client_factory(context.project_path)
        client.ensure_initialized()

        project_name = context.project_path.name or "project"
        epic_id = client.create_issue(
            f"Development: {project_name}",
            description=(
                f"Workflow: {definition.name}. Plan file: {context.plan_file_path.name}"
            ),
            priority=1,
        )

        phase_tasks: list[BeadsPhaseTask] = []
        for phase, state in definition.states.items():
            task_id = client.create_issue(
                capitalize_phase(phase),
                description=state.description,
                parent=epic_id,
            )
            if phase_tasks:
                client.add_dependency(task_id, phase_tasks[-1].task_id)
            phase_tasks.append(
                BeadsPhaseTask(phase_id=phase, phase_name=capitalize_phase(phase), task_id=task_id)
            )

        self._fill_plan_markers(context.plan_file_path, phase_tasks)

        self._state_store_factory(context.project_path).save(
            BeadsConversationState(
                conversation_id=context.conversation_id,
                project_path=str(context.project_path),
                epic_id=epic_id,
                phase_tasks=phase_tasks,
            )
        )
        logger.info(
            "Created beads epic and phase tasks",
            extra={
                "conversation_id": context.conversation_id,
                "epic_id": epic_id,
                "phase_count": len(phase_tasks),
            },
        )

    def before_phase_transition(
        self, context: PluginHookContext, current_phase: str, target_phase: str
    ) -> None:
        task_id = self._phase_task_id(context, current_phase)
        if task_id is None:
            logger.debug(
                "No beads task for current phase; allowing transition",
                extra={"conversation_id": context.conversation_id, "phase": current_phase},
            )
            return

        try:
            open_tasks = self._client_factory(context.project_path).open_children(task_id)
        except BeadsCommandError as e:
            logger.warning(
                "Could not check beads tasks; allowing transition",
                extra={"conversation_id": context.conversation_id, "error": str(e)},
            )
            return

        if not open_tasks:
            return

        details = "\n".join(f"  - {task.id} - {task.title}" for task in open_tasks)
        raise IncompleteTasksError(
            f"Cannot proceed to {target_phase} - {len(open_tasks)} incomplete task(s) "
            f'in current phase "{current_phase}":\n\n{details}\n\n'
            "To proceed, check the in-progress tasks using:\n\n"
            f"   bd list --parent {task_id} --status open\n\n"
            "You can also defer tasks if they're no longer needed:\n"
            "   bd defer <task-id> --until tomorrow"
        )

    def _phase_task_id(self, context: PluginHookContext, phase: str) -> str | None:
        state = self._load_state(context)
        if state is not None:
            task_id = state.task_for_phase(phase)
            if task_id is not None:
                return task_id
        return read_phase_task_id(context.plan_file_path, phase)

    def _load_state(self, context: PluginHookContext) -> BeadsConversationState | None:
        try:
            return self._state_store_factory(context.project_path).load(context.conversation_id)
        except (OSError, ValueError) as e:
            logger.warning(
                "Unreadable beads state file",
                extra={"conversation_id": context.conversation_id, "error": str(e)},
            )
            return None

    @staticmethod
    def _fill_plan_markers(plan_path: Path, phase_tasks: list[BeadsPhaseTask]) -> None:
        if not plan_path.exists():
            return
        content = plan_path.read_text(encoding="utf-8")
        updated = fill_phase_markers(content, {t.phase_name: t.task_id for t in phase_tasks})
        if updated != content:
            plan_path.write_text(updated, encoding="utf-8")
