"""Development plan file (markdown) management.

The plan file is the agent's long-lived memory for a conversation:
- one `## <Phase>` section per workflow phase, each with a `### Tasks` list
- a `Key Decisions` and a `Notes` section

Format (simplified):
  # Development Plan: <project> (<branch> branch)
  ## Goal
  ## Requirements
  <!-- beads-phase-id: bd-12 -->   (only when the beads backend is active)
  ### Tasks
  ...
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

from devflow_orchestrator.orchestrator.workflow import WorkflowDefinition

logger = logging.getLogger(__name__)

DEFAULT_BRANCH = "default"

PHASE_ID_MARKER_PREFIX = "<!-- beads-phase-id:"
_PHASE_ID_RE = re.compile(r"beads-phase-id:\s*([\w.-]+)")

ContentTransform = Callable[[Path, str], str]


def capitalize_phase(phase: str) -> str:
    """`code_review` -> `Code Review`."""

    return " ".join(word[:1].upper() + word[1:] for word in phase.split("_"))


def plan_file_path(project_path: Path, git_branch: str) -> Path:
    vibe_dir = project_path / ".vibe"
    if git_branch == DEFAULT_BRANCH:
        return vibe_dir / "development-plan.md"
    safe_branch = re.sub(r"[^\w.-]+", "-", git_branch).strip("-") or DEFAULT_BRANCH
    return vibe_dir / f"development-plan-{safe_branch}.md"


def read_phase_task_id(plan_path: Path, phase: str) -> str | None:
    """Return the beads task id recorded under the phase's section, if any."""

    try:
        content = plan_path.read_text(encoding="utf-8")
    except OSError:
        return None

    header = f"## {capitalize_phase(phase)}"
    in_section = False
    for line in content.splitlines():
        stripped = line.strip()
        if stripped == header:
            in_section = True
            continue
        if not in_section:
            continue
        if stripped.startswith("## "):
            break
        match = _PHASE_ID_RE.search(stripped)
        if match:
            task_id = match.group(1)
            return None if task_id == "TBD" else task_id
    return None


def render_initial_plan(
    definition: WorkflowDefinition,
    *,
    project_name: str,
    git_branch: str,
    today: str | None = None,
) -> str:
    date = today or datetime.now(UTC).date().isoformat()
    branch_info = f" ({git_branch} branch)" if git_branch != DEFAULT_BRANCH else ""

    lines = [
        f"# Development Plan: {project_name}{branch_info}",
        "",
        f"*Generated on {date} by devflow-orchestrator*",
        f"*Workflow: {definition.name}*",
        "",
        "## Goal",
        "*Define what you're building or fixing - this will be updated as requirements are gathered*",
        "",
    ]
    for phase in definition.phases:
        lines.extend([f"## {capitalize_phase(phase)}", "### Tasks"])
        if phase == definition.initial_state:
            lines.append("- [ ] *Tasks will be added as work on this phase begins*")
            lines.extend(["", "### Completed", "- [x] Created development plan file"])
        else:
            lines.append("- [ ] *To be added when this phase becomes active*")
        lines.append("")

    lines.extend(
        [
            "## Key Decisions",
            "*Important decisions will be documented here as they are made*",
            "",
            "## Notes",
            "*Additional context and observations*",
            "",
            "---",
            "*This plan is maintained by the LLM. Tool responses provide guidance on which "
            "section to focus on and what tasks to work on.*",
            "",
        ]
    )
    return "\n".join(lines)


class PlanFileManager:
    """Creates and inspects development plan files.

    Content of a freshly created plan is passed through an optional transform
    (the `after_plan_file_created` hook pipeline) before it is written.
    """

    def exists(self, path: Path) -> bool:
        return path.is_file()

    def read(self, path: Path) -> str:
        return path.read_text(encoding="utf-8")

    def write(self, path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

    def ensure_plan_file(
        self,
        path: Path,
        *,
        definition: WorkflowDefinition,
        project_path: Path,
        git_branch: str,
        transform: ContentTransform | None = None,
    ) -> bool:
        """Create the plan file if missing. Returns True when a file was created."""

        if self.exists(path):
            logger.debug("Plan file already exists", extra={"plan_file": str(path)})
            return False

        content = render_initial_plan(
            definition,
            project_name=project_path.name or "project",
            git_branch=git_branch,
        )
        if transform is not None:
            content = transform(path, content)

        self.write(path, content)
        logger.info(
            "Plan file created",
            extra={"plan_file": str(path), "workflow": definition.name},
        )
        return True

    def delete(self, path: Path) -> bool:
        if not path.exists():
            return False
        path.unlink()
        return True
