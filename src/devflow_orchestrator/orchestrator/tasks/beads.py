"""Integration with the `bd` (beads) task tracker CLI."""

from __future__ import annotations

import json
import logging
import re
import subprocess
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# Current `bd` prints "✓ Created issue: proj-123"; older releases print "Created bd-a1b2".
_CREATED_ID_PATTERNS = (
    re.compile(r"✓ Created issue: ([\w-]+)"),
    re.compile(r"Created issue: ([\w-]+)"),
    re.compile(r"Created (bd-[\w.]+)"),
)


class BeadsCommandError(RuntimeError):
    pass


@dataclass(frozen=True, slots=True)
class BeadsTask:
    id: str
    title: str
    status: str


def parse_created_id(output: str) -> str | None:
    for pattern in _CREATED_ID_PATTERNS:
        match = pattern.search(output)
        if match:
            return match.group(1)
    return None


class BeadsClient:
    """Runs `bd` commands inside a project directory."""

    def __init__(self, project_path: Path, *, timeout: float = 10.0) -> None:
        self.project_path = project_path
        self.timeout = timeout

    def _run(self, *args: str) -> str:
        try:
            result = subprocess.run(
                ["bd", *args],
                cwd=self.project_path,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=True,
            )
        except FileNotFoundError as e:
            raise BeadsCommandError("bd executable not found") from e
        except subprocess.TimeoutExpired as e:
            raise BeadsCommandError(f"bd {' '.join(args)} timed out") from e
        except subprocess.CalledProcessError as e:
            raise BeadsCommandError(
                f"bd {' '.join(args)} failed: {(e.stderr or '').strip()}"
            ) from e
        return result.stdout

    def ensure_initialized(self) -> None:
        try:
            self._run("list", "--limit", "1")
        except BeadsCommandError:
            logger.info(
                "Beads not initialized, running bd init",
                extra={"project_path": str(self.project_path)},
            )
            self._run("init", "--no-db")

    def create_issue(
        self,
        title: str,
        *,
        description: str = "",
        parent: str | None = None,
        priority: int = 2,
    ) -> str:
        args = ["create", title, "--description", description, "--priority", str(priority)]
        if parent is not None:
            args.extend(["--parent", parent])
        output = self._run(*args)
        task_id = parse_created_id(output)
        if task_id is None:
            raise BeadsCommandError(f"Could not parse task id from bd output: {output.strip()!r}")
        return task_id

    def add_dependency(self, task_id: str, depends_on: str) -> None:
        self._run("dep", "add", task_id, depends_on)

    def open_children(self, parent_id: str) -> list[BeadsTask]:
        output = self._run("list", "--parent", parent_id, "--status", "open", "--json")
        try:
            raw = json.loads(output or "[]")
        except json.JSONDecodeError as e:
            raise BeadsCommandError(f"bd list returned invalid JSON: {e}") from e
        if not isinstance(raw, list):
            raise BeadsCommandError("bd list returned a non-list JSON document")

        tasks: list[BeadsTask] = []
        for item in raw:
            if not isinstance(item, dict) or "id" not in item:
                continue
            tasks.append(
                BeadsTask(
                    id=str(item["id"]),
                    title=str(item.get("title") or "Untitled task"),
                    status=str(item.get("status") or "open"),
                )
            )
        return tasks


class BeadsPhaseTask(BaseModel):
    phase_id: str
    phase_name: str
    task_id: str


class BeadsConversationState(BaseModel):
    conversation_id: str
    project_path: str
    epic_id: str
    phase_tasks: list[BeadsPhaseTask] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def task_for_phase(self, phase: str) -> str | None:
        for task in self.phase_tasks:
            if task.phase_id == phase:
                return task.task_id
        return None


class BeadsStateStore:
    """Persists beads task ids per conversation under `.vibe/`."""

    def __init__(self, project_path: Path) -> None:
        self.project_path = project_path

    def path_for(self, conversation_id: str) -> Path:
        return self.project_path / ".vibe" / f"beads-state-{conversation_id}.json"

    def load(self, conversation_id: str) -> BeadsConversationState | None:
        path = self.path_for(conversation_id)
        if not path.exists():
            return None
        return BeadsConversationState.model_validate_json(path.read_text(encoding="utf-8"))

    def save(self, state: BeadsConversationState) -> None:
        state.updated_at = datetime.now(UTC)
        path = self.path_for(state.conversation_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(state.model_dump_json(indent=2) + "\n", encoding="utf-8")
