"""Conversation state persistence.

A conversation is one (project, git branch) pair working through a workflow.
State is stored as JSON under the project's `.vibe/` directory so it travels
with the working tree and survives restarts.
"""

from __future__ import annotations

import hashlib
import logging
import os
import re
import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class ConversationNotFoundError(LookupError):
    def __init__(self, project_path: Path, git_branch: str) -> None:
        super().__init__(str(project_path))
        self.project_path = project_path
        self.git_branch = git_branch

    def __str__(self) -> str:
        return (
            f"No development conversation for {self.project_path} "
            f"(branch {self.git_branch!r}). Call start_development first."
        )


class ConversationState(BaseModel):
    conversation_id: str
    project_path: str
    git_branch: str
    current_phase: str
    workflow_name: str
    plan_file_path: str
    require_reviews_before_phase_transition: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


def _slug(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-") or "x"


def conversation_id_for(project_path: Path, git_branch: str) -> str:
    """Stable id for a (project, branch) pair: `<project>-<branch>-<hash6>`."""

    digest = hashlib.sha1(f"{project_path}:{git_branch}".encode()).hexdigest()[:6]
    return f"{_slug(project_path.name)}-{_slug(git_branch)}-{digest}"


class ConversationStore(Protocol):
    def get_state(self, conversation_id: str) -> ConversationState | None: ...

    def save_state(self, state: ConversationState) -> None: ...

    def delete_state(self, conversation_id: str) -> bool: ...

    def list_states(self) -> list[ConversationState]: ...


class FileConversationStore:
    """Stores one `state.json` per conversation below `<project>/.vibe/conversations/`."""

    def __init__(self, root: Path) -> None:
        self._root = root

    @classmethod
    def for_project(cls, project_path: Path) -> FileConversationStore:
        return cls(project_path / ".vibe" / "conversations")

    def _path(self, conversation_id: str) -> Path:
        return self._root / conversation_id / "state.json"

    def get_state(self, conversation_id: str) -> ConversationState | None:
        path = self._path(conversation_id)
        if not path.exists():
            return None
        return ConversationState.model_validate_json(path.read_text(encoding="utf-8"))

    def save_state(self, state: ConversationState) -> None:
        state.updated_at = datetime.now(UTC)
        path = self._path(state.conversation_id)
        path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".state-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(state.model_dump_json(indent=2) + "\n")
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.debug(
            "Conversation state saved",
            extra={"conversation_id": state.conversation_id, "phase": state.current_phase},
        )

    def delete_state(self, conversation_id: str) -> bool:
        path = self._path(conversation_id)
        if not path.exists():
            return False
        path.unlink()
        if not any(path.parent.iterdir()):
            path.parent.rmdir()
        return True

    def list_states(self) -> list[ConversationState]:
        if not self._root.is_dir():
            return []
        states: list[ConversationState] = []
        for path in sorted(self._root.glob("*/state.json")):
            states.append(ConversationState.model_validate_json(path.read_text(encoding="utf-8")))
        return states


class InMemoryConversationStore:
    def __init__(self) -> None:
        self._states: dict[str, ConversationState] = {}

    def get_state(self, conversation_id: str) -> ConversationState | None:
        state = self._states.get(conversation_id)
        return state.model_copy() if state is not None else None

    def save_state(self, state: ConversationState) -> None:
        state.updated_at = datetime.now(UTC)
        self._states[state.conversation_id] = state.model_copy()

    def delete_state(self, conversation_id: str) -> bool:
        return self._states.pop(conversation_id, None) is not None

    def list_states(self) -> list[ConversationState]:
        return list(self._states.values())
