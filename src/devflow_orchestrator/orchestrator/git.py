"""Thin wrapper around the `git` CLI for a single working tree."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from devflow_orchestrator.orchestrator.planning import DEFAULT_BRANCH

logger = logging.getLogger(__name__)


class GitCommandError(RuntimeError):
    pass


class GitRepository:
    def __init__(self, path: Path) -> None:
        self.path = path

    def _run(self, *args: str) -> str:
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=self.path,
                capture_output=True,
                text=True,
                check=True,
            )
        except FileNotFoundError as e:
            raise GitCommandError("git executable not found") from e
        except subprocess.CalledProcessError as e:
            raise GitCommandError(
                f"git {' '.join(args)} failed: {(e.stderr or '').strip()}"
            ) from e
        return result.stdout.strip()

    def is_repository(self) -> bool:
        if not self.path.is_dir():
            return False
        try:
            self._run("rev-parse", "--git-dir")
        except GitCommandError:
            return False
        return True

    def current_branch(self) -> str:
        """Current branch name, or `default` outside a repository."""

        if not self.is_repository():
            return DEFAULT_BRANCH
        try:
            branch = self._run("rev-parse", "--abbrev-ref", "HEAD")
        except GitCommandError as e:
            # Fresh repositories have no HEAD commit yet.
            logger.debug("Could not resolve branch", extra={"path": str(self.path), "error": str(e)})
            return DEFAULT_BRANCH
        return branch or DEFAULT_BRANCH

    def head_commit(self) -> str | None:
        if not self.is_repository():
            return None
        try:
            return self._run("rev-parse", "HEAD") or None
        except GitCommandError:
            return None

    def has_uncommitted_changes(self) -> bool:
        if not self.is_repository():
            return False
        return bool(self._run("status", "--porcelain"))

    def commit_all(self, message: str) -> None:
        self._run("add", ".")
        self._run("commit", "-m", message)
        logger.info("Created commit", extra={"path": str(self.path), "commit_message": message})
