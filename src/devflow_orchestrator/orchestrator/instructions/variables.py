"""Placeholder substitution for phase instructions.

Workflow instructions may reference project artifacts through placeholder
tokens (e.g. `$ARCHITECTURE_DOC`). They are replaced with concrete paths
before the instructions are handed to the agent.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from pathlib import Path

ARCHITECTURE_DOC = "$ARCHITECTURE_DOC"
REQUIREMENTS_DOC = "$REQUIREMENTS_DOC"
DESIGN_DOC = "$DESIGN_DOC"
VIBE_DIR = "$VIBE_DIR"
BRANCH_NAME = "$BRANCH_NAME"


def project_doc_substitutions(project_path: Path, git_branch: str) -> dict[str, str]:
    vibe_dir = project_path / ".vibe"
    docs_dir = vibe_dir / "docs"
    return {
        ARCHITECTURE_DOC: str(docs_dir / "architecture.md"),
        REQUIREMENTS_DOC: str(docs_dir / "requirements.md"),
        DESIGN_DOC: str(docs_dir / "design.md"),
        VIBE_DIR: str(vibe_dir),
        BRANCH_NAME: git_branch,
    }


def substitute_variables(text: str, substitutions: Mapping[str, str]) -> str:
    """Replace every occurrence of every token with its literal value."""

    result = text
    for token, value in substitutions.items():
        # Function replacement keeps backslashes in paths from being read as escapes.
        result = re.sub(re.escape(token), lambda _m, v=value: v, result)
    return result
