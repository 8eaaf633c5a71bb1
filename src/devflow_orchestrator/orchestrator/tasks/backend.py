"""Task backend selection.

`markdown` tracks tasks as plan-file checklists. `beads` tracks them with the
`bd` CLI. Selection happens once at startup.
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Callable
from typing import Literal

logger = logging.getLogger(__name__)

TaskBackend = Literal["markdown", "beads"]


def bd_available() -> bool:
    try:
        result = subprocess.run(
            ["bd", "--version"],
            capture_output=True,
            text=True,
            timeout=5,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired):
        return False
    return result.returncode == 0


def select_task_backend(
    configured: str | None,
    probe: Callable[[], bool] = bd_available,
) -> TaskBackend:
    """Explicit configuration wins; otherwise use beads when `bd` works."""

    if configured == "beads":
        return "beads"
    if configured == "markdown":
        return "markdown"

    if probe():
        logger.info("Auto-detected beads task backend", extra={"reason": "bd command found"})
        return "beads"
    logger.debug("Using markdown task backend", extra={"reason": "bd command not available"})
    return "markdown"
