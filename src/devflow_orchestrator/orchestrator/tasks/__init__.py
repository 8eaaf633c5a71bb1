"""Task tracker backends."""

from .backend import TaskBackend, bd_available, select_task_backend
from .beads import (
    BeadsClient,
    BeadsCommandError,
    BeadsConversationState,
    BeadsPhaseTask,
    BeadsStateStore,
    BeadsTask,
    parse_created_id,
)

__all__ = [
    "BeadsClient",
    "BeadsCommandError",
    "BeadsConversationState",
    "BeadsPhaseTask",
    "BeadsStateStore",
    "BeadsTask",
    "TaskBackend",
    "bd_available",
    "parse_created_id",
    "select_task_backend",
]
