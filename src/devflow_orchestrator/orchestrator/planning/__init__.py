"""Development plan file helpers."""

from .plan_file import (
    DEFAULT_BRANCH,
    PlanFileManager,
    capitalize_phase,
    plan_file_path,
    read_phase_task_id,
    render_initial_plan,
)

__all__ = [
    "DEFAULT_BRANCH",
    "PlanFileManager",
    "capitalize_phase",
    "plan_file_path",
    "read_phase_task_id",
    "render_initial_plan",
]
