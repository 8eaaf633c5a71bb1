"""Configuration for the workflow orchestrator.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

Values that select behaviour (task backend, commit behaviour) are resolved once
here and injected into the components that need them.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

CommitBehavior = Literal["step", "phase", "end", "none"]

DEFAULT_COMMIT_MESSAGE_TEMPLATE = (
    "Create a conventional commit. In the message, first summarize the intentions and key "
    "decisions from the development plan. Then, add a brief summary of the key changes and "
    "their side effects and dependencies"
)

_COMMIT_BEHAVIORS = {"step", "phase", "end", "none"}
_TASK_BACKENDS = {"markdown", "beads"}


class OrchestratorSettings(BaseSettings):
    """Settings for the workflow orchestrator.

    Environment variables:
    - LOG_LEVEL                (optional)
    - PROJECT_PATH             (optional)
    - VIBE_DEFAULT_WORKFLOW    (optional)
    - TASK_BACKEND             (optional, `markdown` | `beads`; unset means auto-detect)
    - COMMIT_BEHAVIOR          (optional, `step` | `phase` | `end` | `none`)
    - COMMIT_MESSAGE_TEMPLATE  (optional)
    - VIBE_REQUIRE_REVIEWS     (optional)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `OrchestratorSettings(_env_file=path_to_env)`.
    """

    log_level: str = Field(
        default="WARNING",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    project_path: Path = Field(
        default_factory=Path.cwd,
        validation_alias="PROJECT_PATH",
        description="Project directory the agent is working in",
    )

    default_workflow: str = Field(
        default="waterfall",
        validation_alias="VIBE_DEFAULT_WORKFLOW",
        description="Packaged workflow used when none is requested",
    )

    task_backend: str | None = Field(
        default=None,
        validation_alias="TASK_BACKEND",
        description="Task management backend. Unset (or invalid) means auto-detect.",
    )

    commit_behavior: CommitBehavior = Field(
        default="none",
        validation_alias="COMMIT_BEHAVIOR",
        description="When the commit plugin creates commits. Invalid values disable it.",
    )

    commit_message_template: str = Field(
        default=DEFAULT_COMMIT_MESSAGE_TEMPLATE,
        validation_alias="COMMIT_MESSAGE_TEMPLATE",
        description="Instruction used for the final commit task added to the plan file",
    )

    require_reviews: bool = Field(
        default=False,
        validation_alias="VIBE_REQUIRE_REVIEWS",
        description="Require reviews before review-gated phase transitions",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("task_backend", mode="before")
    @classmethod
    def _normalize_task_backend(cls, value: object) -> str | None:
        if not isinstance(value, str):
            return None
        normalized = value.strip().lower()
        return normalized if normalized in _TASK_BACKENDS else None

    @field_validator("commit_behavior", mode="before")
    @classmethod
    def _normalize_commit_behavior(cls, value: object) -> str:
        if not isinstance(value, str):
            return "none"
        normalized = value.strip().lower()
        return normalized if normalized in _COMMIT_BEHAVIORS else "none"
