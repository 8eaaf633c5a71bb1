from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from .definition import DefinitionError, WorkflowDefinition, load_definition

logger = logging.getLogger(__name__)

PACKAGED_WORKFLOWS_DIR = Path(__file__).resolve().parents[2] / "resources" / "workflows"

CUSTOM_WORKFLOW = "custom"


@dataclass(frozen=True, slots=True)
class WorkflowSummary:
    name: str
    description: str
    metadata: dict[str, object] = field(default_factory=dict)

    def to_json(self) -> dict[str, object]:
        return {"name": self.name, "description": self.description, "metadata": dict(self.metadata)}


def _local_candidates(project_path: Path, workflow_name: str | None) -> list[Path]:
    vibe_dir = project_path / ".vibe"
    if workflow_name is None or workflow_name == CUSTOM_WORKFLOW:
        return [vibe_dir / "workflow.yaml", vibe_dir / "workflow.yml"]
    return [
        vibe_dir / "workflows" / f"{workflow_name}.yaml",
        vibe_dir / "workflows" / f"{workflow_name}.yml",
    ]


class WorkflowLoader:
    """Load workflow definitions with project-local overrides.

    Lookup order for a (project, name) pair:
      1. `<project>/.vibe/workflows/<name>.yaml|.yml`
         (`<project>/.vibe/workflow.yaml|.yml` for `custom` or no name)
      2. the packaged definition `resources/workflows/<name>.yaml`

    A local file that exists but does not validate is skipped with a warning.
    A packaged definition that is missing or invalid is fatal.
    """

    def __init__(
        self,
        *,
        default_workflow: str = "waterfall",
        packaged_dir: Path = PACKAGED_WORKFLOWS_DIR,
    ) -> None:
        self._default_workflow = default_workflow
        self._packaged_dir = packaged_dir
        self._cache: dict[tuple[Path, str], WorkflowDefinition] = {}

    @property
    def default_workflow(self) -> str:
        return self._default_workflow

    def load(self, project_path: Path, workflow_name: str | None = None) -> WorkflowDefinition:
        project = project_path.resolve()
        requested = workflow_name or CUSTOM_WORKFLOW
        key = (project, requested)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        definition = self._load_local(project, workflow_name)
        if definition is None:
            packaged_name = self._default_workflow if requested == CUSTOM_WORKFLOW else requested
            definition = self.load_packaged(packaged_name)

        self._cache[key] = definition
        return definition

    def load_packaged(self, workflow_name: str) -> WorkflowDefinition:
        path = self._packaged_dir / f"{workflow_name}.yaml"
        if not path.is_file():
            available = ", ".join(self.packaged_names()) or "none"
            raise DefinitionError(
                f"Unknown workflow {workflow_name!r} (available: {available})"
            )
        return load_definition(path)

    def packaged_names(self) -> list[str]:
        if not self._packaged_dir.is_dir():
            return []
        return sorted(p.stem for p in self._packaged_dir.glob("*.yaml"))

    def list_workflows(self) -> list[WorkflowSummary]:
        summaries: list[WorkflowSummary] = []
        for name in self.packaged_names():
            definition = self.load_packaged(name)
            summaries.append(
                WorkflowSummary(
                    name=definition.name,
                    description=definition.description,
                    metadata=dict(definition.metadata),
                )
            )
        return sorted(summaries, key=lambda s: s.name)

    def clear_cache(self) -> None:
        self._cache.clear()

    def _load_local(self, project: Path, workflow_name: str | None) -> WorkflowDefinition | None:
        for candidate in _local_candidates(project, workflow_name):
            if not candidate.is_file():
                continue
            try:
                definition = load_definition(candidate)
            except DefinitionError as e:
                logger.warning(
                    "Skipping invalid project workflow definition",
                    extra={"path": str(candidate), "error": str(e)},
                )
                continue
            logger.info(
                "Using project workflow definition",
                extra={"path": str(candidate), "workflow": definition.name},
            )
            return definition
        return None
