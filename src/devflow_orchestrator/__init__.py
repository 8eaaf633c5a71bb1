"""devflow orchestrator.

Guides an LLM coding agent through a phase-based development workflow:
- declarative YAML workflow graphs (phases + transitions)
- phase-specific instruction composition
- a plugin hook engine for commits and task-tracker integration
"""

__version__ = "0.1.0"

from devflow_orchestrator.orchestrator.config import OrchestratorSettings

__all__ = ["__version__", "OrchestratorSettings"]
