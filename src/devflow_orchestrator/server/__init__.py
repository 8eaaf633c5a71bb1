"""FastAPI server adapter for devflow-orchestrator.

Design intent:
- Keep workflow logic in `devflow_orchestrator.orchestrator.*`
- Keep server-specific concerns (routing, HTTP status mapping) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from devflow_orchestrator.server.app import create_app
