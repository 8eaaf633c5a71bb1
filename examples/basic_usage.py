#!/usr/bin/env python3
"""Programmatic workflow example.

This demonstrates using the orchestrator components directly:

* load settings from `.env`
* start a development conversation for a project
* ask what to do next, then move to the next modeled phase

The project directory is passed as an argument (not read from `.env`).
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Sequence

from devflow_orchestrator.orchestrator.conductor import build_orchestrator
from devflow_orchestrator.orchestrator.config import OrchestratorSettings
from devflow_orchestrator.orchestrator.logging import configure_logging


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Walk a project through its first phase.")
    parser.add_argument("--project", required=True, help="Project directory")
    parser.add_argument("--workflow", default=None, help='Workflow name, e.g. "epcc" (optional)')
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    project = Path(args.project)

    settings = OrchestratorSettings()
    configure_logging(settings.log_level)

    orchestrator = build_orchestrator(settings)

    started = orchestrator.start_development(project, workflow_name=args.workflow)
    print(f"Started {started['workflow']} in phase {started['phase']}")
    print(f"Plan file: {started['plan_file_path']}")

    print(orchestrator.whats_next(project)["instructions"])

    transitions = orchestrator.possible_transitions(project)
    if not transitions:
        print("No transitions out of the initial phase.")
        return 0

    target = transitions[0].to
    moved = orchestrator.proceed_to_phase(project, target)
    print(f"Moved to {moved['phase']}: {moved['transition_reason']}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
