"""CLI entrypoint for the development workflow orchestrator.

Every command except `serve` prints a JSON document on stdout; logs go to stderr.

Exit codes:
  0  success
  1  unexpected failure
  2  configuration, workflow definition or unknown phase error
  3  transition blocked by a gating hook (plugin or review requirement)
  4  no conversation for this project/branch
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from devflow_orchestrator import __version__
from devflow_orchestrator.orchestrator.conductor import ReviewState, build_orchestrator
from devflow_orchestrator.orchestrator.config import OrchestratorSettings
from devflow_orchestrator.orchestrator.conversation import ConversationNotFoundError
from devflow_orchestrator.orchestrator.instructions import system_prompt
from devflow_orchestrator.orchestrator.logging import configure_logging
from devflow_orchestrator.orchestrator.plugins import TransitionBlockedError
from devflow_orchestrator.orchestrator.workflow import DefinitionError, PhaseNotFoundError
from devflow_orchestrator.server.app import create_app

logger = logging.getLogger(__name__)


def _print_json(payload: object) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="devflow",
        description="Guide an LLM coding agent through a phase-based development workflow",
    )
    parser.add_argument("--version", action="version", version=f"devflow-orchestrator {__version__}")
    parser.add_argument(
        "--project",
        type=Path,
        default=None,
        help="Project directory (defaults to PROJECT_PATH or the current directory)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    start = subparsers.add_parser("start", help="Start a development workflow")
    start.add_argument(
        "--workflow",
        default=None,
        help="Workflow name (packaged name, or 'custom' for .vibe/workflow.yaml)",
    )
    start.add_argument(
        "--require-reviews",
        action="store_true",
        default=None,
        help="Require reviews before review-gated transitions (defaults to VIBE_REQUIRE_REVIEWS)",
    )

    proceed = subparsers.add_parser("proceed", help="Move to another phase")
    proceed.add_argument("target_phase", help="Phase to move to")
    proceed.add_argument("--reason", default="", help="Why the transition happens")
    proceed.add_argument(
        "--review-state",
        choices=[s.value for s in ReviewState],
        default=ReviewState.NOT_REQUIRED.value,
        help="Review status for review-gated transitions",
    )
    proceed.add_argument("--trigger", default=None, help="Declared trigger to match")

    whats_next = subparsers.add_parser("whats-next", help="Instructions for the current phase")
    whats_next.add_argument("--user-input", default="", help="The user's latest message")
    whats_next.add_argument("--context", default="", help="Additional conversation context")

    subparsers.add_parser("transitions", help="List transitions declared for the current phase")

    reset = subparsers.add_parser("reset", help="Forget the conversation for this project/branch")
    reset.add_argument("--delete-plan", action="store_true", help="Also delete the plan file")

    subparsers.add_parser("list-workflows", help="List packaged workflows")

    prompt = subparsers.add_parser("system-prompt", help="Print the agent system prompt")
    prompt.add_argument("--workflow", default=None, help="Workflow name")

    serve = subparsers.add_parser("serve", help="Serve the REST API (requires the `server` extra)")
    serve.add_argument("--host", default="127.0.0.1", help="Interface to bind")
    serve.add_argument("--port", type=int, default=8000, help="Port to bind")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = OrchestratorSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)
    project_path: Path = args.project or settings.project_path

    try:
        orchestrator = build_orchestrator(settings)

        if args.command == "start":
            require_reviews = (
                settings.require_reviews if args.require_reviews is None else args.require_reviews
            )
            _print_json(
                orchestrator.start_development(
                    project_path,
                    workflow_name=args.workflow,
                    require_reviews=require_reviews,
                )
            )
            return 0

        if args.command == "proceed":
            _print_json(
                orchestrator.proceed_to_phase(
                    project_path,
                    args.target_phase,
                    reason=args.reason,
                    review_state=ReviewState(args.review_state),
                    trigger=args.trigger,
                )
            )
            return 0

        if args.command == "whats-next":
            _print_json(
                orchestrator.whats_next(project_path, user_input=args.user_input, context=args.context)
            )
            return 0

        if args.command == "transitions":
            transitions = orchestrator.possible_transitions(project_path)
            _print_json([t.model_dump(exclude_none=True) for t in transitions])
            return 0

        if args.command == "reset":
            existed = orchestrator.reset_development(project_path, delete_plan=args.delete_plan)
            _print_json({"reset": existed})
            return 0

        if args.command == "list-workflows":
            _print_json([summary.to_json() for summary in orchestrator.list_workflows()])
            return 0

        if args.command == "system-prompt":
            definition = orchestrator.loader.load(
                project_path, args.workflow or settings.default_workflow
            )
            print(system_prompt(definition))
            return 0

        if args.command == "serve":
            import uvicorn

            app = create_app(
                settings=settings.model_copy(update={"project_path": project_path}),
                orchestrator=orchestrator,
            )
            logger.info("Serving REST API", extra={"host": args.host, "port": args.port})
            uvicorn.run(app, host=args.host, port=args.port, log_config=None)
            return 0

        logger.error("Unknown command", extra={"command": args.command})
        return 2

    except (DefinitionError, PhaseNotFoundError) as e:
        logger.error(str(e))
        print(str(e), file=sys.stderr)
        return 2

    except TransitionBlockedError as e:
        logger.warning("Transition blocked", extra={"error": str(e)})
        print(str(e), file=sys.stderr)
        return 3

    except ConversationNotFoundError as e:
        print(str(e), file=sys.stderr)
        return 4

    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
