"""FastAPI app factory.

Endpoints are thin wrappers over `ConversationOrchestrator`; every request
may name a project directory, otherwise PROJECT_PATH (or the server's working
directory) is used.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

from fastapi import FastAPI, HTTPException

from devflow_orchestrator import __version__
from devflow_orchestrator.orchestrator.conductor import ConversationOrchestrator, build_orchestrator
from devflow_orchestrator.orchestrator.config import OrchestratorSettings
from devflow_orchestrator.orchestrator.conversation import ConversationNotFoundError
from devflow_orchestrator.orchestrator.plugins import TransitionBlockedError
from devflow_orchestrator.orchestrator.workflow import DefinitionError, PhaseNotFoundError
from devflow_orchestrator.server.models import (
    ApiWorkflow,
    ProceedToPhaseRequest,
    ProceedToPhaseResponse,
    ResetRequest,
    ResetResponse,
    StartDevelopmentRequest,
    StartDevelopmentResponse,
    WhatsNextRequest,
    WhatsNextResponse,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _call(fn: Callable[[], T]) -> T:
    try:
        return fn()
    except ConversationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except PhaseNotFoundError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except TransitionBlockedError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except DefinitionError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


def create_app(
    settings: OrchestratorSettings | None = None,
    orchestrator: ConversationOrchestrator | None = None,
) -> FastAPI:
    settings = settings or OrchestratorSettings()
    orchestrator = orchestrator or build_orchestrator(settings)

    app = FastAPI(
        title="devflow orchestrator",
        version=__version__,
        description="REST API over the development workflow orchestrator.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )
    app.state.settings = settings
    app.state.orchestrator = orchestrator

    def project(value: str | None) -> Path:
        return Path(value) if value else settings.project_path

    @app.get("/api/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/workflows", response_model=list[ApiWorkflow])
    def list_workflows() -> list[ApiWorkflow]:
        summaries = _call(orchestrator.list_workflows)
        return [ApiWorkflow.model_validate(s.to_json()) for s in summaries]

    @app.post("/api/development/start", response_model=StartDevelopmentResponse)
    def start(req: StartDevelopmentRequest) -> StartDevelopmentResponse:
        require_reviews = (
            settings.require_reviews if req.require_reviews is None else req.require_reviews
        )
        result = _call(
            lambda: orchestrator.start_development(
                project(req.project_path),
                workflow_name=req.workflow,
                require_reviews=require_reviews,
            )
        )
        return StartDevelopmentResponse.model_validate(result)

    @app.post("/api/development/proceed", response_model=ProceedToPhaseResponse)
    def proceed(req: ProceedToPhaseRequest) -> ProceedToPhaseResponse:
        result = _call(
            lambda: orchestrator.proceed_to_phase(
                project(req.project_path),
                req.target_phase,
                reason=req.reason,
                review_state=req.review_state,
                trigger=req.trigger,
            )
        )
        return ProceedToPhaseResponse.model_validate(result)

    @app.post("/api/development/whats-next", response_model=WhatsNextResponse)
    def whats_next(req: WhatsNextRequest) -> WhatsNextResponse:
        result = _call(
            lambda: orchestrator.whats_next(
                project(req.project_path), user_input=req.user_input, context=req.context
            )
        )
        return WhatsNextResponse.model_validate(result)

    @app.post("/api/development/reset", response_model=ResetResponse)
    def reset(req: ResetRequest) -> ResetResponse:
        existed = _call(
            lambda: orchestrator.reset_development(
                project(req.project_path), delete_plan=req.delete_plan
            )
        )
        return ResetResponse(reset=existed)

    return app
