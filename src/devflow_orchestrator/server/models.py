"""Pydantic models for the REST server."""

from __future__ import annotations

from pydantic import BaseModel, Field

from devflow_orchestrator.orchestrator.conductor import ReviewState


class StartDevelopmentRequest(BaseModel):
    project_path: str | None = None
    workflow: str | None = None
    require_reviews: bool | None = None


class ProceedToPhaseRequest(BaseModel):
    project_path: str | None = None
    target_phase: str = Field(min_length=1)
    reason: str = ""
    review_state: ReviewState = ReviewState.NOT_REQUIRED
    trigger: str | None = None


class WhatsNextRequest(BaseModel):
    project_path: str | None = None
    user_input: str = ""
    context: str = ""


class ResetRequest(BaseModel):
    project_path: str | None = None
    delete_plan: bool = False


class StartDevelopmentResponse(BaseModel):
    conversation_id: str
    workflow: str
    phase: str
    instructions: str
    plan_file_path: str


class ProceedToPhaseResponse(BaseModel):
    phase: str
    instructions: str
    plan_file_path: str
    transition_reason: str
    is_modeled_transition: bool


class WhatsNextResponse(BaseModel):
    phase: str
    instructions: str
    plan_file_path: str


class ResetResponse(BaseModel):
    reset: bool


class ApiWorkflow(BaseModel):
    name: str
    description: str
    metadata: dict[str, object] = Field(default_factory=dict)
