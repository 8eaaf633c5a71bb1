"""Conversation orchestrator.

Composes the loader, resolver, composer and plugin registry into the three
public operations an agent calls:

- start_development: begin a workflow for the current project/branch
- proceed_to_phase: move explicitly to another phase
- whats_next: get instructions for continuing in the current phase

Gating hooks always run before any state is mutated. Side-effect hooks run
after state has been persisted and can never fail an operation.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import TypedDict

from devflow_orchestrator.orchestrator.config import OrchestratorSettings
from devflow_orchestrator.orchestrator.conversation import (
    ConversationNotFoundError,
    ConversationState,
    ConversationStore,
    FileConversationStore,
    conversation_id_for,
)
from devflow_orchestrator.orchestrator.git import GitRepository
from devflow_orchestrator.orchestrator.instructions import (
    InstructionComposer,
    InstructionContext,
    InstructionSource,
    guidance_for_backend,
)
from devflow_orchestrator.orchestrator.planning import PlanFileManager, plan_file_path
from devflow_orchestrator.orchestrator.plugins import (
    HookName,
    PluginHookContext,
    PluginRegistry,
    StartDevelopmentArgs,
    TransitionBlockedError,
)
from devflow_orchestrator.orchestrator.plugins.beads import BeadsPlugin
from devflow_orchestrator.orchestrator.plugins.commit import CommitPlugin
from devflow_orchestrator.orchestrator.tasks import select_task_backend
from devflow_orchestrator.orchestrator.workflow import (
    TransitionDef,
    TransitionResolver,
    WorkflowDefinition,
    WorkflowLoader,
    WorkflowSummary,
)

logger = logging.getLogger(__name__)


class ReviewState(str, Enum):
    NOT_REQUIRED = "not-required"
    PENDING = "pending"
    PERFORMED = "performed"


class ReviewRequiredError(TransitionBlockedError):
    """A review-gated transition was requested without a performed review."""


class StartDevelopmentResult(TypedDict):
    conversation_id: str
    workflow: str
    phase: str
    instructions: str
    plan_file_path: str


class ProceedToPhaseResult(TypedDict):
    phase: str
    instructions: str
    plan_file_path: str
    transition_reason: str
    is_modeled_transition: bool


class WhatsNextResult(TypedDict):
    phase: str
    instructions: str
    plan_file_path: str


def detect_branch(project_path: Path) -> str:
    return GitRepository(project_path).current_branch()


class ConversationOrchestrator:
    def __init__(
        self,
        *,
        loader: WorkflowLoader,
        composer: InstructionComposer,
        registry: PluginRegistry,
        plan_files: PlanFileManager | None = None,
        store_factory: Callable[[Path], ConversationStore] = FileConversationStore.for_project,
        branch_detector: Callable[[Path], str] = detect_branch,
        commit_behavior: str = "none",
    ) -> None:
        self.loader = loader
        self.composer = composer
        self.registry = registry
        self.plan_files = plan_files or PlanFileManager()
        self._store_factory = store_factory
        self._branch_detector = branch_detector
        self._commit_behavior = commit_behavior

    # ---- public operations ----

    def start_development(
        self,
        project_path: Path,
        workflow_name: str | None = None,
        require_reviews: bool = False,
    ) -> StartDevelopmentResult:
        project = project_path.resolve()
        branch = self._branch_detector(project)
        conversation_id = conversation_id_for(project, branch)
        plan_path = plan_file_path(project, branch)
        requested_workflow = workflow_name or self.loader.default_workflow

        start_args = StartDevelopmentArgs(
            workflow=requested_workflow,
            commit_behavior=self._commit_behavior,
            require_reviews=require_reviews,
            project_path=project,
        )
        self.registry.execute_hook(
            HookName.BEFORE_START_DEVELOPMENT,
            PluginHookContext(
                conversation_id=conversation_id,
                plan_file_path=plan_path,
                current_phase="",
                workflow=requested_workflow,
                project_path=project,
                git_branch=branch,
            ),
            start_args,
        )

        definition = self.loader.load(project, requested_workflow)
        resolver = TransitionResolver(definition)
        state = ConversationState(
            conversation_id=conversation_id,
            project_path=str(project),
            git_branch=branch,
            current_phase=resolver.initial_phase,
            workflow_name=requested_workflow,
            plan_file_path=str(plan_path),
            require_reviews_before_phase_transition=require_reviews,
        )
        context = self._context(state, definition=definition)

        self.plan_files.ensure_plan_file(
            plan_path,
            definition=definition,
            project_path=project,
            git_branch=branch,
            transform=lambda path, content: self.registry.execute_hook(
                HookName.AFTER_PLAN_FILE_CREATED, context, path, content
            ),
        )

        instructions = self._compose(
            state,
            resolver.resolve_continuation(state.current_phase),
            InstructionSource.START_DEVELOPMENT,
        )
        self._store_factory(project).save_state(state)

        result = StartDevelopmentResult(
            conversation_id=conversation_id,
            workflow=requested_workflow,
            phase=state.current_phase,
            instructions=instructions,
            plan_file_path=str(plan_path),
        )
        # Plugins get a copy; the returned result keeps its exact key set.
        self.registry.execute_hook(
            HookName.AFTER_START_DEVELOPMENT, context, start_args, dict(result)
        )

        logger.info(
            "Development started",
            extra={
                "conversation_id": conversation_id,
                "workflow": requested_workflow,
                "phase": state.current_phase,
            },
        )
        return result

    def proceed_to_phase(
        self,
        project_path: Path,
        target_phase: str,
        reason: str = "",
        review_state: ReviewState = ReviewState.NOT_REQUIRED,
        trigger: str | None = None,
    ) -> ProceedToPhaseResult:
        project = project_path.resolve()
        state = self._load_state(project)
        definition = self.loader.load(project, state.workflow_name)
        resolver = TransitionResolver(definition)
        current_phase = state.current_phase

        # Raises PhaseNotFoundError before any hook sees an undeclared target.
        resolver.state(target_phase)

        if state.require_reviews_before_phase_transition:
            transition = resolver.find_transition(current_phase, target_phase, trigger)
            self._check_review(transition, current_phase, target_phase, review_state)

        self.registry.execute_hook(
            HookName.BEFORE_PHASE_TRANSITION,
            self._context(state, target_phase=target_phase),
            current_phase,
            target_phase,
        )

        resolution = resolver.resolve_explicit(current_phase, target_phase, trigger)
        if resolution.is_modeled or not reason.strip():
            transition_reason = resolution.transition_reason
        else:
            transition_reason = reason

        state.current_phase = target_phase
        instructions = self._compose(
            state,
            resolution.instructions,
            InstructionSource.PROCEED_TO_PHASE,
            transition_reason=transition_reason,
            is_modeled=resolution.is_modeled,
        )
        self._store_factory(project).save_state(state)

        self.registry.execute_hook(
            HookName.AFTER_PHASE_TRANSITION,
            self._context(state),
            current_phase,
            target_phase,
        )

        logger.info(
            "Phase transition",
            extra={
                "conversation_id": state.conversation_id,
                "from_phase": current_phase,
                "to_phase": target_phase,
                "is_modeled": resolution.is_modeled,
            },
        )
        return ProceedToPhaseResult(
            phase=target_phase,
            instructions=instructions,
            plan_file_path=state.plan_file_path,
            transition_reason=transition_reason,
            is_modeled_transition=resolution.is_modeled,
        )

    def whats_next(
        self, project_path: Path, user_input: str = "", context: str = ""
    ) -> WhatsNextResult:
        project = project_path.resolve()
        state = self._load_state(project)
        definition = self.loader.load(project, state.workflow_name)
        resolver = TransitionResolver(definition)

        logger.debug(
            "whats_next requested",
            extra={
                "conversation_id": state.conversation_id,
                "phase": state.current_phase,
                "has_user_input": bool(user_input),
                "has_context": bool(context),
            },
        )
        instructions = self._compose(
            state,
            resolver.resolve_continuation(state.current_phase),
            InstructionSource.WHATS_NEXT,
        )
        return WhatsNextResult(
            phase=state.current_phase,
            instructions=instructions,
            plan_file_path=state.plan_file_path,
        )

    def reset_development(self, project_path: Path, delete_plan: bool = False) -> bool:
        project = project_path.resolve()
        branch = self._branch_detector(project)
        conversation_id = conversation_id_for(project, branch)

        existed = self._store_factory(project).delete_state(conversation_id)
        if delete_plan:
            self.plan_files.delete(plan_file_path(project, branch))

        logger.info(
            "Development reset",
            extra={"conversation_id": conversation_id, "existed": existed, "delete_plan": delete_plan},
        )
        return existed

    def possible_transitions(self, project_path: Path) -> list[TransitionDef]:
        project = project_path.resolve()
        state = self._load_state(project)
        definition = self.loader.load(project, state.workflow_name)
        return TransitionResolver(definition).possible_transitions(state.current_phase)

    def list_workflows(self) -> list[WorkflowSummary]:
        return self.loader.list_workflows()

    # ---- internals ----

    def _load_state(self, project: Path) -> ConversationState:
        branch = self._branch_detector(project)
        state = self._store_factory(project).get_state(conversation_id_for(project, branch))
        if state is None:
            raise ConversationNotFoundError(project, branch)
        return state

    def _context(
        self,
        state: ConversationState,
        *,
        target_phase: str | None = None,
        definition: WorkflowDefinition | None = None,
    ) -> PluginHookContext:
        return PluginHookContext(
            conversation_id=state.conversation_id,
            plan_file_path=Path(state.plan_file_path),
            current_phase=state.current_phase,
            workflow=state.workflow_name,
            project_path=Path(state.project_path),
            git_branch=state.git_branch,
            target_phase=target_phase,
            definition=definition,
        )

    def _compose(
        self,
        state: ConversationState,
        instructions: str,
        source: InstructionSource,
        *,
        transition_reason: str | None = None,
        is_modeled: bool = False,
    ) -> str:
        plan_path = Path(state.plan_file_path)
        composed = self.composer.compose(
            instructions,
            InstructionContext(
                phase=state.current_phase,
                project_path=Path(state.project_path),
                git_branch=state.git_branch,
                plan_file_path=plan_path,
                plan_file_exists=self.plan_files.exists(plan_path),
                source=source,
                transition_reason=transition_reason,
                is_modeled=is_modeled,
            ),
        )
        return self.registry.execute_hook(
            HookName.AFTER_INSTRUCTIONS_GENERATED, self._context(state), source, composed
        )

    @staticmethod
    def _check_review(
        transition: TransitionDef | None,
        current_phase: str,
        target_phase: str,
        review_state: ReviewState,
    ) -> None:
        if transition is None or not transition.review_perspectives:
            return
        if review_state is ReviewState.PERFORMED:
            return

        perspectives = ", ".join(p.perspective for p in transition.review_perspectives)
        if review_state is ReviewState.PENDING:
            message = (
                f"Review of the {current_phase} -> {target_phase} transition is still pending. "
                f"Complete the review ({perspectives}) and call again with review_state=performed."
            )
        else:
            message = (
                f"The {current_phase} -> {target_phase} transition requires a review "
                f"({perspectives}). Perform the review, then call again with "
                "review_state=performed."
            )
        raise ReviewRequiredError(message)


def build_orchestrator(
    settings: OrchestratorSettings,
    *,
    bd_probe: Callable[[], bool] | None = None,
) -> ConversationOrchestrator:
    """Wire an orchestrator from settings.

    The task backend is resolved once here; the matching guidance strategy
    and plugins are fixed for the lifetime of the orchestrator.
    """

    if bd_probe is None:
        backend = select_task_backend(settings.task_backend)
    else:
        backend = select_task_backend(settings.task_backend, bd_probe)

    registry = PluginRegistry()
    registry.register(
        CommitPlugin(settings.commit_behavior, message_template=settings.commit_message_template)
    )
    registry.register(BeadsPlugin(backend))

    logger.debug(
        "Orchestrator configured",
        extra={"task_backend": backend, "commit_behavior": settings.commit_behavior},
    )
    return ConversationOrchestrator(
        loader=WorkflowLoader(default_workflow=settings.default_workflow),
        composer=InstructionComposer(guidance_for_backend(backend)),
        registry=registry,
        commit_behavior=settings.commit_behavior,
    )
