"""Transition resolution against a validated workflow graph.

The resolver answers two questions for the orchestrator:
- which instructions apply when the agent moves from one phase to another
- which instructions apply when the agent keeps working in its current phase

Any declared phase may be entered from any other phase. Declared transitions
only decide whether the move is "modeled" (and so carries its own reason and
instruction overrides) or a direct, unmodeled jump.
"""

from __future__ import annotations

from dataclasses import dataclass

from .definition import PhaseNotFoundError, StateDef, TransitionDef, WorkflowDefinition

ADDITIONAL_CONTEXT_HEADING = "**Additional Context:**"


@dataclass(frozen=True, slots=True)
class TransitionResolution:
    instructions: str
    transition_reason: str
    is_modeled: bool


def _compose(base: str, transition: TransitionDef) -> str:
    instructions = transition.instructions or base
    if transition.additional_instructions:
        instructions = (
            f"{instructions}\n\n{ADDITIONAL_CONTEXT_HEADING}\n{transition.additional_instructions}"
        )
    return instructions


class TransitionResolver:
    def __init__(self, definition: WorkflowDefinition) -> None:
        self._definition = definition

    @property
    def definition(self) -> WorkflowDefinition:
        return self._definition

    @property
    def phases(self) -> list[str]:
        return self._definition.phases

    @property
    def initial_phase(self) -> str:
        return self._definition.initial_state

    def is_valid_phase(self, phase: str) -> bool:
        return phase in self._definition.states

    def state(self, phase: str) -> StateDef:
        try:
            return self._definition.states[phase]
        except KeyError:
            raise PhaseNotFoundError(phase, self._definition.name) from None

    def possible_transitions(self, phase: str) -> list[TransitionDef]:
        state = self._definition.states.get(phase)
        if state is None:
            return []
        return list(state.transitions)

    def find_transition(
        self, from_phase: str, to_phase: str, trigger: str | None = None
    ) -> TransitionDef | None:
        """Return the first declared transition matching target (and trigger, if given)."""

        for transition in self.possible_transitions(from_phase):
            if transition.to != to_phase:
                continue
            if trigger is not None and transition.trigger != trigger:
                continue
            return transition
        return None

    def is_modeled_transition(self, from_phase: str, to_phase: str) -> bool:
        return self.find_transition(from_phase, to_phase) is not None

    def resolve_explicit(
        self, from_phase: str, to_phase: str, trigger: str | None = None
    ) -> TransitionResolution:
        """Resolve instructions and reason for an explicit move to `to_phase`.

        Raises:
            PhaseNotFoundError: If `to_phase` is not declared.
        """

        target = self.state(to_phase)
        transition = self.find_transition(from_phase, to_phase, trigger)
        if transition is None:
            return TransitionResolution(
                instructions=target.default_instructions,
                transition_reason=f"Direct transition to {to_phase} phase",
                is_modeled=False,
            )

        return TransitionResolution(
            instructions=_compose(target.default_instructions, transition),
            transition_reason=transition.transition_reason,
            is_modeled=True,
        )

    def resolve_continuation(self, phase: str) -> str:
        """Instructions for continuing work in `phase`.

        A declared self-transition contributes its overrides; otherwise the
        phase's default instructions apply.
        """

        state = self.state(phase)
        for transition in state.transitions:
            if transition.to == phase:
                return _compose(state.default_instructions, transition)
        return state.default_instructions
