"""Instruction composition for the agent."""

from .composer import InstructionComposer, InstructionContext, system_prompt
from .guidance import (
    BeadsTaskGuidance,
    InstructionSource,
    MarkdownTaskGuidance,
    TaskGuidanceStrategy,
    guidance_for_backend,
)
from .variables import project_doc_substitutions, substitute_variables

__all__ = [
    "BeadsTaskGuidance",
    "InstructionComposer",
    "InstructionContext",
    "InstructionSource",
    "MarkdownTaskGuidance",
    "TaskGuidanceStrategy",
    "guidance_for_backend",
    "project_doc_substitutions",
    "substitute_variables",
    "system_prompt",
]
