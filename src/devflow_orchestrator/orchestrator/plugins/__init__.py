"""Plugin hook engine and built-in plugins."""

from .hooks import (
    HOOK_POLICIES,
    HookHandler,
    HookName,
    HookPolicy,
    Plugin,
    PluginHookContext,
    StartDevelopmentArgs,
    TransitionBlockedError,
)
from .registry import PluginRegistry

__all__ = [
    "HOOK_POLICIES",
    "HookHandler",
    "HookName",
    "HookPolicy",
    "Plugin",
    "PluginHookContext",
    "PluginRegistry",
    "StartDevelopmentArgs",
    "TransitionBlockedError",
]
