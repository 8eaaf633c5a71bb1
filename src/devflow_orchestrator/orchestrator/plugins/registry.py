from __future__ import annotations

import logging
from typing import Any

from .hooks import HookName, HookPolicy, Plugin, PluginHookContext

logger = logging.getLogger(__name__)


class PluginRegistry:
    """Holds plugins and dispatches lifecycle hooks to them.

    Dispatch is sequential, in ascending `sequence` order (registration order
    breaks ties). Error handling follows the hook's declared policy.
    """

    def __init__(self) -> None:
        self._plugins: list[Plugin] = []

    def register(self, plugin: Plugin) -> None:
        self._plugins.append(plugin)
        logger.debug(
            "Plugin registered",
            extra={"plugin": plugin.name, "sequence": plugin.sequence},
        )

    def list_names(self) -> list[str]:
        return [plugin.name for plugin in self._plugins]

    def enabled_plugins(self) -> list[Plugin]:
        enabled = [plugin for plugin in self._plugins if plugin.is_enabled()]
        return sorted(enabled, key=lambda plugin: plugin.sequence)

    def has_hook(self, hook_name: HookName) -> bool:
        return any(hook_name in plugin.hooks() for plugin in self.enabled_plugins())

    def clear(self) -> None:
        self._plugins.clear()

    def execute_hook(self, hook_name: HookName, context: PluginHookContext, *args: Any) -> Any:
        """Run `hook_name` on every enabled plugin that handles it.

        Returns:
            For TRANSFORM hooks, the value of the last argument after every
            handler has been applied. None otherwise.

        Raises:
            Exception: Whatever a GATING handler raises, unchanged.
        """

        policy = hook_name.policy
        if policy is HookPolicy.TRANSFORM:
            if not args:
                raise ValueError(f"Transform hook {hook_name.value} requires a value to transform")
            return self._run_transform(hook_name, context, args)

        for plugin in self.enabled_plugins():
            handler = plugin.hooks().get(hook_name)
            if handler is None:
                continue

            if policy is HookPolicy.GATING:
                try:
                    handler(context, *args)
                except Exception:
                    logger.info(
                        "Gating hook refused",
                        extra=self._log_extra(plugin, hook_name, context),
                    )
                    raise
                continue

            try:
                handler(context, *args)
            except Exception:
                logger.exception(
                    "Side-effect hook failed; continuing",
                    extra=self._log_extra(plugin, hook_name, context),
                )
        return None

    def _run_transform(
        self, hook_name: HookName, context: PluginHookContext, args: tuple[Any, ...]
    ) -> Any:
        *leading, value = args
        for plugin in self.enabled_plugins():
            handler = plugin.hooks().get(hook_name)
            if handler is None:
                continue
            try:
                result = handler(context, *leading, value)
            except Exception:
                logger.exception(
                    "Transform hook failed; passing input through",
                    extra=self._log_extra(plugin, hook_name, context),
                )
                continue
            if result is not None:
                value = result
        return value

    @staticmethod
    def _log_extra(
        plugin: Plugin, hook_name: HookName, context: PluginHookContext
    ) -> dict[str, object]:
        return {
            "plugin": plugin.name,
            "hook": hook_name.value,
            "conversation_id": context.conversation_id,
        }
