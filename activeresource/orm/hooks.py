"""
Before/after lifecycle hooks keyed by persistence action.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from ..core.exceptions import ModelDeclarationError

HOOK_ACTIONS: frozenset[str] = frozenset({"create", "save", "update_remote", "delete"})

Hook = Callable[[Any], Any]


class HookRegistry:
    """Synchronous hooks run in registration order around an action."""

    def __init__(self) -> None:
        self._before: dict[str, list[Hook]] = {}
        self._after: dict[str, list[Hook]] = {}

    def _check(self, action: str, hook: Hook) -> None:
        if action not in HOOK_ACTIONS:
            raise ModelDeclarationError(
                f"Cannot hook unknown action '{action}'",
                context={"known": sorted(HOOK_ACTIONS)},
            )
        if not callable(hook):
            raise ModelDeclarationError(f"Hook for '{action}' is not callable")

    def before(self, action: str, hook: Hook) -> Hook:
        self._check(action, hook)
        self._before.setdefault(action, []).append(hook)
        return hook

    def after(self, action: str, hook: Hook) -> Hook:
        self._check(action, hook)
        self._after.setdefault(action, []).append(hook)
        return hook

    def run_before(self, action: str, instance: Any) -> None:
        for hook in self._before.get(action, []):
            hook(instance)

    def run_after(self, action: str, instance: Any) -> None:
        for hook in self._after.get(action, []):
            hook(instance)
