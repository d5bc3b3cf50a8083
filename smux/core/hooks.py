# smux/core/hooks.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional, Protocol, runtime_checkable

from smux.core.config import StateID

if TYPE_CHECKING:
    from smux.core.effects import RunMeta


@runtime_checkable
class HookProtocol(Protocol):
    """
    Observer of machine lifecycle events. Every method is optional; the
    manager only calls what a hook defines.
    """

    def on_enter(self, state: StateID, meta: "RunMeta") -> None: ...

    def on_exit(self, state: StateID) -> None: ...

    def on_error(self, error: Exception) -> None: ...


class HookManager:
    """
    Manages the registration and execution of hooks that listen to state machine
    lifecycle events (on_enter, on_exit, on_error). Users can attach logging,
    monitoring, or custom side effects without altering core logic.
    """

    def __init__(self, hooks: Optional[List[HookProtocol]] = None) -> None:
        self._hooks: List[HookProtocol] = list(hooks or [])

    def register_hook(self, hook: HookProtocol) -> None:
        """
        Add a new hook to the manager's list of hooks.

        :param hook: An object implementing any of the HookProtocol methods.
        """
        self._hooks.append(hook)

    def execute_on_enter(self, state: StateID, meta: "RunMeta") -> None:
        for hook in self._hooks:
            if hasattr(hook, "on_enter"):
                hook.on_enter(state, meta)

    def execute_on_exit(self, state: StateID) -> None:
        for hook in self._hooks:
            if hasattr(hook, "on_exit"):
                hook.on_exit(state)

    def execute_on_error(self, error: Exception) -> None:
        for hook in self._hooks:
            if hasattr(hook, "on_error"):
                hook.on_error(error)
