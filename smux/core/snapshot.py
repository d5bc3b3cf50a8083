# smux/core/snapshot.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Tuple

from smux.core.config import EventID, StateID


@dataclass(frozen=True, eq=False)
class Snapshot:
    """
    Immutable external view of the machine. A new instance is only created
    when the active state changes, so consumers may compare by identity.

    :param value: Active state id.
    :param next_events: Events the active state accepts, in declaration order.
    :param payload: Payload of the send that entered this state, ``None`` if none.
    """

    value: StateID
    next_events: Tuple[EventID, ...]
    payload: Any = None

    def can(self, event: EventID) -> bool:
        """Whether ``event`` is declared on the active state."""
        return event in self.next_events


Listener = Callable[[Snapshot], None]


class SubscriberRegistry:
    """
    Ordered set of snapshot listeners. Notification iterates over a copy so a
    listener may subscribe or unsubscribe while being notified.
    """

    def __init__(self) -> None:
        # keyed by identity so unhashable callables are accepted
        self._listeners: Dict[int, Listener] = {}

    def __len__(self) -> int:
        return len(self._listeners)

    def __contains__(self, listener: Listener) -> bool:
        return self._listeners.get(id(listener)) is listener

    def add(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener and return its unsubscribe function.

        :param listener: Callable receiving each new snapshot.
        :return: Idempotent callable removing the listener.
        """
        if not callable(listener):
            raise TypeError("listener must be callable")
        self._listeners.setdefault(id(listener), listener)

        def unsubscribe() -> None:
            if self._listeners.get(id(listener)) is listener:
                del self._listeners[id(listener)]

        return unsubscribe

    def listeners(self) -> List[Listener]:
        return list(self._listeners.values())

    def notify(self, snapshot: Snapshot) -> None:
        for listener in self.listeners():
            # skip listeners removed by an earlier listener in this round
            if listener in self:
                listener(snapshot)

    def clear(self) -> None:
        self._listeners.clear()
