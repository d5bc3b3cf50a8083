# smux/binding.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from smux.core.config import EventID
from smux.core.snapshot import Snapshot
from smux.core.state_machine import StateMachine

logger = logging.getLogger(__name__)


class MachineBinding:
    """
    Ties a presentation component to a machine for the component's lifetime.

    While open, every new snapshot is forwarded to ``on_change``. Closing the
    binding unsubscribes and stops the machine. Usable as a context manager::

        with MachineBinding(machine, on_change=render) as binding:
            binding.send("FETCH")
    """

    def __init__(self, machine: StateMachine, on_change: Optional[Callable[[Snapshot], None]] = None) -> None:
        self._machine = machine
        self._on_change = on_change
        self._unsubscribe: Optional[Callable[[], None]] = machine.subscribe(self._handle_change)

    @property
    def snapshot(self) -> Snapshot:
        return self._machine.state

    @property
    def closed(self) -> bool:
        return self._unsubscribe is None

    def send(self, event: EventID, payload: Any = None) -> None:
        self._machine.send(event, payload)

    def close(self) -> None:
        if self._unsubscribe is None:
            return
        self._unsubscribe()
        self._unsubscribe = None
        self._machine.stop()
        logger.debug("Binding closed for %r", self._machine)

    def _handle_change(self, snapshot: Snapshot) -> None:
        if self._on_change is not None:
            self._on_change(snapshot)

    def __iter__(self):
        # allows ``snapshot, send = binding``
        yield self.snapshot
        yield self.send

    def __enter__(self) -> "MachineBinding":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
