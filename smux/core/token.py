# smux/core/token.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import itertools
from typing import TYPE_CHECKING, Any, Optional

from smux.core.config import EventID

if TYPE_CHECKING:
    from smux.core.state_machine import StateMachine

_serials = itertools.count(1)


class ActivationToken:
    """
    Opaque marker for one activation of a state. Tokens compare by identity;
    the serial only exists to make logs readable.
    """

    __slots__ = ("serial",)

    def __init__(self) -> None:
        self.serial = next(_serials)

    def __repr__(self) -> str:
        return f"<ActivationToken #{self.serial}>"


class GuardedSend:
    """
    A ``send`` bound to one activation. Calling it forwards to the machine only
    while ``token`` is still the machine's live token; otherwise it is a no-op.
    """

    __slots__ = ("_machine", "token")

    def __init__(self, machine: "StateMachine", token: ActivationToken) -> None:
        self._machine = machine
        self.token = token

    @property
    def is_current(self) -> bool:
        return self._machine.token is self.token

    def __call__(self, event: EventID, payload: Optional[Any] = None) -> None:
        self._machine.send_if_current(self.token, event, payload)
