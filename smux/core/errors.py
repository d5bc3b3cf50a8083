# smux/core/errors.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

PHASE_INIT = "init"
PHASE_ENTER = "enter"
PHASE_CLEANUP = "cleanup"


@dataclass(frozen=True)
class ErrorContext:
    """
    Where a failure happened: the lifecycle phase plus whatever transition
    metadata was available at the time.
    """

    phase: str
    from_state: Optional[str] = None
    to_state: Optional[str] = None
    event: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        """Context fields that are set, in declaration order."""
        return {k: v for k, v in asdict(self).items() if v is not None}


class MachineError(Exception):
    """
    Base exception class for errors raised by the state machine engine.
    """

    def __init__(
        self,
        message: str,
        context: Optional[ErrorContext] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        :param message: Human readable description.
        :param context: Structured phase/transition metadata, if any.
        :param details: Free-form extra data.
        """
        self.message = message
        self.context = context
        self.details = details or {}
        if context is not None:
            super().__init__(f"{message} | {json.dumps(context.as_dict())}")
        else:
            super().__init__(message)

    @property
    def cause(self) -> Optional[BaseException]:
        """The original failure this error wraps."""
        return self.__cause__


class ValidationError(MachineError):
    """
    Raised when a machine configuration is malformed.
    """


class StateNotFoundError(MachineError):
    """
    Raised when a transition targets a state missing from the configuration.
    """

    def __init__(self, state_id: str, context: Optional[ErrorContext] = None) -> None:
        super().__init__(f"State not found: {state_id!r}", context)
        self.state_id = state_id


class TransitionError(MachineError):
    """
    Raised when establishing or leaving a state fails. Subclasses pin the phase.
    """

    phase: str = ""

    def __init__(
        self,
        from_state: Optional[str] = None,
        to_state: Optional[str] = None,
        event: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        context = ErrorContext(phase=self.phase, from_state=from_state, to_state=to_state, event=event)
        super().__init__(message or f"{self.phase} failed", context)

    @property
    def from_state(self) -> Optional[str]:
        return self.context.from_state

    @property
    def to_state(self) -> Optional[str]:
        return self.context.to_state

    @property
    def event(self) -> Optional[str]:
        return self.context.event


class InitError(TransitionError):
    """
    The initial state's enter effect failed and was not recovered.
    """

    phase = PHASE_INIT


class EnterError(TransitionError):
    """
    An enter effect raised during a transition and no error transition handled it.
    The machine has already committed to the target state.
    """

    phase = PHASE_ENTER


class CleanupError(TransitionError):
    """
    A cleanup function raised. The transition that triggered it was aborted.
    """

    phase = PHASE_CLEANUP
