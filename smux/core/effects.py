# smux/core/effects.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import asyncio
import concurrent.futures
import inspect
import logging
from dataclasses import dataclass
from enum import Enum, auto
from functools import partial
from typing import TYPE_CHECKING, Any, Callable, Optional, Type

from smux.core.config import EventID, StateID
from smux.core.errors import EnterError, TransitionError
from smux.core.token import GuardedSend

if TYPE_CHECKING:
    from smux.core.state_machine import StateMachine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunMeta:
    """
    Why a state is being entered. ``from_state`` and ``event`` are ``None``
    for the initial activation.
    """

    to: StateID
    from_state: Optional[StateID] = None
    event: Optional[EventID] = None


@dataclass(frozen=True)
class RunContext:
    """
    Argument passed to every enter effect.

    :param send: Guarded send scoped to this activation.
    :param payload: Payload of the send that caused this activation.
    :param meta: Transition metadata.
    """

    send: GuardedSend
    payload: Any
    meta: RunMeta


class EffectKind(Enum):
    NONE = auto()
    CLEANUP = auto()
    DEFERRED = auto()


def is_deferred(value: Any) -> bool:
    """
    Futures in the ``concurrent.futures`` shape: ``add_done_callback`` plus
    ``cancelled``, ``exception`` and ``result`` once settled.
    """
    if asyncio.isfuture(value) or isinstance(value, concurrent.futures.Future):
        return True
    return callable(getattr(value, "add_done_callback", None))


def _schedule(awaitable: Any) -> "asyncio.Future":
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        if inspect.iscoroutine(awaitable):
            awaitable.close()
        raise RuntimeError("Enter effect returned an awaitable but no event loop is running") from None
    return asyncio.ensure_future(awaitable)


@dataclass(frozen=True)
class EffectResult:
    """
    What an enter effect handed back, decided once when it returns.
    """

    kind: EffectKind
    value: Any = None

    @classmethod
    def classify(cls, value: Any) -> "EffectResult":
        """
        Sort an effect's return value into one of the three kinds. Awaitables
        that are not futures yet are scheduled on the running loop.

        :raises RuntimeError: If an awaitable is returned outside a running loop.
        """
        if value is None:
            return cls(EffectKind.NONE)
        if is_deferred(value):
            return cls(EffectKind.DEFERRED, value)
        if inspect.isawaitable(value):
            return cls(EffectKind.DEFERRED, _schedule(value))
        if callable(value):
            return cls(EffectKind.CLEANUP, value)
        logger.debug("Ignoring non-callable effect result of type %s", type(value).__name__)
        return cls(EffectKind.NONE)


_NO_EFFECT = EffectResult(EffectKind.NONE)


class EffectRunner:
    """
    Invokes enter effects for one machine, wires deferred results back into
    it through guarded sends and attempts the one-shot error recovery for
    effects that raise.
    """

    def __init__(self, machine: "StateMachine", success_event: EventID, error_event: EventID) -> None:
        self._machine = machine
        self.success_event = success_event
        self.error_event = error_event

    def run(
        self,
        effect: Optional[Callable[[RunContext], Any]],
        meta: RunMeta,
        payload: Any = None,
        failure: Type[TransitionError] = EnterError,
    ) -> EffectResult:
        """
        Run ``effect`` under the machine's current token.

        :param effect: The state's enter effect, or None.
        :param meta: Transition metadata passed through to the effect.
        :param payload: Payload that triggered this activation.
        :param failure: Error class raised when the effect fails unrecovered.
        :return: The classified effect result.
        :raises TransitionError: ``failure`` chained to the original exception.
        """
        if effect is None:
            return _NO_EFFECT

        guarded = GuardedSend(self._machine, self._machine.token)
        try:
            result = EffectResult.classify(effect(RunContext(send=guarded, payload=payload, meta=meta)))
        except Exception as exc:
            before = self._machine.token
            guarded(self.error_event, exc)
            if self._machine.token is before:
                error = failure(meta.from_state, meta.to, meta.event)
                error.__cause__ = exc
                self._machine.report_error(error)
                raise error from exc
            logger.debug("Effect of %r failed, recovered via %r", meta.to, self.error_event)
            return _NO_EFFECT

        if result.kind is EffectKind.DEFERRED:
            result.value.add_done_callback(partial(self._settled, guarded))
        return result

    def _settled(self, guarded: GuardedSend, future: Any) -> None:
        # Runs outside any caller's stack; nothing raised here may escape.
        if not guarded.is_current:
            logger.debug("Late settlement for %r discarded", guarded.token)
            return
        if future.cancelled():
            cancelled = asyncio.CancelledError if asyncio.isfuture(future) else concurrent.futures.CancelledError
            event, value = self.error_event, cancelled()
        else:
            exc = future.exception()
            if exc is None:
                event, value = self.success_event, future.result()
            else:
                event, value = self.error_event, exc
        try:
            try:
                guarded(event, value)
            except Exception as exc:
                if event == self.error_event:
                    raise
                # one recovery hop for a failing success transition
                self._machine.report_swallowed(exc)
                guarded(self.error_event, exc)
        except Exception as exc:
            self._machine.report_swallowed(exc)
