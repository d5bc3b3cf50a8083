# smux/core/state_machine.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, List, Mapping, Optional, Type, Union

from smux.core.config import EventID, MachineConfig, StateID, as_config
from smux.core.effects import EffectKind, EffectRunner, RunMeta
from smux.core.errors import (
    PHASE_ENTER,
    CleanupError,
    EnterError,
    ErrorContext,
    InitError,
    StateNotFoundError,
    TransitionError,
)
from smux.core.hooks import HookManager
from smux.core.snapshot import Listener, Snapshot, SubscriberRegistry
from smux.core.token import ActivationToken
from smux.core.validations import Validator

logger = logging.getLogger(__name__)

SUCCESS_EVENT = "SUCCESS"
ERROR_EVENT = "ERROR"


class StateMachine:
    """
    A flat finite state machine with enter effects.

    Exactly one state is active. ``send`` moves along a declared transition,
    running the outgoing state's cleanup, then the incoming state's enter
    effect, then notifying subscribers. Effects may return a cleanup callable
    or a future; futures dispatch ``success_event`` or ``error_event`` when
    they settle, unless the activation that created them is already over.
    """

    def __init__(
        self,
        config: Union[MachineConfig, Mapping[str, Any]],
        validator: Optional[Validator] = None,
        hooks: Optional[List] = None,
        success_event: EventID = SUCCESS_EVENT,
        error_event: EventID = ERROR_EVENT,
    ) -> None:
        """
        :param config: The machine definition, or its plain-dict form.
        :param validator: Optional validator for configuration checks.
        :param hooks: Optional list of hook objects implementing on_enter, on_exit, on_error.
        :param success_event: Event dispatched when an effect's future resolves.
        :param error_event: Event dispatched when an effect fails or its future rejects.
        :raises ValidationError: If the configuration is malformed.
        :raises InitError: If the initial state's effect fails unrecovered.
        """
        self._config = as_config(config)
        self._validator = validator or Validator(error_event=error_event)
        self._validator.validate_config(self._config)

        self._hook_manager = HookManager(hooks)
        self._subscribers = SubscriberRegistry()
        self._runner = EffectRunner(self, success_event, error_event)
        self._lock = threading.RLock()
        self._cleanup: Optional[Callable[[], Any]] = None
        self._stopped = False

        with self._lock:
            self._current: StateID = self._config.initial
            self._token = ActivationToken()
            self._snapshot = self._make_snapshot(None)
            try:
                self._enter(RunMeta(to=self._current), None, failure=InitError)
            except Exception as exc:
                self._token = ActivationToken()
                if isinstance(exc, InitError):
                    raise
                error = InitError(to_state=self._config.initial)
                error.__cause__ = exc
                self.report_error(error)
                raise error from exc

    @property
    def config(self) -> MachineConfig:
        return self._config

    @property
    def state(self) -> Snapshot:
        """The latest committed snapshot; the same object until the next transition."""
        return self._snapshot

    @property
    def token(self) -> ActivationToken:
        """The live activation token."""
        return self._token

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def success_event(self) -> EventID:
        return self._runner.success_event

    @property
    def error_event(self) -> EventID:
        return self._runner.error_event

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register ``listener`` for every future snapshot. The current snapshot is
        not delivered.

        :return: An idempotent unsubscribe function.
        """
        return self._subscribers.add(listener)

    def send(self, event: EventID, payload: Any = None) -> None:
        """
        Dispatch ``event``. Unknown events and self-transitions are ignored
        entirely, including their payload.

        :param event: Event name.
        :param payload: Arbitrary value handed to the next state's effect and snapshot.
        :raises StateNotFoundError: If the target is not a declared state; raised before
            any cleanup, so the machine is left untouched.
        :raises CleanupError: If the outgoing cleanup raises; nothing changes.
        :raises EnterError: If the incoming effect raises unrecovered; the new state stays active.
        """
        with self._lock:
            node = self._config.node(self._current)
            target = node.target_for(event) if node is not None else None
            if target is None or target == self._current:
                logger.debug("Ignoring %r in state %r", event, self._current)
                return

            source = self._current
            if target not in self._config.states:
                error = StateNotFoundError(
                    target, ErrorContext(phase=PHASE_ENTER, from_state=source, to_state=target, event=event)
                )
                self.report_error(error)
                raise error

            self._release_cleanup(source, target, event)
            self._hook_manager.execute_on_exit(source)

            self._token = ActivationToken()
            self._current = target
            self._snapshot = self._make_snapshot(payload)
            logger.debug("%s --%s--> %s", source, event, target)

            self._enter(RunMeta(to=target, from_state=source, event=event), payload)
            self._subscribers.notify(self._snapshot)

    def stop(self) -> None:
        """
        Run the pending cleanup, if any, and invalidate the current activation.
        Never raises; a failing cleanup is logged and reported to hooks.
        """
        with self._lock:
            try:
                self._release_cleanup(self._current)
            except Exception:
                # covers hooks that raise while the cleanup failure is reported
                logger.exception("Cleanup of %r failed during stop", self._current)
            finally:
                self._token = ActivationToken()
                self._stopped = True

    def report_error(self, error: Exception) -> None:
        """Forward an engine error to the registered hooks."""
        self._hook_manager.execute_on_error(error)

    def report_swallowed(self, error: Exception) -> None:
        """Log a failure raised from an asynchronous continuation, which has no caller."""
        logger.exception("Asynchronous continuation failed in state %r", self._current, exc_info=error)

    def send_if_current(self, token: ActivationToken, event: EventID, payload: Any = None) -> bool:
        """
        Dispatch ``event`` only while ``token`` is the live token.

        :return: Whether the token was current.
        """
        with self._lock:
            if token is not self._token:
                logger.debug("Discarding %r from stale activation %r", event, token)
                return False
            self.send(event, payload)
            return True

    def _make_snapshot(self, payload: Any) -> Snapshot:
        return Snapshot(
            value=self._current,
            next_events=self._config.next_events(self._current),
            payload=payload,
        )

    def _enter(self, meta: RunMeta, payload: Any, failure: Type[TransitionError] = EnterError) -> None:
        token = self._token
        self._hook_manager.execute_on_enter(meta.to, meta)
        node = self._config.node(meta.to)
        result = self._runner.run(node.run, meta, payload, failure)
        if result.kind is not EffectKind.CLEANUP:
            return
        if self._token is token:
            self._cleanup = result.value
        else:
            # The effect already moved the machine on, so its activation is over.
            self._invoke_cleanup(result.value, meta.to)

    def _release_cleanup(
        self, from_state: StateID, to_state: Optional[StateID] = None, event: Optional[EventID] = None
    ) -> None:
        cleanup, self._cleanup = self._cleanup, None
        if cleanup is not None:
            self._invoke_cleanup(cleanup, from_state, to_state, event)

    def _invoke_cleanup(
        self,
        cleanup: Callable[[], Any],
        from_state: StateID,
        to_state: Optional[StateID] = None,
        event: Optional[EventID] = None,
    ) -> None:
        try:
            cleanup()
        except Exception as exc:
            error = CleanupError(from_state, to_state, event)
            error.__cause__ = exc
            self.report_error(error)
            raise error from exc

    def __repr__(self) -> str:
        return f"<StateMachine state={self._current!r} stopped={self._stopped}>"
