# smux/core/validations.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from collections.abc import Mapping
from typing import List, Set

from smux.core.config import MachineConfig, StateNode
from smux.core.errors import ValidationError


class Validator:
    """
    Performs construction-time validation of a machine configuration and
    reports softer structural findings on request.
    """

    def __init__(self, error_event: str = "ERROR") -> None:
        """
        :param error_event: Event name the machine dispatches when an enter
                            effect fails; used by ``find_issues``.
        """
        self._rules_engine = _ValidationRulesEngine()
        self.error_event = error_event

    def validate_config(self, config: MachineConfig) -> None:
        """
        Check that the configuration can drive a machine at all.

        :param config: The configuration to validate.
        :raises ValidationError: If validation fails.
        """
        self._rules_engine.validate_config(config)

    def find_issues(self, config: MachineConfig) -> List[str]:
        """
        Return human readable findings that do not stop a machine from running:
        transitions to undeclared states, states unreachable from the initial
        one and states with an enter effect but no error transition.
        """
        self._rules_engine.validate_config(config)
        return self._rules_engine.find_issues(config, self.error_event)


class _ValidationRulesEngine:
    """
    Internal engine applying the default rule set. Kept separate so custom
    rules can be slotted in without touching ``Validator``.
    """

    def __init__(self) -> None:
        self._default_rules = _DefaultValidationRules

    def validate_config(self, config: MachineConfig) -> None:
        self._default_rules.validate_config(config)

    def find_issues(self, config: MachineConfig, error_event: str) -> List[str]:
        issues = self._default_rules.dangling_targets(config)
        issues.extend(self._default_rules.unreachable_states(config))
        issues.extend(self._default_rules.unhandled_effects(config, error_event))
        return issues


class _DefaultValidationRules:
    """
    Built-in rules ensuring basic correctness of a configuration.
    """

    @staticmethod
    def validate_config(config: MachineConfig) -> None:
        """
        - The state table must be a mapping of ``StateNode``.
        - The initial state must be declared.
        - Each ``on`` must map string events to string targets.
        - Each ``run`` must be callable or None.
        """
        if not isinstance(config, MachineConfig):
            raise ValidationError(f"Expected MachineConfig, got {type(config).__name__}")
        if not isinstance(config.states, Mapping) or not config.states:
            raise ValidationError("Machine must declare at least one state.")
        if config.initial not in config.states:
            raise ValidationError(f"Initial state {config.initial!r} is not declared.")

        for state_id, node in config.states.items():
            if not isinstance(state_id, str) or not state_id:
                raise ValidationError(f"State ids must be non-empty strings, got {state_id!r}.")
            if not isinstance(node, StateNode):
                raise ValidationError(f"State {state_id!r} must be a StateNode.")
            if not isinstance(node.on, Mapping):
                raise ValidationError(f"Transitions of state {state_id!r} must be a mapping.")
            for event, target in node.on.items():
                if not isinstance(event, str) or not event:
                    raise ValidationError(f"State {state_id!r} declares an invalid event {event!r}.")
                if not isinstance(target, str) or not target:
                    raise ValidationError(f"Event {event!r} of state {state_id!r} has an invalid target {target!r}.")
            if node.run is not None and not callable(node.run):
                raise ValidationError(f"Enter effect of state {state_id!r} must be callable.")

    @staticmethod
    def dangling_targets(config: MachineConfig) -> List[str]:
        return [
            f"State {state_id!r} transitions on {event!r} to undeclared state {target!r}."
            for state_id, node in config.states.items()
            for event, target in node.on.items()
            if target not in config.states
        ]

    @staticmethod
    def unreachable_states(config: MachineConfig) -> List[str]:
        reachable: Set[str] = set()
        pending = [config.initial]
        while pending:
            state_id = pending.pop()
            if state_id in reachable or state_id not in config.states:
                continue
            reachable.add(state_id)
            pending.extend(config.states[state_id].on.values())

        return [
            f"State {state_id!r} is not reachable from initial state {config.initial!r}."
            for state_id in config.states
            if state_id not in reachable
        ]

    @staticmethod
    def unhandled_effects(config: MachineConfig, error_event: str) -> List[str]:
        return [
            f"State {state_id!r} has an enter effect but no {error_event!r} transition."
            for state_id, node in config.states.items()
            if node.run is not None and error_event not in node.on
        ]
