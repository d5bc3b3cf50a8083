# smux/core/config.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional, Tuple

from smux.core.errors import ValidationError

StateID = str
EventID = str

Effect = Callable[..., Any]


def _freeze(mapping: Any) -> Any:
    # Anything that is not a mapping is left for the validator to report.
    if mapping is None:
        return MappingProxyType({})
    if not isinstance(mapping, Mapping):
        return mapping
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class StateNode:
    """
    A single state declaration: its outgoing transitions and an optional
    enter effect.

    :param on: Event name to target state id. Declaration order is kept and
               determines the order of a snapshot's ``next_events``.
    :param run: Enter effect, called with a ``RunContext`` each time the state
                becomes active.
    """

    on: Mapping[EventID, StateID] = field(default_factory=dict)
    run: Optional[Effect] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "on", _freeze(self.on))

    @property
    def events(self) -> Tuple[EventID, ...]:
        """Events accepted by this state, in declaration order."""
        return tuple(self.on)

    def target_for(self, event: EventID) -> Optional[StateID]:
        return self.on.get(event)


@dataclass(frozen=True)
class MachineConfig:
    """
    Immutable machine definition: the initial state id and the table of states.
    """

    initial: StateID
    states: Mapping[StateID, StateNode]

    def __post_init__(self) -> None:
        object.__setattr__(self, "states", _freeze(self.states))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MachineConfig":
        """
        Build a configuration from the plain-dict form::

            {"initial": "idle",
             "states": {"idle": {"on": {"FETCH": "loading"}},
                        "loading": {"on": {...}, "run": effect}}}

        State entries may also already be ``StateNode`` instances.
        """
        states = {}
        for state_id, node in (data.get("states") or {}).items():
            if isinstance(node, StateNode):
                states[state_id] = node
            elif node is None:
                states[state_id] = StateNode()
            elif not isinstance(node, Mapping):
                raise ValidationError(f"State {state_id!r} must be a mapping, got {type(node).__name__}")
            else:
                states[state_id] = StateNode(on=node.get("on") or {}, run=node.get("run"))
        return cls(initial=data.get("initial"), states=states)

    def node(self, state_id: StateID) -> Optional[StateNode]:
        return self.states.get(state_id)

    def next_events(self, state_id: StateID) -> Tuple[EventID, ...]:
        node = self.states.get(state_id)
        return node.events if node is not None else ()


def as_config(config: Any) -> MachineConfig:
    """Accept either a ``MachineConfig`` or its plain-dict form."""
    if isinstance(config, MachineConfig):
        return config
    if isinstance(config, Mapping):
        return MachineConfig.from_dict(config)
    raise TypeError(f"Expected MachineConfig or mapping, got {type(config).__name__}")
