# tests/conftest.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from unittest.mock import MagicMock

import pytest

from smux.core.config import MachineConfig, StateNode


class RecordingHook:
    """Hook implementation collecting every lifecycle call."""

    def __init__(self):
        self.entered = []
        self.exited = []
        self.errors = []

    def on_enter(self, state, meta):
        self.entered.append((state, meta))

    def on_exit(self, state):
        self.exited.append(state)

    def on_error(self, error):
        self.errors.append(error)


@pytest.fixture
def fetch_config():
    """idle --FETCH--> loading --RESOLVE--> success."""
    return MachineConfig(
        initial="idle",
        states={
            "idle": StateNode(on={"FETCH": "loading"}),
            "loading": StateNode(on={"RESOLVE": "success"}),
            "success": StateNode(),
        },
    )


@pytest.fixture
def toggle_config():
    return {
        "initial": "a",
        "states": {
            "a": {"on": {"TO_B": "b"}},
            "b": {"on": {"TO_A": "a"}},
        },
    }


@pytest.fixture
def machine_factory():
    """Returns a factory building a machine from a plain-dict configuration."""
    from smux.core.state_machine import StateMachine

    def _factory(initial, states, **kwargs):
        return StateMachine({"initial": initial, "states": states}, **kwargs)

    return _factory


@pytest.fixture
def recording_hook():
    return RecordingHook()


@pytest.fixture
def listener():
    return MagicMock(name="listener")


@pytest.fixture
def cleanup():
    """A cleanup spy. Spec'd as a plain function so it has no ``add_done_callback``
    and is classified as a cleanup rather than a future."""
    return MagicMock(spec=lambda: None)
