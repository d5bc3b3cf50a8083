"""smux: a tiny finite state machine with enter effects

This package provides a flat state machine driven by a declarative table of
states, their event transitions and optional enter effects.

Responsibilities:
    - Tracking exactly one active state
    - Dispatching events along declared transitions
    - Running enter effects and their cleanups
    - Auto-advancing on futures returned by effects
    - Publishing immutable snapshots to subscribers

Cross-cutting Concerns:
    Error Handling:
        - Structured errors tagged with the failing phase (init, enter, cleanup)
        - Original failures chained as the cause

    Logging:
        - Standard library logging under the ``smux`` logger namespace
        - No handlers configured by the library
"""

from smux.binding import MachineBinding
from smux.core import (
    ERROR_EVENT,
    SUCCESS_EVENT,
    CleanupError,
    EnterError,
    InitError,
    MachineConfig,
    MachineError,
    RunContext,
    RunMeta,
    Snapshot,
    StateMachine,
    StateNode,
    StateNotFoundError,
    ValidationError,
    create_state_machine,
)
from smux.mermaid import build_mermaid_diagram

__version__ = "0.1.0"

__all__ = [
    "ERROR_EVENT",
    "SUCCESS_EVENT",
    "CleanupError",
    "EnterError",
    "InitError",
    "MachineBinding",
    "MachineConfig",
    "MachineError",
    "RunContext",
    "RunMeta",
    "Snapshot",
    "StateMachine",
    "StateNode",
    "StateNotFoundError",
    "ValidationError",
    "build_mermaid_diagram",
    "create_state_machine",
]
