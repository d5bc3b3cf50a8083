"""
Core package providing the transition and effect engine.

Architecture:
- Immutable configuration (states, transitions, enter effects)
- Snapshot publication with identity-stable no-op sends
- Effect runner with cleanup, future auto-dispatch and error recovery
- Activation tokens invalidating callbacks from superseded activations
"""

# Import order matters to avoid circular dependencies
from .errors import (
    CleanupError,
    EnterError,
    ErrorContext,
    InitError,
    MachineError,
    StateNotFoundError,
    TransitionError,
    ValidationError,
)
from .config import MachineConfig, StateNode
from .snapshot import Snapshot, SubscriberRegistry
from .token import ActivationToken, GuardedSend
from .effects import EffectKind, EffectResult, EffectRunner, RunContext, RunMeta
from .hooks import HookManager, HookProtocol
from .validations import Validator
from .state_machine import ERROR_EVENT, SUCCESS_EVENT, StateMachine


def create_state_machine(config, **kwargs) -> StateMachine:
    """Construct and start a machine; see ``StateMachine`` for keyword arguments."""
    return StateMachine(config, **kwargs)


__all__ = [
    # Errors
    "CleanupError",
    "EnterError",
    "ErrorContext",
    "InitError",
    "MachineError",
    "StateNotFoundError",
    "TransitionError",
    "ValidationError",
    # Configuration and state
    "MachineConfig",
    "StateNode",
    "Snapshot",
    "SubscriberRegistry",
    # Effects
    "ActivationToken",
    "GuardedSend",
    "EffectKind",
    "EffectResult",
    "EffectRunner",
    "RunContext",
    "RunMeta",
    # Machine
    "HookManager",
    "HookProtocol",
    "Validator",
    "ERROR_EVENT",
    "SUCCESS_EVENT",
    "StateMachine",
    "create_state_machine",
]
