"""
Lifecycle Module

Tagged lifecycle events and the state machine that applies them.
"""

from .models import (
    LifecycleEvent,
    LifecycleEventType,
    LifecycleOutcome,
    LifecycleResult,
    LifecycleState,
    parse_lifecycle_event,
)
from .state_machine import LifecycleStateMachine

__all__ = [
    "LifecycleEvent",
    "LifecycleEventType",
    "LifecycleOutcome",
    "LifecycleResult",
    "LifecycleState",
    "LifecycleStateMachine",
    "parse_lifecycle_event",
]
