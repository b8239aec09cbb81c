"""Impersonation module for authadmin.

Implements the start/stop impersonation state machine.
"""

from .states import (
    ADMIN_COOKIE_NAME,
    ImpersonationState,
    ImpersonationTransition,
    SavedSession,
    VALID_TRANSITIONS,
    can_transition,
    state_of,
)
from .machine import ImpersonationStateMachine

__all__ = [
    "ADMIN_COOKIE_NAME",
    "ImpersonationState",
    "ImpersonationTransition",
    "SavedSession",
    "VALID_TRANSITIONS",
    "can_transition",
    "state_of",
    "ImpersonationStateMachine",
]
