"""Impersonation states and transitions.

State Machine Diagram:

    ┌──────────┐   START    ┌───────────────┐
    │  NORMAL  │──────────►│ IMPERSONATING │
    └──────────┘◄──────────└───────────────┘
                    STOP

While IMPERSONATING, the primary session cookie holds the target's session
and the signed admin cookie holds the only reference back to the admin's
own session (a one-slot stack).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

ADMIN_COOKIE_NAME = "admin_session"
SAVED_SESSION_DELIMITER = ":"


class ImpersonationState(str, Enum):
    """Whose identity the current session carries."""

    NORMAL = "normal"                  # Session belongs to the actor
    IMPERSONATING = "impersonating"    # Session was issued to an admin for another user


class ImpersonationTransition(str, Enum):
    START = "start"
    STOP = "stop"


VALID_TRANSITIONS: Dict[ImpersonationState, Dict[ImpersonationTransition, ImpersonationState]] = {
    ImpersonationState.NORMAL: {
        ImpersonationTransition.START: ImpersonationState.IMPERSONATING,
    },
    ImpersonationState.IMPERSONATING: {
        ImpersonationTransition.STOP: ImpersonationState.NORMAL,
    },
}


def can_transition(state: ImpersonationState, transition: ImpersonationTransition) -> bool:
    """Check if a transition is valid from a state."""
    return transition in VALID_TRANSITIONS.get(state, {})


def state_of(session) -> ImpersonationState:
    """Derive the state from a session record."""
    if session is not None and getattr(session, "impersonated_by", None):
        return ImpersonationState.IMPERSONATING
    return ImpersonationState.NORMAL


@dataclass(frozen=True)
class SavedSession:
    """The admin session parked in the admin cookie during impersonation."""

    admin_session_token: str
    dont_remember: str = ""

    @property
    def remember_me(self) -> bool:
        return not self.dont_remember

    def encode(self) -> str:
        return f"{self.admin_session_token}{SAVED_SESSION_DELIMITER}{self.dont_remember}"

    @classmethod
    def decode(cls, value: Optional[str]) -> Optional["SavedSession"]:
        """Parse an admin cookie value. Returns None if it is empty or malformed."""
        if not value:
            return None
        token, delimiter, flag = value.partition(SAVED_SESSION_DELIMITER)
        if not token or not delimiter:
            return None
        return cls(admin_session_token=token, dont_remember=flag)
