"""Abstract boundaries consumed by the admin core.

The identity store persists users, sessions and accounts; the session cookie
controller owns the transport-level cookies. Both are supplied by the host
application. ``authadmin.db.store`` and ``authadmin.api.cookies`` ship the
reference implementations.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from authadmin.core.records import SessionRecord, SessionWithUser, UserRecord


@dataclass(frozen=True)
class SessionCreateContext:
    """Context of a session-creation attempt, as seen by session hooks."""

    path: str = ""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass(frozen=True)
class Where:
    """A single list-users condition."""

    field: str
    value: Any
    operator: str = "eq"  # eq, ne, lt, lte, gt, gte, contains, starts_with, ends_with


@dataclass(frozen=True)
class SortBy:
    field: str
    direction: str = "asc"


@dataclass(frozen=True)
class CookieSpec:
    """Name and attributes of an auth cookie."""

    name: str
    options: Dict[str, Any] = field(default_factory=dict)


# (user_id, context) -> None; raising aborts the session creation
SessionCreateHook = Callable[[str, SessionCreateContext], None]


class IdentityStore(ABC):
    """Persistent user/session/account storage."""

    @abstractmethod
    def find_user_by_id(self, user_id: str) -> Optional[UserRecord]:
        ...

    @abstractmethod
    def find_user_by_email(self, email: str) -> Optional[UserRecord]:
        ...

    @abstractmethod
    def create_user(self, data: Dict[str, Any]) -> Optional[UserRecord]:
        ...

    @abstractmethod
    def update_user(self, user_id: str, patch: Dict[str, Any]) -> Optional[UserRecord]:
        """Apply ``patch`` and return the updated user, or None if absent."""

    @abstractmethod
    def delete_user(self, user_id: str) -> None:
        """Delete a user with all of their sessions and accounts."""

    @abstractmethod
    def link_account(
        self,
        user_id: str,
        provider_id: str,
        account_id: str,
        password: Optional[str] = None,
    ) -> None:
        ...

    @abstractmethod
    def update_password(self, user_id: str, password_hash: str) -> int:
        """Update the credential account password; returns rows updated."""

    @abstractmethod
    def find_session(self, token: str) -> Optional[SessionWithUser]:
        """Resolve an unexpired session by token."""

    @abstractmethod
    def create_session(
        self,
        user_id: str,
        context: Optional[SessionCreateContext] = None,
        *,
        overrides: Optional[Dict[str, Any]] = None,
        privileged: bool = False,
    ) -> Optional[SessionRecord]:
        """Create a session after running every registered session hook.

        ``privileged`` only allows ``overrides`` to set protected fields
        (``impersonated_by``, ``expires_at``); hooks always run.
        """

    @abstractmethod
    def delete_session(self, token: str) -> None:
        ...

    @abstractmethod
    def delete_sessions(self, user_id: str) -> None:
        ...

    @abstractmethod
    def list_sessions(self, user_id: str) -> List[SessionRecord]:
        ...

    @abstractmethod
    def list_users(
        self,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        sort_by: Optional[SortBy] = None,
        where: Optional[List[Where]] = None,
    ) -> List[UserRecord]:
        ...

    @abstractmethod
    def count_total_users(self, where: Optional[List[Where]] = None) -> int:
        ...


class SessionCookieController(ABC):
    """Reads and writes the transport-level session cookies of one request."""

    @abstractmethod
    def create_auth_cookie(self, name: str) -> CookieSpec:
        ...

    @abstractmethod
    def get_session_token(self) -> Optional[str]:
        """Unsigned token of the primary session cookie, if present."""

    @abstractmethod
    def set_session_cookie(
        self,
        session: SessionRecord,
        user: UserRecord,
        dont_remember_me: bool = False,
    ) -> None:
        ...

    @abstractmethod
    def delete_session_cookie(self) -> None:
        """Expire the primary session cookie; the session row is untouched."""

    @abstractmethod
    def get_signed_cookie(self, name: str) -> Optional[str]:
        """Unsigned value of a cookie, or None if absent or tampered."""

    @abstractmethod
    def set_signed_cookie(
        self,
        name: str,
        value: str,
        options: Optional[Dict[str, Any]] = None,
    ) -> None:
        ...

    @abstractmethod
    def delete_cookie(self, name: str) -> None:
        ...

    @property
    def dont_remember_cookie(self) -> CookieSpec:
        return self.create_auth_cookie("dont_remember")

    @property
    def session_token_cookie(self) -> CookieSpec:
        return self.create_auth_cookie("session_token")

