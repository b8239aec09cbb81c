"""Test doubles shared by the unit tests."""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from authadmin.core.interfaces import CookieSpec, SessionCookieController
from authadmin.core.records import SessionRecord, UserRecord


class FrozenClock:
    """Manually advanced clock shared by the components under test."""

    def __init__(self, now: Optional[datetime] = None):
        self.now = now or datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += timedelta(seconds=seconds)


class FakeCookieController(SessionCookieController):
    """In-memory cookie jar. Values are stored unsigned."""

    def __init__(self, jar: Optional[Dict[str, str]] = None, prefix: str = "authadmin"):
        self.jar: Dict[str, str] = dict(jar or {})
        self.prefix = prefix
        self.session_cookie_calls: List[Tuple[str, bool]] = []

    def create_auth_cookie(self, name: str) -> CookieSpec:
        return CookieSpec(name=f"{self.prefix}.{name}", options={"httponly": True})

    def get_session_token(self) -> Optional[str]:
        return self.jar.get(self.session_token_cookie.name)

    def set_session_cookie(
        self,
        session: SessionRecord,
        user: UserRecord,
        dont_remember_me: bool = False,
    ) -> None:
        self.session_cookie_calls.append((session.token, dont_remember_me))
        self.jar[self.session_token_cookie.name] = session.token
        if dont_remember_me:
            self.jar[self.dont_remember_cookie.name] = "true"
        else:
            self.jar.pop(self.dont_remember_cookie.name, None)

    def delete_session_cookie(self) -> None:
        self.jar.pop(self.session_token_cookie.name, None)
        self.jar.pop(self.dont_remember_cookie.name, None)

    def get_signed_cookie(self, name: str) -> Optional[str]:
        return self.jar.get(name)

    def set_signed_cookie(self, name: str, value: str, options: Optional[Dict[str, Any]] = None) -> None:
        self.jar[name] = value

    def delete_cookie(self, name: str) -> None:
        self.jar.pop(name, None)
