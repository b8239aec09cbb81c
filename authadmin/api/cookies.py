"""Session cookie controller over a FastAPI request/response pair.

Cookie values are signed with the settings secret (compact JWS, HS256).
Writes replace any Set-Cookie header already queued for the same cookie, so
a delete followed by a set in one request leaves only the set.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Optional

from fastapi import Request, Response

from authadmin.core.interfaces import CookieSpec, SessionCookieController
from authadmin.core.records import SessionRecord, UserRecord
from authadmin.core.security import sign_value, unsign_value, utcnow

_DELETED = object()


class ResponseCookieController(SessionCookieController):
    def __init__(
        self,
        request: Request,
        response: Response,
        settings,
        *,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.request = request
        self.response = response
        self.secret_key = settings.secret_key
        self.prefix = settings.cookie_prefix
        self.secure = settings.secure_cookies
        self.clock = clock
        # Values written during this request, visible to later reads
        self._written: Dict[str, Any] = {}

    def create_auth_cookie(self, name: str) -> CookieSpec:
        return CookieSpec(
            name=f"{self.prefix}.{name}",
            options={
                "httponly": True,
                "samesite": "lax",
                "secure": self.secure,
                "path": "/",
            },
        )

    def get_session_token(self) -> Optional[str]:
        return self.get_signed_cookie(self.session_token_cookie.name)

    def get_signed_cookie(self, name: str) -> Optional[str]:
        if name in self._written:
            value = self._written[name]
            return None if value is _DELETED else value
        raw = self.request.cookies.get(name)
        if not raw:
            return None
        return unsign_value(raw, self.secret_key)

    def set_signed_cookie(
        self,
        name: str,
        value: str,
        options: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._drop_queued(name)
        self.response.set_cookie(key=name, value=sign_value(value, self.secret_key), **(options or {}))
        self._written[name] = value

    def delete_cookie(self, name: str) -> None:
        self._drop_queued(name)
        self.response.delete_cookie(
            name, path="/", secure=self.secure, httponly=True, samesite="lax",
        )
        self._written[name] = _DELETED

    def set_session_cookie(
        self,
        session: SessionRecord,
        user: UserRecord,
        dont_remember_me: bool = False,
    ) -> None:
        """Point the session cookie at ``session``.

        Remembered sessions get a persistent cookie lasting until the
        session expires; otherwise the cookie ends with the browser session.
        """
        spec = self.session_token_cookie
        options = dict(spec.options)
        if not dont_remember_me:
            remaining = (session.expires_at - self.clock()).total_seconds()
            options["max_age"] = max(int(remaining), 0)
        self.set_signed_cookie(spec.name, session.token, options)

        flag = self.dont_remember_cookie
        if dont_remember_me:
            self.set_signed_cookie(flag.name, "true", flag.options)
        elif self.get_signed_cookie(flag.name) is not None:
            self.delete_cookie(flag.name)

    def delete_session_cookie(self) -> None:
        self.delete_cookie(self.session_token_cookie.name)
        self.delete_cookie(self.dont_remember_cookie.name)

    def _drop_queued(self, name: str) -> None:
        prefix = f"{name}=".encode("latin-1")
        self.response.raw_headers[:] = [
            (key, value)
            for key, value in self.response.raw_headers
            if not (key == b"set-cookie" and value.startswith(prefix))
        ]
