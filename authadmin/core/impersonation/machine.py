"""Impersonation state machine implementation.

Starts and stops impersonation episodes: issues the target's session,
parks the admin's session reference in a signed side cookie and restores it.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from authadmin.core.errors import (
    AdminErrorCode,
    BadRequest,
    InternalError,
    NotFound,
    Unauthorized,
)
from authadmin.core.interfaces import (
    IdentityStore,
    SessionCookieController,
    SessionCreateContext,
)
from authadmin.core.rbac.checker import PermissionChecker
from authadmin.core.records import SessionWithUser
from authadmin.core.security import expires_in, utcnow

from .states import (
    ADMIN_COOKIE_NAME,
    ImpersonationTransition,
    SavedSession,
    can_transition,
    state_of,
)

logger = logging.getLogger(__name__)

IMPERSONATE_PERMISSION = {"user": ["impersonate"]}


class ImpersonationStateMachine:
    """
    State machine for one client's impersonation episode.

    Manages the NORMAL -> IMPERSONATING -> NORMAL cycle with:
    - Permission checking before START
    - Refusal of nested and self impersonation
    - Ban enforcement through the store's session hooks
    - Restoration that verifies the saved admin session's owner
    """

    def __init__(
        self,
        store: IdentityStore,
        cookies: SessionCookieController,
        checker: PermissionChecker,
        settings,
        *,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.cookies = cookies
        self.checker = checker
        self.session_duration = settings.impersonation_session_duration
        self.clock = clock

    @property
    def admin_cookie_name(self) -> str:
        return self.cookies.create_auth_cookie(ADMIN_COOKIE_NAME).name

    def start(
        self,
        caller: SessionWithUser,
        user_id: str,
        context: Optional[SessionCreateContext] = None,
    ) -> SessionWithUser:
        """
        Start impersonating ``user_id`` as ``caller``.

        Returns:
            The new impersonation session and the target user

        Raises:
            Forbidden: Caller lacks user:impersonate, or the target is banned
            BadRequest: Caller is already impersonating, or targets themselves
            NotFound: Target user does not exist
            InternalError: The session could not be created
        """
        self.checker.require(
            caller.user,
            IMPERSONATE_PERMISSION,
            AdminErrorCode.YOU_ARE_NOT_ALLOWED_TO_IMPERSONATE_USERS,
        )
        if not can_transition(state_of(caller.session), ImpersonationTransition.START):
            raise BadRequest(AdminErrorCode.ALREADY_IMPERSONATING)

        target = self.store.find_user_by_id(user_id)
        if target is None:
            raise NotFound(AdminErrorCode.USER_NOT_FOUND)
        if target.id == caller.user.id:
            raise BadRequest(AdminErrorCode.YOU_CANNOT_IMPERSONATE_YOURSELF)

        # Privileged creation still runs the ban hook
        session = self.store.create_session(
            target.id,
            context,
            overrides={
                "impersonated_by": caller.user.id,
                "expires_at": expires_in(self.session_duration, self.clock()),
            },
            privileged=True,
        )
        if session is None:
            raise InternalError(AdminErrorCode.FAILED_TO_CREATE_SESSION)

        dont_remember = self.cookies.get_signed_cookie(self.cookies.dont_remember_cookie.name) or ""
        self.cookies.delete_session_cookie()
        admin_cookie = self.cookies.create_auth_cookie(ADMIN_COOKIE_NAME)
        saved = SavedSession(caller.session.token, dont_remember)
        self.cookies.set_signed_cookie(admin_cookie.name, saved.encode(), admin_cookie.options)
        # Cookie lifetime follows the impersonation session, not the admin's remember-me
        self.cookies.set_session_cookie(session, target, dont_remember_me=True)

        logger.info(
            "User %s started impersonating %s (session %s, expires %s)",
            caller.user.id, target.id, session.id, session.expires_at,
        )
        return SessionWithUser(session=session, user=target)

    def stop(self, current: Optional[SessionWithUser]) -> SessionWithUser:
        """
        Stop impersonating and restore the admin's own session.

        Returns:
            The restored admin session and user

        Raises:
            Unauthorized: There is no current session
            BadRequest: The current session is not an impersonation session
            InternalError: The admin or their saved session cannot be recovered
        """
        if current is None:
            raise Unauthorized()
        if not can_transition(state_of(current.session), ImpersonationTransition.STOP):
            raise BadRequest(AdminErrorCode.NOT_IMPERSONATING)

        admin = self.store.find_user_by_id(current.session.impersonated_by)
        if admin is None:
            raise InternalError(AdminErrorCode.FAILED_TO_FIND_USER)

        saved = SavedSession.decode(self.cookies.get_signed_cookie(self.admin_cookie_name))
        if saved is None:
            logger.error("Admin cookie missing or unreadable for admin %s", admin.id)
            raise InternalError(AdminErrorCode.FAILED_TO_FIND_ADMIN_SESSION)

        restored = self.store.find_session(saved.admin_session_token)
        if restored is None or restored.session.user_id != admin.id:
            logger.error("Saved admin session does not belong to admin %s", admin.id)
            raise InternalError(AdminErrorCode.FAILED_TO_FIND_ADMIN_SESSION)

        self.store.delete_session(current.session.token)
        self.cookies.set_session_cookie(
            restored.session,
            restored.user,
            dont_remember_me=not saved.remember_me,
        )
        self.cookies.delete_cookie(self.admin_cookie_name)

        logger.info(
            "User %s stopped impersonating %s",
            admin.id, current.user.id,
        )
        return restored
