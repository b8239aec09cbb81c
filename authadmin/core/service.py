"""Admin service for privileged user and session operations.

Each operation authorizes the caller against one capability, performs the
identity-store mutation and returns structured records.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from authadmin.core.ban import CLEARED_BAN
from authadmin.core.errors import (
    AdminErrorCode,
    BadRequest,
    InternalError,
    NotFound,
    Unauthorized,
)
from authadmin.core.impersonation import ImpersonationStateMachine
from authadmin.core.interfaces import (
    IdentityStore,
    SessionCookieController,
    SessionCreateContext,
    SortBy,
    Where,
)
from authadmin.core.rbac.checker import PermissionChecker
from authadmin.core.rbac.permissions import PermissionRequest, normalize_request
from authadmin.core.rbac.roles import RoleInput, serialize_roles
from authadmin.core.records import (
    PermissionCheckResult,
    SessionRecord,
    SessionWithUser,
    UserList,
    UserRecord,
)
from authadmin.core.security import expires_in, get_password_hash, utcnow

logger = logging.getLogger(__name__)

CREDENTIAL_PROVIDER = "credential"

# Fields update_user accepts, keyed by every accepted spelling
USER_FIELDS = {
    "name": "name",
    "email": "email",
    "email_verified": "email_verified",
    "emailVerified": "email_verified",
    "image": "image",
    "role": "role",
}


class AdminService:
    """
    High-level service for admin operations.

    Handles:
    - Role assignment and user creation/update/removal
    - Bans, with cascade revocation of the user's sessions
    - Session listing and revocation
    - Impersonation start/stop
    - Permission introspection
    """

    def __init__(
        self,
        store: IdentityStore,
        settings,
        *,
        checker: Optional[PermissionChecker] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize the admin service.

        Args:
            store: Identity store with the ban hook registered
            settings: Immutable authadmin settings
            checker: Permission checker; built from settings when omitted
            clock: Source of the current time
        """
        self.store = store
        self.settings = settings
        self.checker = checker or PermissionChecker.from_settings(settings)
        self.clock = clock

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def set_role(self, caller: SessionWithUser, user_id: str, role: RoleInput) -> UserRecord:
        self.checker.require(
            caller.user, {"user": ["set-role"]},
            AdminErrorCode.YOU_ARE_NOT_ALLOWED_TO_CHANGE_USERS_ROLE,
        )
        serialized = serialize_roles(role)
        if not serialized:
            raise BadRequest(AdminErrorCode.ROLE_REQUIRED)

        user = self.store.update_user(user_id, {"role": serialized})
        if user is None:
            raise NotFound(AdminErrorCode.USER_NOT_FOUND)
        logger.info("User %s set role of %s to %r", caller.user.id, user_id, serialized)
        return user

    def create_user(
        self,
        caller: Optional[SessionWithUser],
        *,
        email: str,
        password: str,
        name: str,
        role: RoleInput = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> UserRecord:
        """Create a user with a credential account.

        ``caller`` is None only for server-side bootstrap, which skips the
        permission check.
        """
        if caller is not None:
            self.checker.require(
                caller.user, {"user": ["create"]},
                AdminErrorCode.YOU_ARE_NOT_ALLOWED_TO_CREATE_USERS,
            )

        values = {
            "email": email,
            "name": name,
            "role": serialize_roles(role) or self.settings.default_role,
            **self._user_patch(data or {}, allow_empty=True),
        }
        if self.store.find_user_by_email(values["email"]) is not None:
            raise BadRequest(AdminErrorCode.USER_ALREADY_EXISTS)

        user = self.store.create_user(values)
        if user is None:
            raise InternalError(AdminErrorCode.FAILED_TO_CREATE_USER)

        self.store.link_account(
            user.id,
            CREDENTIAL_PROVIDER,
            account_id=user.id,
            password=get_password_hash(password),
        )
        logger.info(
            "User %s created user %s with role %r",
            caller.user.id if caller else "<bootstrap>", user.id, user.role,
        )
        return user

    def update_user(self, caller: SessionWithUser, user_id: str, data: Dict[str, Any]) -> UserRecord:
        self.checker.require(
            caller.user, {"user": ["update"]},
            AdminErrorCode.YOU_ARE_NOT_ALLOWED_TO_UPDATE_USERS,
        )
        patch = self._user_patch(data)
        user = self.store.update_user(user_id, patch)
        if user is None:
            raise NotFound(AdminErrorCode.USER_NOT_FOUND)
        logger.info("User %s updated %s fields of %s", caller.user.id, sorted(patch), user_id)
        return user

    def remove_user(self, caller: SessionWithUser, user_id: str) -> bool:
        self.checker.require(
            caller.user, {"user": ["delete"]},
            AdminErrorCode.YOU_ARE_NOT_ALLOWED_TO_DELETE_USERS,
        )
        if self.store.find_user_by_id(user_id) is None:
            raise NotFound(AdminErrorCode.USER_NOT_FOUND)
        self.store.delete_user(user_id)
        logger.info("User %s removed user %s", caller.user.id, user_id)
        return True

    def set_user_password(self, caller: SessionWithUser, user_id: str, new_password: str) -> bool:
        self.checker.require(
            caller.user, {"user": ["set-password"]},
            AdminErrorCode.YOU_ARE_NOT_ALLOWED_TO_SET_USERS_PASSWORD,
        )
        if self.store.find_user_by_id(user_id) is None:
            raise NotFound(AdminErrorCode.USER_NOT_FOUND)
        if not self.store.update_password(user_id, get_password_hash(new_password)):
            raise NotFound(AdminErrorCode.CREDENTIAL_ACCOUNT_NOT_FOUND)
        logger.info("User %s set the password of %s", caller.user.id, user_id)
        return True

    def list_users(
        self,
        caller: SessionWithUser,
        *,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        sort_by: Optional[str] = None,
        sort_direction: str = "asc",
        search_value: Optional[str] = None,
        search_field: str = "email",
        search_operator: str = "contains",
        filter_field: str = "email",
        filter_value: Any = None,
        filter_operator: str = "eq",
    ) -> UserList:
        """List users. Store failures degrade to an empty page."""
        self.checker.require(
            caller.user, {"user": ["list"]},
            AdminErrorCode.YOU_ARE_NOT_ALLOWED_TO_LIST_USERS,
        )
        where: List[Where] = []
        if search_value:
            where.append(Where(search_field, search_value, search_operator))
        if filter_value is not None and filter_value != "":
            where.append(Where(filter_field, filter_value, filter_operator))
        sort = SortBy(sort_by, sort_direction) if sort_by else None

        try:
            users = self.store.list_users(limit, offset, sort, where or None)
            total = self.store.count_total_users(where or None)
        except InternalError:
            logger.exception("Listing users failed; returning an empty page")
            return UserList(users=[], total=0)
        return UserList(users=users, total=total, limit=limit, offset=offset)

    # ------------------------------------------------------------------
    # Bans
    # ------------------------------------------------------------------

    def ban_user(
        self,
        caller: SessionWithUser,
        user_id: str,
        *,
        ban_reason: Optional[str] = None,
        ban_expires_in: Optional[int] = None,
    ) -> UserRecord:
        """Ban a user and revoke all of their sessions."""
        self.checker.require(
            caller.user, {"user": ["ban"]},
            AdminErrorCode.YOU_ARE_NOT_ALLOWED_TO_BAN_USERS,
        )
        if user_id == caller.user.id:
            raise BadRequest(AdminErrorCode.YOU_CANNOT_BAN_YOURSELF)

        expires_after = ban_expires_in or self.settings.default_ban_expires_in
        user = self.store.update_user(user_id, {
            "banned": True,
            "ban_reason": ban_reason or self.settings.default_ban_reason,
            "ban_expires": expires_in(expires_after, self.clock()) if expires_after else None,
        })
        if user is None:
            raise NotFound(AdminErrorCode.USER_NOT_FOUND)

        # A sign-in racing this delete can still slip through; accepted
        self.store.delete_sessions(user_id)
        logger.info(
            "User %s banned %s until %s: %s",
            caller.user.id, user_id, user.ban_expires or "forever", user.ban_reason,
        )
        return user

    def unban_user(self, caller: SessionWithUser, user_id: str) -> UserRecord:
        self.checker.require(
            caller.user, {"user": ["ban"]},
            AdminErrorCode.YOU_ARE_NOT_ALLOWED_TO_BAN_USERS,
        )
        user = self.store.update_user(user_id, dict(CLEARED_BAN))
        if user is None:
            raise NotFound(AdminErrorCode.USER_NOT_FOUND)
        logger.info("User %s unbanned %s", caller.user.id, user_id)
        return user

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def list_user_sessions(self, caller: SessionWithUser, user_id: str) -> List[SessionRecord]:
        self.checker.require(
            caller.user, {"session": ["list"]},
            AdminErrorCode.YOU_ARE_NOT_ALLOWED_TO_LIST_USERS_SESSIONS,
        )
        return self.store.list_sessions(user_id)

    def list_own_sessions(self, caller: SessionWithUser) -> List[SessionRecord]:
        """The caller's sessions, without sessions issued for impersonation."""
        return [
            session for session in self.store.list_sessions(caller.user.id)
            if not session.impersonated_by
        ]

    def revoke_user_session(self, caller: SessionWithUser, session_token: str) -> bool:
        self.checker.require(
            caller.user, {"session": ["revoke"]},
            AdminErrorCode.YOU_ARE_NOT_ALLOWED_TO_REVOKE_USERS_SESSIONS,
        )
        self.store.delete_session(session_token)
        logger.info("User %s revoked a session", caller.user.id)
        return True

    def revoke_user_sessions(self, caller: SessionWithUser, user_id: str) -> bool:
        self.checker.require(
            caller.user, {"session": ["revoke"]},
            AdminErrorCode.YOU_ARE_NOT_ALLOWED_TO_REVOKE_USERS_SESSIONS,
        )
        self.store.delete_sessions(user_id)
        logger.info("User %s revoked all sessions of %s", caller.user.id, user_id)
        return True

    # ------------------------------------------------------------------
    # Impersonation
    # ------------------------------------------------------------------

    def impersonation(self, cookies: SessionCookieController) -> ImpersonationStateMachine:
        return ImpersonationStateMachine(
            self.store, cookies, self.checker, self.settings, clock=self.clock,
        )

    def impersonate_user(
        self,
        caller: SessionWithUser,
        user_id: str,
        cookies: SessionCookieController,
        context: Optional[SessionCreateContext] = None,
    ) -> SessionWithUser:
        return self.impersonation(cookies).start(caller, user_id, context)

    def stop_impersonating(
        self,
        current: Optional[SessionWithUser],
        cookies: SessionCookieController,
    ) -> SessionWithUser:
        return self.impersonation(cookies).stop(current)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def user_has_permission(
        self,
        permissions: Optional[PermissionRequest],
        *,
        caller: Optional[SessionWithUser] = None,
        user_id: Optional[str] = None,
        role: Optional[str] = None,
        require_actor: bool = True,
    ) -> PermissionCheckResult:
        """Check a permission request for the session user, a user id or a role.

        The actor is resolved from the session first, then the explicit user
        id, then the explicit role. Never mutates anything.
        """
        request = normalize_request(permissions)
        if not request:
            raise BadRequest(AdminErrorCode.NO_PERMISSIONS_PASSED)
        if caller is None and require_actor and not user_id and not role:
            raise Unauthorized()

        actor_id: Optional[str] = None
        actor_role: Optional[str] = None
        if caller is not None:
            actor_id, actor_role = caller.user.id, caller.user.role
        else:
            user = self.store.find_user_by_id(user_id) if user_id else None
            if user is not None:
                actor_id, actor_role = user.id, user.role
            elif role:
                actor_id, actor_role = "", role
            else:
                raise BadRequest(AdminErrorCode.USER_NOT_FOUND)

        allowed = self.checker.authorize(actor_role, request, user_id=actor_id)
        return PermissionCheckResult(error=None, success=allowed)

    # ------------------------------------------------------------------

    def _user_patch(self, data: Dict[str, Any], *, allow_empty: bool = False) -> Dict[str, Any]:
        if not data and not allow_empty:
            raise BadRequest(AdminErrorCode.NO_DATA_TO_UPDATE)
        patch: Dict[str, Any] = {}
        for key, value in data.items():
            field = USER_FIELDS.get(key)
            if field is None:
                raise BadRequest(
                    AdminErrorCode.INVALID_USER_FIELD,
                    message=f"Invalid user field: {key}",
                )
            if field == "email" and not (isinstance(value, str) and value.strip()):
                raise BadRequest(AdminErrorCode.INVALID_USER_FIELD, message="Invalid user field: email")
            if field == "role":
                value = serialize_roles(value)
                if not value:
                    raise BadRequest(AdminErrorCode.ROLE_REQUIRED)
            patch[field] = value
        return patch
