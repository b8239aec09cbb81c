"""Error taxonomy for admin operations.

Every failure an admin operation can surface is an ``AdminAPIError`` carrying
an HTTP status, a stable machine-readable code and a user-facing message.
The API layer renders them as ``{"message": ..., "code": ...}``.
"""

from enum import Enum
from typing import Optional, Union


class AdminErrorCode(str, Enum):
    """Stable error codes. The member name is the code, the value the message."""

    # Authorization
    YOU_ARE_NOT_ALLOWED_TO_CHANGE_USERS_ROLE = "You are not allowed to change users role"
    YOU_ARE_NOT_ALLOWED_TO_CREATE_USERS = "You are not allowed to create users"
    YOU_ARE_NOT_ALLOWED_TO_UPDATE_USERS = "You are not allowed to update users"
    YOU_ARE_NOT_ALLOWED_TO_LIST_USERS = "You are not allowed to list users"
    YOU_ARE_NOT_ALLOWED_TO_LIST_USERS_SESSIONS = "You are not allowed to list users sessions"
    YOU_ARE_NOT_ALLOWED_TO_BAN_USERS = "You are not allowed to ban users"
    YOU_ARE_NOT_ALLOWED_TO_IMPERSONATE_USERS = "You are not allowed to impersonate users"
    YOU_ARE_NOT_ALLOWED_TO_REVOKE_USERS_SESSIONS = "You are not allowed to revoke users sessions"
    YOU_ARE_NOT_ALLOWED_TO_DELETE_USERS = "You are not allowed to delete users"
    YOU_ARE_NOT_ALLOWED_TO_SET_USERS_PASSWORD = "You are not allowed to set users password"
    BANNED_USER = "You have been banned from this application"

    # Validation
    YOU_CANNOT_BAN_YOURSELF = "You cannot ban yourself"
    YOU_CANNOT_IMPERSONATE_YOURSELF = "You cannot impersonate yourself"
    ALREADY_IMPERSONATING = "You are already impersonating a user"
    NOT_IMPERSONATING = "You are not impersonating anyone"
    NO_DATA_TO_UPDATE = "No data to update"
    INVALID_USER_FIELD = "Invalid user field"
    ROLE_REQUIRED = "At least one role is required"
    USER_ALREADY_EXISTS = "User already exists"
    NO_PERMISSIONS_PASSED = "invalid permission check. no permission(s) were passed."

    # Lookup
    USER_NOT_FOUND = "User not found"
    CREDENTIAL_ACCOUNT_NOT_FOUND = "Credential account not found"

    # Internal
    UNAUTHORIZED = "Unauthorized"
    FAILED_TO_CREATE_USER = "Failed to create user"
    FAILED_TO_CREATE_SESSION = "Failed to create session"
    FAILED_TO_FIND_USER = "Failed to find user"
    FAILED_TO_FIND_ADMIN_SESSION = "Failed to find admin session"
    STORE_ERROR = "Identity store error"


class AdminAPIError(Exception):
    """Base class for admin operation failures."""

    status_code: int = 500
    default_code: AdminErrorCode = AdminErrorCode.STORE_ERROR

    def __init__(
        self,
        error: Union[AdminErrorCode, str, None] = None,
        *,
        message: Optional[str] = None,
    ):
        if error is None:
            error = self.default_code
        if isinstance(error, AdminErrorCode):
            self.code = error.name
            self.message = message or error.value
        else:
            self.code = error
            self.message = message or error
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"message": self.message, "code": self.code}


class Unauthorized(AdminAPIError):
    """No valid session where one is required."""

    status_code = 401
    default_code = AdminErrorCode.UNAUTHORIZED


class Forbidden(AdminAPIError):
    """Valid session, insufficient capability."""

    status_code = 403


class BadRequest(AdminAPIError):
    """Malformed or semantically invalid input."""

    status_code = 400


class NotFound(AdminAPIError):
    """Target user or session absent."""

    status_code = 404
    default_code = AdminErrorCode.USER_NOT_FOUND


class InternalError(AdminAPIError):
    """Store inconsistency or corrupted impersonation back-reference."""

    status_code = 500


class BanRedirect(Exception):
    """Raised inside OAuth callback flows where a JSON error cannot be rendered."""

    def __init__(self, url: str):
        super().__init__(url)
        self.url = url
