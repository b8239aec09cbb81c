"""Admin API endpoints."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from authadmin.api.cookies import ResponseCookieController
from authadmin.api.deps import (
    get_admin_service,
    get_cookies,
    get_current_session,
    get_optional_session,
    get_session_context,
)
from authadmin.api.schemas.admin import (
    BanUserBody,
    CreateUserBody,
    HasPermissionBody,
    RevokeSessionBody,
    SessionListResponse,
    SessionUserResponse,
    SetRoleBody,
    SetUserPasswordBody,
    StatusResponse,
    SuccessResponse,
    UpdateUserBody,
    UserIdBody,
    UserResponse,
)
from authadmin.core.errors import Unauthorized
from authadmin.core.interfaces import SessionCreateContext
from authadmin.core.records import (
    PermissionCheckResult,
    SessionRecord,
    SessionWithUser,
    UserList,
    UserRecord,
)
from authadmin.core.service import AdminService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/set-role", response_model=UserResponse)
def set_role(
    body: SetRoleBody,
    caller: SessionWithUser = Depends(get_current_session),
    service: AdminService = Depends(get_admin_service),
):
    """Set the role(s) of a user."""
    return UserResponse(user=service.set_role(caller, body.user_id, body.role))


@router.post("/create-user", response_model=UserResponse)
def create_user(
    body: CreateUserBody,
    caller: SessionWithUser = Depends(get_current_session),
    service: AdminService = Depends(get_admin_service),
):
    """Create a user with an email/password credential."""
    user = service.create_user(
        caller,
        email=body.email,
        password=body.password,
        name=body.name,
        role=body.role,
        data=body.data,
    )
    return UserResponse(user=user)


@router.post("/update-user", response_model=UserRecord)
def update_user(
    body: UpdateUserBody,
    caller: SessionWithUser = Depends(get_current_session),
    service: AdminService = Depends(get_admin_service),
):
    return service.update_user(caller, body.user_id, body.data)


@router.get("/list-users", response_model=UserList)
def list_users(
    caller: SessionWithUser = Depends(get_current_session),
    service: AdminService = Depends(get_admin_service),
    search_value: Optional[str] = Query(None, alias="searchValue"),
    search_field: str = Query("email", alias="searchField", pattern="^(email|name)$"),
    search_operator: str = Query(
        "contains", alias="searchOperator", pattern="^(contains|starts_with|ends_with)$",
    ),
    limit: Optional[int] = Query(None, ge=1),
    offset: Optional[int] = Query(None, ge=0),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_direction: str = Query("asc", alias="sortDirection", pattern="^(asc|desc)$"),
    filter_field: str = Query("email", alias="filterField"),
    filter_value: Optional[str] = Query(None, alias="filterValue"),
    filter_operator: str = Query(
        "eq", alias="filterOperator", pattern="^(eq|ne|lt|lte|gt|gte|contains)$",
    ),
):
    """List users with optional search, filter, sort and pagination."""
    return service.list_users(
        caller,
        limit=limit,
        offset=offset,
        sort_by=sort_by,
        sort_direction=sort_direction,
        search_value=search_value,
        search_field=search_field,
        search_operator=search_operator,
        filter_field=filter_field,
        filter_value=filter_value,
        filter_operator=filter_operator,
    )


@router.post("/list-user-sessions", response_model=SessionListResponse)
def list_user_sessions(
    body: UserIdBody,
    caller: SessionWithUser = Depends(get_current_session),
    service: AdminService = Depends(get_admin_service),
):
    return SessionListResponse(sessions=service.list_user_sessions(caller, body.user_id))


@router.post("/ban-user", response_model=UserResponse)
def ban_user(
    body: BanUserBody,
    caller: SessionWithUser = Depends(get_current_session),
    service: AdminService = Depends(get_admin_service),
):
    """Ban a user and revoke all of their sessions."""
    user = service.ban_user(
        caller,
        body.user_id,
        ban_reason=body.ban_reason,
        ban_expires_in=body.ban_expires_in,
    )
    return UserResponse(user=user)


@router.post("/unban-user", response_model=UserResponse)
def unban_user(
    body: UserIdBody,
    caller: SessionWithUser = Depends(get_current_session),
    service: AdminService = Depends(get_admin_service),
):
    return UserResponse(user=service.unban_user(caller, body.user_id))


@router.post("/impersonate-user", response_model=SessionUserResponse)
def impersonate_user(
    body: UserIdBody,
    caller: SessionWithUser = Depends(get_current_session),
    service: AdminService = Depends(get_admin_service),
    cookies: ResponseCookieController = Depends(get_cookies),
    context: SessionCreateContext = Depends(get_session_context),
):
    """Switch the session cookie to a new session for another user."""
    result = service.impersonate_user(caller, body.user_id, cookies, context)
    return SessionUserResponse(session=result.session, user=result.user)


@router.post("/stop-impersonating", response_model=SessionUserResponse)
def stop_impersonating(
    current: Optional[SessionWithUser] = Depends(get_optional_session),
    service: AdminService = Depends(get_admin_service),
    cookies: ResponseCookieController = Depends(get_cookies),
):
    """Restore the admin session saved when impersonation started."""
    restored = service.stop_impersonating(current, cookies)
    return SessionUserResponse(session=restored.session, user=restored.user)


@router.post("/revoke-user-session", response_model=SuccessResponse)
def revoke_user_session(
    body: RevokeSessionBody,
    caller: SessionWithUser = Depends(get_current_session),
    service: AdminService = Depends(get_admin_service),
):
    return SuccessResponse(success=service.revoke_user_session(caller, body.session_token))


@router.post("/revoke-user-sessions", response_model=SuccessResponse)
def revoke_user_sessions(
    body: UserIdBody,
    caller: SessionWithUser = Depends(get_current_session),
    service: AdminService = Depends(get_admin_service),
):
    return SuccessResponse(success=service.revoke_user_sessions(caller, body.user_id))


@router.post("/remove-user", response_model=SuccessResponse)
def remove_user(
    body: UserIdBody,
    caller: SessionWithUser = Depends(get_current_session),
    service: AdminService = Depends(get_admin_service),
):
    """Delete a user and all their sessions and accounts. Cannot be undone."""
    return SuccessResponse(success=service.remove_user(caller, body.user_id))


@router.post("/set-user-password", response_model=StatusResponse)
def set_user_password(
    body: SetUserPasswordBody,
    caller: SessionWithUser = Depends(get_current_session),
    service: AdminService = Depends(get_admin_service),
):
    return StatusResponse(status=service.set_user_password(caller, body.user_id, body.new_password))


@router.post("/has-permission", response_model=PermissionCheckResult)
def has_permission(
    body: HasPermissionBody,
    caller: Optional[SessionWithUser] = Depends(get_optional_session),
    service: AdminService = Depends(get_admin_service),
):
    """Check permissions for the session user, a user id, or a bare role."""
    return service.user_has_permission(
        body.requested,
        caller=caller,
        user_id=body.user_id,
        role=body.role,
    )


# Mounted without the /admin prefix
session_router = APIRouter(tags=["sessions"])


@session_router.get("/list-sessions", response_model=List[SessionRecord])
def list_sessions(
    caller: Optional[SessionWithUser] = Depends(get_optional_session),
    service: AdminService = Depends(get_admin_service),
):
    """The caller's own sessions; sessions issued for impersonation are hidden."""
    if caller is None:
        raise Unauthorized()
    return service.list_own_sessions(caller)
