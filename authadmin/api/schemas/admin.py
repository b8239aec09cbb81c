"""Request and response bodies for the admin endpoints.

Request fields accept the camelCase names clients send (``userId``) as well
as their snake_case attribute names.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from authadmin.core.records import SessionRecord, UserRecord


class AdminRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class UserIdBody(AdminRequest):
    user_id: str = Field(alias="userId")


class SetRoleBody(UserIdBody):
    role: Union[str, List[str]]


class CreateUserBody(AdminRequest):
    email: EmailStr
    password: str
    name: str
    role: Optional[Union[str, List[str]]] = None
    data: Optional[Dict[str, Any]] = None


class UpdateUserBody(UserIdBody):
    data: Dict[str, Any]


class BanUserBody(UserIdBody):
    ban_reason: Optional[str] = Field(None, alias="banReason")
    ban_expires_in: Optional[int] = Field(None, alias="banExpiresIn", gt=0)


class RevokeSessionBody(AdminRequest):
    session_token: str = Field(alias="sessionToken")


class SetUserPasswordBody(UserIdBody):
    new_password: str = Field(alias="newPassword", min_length=1)


class HasPermissionBody(AdminRequest):
    user_id: Optional[str] = Field(None, alias="userId")
    role: Optional[str] = None
    permissions: Optional[Dict[str, List[str]]] = None
    # Deprecated spelling of ``permissions``
    permission: Optional[Dict[str, List[str]]] = None

    @model_validator(mode="after")
    def _one_permission_field(self):
        if self.permission is not None and self.permissions is not None:
            raise ValueError("Pass either permission or permissions, not both")
        return self

    @property
    def requested(self) -> Optional[Dict[str, List[str]]]:
        return self.permissions if self.permissions is not None else self.permission


class UserResponse(BaseModel):
    user: UserRecord


class SessionUserResponse(BaseModel):
    session: SessionRecord
    user: UserRecord


class SessionListResponse(BaseModel):
    sessions: List[SessionRecord]


class SuccessResponse(BaseModel):
    success: bool = True


class StatusResponse(BaseModel):
    status: bool = True
