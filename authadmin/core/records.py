"""Structured records returned by the identity store and admin operations.

Stores hand back these models, never raw rows, so the HTTP layer can
serialize them directly.
"""

from datetime import datetime
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from authadmin.core.rbac.roles import parse_roles


class UserRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: Optional[str] = None
    email_verified: bool = False
    image: Optional[str] = None
    role: Optional[str] = None
    banned: bool = False
    ban_reason: Optional[str] = None
    ban_expires: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def roles(self) -> Tuple[str, ...]:
        return parse_roles(self.role)


class SessionRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    token: str
    user_id: str
    expires_at: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    impersonated_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SessionWithUser(BaseModel):
    """A resolved session together with the user it belongs to."""

    session: SessionRecord
    user: UserRecord


class UserList(BaseModel):
    users: List[UserRecord]
    total: int
    limit: Optional[int] = None
    offset: Optional[int] = None


class PermissionCheckResult(BaseModel):
    error: Optional[Any] = None
    success: bool
