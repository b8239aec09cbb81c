"""RBAC module for authadmin.

Defines the capability schema, role normalization and the permission engine.
"""

from .permissions import (
    CAPABILITY_SCHEMA,
    Action,
    Permission,
    Resource,
    is_valid_permission,
    normalize_request,
)
from .roles import DEFAULT_ROLE_POLICY, parse_roles, serialize_roles
from .checker import PermissionChecker, has_permission

__all__ = [
    "CAPABILITY_SCHEMA",
    "Action",
    "Permission",
    "Resource",
    "is_valid_permission",
    "normalize_request",
    "DEFAULT_ROLE_POLICY",
    "parse_roles",
    "serialize_roles",
    "PermissionChecker",
    "has_permission",
]
