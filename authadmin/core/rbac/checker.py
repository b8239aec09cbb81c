"""Permission checking for privileged admin operations.

Authorization is two independent steps:

1. Administrator bypass: any configured administrator role (or listed
   administrator user id) is granted everything.
2. Policy coverage: every requested (resource, action) pair must be granted
   by at least one of the actor's roles (AND across pairs, OR across roles).
"""

import logging
from typing import Dict, FrozenSet, Iterable, Mapping, Optional, Set, Union

from authadmin.core.errors import AdminErrorCode, Forbidden

from .permissions import (
    CAPABILITY_SCHEMA,
    Permission,
    PermissionRequest,
    is_valid_permission,
    iter_pairs,
)
from .roles import DEFAULT_ROLE_POLICY, RoleInput, parse_roles

logger = logging.getLogger(__name__)


class PermissionChecker:
    """Evaluates role sets against a static role policy."""

    def __init__(
        self,
        role_policy: Optional[Mapping[str, Mapping[str, Iterable[str]]]] = None,
        admin_roles: RoleInput = ("admin",),
        *,
        admin_user_ids: Union[str, Iterable[str]] = (),
        schema: Mapping[str, FrozenSet[str]] = CAPABILITY_SCHEMA,
    ):
        """
        Initialize with a role policy.

        Args:
            role_policy: Mapping role -> {resource: [actions]}
            admin_roles: Roles granted the full schema unconditionally, as a
                comma string or a list
            admin_user_ids: User ids granted the full schema unconditionally
            schema: Capability schema the policy is validated against

        Raises:
            ValueError: If the policy grants a capability outside the schema
        """
        self.schema = {resource: frozenset(actions) for resource, actions in schema.items()}
        self.admin_roles = frozenset(parse_roles(admin_roles))
        if isinstance(admin_user_ids, str):
            admin_user_ids = admin_user_ids.split(",")
        self.admin_user_ids = frozenset(uid.strip() for uid in admin_user_ids if uid.strip())
        self._grants: Dict[str, Set[Permission]] = {}

        policy = DEFAULT_ROLE_POLICY if role_policy is None else role_policy
        for role, grants in policy.items():
            granted = set()
            for perm in iter_pairs(grants):
                if not is_valid_permission(perm, self.schema):
                    raise ValueError(
                        f"Role {role!r} grants {perm}, which is not in the capability schema"
                    )
                granted.add(perm)
            self._grants[role] = granted

    @classmethod
    def from_settings(cls, settings) -> "PermissionChecker":
        return cls(
            settings.role_policy,
            settings.admin_roles_list,
            admin_user_ids=settings.admin_user_ids_list,
        )

    def is_admin(self, roles: RoleInput, user_id: Optional[str] = None) -> bool:
        """Step 1: administrator bypass."""
        if user_id and user_id in self.admin_user_ids:
            return True
        return any(role in self.admin_roles for role in parse_roles(roles))

    def role_grants(self, role: str, permission: Permission) -> bool:
        """Check whether a single role is granted one exact capability."""
        return permission in self._grants.get(role, ())

    def covers(self, roles: RoleInput, request: PermissionRequest) -> bool:
        """Step 2: every requested pair is granted by at least one role."""
        role_set = parse_roles(roles)
        for permission in iter_pairs(request):
            if not any(self.role_grants(role, permission) for role in role_set):
                return False
        return True

    def authorize(
        self,
        roles: RoleInput,
        request: PermissionRequest,
        *,
        user_id: Optional[str] = None,
    ) -> bool:
        """Check whether a role set satisfies a permission request."""
        if self.is_admin(roles, user_id):
            return True
        return self.covers(roles, request)

    def require(self, user, request: PermissionRequest, error: AdminErrorCode) -> None:
        """Raise Forbidden with ``error`` unless ``user`` is authorized."""
        if not has_permission(user, request, self):
            logger.warning(
                "Denied %s for user %s (roles=%r)",
                ", ".join(str(p) for p in iter_pairs(request)),
                getattr(user, "id", None),
                getattr(user, "role", None),
            )
            raise Forbidden(error)


def has_permission(user, request: PermissionRequest, checker: PermissionChecker) -> bool:
    """
    Check if a user record satisfies a permission request.

    Args:
        user: Object with ``id`` and ``role`` attributes, or a bare role string
        request: Mapping resource -> list of actions
        checker: Configured permission checker

    Returns:
        True if the user is authorized
    """
    if user is None:
        return False
    if isinstance(user, str):
        return checker.authorize(user, request)
    return checker.authorize(
        getattr(user, "role", None),
        request,
        user_id=getattr(user, "id", None),
    )
