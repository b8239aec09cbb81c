"""Capability schema for authadmin.

Defines the resources and actions an admin capability can name.
Uses a matrix approach: capabilities = resource × allowed actions.

Capability string format: "resource:action"
Examples:
  - user:ban
  - user:impersonate
  - session:revoke
"""

from enum import Enum
from typing import Dict, FrozenSet, Iterable, Mapping, NamedTuple, Optional, Tuple


class Resource(str, Enum):
    """Resources that privileged operations act on."""

    USER = "user"
    SESSION = "session"


class Action(str, Enum):
    """Actions that can be granted on a resource."""

    CREATE = "create"
    LIST = "list"
    SET_ROLE = "set-role"
    BAN = "ban"
    IMPERSONATE = "impersonate"
    DELETE = "delete"
    SET_PASSWORD = "set-password"
    UPDATE = "update"
    REVOKE = "revoke"


class Permission(NamedTuple):
    """A capability is a combination of resource and action."""
    resource: str
    action: str

    def __str__(self) -> str:
        return f"{_text(self.resource)}:{_text(self.action)}"


# Capability schema: maps each resource to the actions defined for it
CAPABILITY_SCHEMA: Dict[str, FrozenSet[str]] = {
    Resource.USER.value: frozenset([
        Action.CREATE.value, Action.LIST.value, Action.SET_ROLE.value,
        Action.BAN.value, Action.IMPERSONATE.value, Action.DELETE.value,
        Action.SET_PASSWORD.value, Action.UPDATE.value,
    ]),
    Resource.SESSION.value: frozenset([
        Action.LIST.value, Action.REVOKE.value, Action.DELETE.value,
    ]),
}


def _text(value) -> str:
    return str(getattr(value, "value", value))


# Stands in for action values that are not an iterable of actions; never granted
INVALID_ACTION = "<invalid>"

PermissionRequest = Mapping[str, Iterable[str]]
NormalizedRequest = Dict[str, Tuple[str, ...]]


def normalize_request(request: Optional[PermissionRequest]) -> NormalizedRequest:
    """Normalize a permission request to ``{resource: (action, ...)}``.

    A bare string for a resource's actions is treated as a single action.
    Anything that is not a mapping normalizes to an empty request. An action
    value that cannot be iterated becomes a single action that no role holds.
    """
    if not isinstance(request, Mapping):
        return {}
    normalized: NormalizedRequest = {}
    for resource, actions in request.items():
        if actions is None:
            actions = ()
        elif isinstance(actions, str):
            actions = (actions,)
        else:
            try:
                actions = tuple(actions)
            except TypeError:
                actions = (INVALID_ACTION,)
        normalized[_text(resource)] = tuple(_text(a) for a in actions)
    return normalized


def iter_pairs(request: Optional[PermissionRequest]) -> Iterable[Permission]:
    """Yield every requested (resource, action) pair."""
    for resource, actions in normalize_request(request).items():
        for action in actions:
            yield Permission(resource, action)


def is_valid_permission(
    perm: Permission,
    schema: Mapping[str, FrozenSet[str]] = CAPABILITY_SCHEMA,
) -> bool:
    """Check if a capability exists in the schema."""
    return _text(perm.action) in schema.get(_text(perm.resource), frozenset())

