"""Role normalization and the default role policy.

A user's role is stored as a comma-joined string ("admin,support") and
evaluated as an ordered set. Every boundary crossing goes through
``parse_roles`` / ``serialize_roles`` so raw strings are never compared.
"""

from typing import Dict, Iterable, List, Tuple, Union

from .permissions import CAPABILITY_SCHEMA


ROLE_DELIMITER = ","

RoleInput = Union[str, Iterable[str], None]


def parse_roles(roles: RoleInput) -> Tuple[str, ...]:
    """Normalize a role string or list into an ordered, de-duplicated tuple."""
    if roles is None:
        return ()
    if isinstance(roles, str):
        candidates: Iterable[str] = roles.split(ROLE_DELIMITER)
    else:
        candidates = (
            part
            for role in roles
            for part in str(role).split(ROLE_DELIMITER)
        )
    seen: Dict[str, None] = {}
    for candidate in candidates:
        role = candidate.strip()
        if role:
            seen.setdefault(role, None)
    return tuple(seen)


def serialize_roles(roles: RoleInput) -> str:
    """Join roles into the stored string form."""
    return ROLE_DELIMITER.join(parse_roles(roles))


def _full_schema_grant() -> Dict[str, List[str]]:
    return {resource: sorted(actions) for resource, actions in CAPABILITY_SCHEMA.items()}


# Admin: every capability in the schema
ADMIN_POLICY = _full_schema_grant()

DEFAULT_ROLE_POLICY: Dict[str, Dict[str, List[str]]] = {
    "admin": ADMIN_POLICY,
    "user": {},
}

