"""Role-based access control.

The permission matrix is written out cell by cell; no role inherits from
another. Every check is fail-closed: an actor without a recognized role
holds no permission at all.
"""

from __future__ import annotations

import logging
from typing import FrozenSet, Iterable, Mapping, Optional, Union

from cortex_guard.core.enums import Permission, Role
from cortex_guard.core.errors import PermissionDenied
from cortex_guard.core.protocols import Actor

logger = logging.getLogger(__name__)


PERMISSION_MATRIX: Mapping[Role, FrozenSet[Permission]] = {
    Role.ADMIN: frozenset({
        Permission.CONFIG_READ,
        Permission.CONFIG_WRITE,
        Permission.AUDIT_READ,
        Permission.AUDIT_WRITE,
        Permission.SKILLS_READ,
        Permission.SKILLS_WRITE,
        Permission.INTEGRATIONS_USE,
        Permission.DEPLOY_RUN,
        Permission.APPROVALS_DECIDE,
    }),
    Role.MANAGER: frozenset({
        Permission.CONFIG_READ,
        Permission.AUDIT_READ,
        Permission.SKILLS_READ,
        Permission.INTEGRATIONS_USE,
        Permission.DEPLOY_RUN,
        Permission.APPROVALS_DECIDE,
    }),
    Role.DEVELOPER: frozenset({
        Permission.CONFIG_READ,
        Permission.AUDIT_READ,
        Permission.SKILLS_READ,
        Permission.SKILLS_WRITE,
        Permission.INTEGRATIONS_USE,
    }),
    Role.VIEWER: frozenset({
        Permission.CONFIG_READ,
        Permission.SKILLS_READ,
    }),
}

# A new Role without a row must fail at import, not silently deny.
_missing_rows = set(Role) - set(PERMISSION_MATRIX)
if _missing_rows:
    raise RuntimeError(
        f"Permission matrix has no row for: {sorted(r.value for r in _missing_rows)}"
    )


def normalize_roles(raw_roles: Optional[Iterable[object]]) -> FrozenSet[Role]:
    """Lower-case role strings and keep only the recognized ones."""
    roles = set()
    for raw in raw_roles or ():
        if isinstance(raw, Role):
            roles.add(raw)
            continue
        if not isinstance(raw, str):
            continue
        try:
            roles.add(Role(raw.strip().lower()))
        except ValueError:
            continue
    return frozenset(roles)


def _coerce_permission(permission: Union[Permission, str]) -> Optional[Permission]:
    try:
        return Permission(permission)
    except ValueError:
        return None


def has_permission(actor: Actor, permission: Union[Permission, str]) -> bool:
    perm = _coerce_permission(permission)
    if perm is None:
        return False
    roles = normalize_roles(actor.roles)
    if not roles:
        return False
    return any(perm in PERMISSION_MATRIX[role] for role in roles)


def permissions_for(actor: Actor) -> FrozenSet[Permission]:
    """Union of every matrix cell granted to the actor's roles."""
    granted: set[Permission] = set()
    for role in normalize_roles(actor.roles):
        granted |= PERMISSION_MATRIX[role]
    return frozenset(granted)


def assert_permission(actor: Actor, permission: Union[Permission, str]) -> None:
    """Raise PermissionDenied unless the actor holds *permission*.

    Call before the guarded action runs; nothing may execute on failure.
    """
    if has_permission(actor, permission):
        return
    perm = _coerce_permission(permission)
    perm_name = perm.value if perm is not None else str(permission)
    logger.info("Permission denied: %s lacks %s", actor.label, perm_name)
    raise PermissionDenied(actor.label, perm_name)
