"""Role definitions and the static role to permission mapping."""

from __future__ import annotations

from enum import Enum
from typing import Any


class UserRole(str, Enum):
    USER = "USER"
    MODERATOR = "MODERATOR"
    ADMIN = "ADMIN"


class Permission(str, Enum):
    CREATE_PICK = "CREATE_PICK"
    READ_PICK = "READ_PICK"
    UPDATE_OWN_PICK = "UPDATE_OWN_PICK"
    DELETE_OWN_PICK = "DELETE_OWN_PICK"
    UPDATE_ANY_PICK = "UPDATE_ANY_PICK"
    DELETE_ANY_PICK = "DELETE_ANY_PICK"
    CREATE_COMMENT = "CREATE_COMMENT"
    DELETE_OWN_COMMENT = "DELETE_OWN_COMMENT"
    DELETE_ANY_COMMENT = "DELETE_ANY_COMMENT"
    UPDATE_OWN_PROFILE = "UPDATE_OWN_PROFILE"
    UPDATE_ANY_PROFILE = "UPDATE_ANY_PROFILE"
    VIEW_USER = "VIEW_USER"
    MANAGE_USERS = "MANAGE_USERS"
    MANAGE_PAYMENTS = "MANAGE_PAYMENTS"
    VIEW_AUDIT_LOGS = "VIEW_AUDIT_LOGS"
    MODERATE_CONTENT = "MODERATE_CONTENT"


_USER_PERMISSIONS = frozenset(
    {
        Permission.CREATE_PICK,
        Permission.READ_PICK,
        Permission.UPDATE_OWN_PICK,
        Permission.DELETE_OWN_PICK,
        Permission.CREATE_COMMENT,
        Permission.DELETE_OWN_COMMENT,
        Permission.UPDATE_OWN_PROFILE,
        Permission.VIEW_USER,
    }
)

_MODERATOR_PERMISSIONS = _USER_PERMISSIONS | {
    Permission.DELETE_ANY_COMMENT,
    Permission.MODERATE_CONTENT,
}

ROLE_PERMISSIONS: dict[UserRole, frozenset[Permission]] = {
    UserRole.USER: _USER_PERMISSIONS,
    UserRole.MODERATOR: frozenset(_MODERATOR_PERMISSIONS),
    UserRole.ADMIN: frozenset(Permission),
}

_OWN_PERMISSIONS = frozenset(
    {
        Permission.UPDATE_OWN_PICK,
        Permission.DELETE_OWN_PICK,
        Permission.DELETE_OWN_COMMENT,
        Permission.UPDATE_OWN_PROFILE,
    }
)

STAFF_ROLES = frozenset({UserRole.ADMIN, UserRole.MODERATOR})


def _coerce_role(role: UserRole | str) -> UserRole:
    return role if isinstance(role, UserRole) else UserRole(role)


def has_permission(role: UserRole | str, permission: Permission) -> bool:
    """Return whether ``role`` grants ``permission``."""

    try:
        resolved = _coerce_role(role)
    except ValueError:
        return False
    return permission in ROLE_PERMISSIONS.get(resolved, frozenset())


def can_perform(
    role: UserRole | str,
    permission: Permission,
    *,
    actor_id: Any = None,
    owner_id: Any = None,
) -> bool:
    """Return whether an actor may use ``permission`` on a resource.

    ``*_OWN_*`` permissions additionally require ``actor_id == owner_id``.
    """

    if not has_permission(role, permission):
        return False
    if permission in _OWN_PERMISSIONS:
        return owner_id is not None and actor_id == owner_id
    return True


def is_staff(role: UserRole | str) -> bool:
    try:
        return _coerce_role(role) in STAFF_ROLES
    except ValueError:
        return False


__all__ = [
    "Permission",
    "ROLE_PERMISSIONS",
    "STAFF_ROLES",
    "UserRole",
    "can_perform",
    "has_permission",
    "is_staff",
]
