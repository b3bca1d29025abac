"""
Role Registry and Permission Evaluator
======================================

Static definition of every role: hierarchy rank, display label and the
permissions it grants. All functions here are pure.

Rules:
- Ranks are distinct, so seniority is a total order.
- Permission checks fail closed: an unknown role has no permissions.
- Every other function raises UnknownRoleError for a value outside the
  closed role set instead of guessing.

Usage:
    if has_permission(active_role, Permission.MANAGE_ROLES):
        ...
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import FrozenSet, Iterable, List, Mapping, Optional, Union

from willskill.core.exceptions import UnknownRoleError
from willskill.models.role_enum import Role

RoleLike = Union[Role, str]


class Permission:
    """Permission name constants."""
    MANAGE_USERS = "manage_users"
    MANAGE_ROLES = "manage_roles"
    MANAGE_CHAPTERS = "manage_chapters"
    MANAGE_VERTICALS = "manage_verticals"
    MANAGE_CANDIDATES = "manage_candidates"
    MANAGE_SYSTEM_SETTINGS = "manage_system_settings"
    VIEW_AUDIT_LOGS = "view_audit_logs"
    VIEW_ALL_ASSESSMENTS = "view_all_assessments"
    VIEW_CHAPTER_DATA = "view_chapter_data"


class Enforcement(str, Enum):
    """Where a permission check is authoritative."""
    CLIENT_HINT = "client_hint"
    SERVER_ENFORCED = "server_enforced"


@dataclass(frozen=True)
class RoleDefinition:
    """Registry entry for one role."""
    role: Role
    rank: int
    label: str
    permissions: FrozenSet[str]


_DEFINITIONS = (
    RoleDefinition(
        role=Role.SUPER_ADMIN,
        rank=6,
        label="Super Admin",
        permissions=frozenset({
            Permission.MANAGE_USERS,
            Permission.MANAGE_ROLES,
            Permission.MANAGE_CHAPTERS,
            Permission.VIEW_AUDIT_LOGS,
            Permission.MANAGE_VERTICALS,
            Permission.VIEW_ALL_ASSESSMENTS,
            Permission.MANAGE_SYSTEM_SETTINGS,
        }),
    ),
    RoleDefinition(
        role=Role.ADMIN,
        rank=5,
        label="Admin",
        permissions=frozenset({
            Permission.VIEW_AUDIT_LOGS,
            Permission.MANAGE_VERTICALS,
            Permission.VIEW_ALL_ASSESSMENTS,
            Permission.MANAGE_CANDIDATES,
        }),
    ),
    RoleDefinition(
        role=Role.CHAIR,
        rank=4,
        label="Chair",
        permissions=frozenset({
            Permission.VIEW_ALL_ASSESSMENTS,
            Permission.MANAGE_CANDIDATES,
            Permission.VIEW_CHAPTER_DATA,
        }),
    ),
    RoleDefinition(
        role=Role.CO_CHAIR,
        rank=3,
        label="Co-Chair",
        permissions=frozenset({
            Permission.VIEW_ALL_ASSESSMENTS,
            Permission.MANAGE_CANDIDATES,
            Permission.VIEW_CHAPTER_DATA,
        }),
    ),
    RoleDefinition(
        role=Role.EM,
        rank=2,
        label="EM",
        permissions=frozenset({
            Permission.VIEW_ALL_ASSESSMENTS,
            Permission.VIEW_CHAPTER_DATA,
        }),
    ),
    RoleDefinition(
        role=Role.USER,
        rank=1,
        label="User",
        permissions=frozenset(),
    ),
)

ROLE_REGISTRY: Mapping[Role, RoleDefinition] = MappingProxyType(
    {definition.role: definition for definition in _DEFINITIONS}
)


# =====================================
# Lookup
# =====================================

def coerce_role(value: RoleLike) -> Role:
    """
    Convert a role identifier to a Role.

    Raises:
        UnknownRoleError: If the value is not in the closed role set
    """
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        raise UnknownRoleError(value)


def definition_of(role: RoleLike) -> RoleDefinition:
    return ROLE_REGISTRY[coerce_role(role)]


def rank(role: RoleLike) -> int:
    """Hierarchy rank; higher is more privileged."""
    return definition_of(role).rank


def label(role: RoleLike) -> str:
    return definition_of(role).label


def permissions_of(role: RoleLike) -> FrozenSet[str]:
    return definition_of(role).permissions


def all_roles() -> List[Role]:
    """Every role, most senior first."""
    return sort_by_rank(ROLE_REGISTRY)


# =====================================
# Evaluation
# =====================================

def has_permission(role: Optional[RoleLike], permission: str) -> bool:
    """
    Check whether a role grants a permission.

    Unknown or missing roles yield False.
    """
    if role is None:
        return False
    try:
        return permission in permissions_of(role)
    except UnknownRoleError:
        return False


def is_senior(role_a: RoleLike, role_b: RoleLike) -> bool:
    """True iff role_a ranks strictly above role_b."""
    return rank(role_a) > rank(role_b)


def can_manage(acting_role: RoleLike, target_role: RoleLike) -> bool:
    """
    Check whether acting_role may assign or revoke target_role.

    A role manages only roles strictly below it. Super admin ranks above
    every other role, so it manages all of them.
    """
    return is_senior(acting_role, target_role)


def sort_by_rank(roles: Iterable[RoleLike]) -> List[Role]:
    """Distinct roles ordered most senior first."""
    return sorted({coerce_role(role) for role in roles}, key=rank, reverse=True)


def highest_role(roles: Iterable[RoleLike]) -> Optional[Role]:
    """The most senior role in the collection, or None if empty."""
    ordered = sort_by_rank(roles)
    return ordered[0] if ordered else None
