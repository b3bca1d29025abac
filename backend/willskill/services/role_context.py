"""
Role Context Service
====================

Tracks, for one authenticated client, the roles actually held and the
role currently selected for the dashboard (the active role).

State machine:
    UNINITIALIZED -> LOADING -> READY -> UNAUTHENTICATED

Rules:
- The active role must be a held role, unless the user holds
  super_admin, in which case any role may be selected (role-level
  impersonation).
- The default active role is the persisted preference when it is still
  available, otherwise the most senior held role.
- A switch is applied locally as soon as the permission check passes.
  It does not wait for the audit write, and a failed audit write does
  not undo it. This is the one optimistic transition in the system.
- Logout clears the persisted preference.

The active role only decides what the dashboard shows. Server-side
authorization always uses held roles.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from willskill.core.config import settings
from willskill.core.exceptions import (
    AuthenticationError,
    RoleSwitchDeniedError,
    StoreError,
    UnknownRoleError,
)
from willskill.core.identity import Identity
from willskill.core.logging import get_logger, security_logger
from willskill.core.permissions import RoleLike, all_roles, coerce_role, highest_role, sort_by_rank
from willskill.models.role_enum import Role
from willskill.services.audit_service import AuditAction, AuditLogger
from willskill.store.base import SessionStore

# Initialize logger
logger = get_logger(__name__)


# =====================================
# Persisted preference
# =====================================

class PreferenceStore(ABC):
    """Client-scoped key/value storage for UI preferences."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...


class MemoryPreferenceStore(PreferenceStore):
    """
    Dictionary-backed preferences.

    Remembers which keys changed so the HTTP layer can mirror them into
    cookies on the response.
    """

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(initial or {})
        self.changed: Dict[str, Optional[str]] = {}

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value
        self.changed[key] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)
        self.changed[key] = None


# =====================================
# Role context
# =====================================

class RoleContextState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    UNAUTHENTICATED = "unauthenticated"


@dataclass(frozen=True)
class RoleContextSnapshot:
    """Read-only view handed to the dashboard."""
    active_role: Optional[Role]
    available_roles: Tuple[Role, ...]
    held_roles: Tuple[Role, ...]
    is_super_admin: bool
    is_loading: bool


class RoleContextManager:
    """
    Role context for one client.

    Usage:
        context = RoleContextManager(store, audit, preferences)
        await context.load(identity)
        context.switch_role(Role.CHAIR)
    """

    def __init__(
        self,
        store: SessionStore,
        audit_logger: AuditLogger,
        preferences: PreferenceStore,
        preference_key: Optional[str] = None,
    ):
        self._store = store
        self._audit = audit_logger
        self._preferences = preferences
        self._preference_key = preference_key or settings.ACTIVE_ROLE_COOKIE

        self.state = RoleContextState.UNINITIALIZED
        self.identity: Optional[Identity] = None
        self.held_roles: List[Role] = []
        self.available_roles: List[Role] = []
        self.active_role: Optional[Role] = None
        self.is_super_admin = False

    @property
    def is_loading(self) -> bool:
        return self.state in (RoleContextState.UNINITIALIZED, RoleContextState.LOADING)

    def _clear(self) -> None:
        self.identity = None
        self.held_roles = []
        self.available_roles = []
        self.active_role = None
        self.is_super_admin = False

    async def load(self, identity: Optional[Identity]) -> None:
        """
        Fetch held roles and choose the active role.

        A user with no roles ends up READY with nothing available, which
        the dashboard treats as no access.

        Raises:
            StoreError: If the roles could not be read
        """
        if identity is None:
            self._clear()
            self.state = RoleContextState.UNAUTHENTICATED
            return

        self.state = RoleContextState.LOADING
        try:
            held = await self._store.get_roles_for_user(identity.user_id)
        except StoreError:
            logger.error(
                "Error loading user roles",
                extra={"user_id": str(identity.user_id)}
            )
            self._clear()
            self.state = RoleContextState.UNINITIALIZED
            raise

        self.identity = identity
        self.held_roles = sort_by_rank(held)
        self.is_super_admin = Role.SUPER_ADMIN in self.held_roles
        self.available_roles = all_roles() if self.is_super_admin else list(self.held_roles)
        self.active_role = self._initial_active_role()
        self.state = RoleContextState.READY

    def _initial_active_role(self) -> Optional[Role]:
        stored = self._preferences.get(self._preference_key)
        if stored:
            try:
                role = coerce_role(stored)
            except UnknownRoleError:
                role = None
            if role in self.available_roles:
                return role
        return highest_role(self.held_roles)

    def can_switch_to(self, role: Role) -> bool:
        return self.is_super_admin or role in self.held_roles

    def switch_role(self, role: RoleLike) -> Role:
        """
        Make role the active role.

        Returns:
            The new active role

        Raises:
            UnknownRoleError: If role is not a known role
            RoleSwitchDeniedError: If the user may not select role; the
                context is left unchanged
        """
        if self.state is not RoleContextState.READY or self.identity is None:
            raise AuthenticationError(message="Role context is not loaded")

        target = coerce_role(role)
        if not self.can_switch_to(target):
            security_logger.log_unauthorized_access(
                user_id=str(self.identity.user_id),
                resource="active_role",
                action="switch",
                reason=f"role {target.value} not held",
            )
            raise RoleSwitchDeniedError(target.value)

        previous = self.active_role
        impersonating = self.is_super_admin and target not in self.held_roles

        # Applied before the audit write is even scheduled; never rolled back.
        self.active_role = target
        self._preferences.set(self._preference_key, target.value)

        self._audit.record(
            self.identity,
            AuditAction.ROLE_IMPERSONATION if impersonating else AuditAction.ROLE_SWITCH,
            details={
                "new_role": target.value,
                "previous_role": previous.value if previous else None,
            },
        )
        security_logger.log_role_switch(
            user_id=str(self.identity.user_id),
            new_role=target.value,
            impersonated=impersonating,
        )
        return target

    def logout(self) -> None:
        """Tear down the context and forget the persisted choice."""
        self._preferences.delete(self._preference_key)
        self._clear()
        self.state = RoleContextState.UNAUTHENTICATED

    def snapshot(self) -> RoleContextSnapshot:
        return RoleContextSnapshot(
            active_role=self.active_role,
            available_roles=tuple(self.available_roles),
            held_roles=tuple(self.held_roles),
            is_super_admin=self.is_super_admin,
            is_loading=self.is_loading,
        )
