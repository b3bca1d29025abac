"""
Session Store Interface
=======================

The persistent backend holding role assignments, impersonation sessions
and the audit trail. Everything above this layer talks to it only through
the coroutines below, so tests and alternative backends can substitute
their own implementation.

Every call is a suspension point. Implementations are the server-side
enforcement point for privilege-sensitive writes: they must re-check
authorization regardless of what the caller checked first.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from willskill.models.role_enum import Role


@dataclass(frozen=True)
class UserRecord:
    """A user as seen through the store."""
    id: UUID
    email: str
    full_name: Optional[str] = None
    is_active: bool = True
    roles: Tuple[Role, ...] = ()


@dataclass(frozen=True)
class ImpersonationSessionRecord:
    """An open, unexpired impersonation session."""
    session_id: UUID
    admin_user_id: UUID
    impersonated_user_id: UUID
    impersonated_user_email: str
    created_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class AuditRecord:
    """One append-only audit entry."""
    id: UUID
    actor_id: UUID
    actor_email: str
    action_type: str
    created_at: datetime
    target_type: Optional[str] = None
    target_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


class SessionStore(ABC):
    """Abstract session store."""

    # --------------------------
    # Users and role assignments
    # --------------------------

    @abstractmethod
    async def get_roles_for_user(self, user_id: UUID) -> List[Role]:
        """Roles held by the user, most senior first."""

    @abstractmethod
    async def get_user(self, user_id: UUID) -> Optional[UserRecord]:
        ...

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        ...

    @abstractmethod
    async def list_users(self) -> List[UserRecord]:
        ...

    @abstractmethod
    async def assign_role(self, user_id: UUID, role: Role) -> None:
        """
        Raises:
            UserNotFoundError: Unknown user
            RoleAlreadyHeldError: The user already holds the role
        """

    @abstractmethod
    async def revoke_role(self, user_id: UUID, role: Role) -> None:
        """
        Raises:
            NotFoundError: The user does not hold the role
            LastSuperAdminError: Revoking would leave no super admin
        """

    @abstractmethod
    async def revoke_all_roles(self, user_id: UUID) -> List[Role]:
        """Remove every assignment of the user and return what was removed."""

    # --------------------------
    # Impersonation sessions
    # --------------------------

    @abstractmethod
    async def create_impersonation_session(
        self,
        admin_user_id: UUID,
        target_user_id: UUID,
        target_email: str,
    ) -> ImpersonationSessionRecord:
        """
        Open a session, ending any open session of the same admin.

        Raises:
            SuperAdminRequiredError: The admin does not hold super_admin
            UserNotFoundError: The target user does not exist
            ValidationError: Self-impersonation or email mismatch
        """

    @abstractmethod
    async def get_active_impersonation_session(
        self,
        admin_user_id: UUID,
        now: Optional[datetime] = None,
    ) -> Optional[ImpersonationSessionRecord]:
        """The admin's open session, or None if none is open or it has expired."""

    @abstractmethod
    async def end_impersonation_session(self, admin_user_id: UUID, session_id: UUID) -> None:
        """
        End a session owned by the admin. Ending an already ended or
        expired session succeeds.

        Raises:
            SessionNotFoundError: No such session for this admin
        """

    # --------------------------
    # Audit trail
    # --------------------------

    @abstractmethod
    async def append_audit_record(
        self,
        actor_id: UUID,
        actor_email: str,
        action_type: str,
        target_type: Optional[str] = None,
        target_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> AuditRecord:
        ...

    @abstractmethod
    async def list_audit_records(
        self,
        action_type: Optional[str] = None,
        actor_id: Optional[UUID] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[AuditRecord], int]:
        """Newest first, with the total count matching the filters."""
