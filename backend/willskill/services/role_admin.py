"""
Role Assignment Service
=======================

Assigns and revokes roles on behalf of an administrator.

Checks run against the roles the actor actually holds, never the
active role selected in the dashboard:
- the actor must hold a role granting manage_roles
- the actor's most senior role must be able to manage the target role,
  except that a super admin may also manage the super_admin role
"""

from typing import List
from uuid import UUID

from willskill.core.exceptions import RoleManagementDeniedError, UnauthorizedError
from willskill.core.identity import Identity
from willskill.core.logging import get_logger, security_logger
from willskill.core.permissions import Permission, RoleLike, can_manage, coerce_role, has_permission, highest_role
from willskill.models.role_enum import Role
from willskill.services.audit_service import AuditAction, AuditLogger
from willskill.store.base import SessionStore

# Initialize logger
logger = get_logger(__name__)


class RoleAssignmentService:
    """
    Usage:
        service = RoleAssignmentService(store, audit)
        await service.assign_role(actor, user_id, "chair")
    """

    def __init__(self, store: SessionStore, audit_logger: AuditLogger):
        self._store = store
        self._audit = audit_logger

    async def _authorize(self, actor: Identity, target_role: Role, action: str) -> None:
        held = await self._store.get_roles_for_user(actor.user_id)

        if not any(has_permission(role, Permission.MANAGE_ROLES) for role in held):
            security_logger.log_unauthorized_access(
                user_id=str(actor.user_id),
                resource="user_roles",
                action=action,
                reason="missing manage_roles",
            )
            raise UnauthorizedError(
                message="You do not have permission to manage roles",
                details={"required_permission": Permission.MANAGE_ROLES},
            )

        top = highest_role(held)
        # Super admins also grant and revoke super_admin itself; the last
        # assignment is protected by the store
        peer_grant = top is Role.SUPER_ADMIN and target_role is Role.SUPER_ADMIN
        if not (peer_grant or can_manage(top, target_role)):
            security_logger.log_unauthorized_access(
                user_id=str(actor.user_id),
                resource="user_roles",
                action=action,
                reason=f"{top.value} cannot manage {target_role.value}",
            )
            raise RoleManagementDeniedError(top.value, target_role.value)

    async def assign_role(self, actor: Identity, user_id: UUID, role: RoleLike) -> Role:
        target_role = coerce_role(role)
        await self._authorize(actor, target_role, "assign")

        await self._store.assign_role(user_id, target_role)

        logger.info(
            "Role assigned",
            extra={"actor_id": str(actor.user_id), "user_id": str(user_id), "role": target_role.value}
        )
        self._audit.record(
            actor,
            AuditAction.ASSIGNED_ROLE,
            target_type="user",
            target_id=str(user_id),
            details={"role": target_role.value},
        )
        return target_role

    async def revoke_role(self, actor: Identity, user_id: UUID, role: RoleLike) -> Role:
        target_role = coerce_role(role)
        await self._authorize(actor, target_role, "revoke")

        await self._store.revoke_role(user_id, target_role)

        logger.info(
            "Role revoked",
            extra={"actor_id": str(actor.user_id), "user_id": str(user_id), "role": target_role.value}
        )
        self._audit.record(
            actor,
            AuditAction.REVOKED_ROLE,
            target_type="user",
            target_id=str(user_id),
            details={"role": target_role.value},
        )
        return target_role

    async def revoke_all_roles(self, actor: Identity, user_id: UUID) -> List[Role]:
        """
        Remove every role of a user.

        The actor must be able to manage each role the user holds.
        """
        current = await self._store.get_roles_for_user(user_id)
        for role in current:
            await self._authorize(actor, role, "revoke_all")
        if not current:
            await self._authorize(actor, Role.USER, "revoke_all")

        removed = await self._store.revoke_all_roles(user_id)

        logger.info(
            "All roles removed",
            extra={"actor_id": str(actor.user_id), "user_id": str(user_id)}
        )
        self._audit.record(
            actor,
            AuditAction.REMOVED_ALL_ROLES,
            target_type="user",
            target_id=str(user_id),
            details={"roles": [role.value for role in removed]},
        )
        return removed
