"""
Role-Based Access Control (RBAC) Dependencies Module
=====================================================

Server-enforced authorization for the HTTP surface.

Checks here read the roles the caller actually holds from the session
store. The active role chosen in the dashboard is never consulted: it
only drives the client-side feature gate. Denials raised here carry
"enforcement": "server_enforced" in their details, the counterpart of
the gate's "client_hint".

Usage:
    @router.get("/admin/users")
    async def list_users(identity: Identity = Depends(require_permission(Permission.MANAGE_ROLES))):
        ...
"""

from typing import Callable

from fastapi import Depends, Request

from willskill.core.dependencies.auth import get_current_identity
from willskill.core.dependencies.context import get_session_store
from willskill.core.exceptions import SuperAdminRequiredError, UnauthorizedError
from willskill.core.identity import Identity
from willskill.core.logging import get_logger, security_logger
from willskill.core.permissions import Enforcement, has_permission
from willskill.models.role_enum import Role
from willskill.store.base import SessionStore

# Initialize logger
logger = get_logger(__name__)


def require_permission(permission: str) -> Callable:
    """
    Create a dependency requiring that some held role grants permission.

    Args:
        permission: Permission name from Permission

    Returns:
        Dependency function resolving to the caller's identity
    """
    async def permission_checker(
        request: Request,
        identity: Identity = Depends(get_current_identity),
        store: SessionStore = Depends(get_session_store),
    ) -> Identity:
        held = await store.get_roles_for_user(identity.user_id)

        if not any(has_permission(role, permission) for role in held):
            security_logger.log_unauthorized_access(
                user_id=str(identity.user_id),
                resource=request.url.path,
                action=request.method,
                reason=f"missing {permission}",
            )
            logger.warning(
                "Permission denied",
                extra={
                    "held_roles": [role.value for role in held],
                    "required_permission": permission,
                    "path": request.url.path,
                }
            )
            raise UnauthorizedError(
                message="Insufficient permissions for this action",
                details={
                    "required_permission": permission,
                    "enforcement": Enforcement.SERVER_ENFORCED.value,
                },
            )

        return identity

    return permission_checker


async def require_super_admin(
    request: Request,
    identity: Identity = Depends(get_current_identity),
    store: SessionStore = Depends(get_session_store),
) -> Identity:
    """Dependency that requires a held super_admin role."""
    held = await store.get_roles_for_user(identity.user_id)

    if Role.SUPER_ADMIN not in held:
        security_logger.log_unauthorized_access(
            user_id=str(identity.user_id),
            resource=request.url.path,
            action=request.method,
            reason="super_admin required",
        )
        error = SuperAdminRequiredError(f"{request.method} {request.url.path}")
        error.details["enforcement"] = Enforcement.SERVER_ENFORCED.value
        raise error

    return identity
