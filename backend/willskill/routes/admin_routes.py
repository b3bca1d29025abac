"""
Admin Routes Module
===================

Role management and the activity log.

Security:
- Every endpoint re-checks the caller's held roles on the server
- Role changes are limited to roles the caller can manage
- Role changes are audit logged
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from willskill.core.dependencies.context import get_audit_logger, get_session_store
from willskill.core.dependencies.rbac import require_permission
from willskill.core.identity import Identity
from willskill.core.logging import get_logger
from willskill.core.permissions import Permission
from willskill.models.role_enum import Role
from willskill.schemas import (
    ActivityLogEntry,
    ActivityLogResponse,
    AssignRoleRequest,
    ErrorResponse,
    RoleChangeResponse,
    UserListResponse,
    UserRolesResponse,
)
from willskill.services.audit_service import AuditLogger
from willskill.services.role_admin import RoleAssignmentService
from willskill.store.base import SessionStore

# Initialize logger
logger = get_logger(__name__)


# =====================================
# Router Setup
# =====================================

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    responses={
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Insufficient permissions"},
    },
)


def get_role_service(
    store: SessionStore = Depends(get_session_store),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> RoleAssignmentService:
    return RoleAssignmentService(store, audit_logger)


# =====================================
# User Roles
# =====================================

@router.get(
    "/users",
    response_model=UserListResponse,
    summary="List Users With Roles",
)
async def list_users(
    role: Optional[Role] = Query(None, description="Filter by held role"),
    actor: Identity = Depends(require_permission(Permission.MANAGE_ROLES)),
    store: SessionStore = Depends(get_session_store),
) -> UserListResponse:
    users = await store.list_users()
    if role is not None:
        users = [user for user in users if role in user.roles]

    return UserListResponse(
        users=[UserRolesResponse.from_record(user) for user in users],
        total=len(users),
    )


@router.post(
    "/users/{user_id}/roles",
    response_model=RoleChangeResponse,
    status_code=201,
    responses={
        404: {"model": ErrorResponse, "description": "User not found"},
        409: {"model": ErrorResponse, "description": "Role already held"},
    },
)
async def assign_role(
    user_id: UUID,
    payload: AssignRoleRequest,
    actor: Identity = Depends(require_permission(Permission.MANAGE_ROLES)),
    store: SessionStore = Depends(get_session_store),
    service: RoleAssignmentService = Depends(get_role_service),
) -> RoleChangeResponse:
    role = await service.assign_role(actor, user_id, payload.role)
    roles = await store.get_roles_for_user(user_id)
    return RoleChangeResponse(
        message=f"Role {role.value} assigned",
        user_id=str(user_id),
        roles=[r.value for r in roles],
    )


@router.delete(
    "/users/{user_id}/roles/{role}",
    response_model=RoleChangeResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Role not held"},
        422: {"model": ErrorResponse, "description": "Last super admin"},
    },
)
async def revoke_role(
    user_id: UUID,
    role: str,
    actor: Identity = Depends(require_permission(Permission.MANAGE_ROLES)),
    store: SessionStore = Depends(get_session_store),
    service: RoleAssignmentService = Depends(get_role_service),
) -> RoleChangeResponse:
    revoked = await service.revoke_role(actor, user_id, role)
    roles = await store.get_roles_for_user(user_id)
    return RoleChangeResponse(
        message=f"Role {revoked.value} revoked",
        user_id=str(user_id),
        roles=[r.value for r in roles],
    )


@router.delete(
    "/users/{user_id}/roles",
    response_model=RoleChangeResponse,
)
async def revoke_all_roles(
    user_id: UUID,
    actor: Identity = Depends(require_permission(Permission.MANAGE_ROLES)),
    service: RoleAssignmentService = Depends(get_role_service),
) -> RoleChangeResponse:
    await service.revoke_all_roles(actor, user_id)
    return RoleChangeResponse(
        message="All roles removed",
        user_id=str(user_id),
        roles=[],
    )


# =====================================
# Activity Log
# =====================================

@router.get(
    "/activity-log",
    response_model=ActivityLogResponse,
    summary="Admin Activity Log",
)
async def activity_log(
    action_type: Optional[str] = Query(None, description="Filter by action type"),
    actor_id: Optional[UUID] = Query(None, description="Filter by actor"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    actor: Identity = Depends(require_permission(Permission.VIEW_AUDIT_LOGS)),
    store: SessionStore = Depends(get_session_store),
) -> ActivityLogResponse:
    records, total = await store.list_audit_records(
        action_type=action_type,
        actor_id=actor_id,
        limit=limit,
        offset=offset,
    )
    return ActivityLogResponse(
        entries=[ActivityLogEntry.from_record(record) for record in records],
        total=total,
        limit=limit,
        offset=offset,
    )
