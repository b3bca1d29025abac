"""
Role Context Routes Module
==========================

Handles:
- Reading the caller's role context
- Switching the active role
- The admin feature gate for the active role
- The combined acting-as view

The active role is a dashboard preference carried in a cookie. It never
widens what the server allows.
"""

from fastapi import APIRouter, Depends, Response

from willskill.core.dependencies.context import (
    apply_preferences,
    get_impersonation_manager,
    get_preferences,
    get_role_context,
    get_session_store,
)
from willskill.core.logging import get_logger
from willskill.schemas import (
    ActingAsResponse,
    ErrorResponse,
    FeatureGateResponse,
    RoleContextResponse,
    SwitchRoleRequest,
)
from willskill.services.acting_as import resolve_acting_as
from willskill.services.gate import AdminSurfaceGate
from willskill.services.impersonation_service import ImpersonationSessionManager
from willskill.services.role_context import MemoryPreferenceStore, RoleContextManager
from willskill.store.base import SessionStore

# Initialize logger
logger = get_logger(__name__)

router = APIRouter(
    prefix="/roles",
    tags=["Roles"],
    responses={
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)

gate = AdminSurfaceGate()


@router.get("/context", response_model=RoleContextResponse)
async def get_context(
    response: Response,
    context: RoleContextManager = Depends(get_role_context),
    preferences: MemoryPreferenceStore = Depends(get_preferences),
) -> RoleContextResponse:
    apply_preferences(response, preferences)
    return RoleContextResponse.from_snapshot(context.snapshot())


@router.post(
    "/switch",
    response_model=RoleContextResponse,
    responses={
        403: {"model": ErrorResponse, "description": "Role not held"},
        422: {"model": ErrorResponse, "description": "Unknown role"},
    },
)
async def switch_role(
    payload: SwitchRoleRequest,
    response: Response,
    context: RoleContextManager = Depends(get_role_context),
    preferences: MemoryPreferenceStore = Depends(get_preferences),
) -> RoleContextResponse:
    """
    Make a role active.

    Returns as soon as the switch is applied; the audit entry is written
    in the background.
    """
    context.switch_role(payload.role)
    apply_preferences(response, preferences)
    return RoleContextResponse.from_snapshot(context.snapshot())


@router.get("/features", response_model=FeatureGateResponse)
async def get_features(
    context: RoleContextManager = Depends(get_role_context),
) -> FeatureGateResponse:
    projection = gate.project(context.held_roles, context.active_role)
    active = context.active_role.value if context.active_role else None
    return FeatureGateResponse.from_projection(projection, active)


@router.get("/acting-as", response_model=ActingAsResponse)
async def get_acting_as(
    store: SessionStore = Depends(get_session_store),
    context: RoleContextManager = Depends(get_role_context),
    impersonation: ImpersonationSessionManager = Depends(get_impersonation_manager),
) -> ActingAsResponse:
    acting = await resolve_acting_as(store, context, impersonation)
    return ActingAsResponse(
        actor_id=str(acting.actor.user_id),
        mode=acting.mode.value,
        role=acting.role.value if acting.role else None,
        user_id=str(acting.user_id),
        email=acting.email,
        is_impersonating=acting.is_impersonating,
    )
