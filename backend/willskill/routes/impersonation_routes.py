"""
Impersonation Routes Module
===========================

Handles:
- Reading the caller's impersonation state
- Starting user-level impersonation (super admin only)
- Ending impersonation

Every call acts with the real admin's identity, never the impersonated
user's. The store re-checks super_admin when a session is created.
"""

from fastapi import APIRouter, Depends

from willskill.core.dependencies.context import get_impersonation_manager
from willskill.core.dependencies.rbac import require_super_admin
from willskill.core.identity import Identity
from willskill.core.logging import get_logger
from willskill.schemas import ErrorResponse, ImpersonationResponse, StartImpersonationRequest
from willskill.services.impersonation_service import ImpersonationSessionManager

# Initialize logger
logger = get_logger(__name__)

router = APIRouter(
    prefix="/impersonation",
    tags=["Impersonation"],
    responses={
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        503: {"model": ErrorResponse, "description": "Session store unavailable"},
    },
)


@router.get("", response_model=ImpersonationResponse)
async def get_impersonation(
    manager: ImpersonationSessionManager = Depends(get_impersonation_manager),
) -> ImpersonationResponse:
    return ImpersonationResponse.from_manager(manager)


@router.post(
    "/start",
    response_model=ImpersonationResponse,
    responses={
        403: {"model": ErrorResponse, "description": "Super admin required"},
        404: {"model": ErrorResponse, "description": "User not found"},
        422: {"model": ErrorResponse, "description": "Invalid target"},
    },
)
async def start_impersonation(
    payload: StartImpersonationRequest,
    admin: Identity = Depends(require_super_admin),
    manager: ImpersonationSessionManager = Depends(get_impersonation_manager),
) -> ImpersonationResponse:
    await manager.start_impersonation(payload.user_id, payload.email)
    return ImpersonationResponse.from_manager(manager)


@router.post("/end", response_model=ImpersonationResponse)
async def end_impersonation(
    manager: ImpersonationSessionManager = Depends(get_impersonation_manager),
) -> ImpersonationResponse:
    """End the caller's session; succeeds when there is none."""
    await manager.end_impersonation()
    return ImpersonationResponse.from_manager(manager)
