"""
Authentication Routes Module
============================

Handles:
- User login
- Token refresh
- Logout (token invalidation and role context teardown)
- Current user lookup

Login and logout are recorded in the audit trail on a best-effort basis.
These handlers touch the database through a plain Session, so they are
sync and run in the threadpool; the audit write is queued as a
background task that runs on the event loop after the response.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from willskill.core.dependencies.auth import get_current_user
from willskill.core.dependencies.context import (
    apply_preferences,
    get_audit_logger,
    get_preferences,
    get_session_store,
)
from willskill.core.exceptions import (
    AccountDisabledError,
    InvalidCredentialsError,
    TokenExpiredError,
    TokenInvalidError,
    TokenVersionMismatchError,
)
from willskill.core.identity import Identity
from willskill.core.logging import get_logger
from willskill.db.session import get_db
from willskill.models.user import User
from willskill.schemas import (
    CurrentUserResponse,
    ErrorResponse,
    LoginRequest,
    LogoutResponse,
    RefreshTokenRequest,
    TokenResponse,
)
from willskill.services.audit_service import AuditAction, AuditLogger
from willskill.services.auth_service import AuthService
from willskill.services.role_context import MemoryPreferenceStore, RoleContextManager
from willskill.store.base import SessionStore

# Initialize logger
logger = get_logger(__name__)


# =====================================
# Router Setup
# =====================================

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"],
    responses={
        401: {"model": ErrorResponse, "description": "Authentication failed"},
        403: {"model": ErrorResponse, "description": "Access forbidden"},
    },
)


# =====================================
# Login Endpoint
# =====================================

@router.post(
    "/login",
    response_model=TokenResponse,
    summary="User Login",
    responses={
        200: {"description": "Successfully authenticated"},
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
        403: {"model": ErrorResponse, "description": "Account disabled"},
    },
)
def login(
    request: Request,
    login_data: LoginRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> dict:
    """Authenticate with email and password and return JWT tokens."""
    auth_service = AuthService(db)
    client_ip = request.client.host if request.client else "unknown"

    try:
        user, tokens = auth_service.authenticate_user(
            email=login_data.email,
            password=login_data.password,
            ip_address=client_ip,
        )
    except InvalidCredentialsError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except AccountDisabledError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account has been disabled. Please contact your administrator.",
        )

    background_tasks.add_task(
        audit_logger.write,
        Identity.from_user(user),
        AuditAction.LOGIN,
        details={"ip_address": client_ip},
    )
    logger.info(
        "User logged in successfully",
        extra={"user_id": str(user.id), "ip_address": client_ip}
    )
    return tokens


# =====================================
# Refresh Token Endpoint
# =====================================

@router.post(
    "/refresh",
    response_model=TokenResponse,
    summary="Refresh Access Token",
    responses={
        401: {"model": ErrorResponse, "description": "Invalid or expired token"},
    },
)
def refresh_token(
    request: Request,
    refresh_data: RefreshTokenRequest,
    db: Session = Depends(get_db),
) -> dict:
    """Exchange a valid refresh token for a new token pair."""
    auth_service = AuthService(db)

    try:
        return auth_service.refresh_tokens(refresh_data.refresh_token)
    except (TokenInvalidError, TokenExpiredError, TokenVersionMismatchError) as e:
        logger.warning(
            "Token refresh failed",
            extra={
                "reason": e.message,
                "ip_address": request.client.host if request.client else "unknown",
            }
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except AccountDisabledError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account has been disabled",
        )


# =====================================
# Logout Endpoint
# =====================================

@router.post(
    "/logout",
    response_model=LogoutResponse,
    summary="User Logout",
)
def logout(
    response: Response,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
    audit_logger: AuditLogger = Depends(get_audit_logger),
    preferences: MemoryPreferenceStore = Depends(get_preferences),
) -> dict:
    """
    Invalidate every token of the user and clear the active-role
    preference.
    """
    identity = Identity.from_user(current_user)

    AuthService(db).logout(current_user)

    RoleContextManager(store, audit_logger, preferences).logout()
    apply_preferences(response, preferences)

    background_tasks.add_task(audit_logger.write, identity, AuditAction.LOGOUT)
    return {"message": "Successfully logged out"}


# =====================================
# Current User Endpoint
# =====================================

@router.get(
    "/me",
    response_model=CurrentUserResponse,
    summary="Get Current User",
)
async def get_me(
    current_user: User = Depends(get_current_user),
    store: SessionStore = Depends(get_session_store),
) -> CurrentUserResponse:
    roles = await store.get_roles_for_user(current_user.id)
    return CurrentUserResponse(
        id=str(current_user.id),
        email=current_user.email,
        full_name=current_user.full_name,
        roles=[role.value for role in roles],
        is_active=current_user.is_active,
    )
