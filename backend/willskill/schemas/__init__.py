"""
Schemas Package Initialization
==============================

Exports all Pydantic schemas for the application.

Usage:
    from willskill.schemas import LoginRequest, RoleContextResponse
"""

# Auth schemas
from willskill.schemas.auth import (
    CurrentUserResponse,
    ErrorResponse,
    LoginRequest,
    LogoutResponse,
    RefreshTokenRequest,
    TokenResponse,
)

# Role context schemas
from willskill.schemas.roles import (
    ActingAsResponse,
    FeatureGateResponse,
    FeatureResponse,
    RoleContextResponse,
    SwitchRoleRequest,
)

# Impersonation schemas
from willskill.schemas.impersonation import (
    ImpersonatedUser,
    ImpersonationResponse,
    StartImpersonationRequest,
)

# Admin schemas
from willskill.schemas.admin import (
    ActivityLogEntry,
    ActivityLogResponse,
    AssignRoleRequest,
    RoleChangeResponse,
    UserListResponse,
    UserRolesResponse,
)

__all__ = [
    # Auth
    "CurrentUserResponse",
    "ErrorResponse",
    "LoginRequest",
    "LogoutResponse",
    "RefreshTokenRequest",
    "TokenResponse",
    # Roles
    "ActingAsResponse",
    "FeatureGateResponse",
    "FeatureResponse",
    "RoleContextResponse",
    "SwitchRoleRequest",
    # Impersonation
    "ImpersonatedUser",
    "ImpersonationResponse",
    "StartImpersonationRequest",
    # Admin
    "ActivityLogEntry",
    "ActivityLogResponse",
    "AssignRoleRequest",
    "RoleChangeResponse",
    "UserListResponse",
    "UserRolesResponse",
]
