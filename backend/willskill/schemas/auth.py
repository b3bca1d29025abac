"""
Authentication Schemas Module
=============================

Pydantic models for authentication request/response validation.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


# ==========================
# Login Schemas
# ==========================

class LoginRequest(BaseModel):
    """Login request schema."""

    email: EmailStr = Field(
        ...,
        description="User email address",
        examples=["user@example.com"]
    )
    password: str = Field(
        ...,
        min_length=1,
        description="User password",
    )


class TokenResponse(BaseModel):
    """Token response schema for login/refresh."""

    access_token: str = Field(..., description="JWT access token")
    refresh_token: str = Field(..., description="JWT refresh token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: Optional[int] = Field(
        default=None,
        description="Access token expiration in seconds"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "access_token": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9...",
                "refresh_token": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9...",
                "token_type": "bearer",
                "expires_in": 1800
            }
        }
    )


class RefreshTokenRequest(BaseModel):
    refresh_token: str = Field(..., description="Valid refresh token")


class LogoutResponse(BaseModel):
    message: str = Field(default="Successfully logged out")


class CurrentUserResponse(BaseModel):
    """The authenticated user with held roles."""

    id: str
    email: str
    full_name: Optional[str] = None
    roles: List[str] = Field(default_factory=list)
    is_active: bool = True


# ==========================
# Error Schemas
# ==========================

class ErrorResponse(BaseModel):
    """Standard error response schema."""

    message: str = Field(..., description="Error message")
    details: Optional[dict] = Field(
        default=None,
        description="Additional error details"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "message": "You do not hold the role 'chair'",
                "details": {"role": "chair"}
            }
        }
    )
