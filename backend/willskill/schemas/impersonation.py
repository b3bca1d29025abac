"""
Impersonation Schemas Module
============================
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from willskill.services.impersonation_service import ImpersonationSessionManager


class StartImpersonationRequest(BaseModel):
    user_id: UUID = Field(..., description="User to impersonate")
    email: EmailStr = Field(..., description="Email of the user to impersonate")


class ImpersonatedUser(BaseModel):
    id: str
    email: str


class ImpersonationResponse(BaseModel):
    """Impersonation state of the calling admin."""

    is_impersonating: bool = False
    impersonated_user: Optional[ImpersonatedUser] = None
    session_id: Optional[str] = None
    expires_at: Optional[datetime] = None
    is_loading: bool = False

    @classmethod
    def from_manager(cls, manager: ImpersonationSessionManager) -> "ImpersonationResponse":
        session = manager.session
        return cls(
            is_impersonating=manager.is_impersonating,
            impersonated_user=ImpersonatedUser(**manager.impersonated_user) if session else None,
            session_id=str(session.session_id) if session else None,
            expires_at=session.expires_at if session else None,
            is_loading=manager.is_loading,
        )
