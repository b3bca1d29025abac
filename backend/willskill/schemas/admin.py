"""
Admin Schemas Module
====================

Role management and activity log models.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from willskill.store.base import AuditRecord, UserRecord


class AssignRoleRequest(BaseModel):
    role: str = Field(..., description="Role to assign", examples=["chair"])


class UserRolesResponse(BaseModel):
    id: str
    email: str
    full_name: Optional[str] = None
    is_active: bool = True
    roles: List[str] = Field(default_factory=list)

    @classmethod
    def from_record(cls, record: UserRecord) -> "UserRolesResponse":
        return cls(
            id=str(record.id),
            email=record.email,
            full_name=record.full_name,
            is_active=record.is_active,
            roles=[role.value for role in record.roles],
        )


class UserListResponse(BaseModel):
    users: List[UserRolesResponse]
    total: int


class RoleChangeResponse(BaseModel):
    message: str
    user_id: str
    roles: List[str] = Field(default_factory=list)


class ActivityLogEntry(BaseModel):
    id: str
    actor_id: str
    actor_email: str
    action_type: str
    target_type: Optional[str] = None
    target_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    @classmethod
    def from_record(cls, record: AuditRecord) -> "ActivityLogEntry":
        return cls(
            id=str(record.id),
            actor_id=str(record.actor_id),
            actor_email=record.actor_email,
            action_type=record.action_type,
            target_type=record.target_type,
            target_id=record.target_id,
            details=record.details,
            created_at=record.created_at,
        )


class ActivityLogResponse(BaseModel):
    entries: List[ActivityLogEntry]
    total: int
    limit: int
    offset: int
