"""
Role Context Schemas Module
===========================

Request/response models for the role context and the admin feature gate.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from willskill.core.permissions import Enforcement, label
from willskill.services.gate import Feature, GateProjection
from willskill.services.role_context import RoleContextSnapshot


class RoleContextResponse(BaseModel):
    """What the dashboard needs to render the role switcher."""

    active_role: Optional[str] = None
    available_roles: List[str] = Field(default_factory=list)
    held_roles: List[str] = Field(default_factory=list)
    is_super_admin: bool = False
    is_loading: bool = False
    role_labels: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_snapshot(cls, snapshot: RoleContextSnapshot) -> "RoleContextResponse":
        return cls(
            active_role=snapshot.active_role.value if snapshot.active_role else None,
            available_roles=[role.value for role in snapshot.available_roles],
            held_roles=[role.value for role in snapshot.held_roles],
            is_super_admin=snapshot.is_super_admin,
            is_loading=snapshot.is_loading,
            role_labels={role.value: label(role) for role in snapshot.available_roles},
        )


class SwitchRoleRequest(BaseModel):
    role: str = Field(..., description="Role to make active", examples=["chair"])


class FeatureResponse(BaseModel):
    key: str
    title: str
    path: str
    permission: Optional[str] = None

    @classmethod
    def from_feature(cls, feature: Feature) -> "FeatureResponse":
        return cls(
            key=feature.key,
            title=feature.title,
            path=feature.path,
            permission=feature.permission,
        )


class FeatureGateResponse(BaseModel):
    """
    Features to show for the active role.

    enforcement is always client_hint: this list is not an access
    control decision.
    """

    active_role: Optional[str] = None
    visible: List[FeatureResponse] = Field(default_factory=list)
    hidden: List[FeatureResponse] = Field(default_factory=list)
    hidden_count: int = 0
    enforcement: Enforcement = Enforcement.CLIENT_HINT

    @classmethod
    def from_projection(cls, projection: GateProjection, active_role: Optional[str]) -> "FeatureGateResponse":
        return cls(
            active_role=active_role,
            visible=[FeatureResponse.from_feature(f) for f in projection.visible],
            hidden=[FeatureResponse.from_feature(f) for f in projection.hidden_by_role],
            hidden_count=projection.hidden_count,
            enforcement=projection.enforcement,
        )


class ActingAsResponse(BaseModel):
    actor_id: str
    mode: str
    role: Optional[str] = None
    user_id: str
    email: str
    is_impersonating: bool = False
