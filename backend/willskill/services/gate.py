"""
Admin Surface Gate
==================

Decides which admin dashboard features are shown for the active role.

This is a client hint only. It filters navigation; it does not protect
anything. Every endpoint behind these features re-checks held roles
through the server-side dependencies in core/dependencies/rbac.py.

When a role switch has narrowed the active role below the most senior
held role, the gate also reports the features hidden because of that
narrowing so the dashboard can say "N features hidden under this role".
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from willskill.core.permissions import Enforcement, Permission, RoleLike, has_permission, highest_role, is_senior


@dataclass(frozen=True)
class Feature:
    key: str
    title: str
    path: str
    permission: Optional[str] = None


ADMIN_FEATURES: Sequence[Feature] = (
    Feature("overview", "Overview", "/admin"),
    Feature("super_dashboard", "Super Dashboard", "/admin/super-dashboard", Permission.MANAGE_SYSTEM_SETTINGS),
    Feature("user_management", "User Management", "/admin/user-management", Permission.MANAGE_SYSTEM_SETTINGS),
    Feature("candidates", "Candidates", "/admin/candidates", Permission.MANAGE_CANDIDATES),
    Feature("comparison", "Comparison", "/admin/comparison", Permission.VIEW_ALL_ASSESSMENTS),
    Feature("analytics", "Analytics", "/admin/analytics", Permission.VIEW_ALL_ASSESSMENTS),
    Feature("validation", "Validation", "/admin/validation", Permission.VIEW_ALL_ASSESSMENTS),
    Feature("tracking", "Tracking", "/admin/tracking", Permission.VIEW_ALL_ASSESSMENTS),
    Feature("verticals", "Verticals", "/admin/verticals", Permission.MANAGE_VERTICALS),
    Feature("user_roles", "User Roles", "/admin/roles", Permission.MANAGE_ROLES),
    Feature("activity_log", "Activity Log", "/admin/activity-log", Permission.VIEW_AUDIT_LOGS),
)


@dataclass(frozen=True)
class GateProjection:
    visible: List[Feature] = field(default_factory=list)
    hidden_by_role: List[Feature] = field(default_factory=list)
    enforcement: Enforcement = Enforcement.CLIENT_HINT

    @property
    def hidden_count(self) -> int:
        return len(self.hidden_by_role)


class AdminSurfaceGate:
    """Stateless filter over a declarative feature list."""

    def __init__(self, features: Sequence[Feature] = ADMIN_FEATURES):
        self.features = tuple(features)

    @staticmethod
    def is_visible(feature: Feature, role: Optional[RoleLike]) -> bool:
        if feature.permission is None:
            return True
        # No active role means no permissions
        return has_permission(role, feature.permission)

    def visible_features(self, role: Optional[RoleLike]) -> List[Feature]:
        return [f for f in self.features if self.is_visible(f, role)]

    def project(self, held_roles: Iterable[RoleLike], active_role: Optional[RoleLike]) -> GateProjection:
        """
        Visible features for the active role, plus the ones hidden only
        because the active role is below the most senior held role.
        """
        visible = self.visible_features(active_role)

        hidden: List[Feature] = []
        top = highest_role(held_roles)
        if top is not None and active_role is not None and is_senior(top, active_role):
            hidden = [
                f for f in self.visible_features(top)
                if f not in visible
            ]

        return GateProjection(visible=visible, hidden_by_role=hidden)
