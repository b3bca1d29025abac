"""
Model Package Initialization
============================

Ensures models are properly registered when imported by the application.

Usage:
    from willskill.models import User, UserRole, Role
"""

from .activity_log import AdminActivityLog
from .impersonation_session import ImpersonationSession
from .role_enum import Role
from .user import User
from .user_role import UserRole

__all__ = [
    "AdminActivityLog",
    "ImpersonationSession",
    "Role",
    "User",
    "UserRole",
]
