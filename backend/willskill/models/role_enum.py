"""
Role Enumeration Module
=======================

Defines all valid roles in the system.

Security Purpose:
- Prevents arbitrary role injection
- Keeps the role set closed and fixed at import time
"""

from enum import Enum


class Role(str, Enum):
    """
    System-wide allowed roles, most privileged first.
    """

    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    CHAIR = "chair"
    CO_CHAIR = "co_chair"
    EM = "em"
    USER = "user"
