"""
Centralized Exception Handling Module
=====================================

Defines the exception taxonomy for role management and impersonation.

Propagation:
- Authorization, not-found and validation errors block the state
  transition that raised them and are shown to the caller.
- AuditWriteFailure never leaves the audit service; it is logged.

Usage:
    raise UnauthorizedError("Only a super admin may impersonate users")
    raise UserNotFoundError(identifier=str(user_id))
"""

from typing import Any, Dict, Optional

from fastapi import status


class WillSkillException(Exception):
    """
    Base exception class for the application.

    All custom exceptions should inherit from this class.
    """

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# ==========================
# Domain Exceptions
# ==========================

class UnknownRoleError(WillSkillException, ValueError):
    """Raised when a value is not a member of the closed role set."""

    def __init__(self, role: Any):
        super().__init__(
            message=f"Unknown role: {role!r}",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"role": str(role)},
        )


# ==========================
# Authentication Exceptions
# ==========================

class AuthenticationError(WillSkillException):
    """Raised when authentication fails."""

    def __init__(
        self,
        message: str = "Could not validate credentials",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            details=details,
        )


class InvalidCredentialsError(AuthenticationError):
    """Raised when login credentials are invalid."""

    def __init__(self):
        super().__init__(message="Invalid email or password")


class TokenExpiredError(AuthenticationError):
    """Raised when a JWT token has expired."""

    def __init__(self, token_type: str = "access"):
        super().__init__(
            message=f"{token_type.capitalize()} token has expired",
            details={"token_type": token_type}
        )


class TokenInvalidError(AuthenticationError):
    """Raised when a JWT token is invalid."""

    def __init__(self, reason: str = "Invalid token"):
        super().__init__(
            message="Invalid token",
            details={"reason": reason}
        )


class TokenVersionMismatchError(AuthenticationError):
    """Raised when token version doesn't match user's current version."""

    def __init__(self):
        super().__init__(
            message="Token has been invalidated. Please log in again."
        )


class AccountDisabledError(AuthenticationError):
    """Raised when the account is disabled."""

    def __init__(self):
        super().__init__(
            message="Account has been disabled. Please contact your administrator."
        )


# ==========================
# Authorization Exceptions
# ==========================

class UnauthorizedError(WillSkillException):
    """Raised when the caller lacks the required role or permission."""

    def __init__(
        self,
        message: str = "Insufficient permissions",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            details=details,
        )


class SuperAdminRequiredError(UnauthorizedError):
    """Raised when an action is reserved for super admins."""

    def __init__(self, action: str):
        super().__init__(
            message=f"Only a super admin may perform: {action}",
            details={"action": action},
        )


class RoleSwitchDeniedError(UnauthorizedError):
    """Raised when a user selects a role they do not hold."""

    def __init__(self, role: str):
        super().__init__(
            message=f"You do not hold the role '{role}'",
            details={"role": role},
        )


class RoleManagementDeniedError(UnauthorizedError):
    """Raised when the acting role is not senior to the role being managed."""

    def __init__(self, acting_role: str, target_role: str):
        super().__init__(
            message=f"Role '{acting_role}' cannot manage role '{target_role}'",
            details={"acting_role": acting_role, "target_role": target_role},
        )


# ==========================
# Resource Exceptions
# ==========================

class NotFoundError(WillSkillException):
    """Raised when a resource is not found."""

    def __init__(self, resource: str = "Resource", identifier: Optional[str] = None):
        message = f"{resource} not found"
        details = {"resource": resource}
        if identifier:
            details["identifier"] = identifier
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details=details,
        )


class UserNotFoundError(NotFoundError):
    """Raised when a user is not found."""

    def __init__(self, identifier: Optional[str] = None):
        super().__init__(resource="User", identifier=identifier)


class SessionNotFoundError(NotFoundError):
    """Raised when an impersonation session is absent, ended or expired."""

    def __init__(self, identifier: Optional[str] = None):
        super().__init__(resource="Impersonation session", identifier=identifier)


class AlreadyExistsError(WillSkillException):
    """Raised when creating something that already exists."""

    def __init__(self, message: str = "Resource already exists", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=details,
        )


class RoleAlreadyHeldError(AlreadyExistsError):
    """Raised when assigning a role the user already holds."""

    def __init__(self, role: str):
        super().__init__(
            message="User already has this role",
            details={"role": role},
        )


# ==========================
# Validation Exceptions
# ==========================

class ValidationError(WillSkillException):
    """Raised when validation fails."""

    def __init__(
        self,
        message: str = "Validation error",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
        )


class LastSuperAdminError(ValidationError):
    """Raised when revoking the only remaining super admin assignment."""

    def __init__(self):
        super().__init__(message="Cannot revoke the last super admin")


# ==========================
# Store Exceptions
# ==========================

class StoreError(WillSkillException):
    """Raised when the session store fails for a transient reason."""

    def __init__(self, message: str = "Session store unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=details,
        )


class AuditWriteFailure(WillSkillException):
    """Raised by an audit append that did not land. Never surfaced to callers."""

    def __init__(self, action_type: str, reason: str):
        super().__init__(
            message=f"Audit write failed for {action_type}",
            details={"action_type": action_type, "reason": reason},
        )

