"""
Impersonation Service
=====================

Orchestrates user-level impersonation for one super admin: a time-bounded
session in which the admin acts as another specific user.

State machine:
    NO_SESSION -> PENDING -> ACTIVE -> ENDED

Rules:
- Authorization is enforced by the session store on create; the check
  here is only what makes the failure readable.
- Starting a session supersedes any session the admin already has open.
- Nothing here is applied ahead of the store: the cached session only
  changes after the store confirms.
- Ending writes the exit audit entry before asking the store to end the
  session, so intent is recorded even if termination fails.
- Expiry is decided by the store at read time. refresh_session() is the
  only way the cache learns that a session lapsed.
"""

from enum import Enum
from typing import Dict, Optional

from willskill.core.exceptions import (
    AuthenticationError,
    SessionNotFoundError,
    StoreError,
    UserNotFoundError,
    WillSkillException,
)
from willskill.core.identity import Identity
from willskill.core.logging import get_logger, security_logger
from willskill.services.audit_service import AuditAction, AuditLogger, utc_timestamp
from willskill.store.base import ImpersonationSessionRecord, SessionStore

# Initialize logger
logger = get_logger(__name__)


class ImpersonationState(str, Enum):
    NO_SESSION = "no_session"
    PENDING = "pending"
    ACTIVE = "active"
    ENDED = "ended"


class ImpersonationSessionManager:
    """
    Impersonation context for one admin.

    Usage:
        manager = ImpersonationSessionManager(store, audit, identity)
        await manager.refresh_session()
        await manager.start_impersonation(user_id, "user@example.com")
        await manager.end_impersonation()
    """

    def __init__(
        self,
        store: SessionStore,
        audit_logger: AuditLogger,
        identity: Optional[Identity] = None,
    ):
        self._store = store
        self._audit = audit_logger
        self.identity = identity
        self.state = ImpersonationState.NO_SESSION
        self.session: Optional[ImpersonationSessionRecord] = None

    # --------------------------
    # Read side
    # --------------------------

    @property
    def is_impersonating(self) -> bool:
        return self.session is not None

    @property
    def impersonated_user(self) -> Optional[Dict[str, str]]:
        if self.session is None:
            return None
        return {
            "id": str(self.session.impersonated_user_id),
            "email": self.session.impersonated_user_email,
        }

    @property
    def is_loading(self) -> bool:
        return self.state is ImpersonationState.PENDING

    def _set_session(self, session: Optional[ImpersonationSessionRecord]) -> None:
        self.session = session
        if session is not None:
            self.state = ImpersonationState.ACTIVE
        elif self.state is not ImpersonationState.ENDED:
            self.state = ImpersonationState.NO_SESSION

    async def refresh_session(self) -> Optional[ImpersonationSessionRecord]:
        """
        Replace the cached session with what the store reports now.

        Called whenever the authenticated identity changes. A store
        failure clears the cache rather than keep a session that may
        have lapsed.
        """
        if self.identity is None:
            self._set_session(None)
            return None

        try:
            session = await self._store.get_active_impersonation_session(self.identity.user_id)
        except StoreError as e:
            logger.error(
                "Error refreshing impersonation session",
                extra={"admin_user_id": str(self.identity.user_id), "error": e.message}
            )
            session = None

        self._set_session(session)
        return session

    async def set_identity(self, identity: Optional[Identity]) -> None:
        """Auth state changed (sign in, sign out, token refresh)."""
        self.identity = identity
        await self.refresh_session()

    # --------------------------
    # Transitions
    # --------------------------

    def _require_identity(self) -> Identity:
        if self.identity is None:
            raise AuthenticationError(message="Not authenticated")
        return self.identity

    async def start_impersonation(self, target_user_id, target_email: str) -> ImpersonationSessionRecord:
        """
        Start acting as another user.

        Returns:
            The new session

        Raises:
            UserNotFoundError: If the target user does not exist
            UnauthorizedError: If the store refuses (caller is not a super admin)
            StoreError: On any other failure

        On failure the previous state (no session, or the prior active
        session) is kept.
        """
        identity = self._require_identity()
        previous_state = self.state
        self.state = ImpersonationState.PENDING

        try:
            target = await self._store.get_user(target_user_id)
            if target is None:
                raise UserNotFoundError(identifier=str(target_user_id))

            session = await self._store.create_impersonation_session(
                admin_user_id=identity.user_id,
                target_user_id=target_user_id,
                target_email=target_email,
            )
        except WillSkillException:
            self.state = previous_state
            raise
        except Exception as e:
            self.state = previous_state
            logger.error(
                "Error starting impersonation",
                extra={"admin_user_id": str(identity.user_id), "error": str(e)}
            )
            raise StoreError(message="Failed to start impersonation") from e

        self._audit.record(
            identity,
            AuditAction.USER_IMPERSONATION,
            target_type="user",
            target_id=str(target_user_id),
            details={
                "impersonated_email": session.impersonated_user_email,
                "session_id": str(session.session_id),
                "timestamp": utc_timestamp(),
            },
        )
        security_logger.log_impersonation_started(
            admin_user_id=str(identity.user_id),
            target_user_id=str(target_user_id),
            session_id=str(session.session_id),
        )

        await self.refresh_session()
        return session

    async def end_impersonation(self) -> None:
        """
        Stop impersonating.

        Does nothing when no session is cached. If the store fails the
        cached session stays so the caller can retry.

        Raises:
            StoreError: If the store could not end the session
        """
        if self.session is None:
            return

        identity = self._require_identity()
        session = self.session

        await self._audit.write(
            identity,
            AuditAction.EXIT_IMPERSONATION,
            target_type="user",
            target_id=str(session.impersonated_user_id),
            details={
                "was_impersonating": session.impersonated_user_email,
                "session_id": str(session.session_id),
                "timestamp": utc_timestamp(),
            },
        )

        try:
            await self._store.end_impersonation_session(identity.user_id, session.session_id)
        except SessionNotFoundError:
            # Already gone on the server side
            logger.warning(
                "Impersonation session missing on end",
                extra={"session_id": str(session.session_id)}
            )

        self.session = None
        self.state = ImpersonationState.ENDED
        security_logger.log_impersonation_ended(
            admin_user_id=str(identity.user_id),
            session_id=str(session.session_id),
        )
