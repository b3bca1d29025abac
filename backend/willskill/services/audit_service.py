"""
Audit Service
=============

Append-only audit trail for privilege-sensitive actions.

Audit writes are best effort: a failed write never blocks or rolls back
the action being audited. Failures are reported to the security log so
they remain observable.

Two entry points:
- record(): fire-and-forget. Schedules the write as a detached task on
  the running event loop and returns immediately.
- write(): awaits the write but still never raises. Used where the audit
  entry must be attempted before the next step.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set

from willskill.core.exceptions import AuditWriteFailure
from willskill.core.identity import Identity
from willskill.core.logging import get_logger, security_logger
from willskill.store.base import SessionStore

# Initialize logger
logger = get_logger(__name__)


class AuditAction:
    """Known audit action types."""
    LOGIN = "login"
    LOGOUT = "logout"
    ROLE_SWITCH = "role_switch"
    ROLE_IMPERSONATION = "role_impersonation"
    USER_IMPERSONATION = "user_impersonation"
    EXIT_IMPERSONATION = "exit_impersonation"
    ASSIGNED_ROLE = "assigned_role"
    REVOKED_ROLE = "revoked_role"
    REMOVED_ALL_ROLES = "removed_all_roles"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class AuditLogger:
    """
    Records audit entries through the session store.

    Usage:
        audit = AuditLogger(store)
        audit.record(identity, AuditAction.ROLE_SWITCH, details={"new_role": "chair"})
        ...
        await audit.drain()  # at shutdown
    """

    def __init__(self, store: SessionStore):
        self._store = store
        self._pending: Set[asyncio.Task] = set()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def record(
        self,
        actor: Identity,
        action_type: str,
        target_type: Optional[str] = None,
        target_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[asyncio.Task]:
        """
        Schedule an audit write without waiting for it.

        Returns:
            The detached task, or None if no event loop is running
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._report_failure(
                AuditWriteFailure(action_type, "no running event loop"),
                actor,
            )
            return None

        task = loop.create_task(
            self.write(actor, action_type, target_type, target_id, details)
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def write(
        self,
        actor: Identity,
        action_type: str,
        target_type: Optional[str] = None,
        target_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Append an audit entry now.

        Returns:
            True if the entry was stored, False if the write failed
        """
        try:
            await self._store.append_audit_record(
                actor_id=actor.user_id,
                actor_email=actor.email,
                action_type=action_type,
                target_type=target_type,
                target_id=target_id,
                details=details,
            )
        except Exception as e:
            self._report_failure(AuditWriteFailure(action_type, str(e)), actor)
            return False

        logger.debug(
            "Audit record appended",
            extra={"action_type": action_type, "actor_id": str(actor.user_id)}
        )
        return True

    async def drain(self) -> None:
        """Wait for every scheduled write to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @staticmethod
    def _report_failure(failure: AuditWriteFailure, actor: Identity) -> None:
        security_logger.log_audit_write_failure(
            action_type=failure.details["action_type"],
            actor_id=str(actor.user_id),
            error=failure.details["reason"],
        )
