"""
Logging Infrastructure
======================

Structured logging with support for:
- JSON formatted logs for production
- Console formatted logs for development
- Context binding for request tracing
- A dedicated security event logger
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar, Token
from typing import Any, Dict, List, Optional

import structlog
from structlog.types import Processor

from willskill.core.config import get_settings

# Context variables for request tracing
request_id_context: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
actor_id_context: ContextVar[Optional[str]] = ContextVar("actor_id", default=None)


def add_context_variables(
    logger: logging.Logger,
    method_name: str,
    event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Add request_id and actor_id from context variables to every log entry.
    """
    request_id = request_id_context.get()
    if request_id:
        event_dict["request_id"] = request_id

    actor_id = actor_id_context.get()
    if actor_id:
        event_dict["actor_id"] = actor_id

    return event_dict


def get_processors(log_format: str) -> list[Processor]:
    """Get structlog processors for the configured output format."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_context_variables,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    return processors


def configure_logging() -> None:
    """
    Configure structured logging for the application.

    This should be called once at application startup.
    """
    settings = get_settings()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    )

    structlog.configure(
        processors=get_processors(settings.LOG_FORMAT),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """
    Get a configured logger instance.

    Example:
        >>> log = get_logger(__name__)
        >>> log.info("role_switched", new_role="chair")
    """
    return structlog.get_logger(name)


class LogContext:
    """
    Context manager binding tracing variables for a block.

    Example:
        >>> with LogContext(request_id="req-123", actor_id="u-1"):
        ...     log.info("impersonation_started")
    """

    def __init__(
        self,
        request_id: Optional[str] = None,
        actor_id: Optional[str] = None,
    ):
        self.request_id = request_id
        self.actor_id = actor_id
        self._tokens: List[tuple[ContextVar, Token]] = []

    def __enter__(self) -> "LogContext":
        if self.request_id:
            self._tokens.append((request_id_context, request_id_context.set(self.request_id)))
        if self.actor_id:
            self._tokens.append((actor_id_context, actor_id_context.set(self.actor_id)))
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()


class SecurityLogger:
    """
    Logger for privilege-sensitive events.

    This is a diagnostics sink only; the durable audit trail lives in the
    session store and is written by the audit service.
    """

    def __init__(self) -> None:
        self.log = get_logger("security")

    def log_login_success(self, user_id: str, ip_address: str) -> None:
        self.log.info("login_success", user_id=user_id, ip_address=ip_address)

    def log_login_failure(self, email: str, ip_address: str, reason: str) -> None:
        self.log.warning("login_failure", email=email, ip_address=ip_address, reason=reason)

    def log_logout(self, user_id: str) -> None:
        self.log.info("logout", user_id=user_id)

    def log_token_invalid(self, reason: str, ip_address: str) -> None:
        self.log.warning("token_invalid", reason=reason, ip_address=ip_address)

    def log_unauthorized_access(
        self,
        user_id: str,
        resource: str,
        action: str,
        reason: Optional[str] = None,
    ) -> None:
        self.log.warning(
            "unauthorized_access",
            user_id=user_id,
            resource=resource,
            action=action,
            reason=reason,
        )

    def log_role_switch(self, user_id: str, new_role: str, impersonated: bool) -> None:
        self.log.info(
            "role_switch",
            user_id=user_id,
            new_role=new_role,
            role_impersonation=impersonated,
        )

    def log_impersonation_started(
        self,
        admin_user_id: str,
        target_user_id: str,
        session_id: str,
    ) -> None:
        self.log.warning(
            "impersonation_started",
            admin_user_id=admin_user_id,
            target_user_id=target_user_id,
            session_id=session_id,
        )

    def log_impersonation_ended(self, admin_user_id: str, session_id: str) -> None:
        self.log.info(
            "impersonation_ended",
            admin_user_id=admin_user_id,
            session_id=session_id,
        )

    def log_audit_write_failure(self, action_type: str, actor_id: str, error: str) -> None:
        self.log.error(
            "audit_write_failed",
            action_type=action_type,
            actor_id=actor_id,
            error=error,
        )


security_logger = SecurityLogger()
