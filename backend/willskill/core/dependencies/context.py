"""
Context Dependencies Module
===========================

Builds the per-request context objects from application state.

The session store and audit logger are created once in the application
lifespan and stored on app.state. Role and impersonation contexts are
constructed for each request and loaded for the authenticated identity,
so nothing about one user leaks into another's request.
"""

from fastapi import Depends, Request, Response

from willskill.core.config import settings
from willskill.core.dependencies.auth import get_current_identity
from willskill.core.identity import Identity
from willskill.services.audit_service import AuditLogger
from willskill.services.impersonation_service import ImpersonationSessionManager
from willskill.services.role_context import MemoryPreferenceStore, RoleContextManager
from willskill.store.base import SessionStore


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def get_audit_logger(request: Request) -> AuditLogger:
    return request.app.state.audit_logger


def get_preferences(request: Request) -> MemoryPreferenceStore:
    """Active-role preference seeded from the client's cookie."""
    initial = {}
    stored = request.cookies.get(settings.ACTIVE_ROLE_COOKIE)
    if stored:
        initial[settings.ACTIVE_ROLE_COOKIE] = stored
    return MemoryPreferenceStore(initial)


def apply_preferences(response: Response, preferences: MemoryPreferenceStore) -> None:
    """Mirror preference changes made during the request into cookies."""
    for key, value in preferences.changed.items():
        if value is None:
            response.delete_cookie(key)
        else:
            response.set_cookie(
                key,
                value,
                httponly=True,
                samesite="lax",
                secure=settings.is_production,
            )


async def get_role_context(
    identity: Identity = Depends(get_current_identity),
    store: SessionStore = Depends(get_session_store),
    audit_logger: AuditLogger = Depends(get_audit_logger),
    preferences: MemoryPreferenceStore = Depends(get_preferences),
) -> RoleContextManager:
    context = RoleContextManager(store, audit_logger, preferences)
    await context.load(identity)
    return context


async def get_impersonation_manager(
    identity: Identity = Depends(get_current_identity),
    store: SessionStore = Depends(get_session_store),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> ImpersonationSessionManager:
    manager = ImpersonationSessionManager(store, audit_logger)
    await manager.set_identity(identity)
    return manager
