"""
Acting-As Projection
====================

One read model for "who is this admin acting as right now".

Role-level impersonation (a super admin selecting a role they do not
hold) and user-level impersonation (a super admin acting as a specific
user) remain separate mechanisms with separate audit action types.
Consumers that only need the effective role and identity read this
projection instead of combining the two contexts themselves.

User-level impersonation wins over the role selection: while a session
is active the effective role is the impersonated user's most senior role.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional
from uuid import UUID

from willskill.core.exceptions import AuthenticationError
from willskill.core.identity import Identity
from willskill.core.permissions import highest_role
from willskill.models.role_enum import Role
from willskill.services.impersonation_service import ImpersonationSessionManager
from willskill.services.role_context import RoleContextManager
from willskill.store.base import SessionStore


class ActingMode(str, Enum):
    SELF = "self"
    ROLE_ONLY = "role_only"
    ROLE_AND_IDENTITY = "role_and_identity"


@dataclass(frozen=True)
class ActingAs:
    actor: Identity
    mode: ActingMode
    role: Optional[Role]
    user_id: UUID
    email: str

    @property
    def is_impersonating(self) -> bool:
        return self.mode is not ActingMode.SELF


async def resolve_acting_as(
    store: SessionStore,
    role_context: RoleContextManager,
    impersonation: ImpersonationSessionManager,
) -> ActingAs:
    """
    Combine both contexts into the effective acting identity.

    Both contexts must already be loaded for the same identity.
    """
    actor = role_context.identity or impersonation.identity
    if actor is None:
        raise AuthenticationError(message="Not authenticated")

    session = impersonation.session
    if session is not None:
        roles = await store.get_roles_for_user(session.impersonated_user_id)
        return ActingAs(
            actor=actor,
            mode=ActingMode.ROLE_AND_IDENTITY,
            role=highest_role(roles),
            user_id=session.impersonated_user_id,
            email=session.impersonated_user_email,
        )

    active = role_context.active_role
    mode = ActingMode.SELF
    if active is not None and active not in role_context.held_roles:
        mode = ActingMode.ROLE_ONLY

    return ActingAs(
        actor=actor,
        mode=mode,
        role=active,
        user_id=actor.user_id,
        email=actor.email,
    )
