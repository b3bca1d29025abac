"""
Authenticated identity passed between the dependency layer and services.
"""

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class Identity:
    """Who is making the request."""
    user_id: UUID
    email: str

    @classmethod
    def from_user(cls, user) -> "Identity":
        return cls(user_id=user.id, email=user.email)
