"""
User Model
==========

Security Features:
- Token version for JWT invalidation on logout
- Soft disable via is_active flag
- Roles held through the user_roles relationship (zero or more)

Database Indexes:
- Primary key: id (UUID)
- Unique index: email
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, DateTime, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from willskill.db.base import Base

if TYPE_CHECKING:
    from willskill.models.user_role import UserRole


class User(Base):
    """
    User entity representing authenticated dashboard users and candidates.

    Attributes:
        id: UUID primary key
        email: Unique email address
        full_name: Display name
        hashed_password: Argon2 hashed password
        is_active: Account active status
        token_version: JWT version for invalidation
        roles: Role assignments held by this user
    """

    __tablename__ = "users"

    def __init__(self, **kwargs):
        """Initialize User with Python-level defaults."""
        kwargs.setdefault("is_active", True)
        kwargs.setdefault("token_version", 1)
        super().__init__(**kwargs)

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    full_name: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
    )

    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    # JWT Version Control
    token_version: Mapped[int] = mapped_column(
        Integer,
        default=1,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    roles: Mapped[List["UserRole"]] = relationship(
        "UserRole",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"

    def invalidate_tokens(self) -> None:
        """Invalidate all tokens by incrementing version."""
        self.token_version += 1
