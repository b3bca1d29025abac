"""
Impersonation Session Model
===========================

A super admin acting as a specific other user for a bounded time.

Invariants kept by the session store:
- At most one open session (ended_at IS NULL) per admin.
- A session with expires_at <= now is treated as absent on read,
  whether or not it was ended.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from willskill.db.base import Base


class ImpersonationSession(Base):
    """Persisted user-level impersonation session."""

    __tablename__ = "impersonation_sessions"

    # Opaque session token
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    admin_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    impersonated_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    impersonated_user_email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    ended_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        Index("ix_impersonation_sessions_admin_open", "admin_user_id", "ended_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<ImpersonationSession(id={self.id}, admin={self.admin_user_id}, "
            f"target={self.impersonated_user_id})>"
        )

