"""
Admin Activity Log Model
========================

Append-only audit trail for privilege-sensitive actions.

No UPDATE or DELETE is ever issued against this table by the
application; the session store only inserts and reads.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from willskill.db.base import Base


class AdminActivityLog(Base):
    """One audit record."""

    __tablename__ = "admin_activity_log"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    admin_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        nullable=False,
        index=True,
    )

    admin_email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # login, logout, role_switch, role_impersonation, user_impersonation, ...
    action_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
    )

    target_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    target_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    details: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<AdminActivityLog(action={self.action_type}, admin={self.admin_email})>"
