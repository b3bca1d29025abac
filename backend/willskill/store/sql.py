"""
SQLAlchemy Session Store
========================

Relational implementation of the session store.

Each operation opens its own short-lived session from the factory and
commits or rolls back before returning, so background audit writes never
share a request's session. Database failures surface as StoreError.

The ORM calls are synchronous; every public coroutine runs its body in
the threadpool so the event loop keeps serving other requests and the
detached audit writes while a query is in flight.

Server-side enforcement:
- Only a super_admin may open an impersonation session.
- Opening a session ends every other open session of the same admin in
  the same transaction.
- Expired sessions are filtered out on read; nothing sweeps them.
"""

from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from willskill.core.config import settings
from willskill.core.exceptions import (
    LastSuperAdminError,
    NotFoundError,
    RoleAlreadyHeldError,
    SessionNotFoundError,
    StoreError,
    SuperAdminRequiredError,
    UnknownRoleError,
    UserNotFoundError,
    ValidationError,
)
from willskill.core.logging import get_logger
from willskill.core.permissions import coerce_role, sort_by_rank
from willskill.models.activity_log import AdminActivityLog
from willskill.models.impersonation_session import ImpersonationSession
from willskill.models.role_enum import Role
from willskill.models.user import User
from willskill.models.user_role import UserRole
from willskill.store.base import (
    AuditRecord,
    ImpersonationSessionRecord,
    SessionStore,
    UserRecord,
)

# Initialize logger
logger = get_logger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    # SQLite returns naive datetimes; everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SqlSessionStore(SessionStore):
    """
    Session store backed by SQLAlchemy.

    Usage:
        store = SqlSessionStore(SessionLocal)
        roles = await store.get_roles_for_user(user_id)
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        session_lifetime: Optional[timedelta] = None,
        clock: Clock = utcnow,
    ):
        """
        Args:
            session_factory: Factory producing SQLAlchemy sessions
            session_lifetime: Impersonation session lifetime
            clock: Source of the current UTC time
        """
        self._session_factory = session_factory
        self._session_lifetime = session_lifetime or timedelta(
            hours=settings.IMPERSONATION_SESSION_HOURS
        )
        self._clock = clock

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(
                "Session store operation failed",
                extra={"error": str(e)}
            )
            raise StoreError(details={"error": type(e).__name__}) from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # --------------------------
    # Conversion
    # --------------------------

    @staticmethod
    def _roles_from_rows(values: List[str], user_id: UUID) -> List[Role]:
        roles = []
        for value in values:
            try:
                roles.append(coerce_role(value))
            except UnknownRoleError:
                logger.warning(
                    "Ignoring unknown role assignment",
                    extra={"user_id": str(user_id), "role": value}
                )
        return sort_by_rank(roles)

    def _user_record(self, user: User) -> UserRecord:
        return UserRecord(
            id=user.id,
            email=user.email,
            full_name=user.full_name,
            is_active=user.is_active,
            roles=tuple(self._roles_from_rows([a.role for a in user.roles], user.id)),
        )

    @staticmethod
    def _session_record(row: ImpersonationSession) -> ImpersonationSessionRecord:
        return ImpersonationSessionRecord(
            session_id=row.id,
            admin_user_id=row.admin_user_id,
            impersonated_user_id=row.impersonated_user_id,
            impersonated_user_email=row.impersonated_user_email,
            created_at=_aware(row.created_at),
            expires_at=_aware(row.expires_at),
        )

    @staticmethod
    def _audit_record(row: AdminActivityLog) -> AuditRecord:
        return AuditRecord(
            id=row.id,
            actor_id=row.admin_user_id,
            actor_email=row.admin_email,
            action_type=row.action_type,
            created_at=_aware(row.created_at),
            target_type=row.target_type,
            target_id=row.target_id,
            details=dict(row.details or {}),
        )

    # --------------------------
    # Users and role assignments
    # --------------------------

    async def get_roles_for_user(self, user_id: UUID) -> List[Role]:
        return await run_in_threadpool(self._get_roles_for_user, user_id)

    def _get_roles_for_user(self, user_id: UUID) -> List[Role]:
        with self._transaction() as db:
            values = db.scalars(
                select(UserRole.role).where(UserRole.user_id == user_id)
            ).all()
        return self._roles_from_rows(list(values), user_id)

    async def get_user(self, user_id: UUID) -> Optional[UserRecord]:
        return await run_in_threadpool(self._get_user, user_id)

    def _get_user(self, user_id: UUID) -> Optional[UserRecord]:
        with self._transaction() as db:
            user = db.get(User, user_id)
            return self._user_record(user) if user else None

    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        return await run_in_threadpool(self._get_user_by_email, email)

    def _get_user_by_email(self, email: str) -> Optional[UserRecord]:
        with self._transaction() as db:
            user = db.scalars(
                select(User).where(func.lower(User.email) == email.lower())
            ).first()
            return self._user_record(user) if user else None

    async def list_users(self) -> List[UserRecord]:
        return await run_in_threadpool(self._list_users)

    def _list_users(self) -> List[UserRecord]:
        with self._transaction() as db:
            users = db.scalars(select(User).order_by(User.email)).all()
            return [self._user_record(user) for user in users]

    async def assign_role(self, user_id: UUID, role: Role) -> None:
        await run_in_threadpool(self._assign_role, user_id, role)

    def _assign_role(self, user_id: UUID, role: Role) -> None:
        with self._transaction() as db:
            if db.get(User, user_id) is None:
                raise UserNotFoundError(identifier=str(user_id))

            existing = db.scalars(
                select(UserRole.id).where(
                    UserRole.user_id == user_id,
                    UserRole.role == role.value,
                )
            ).first()
            if existing is not None:
                raise RoleAlreadyHeldError(role.value)

            db.add(UserRole(user_id=user_id, role=role.value))

    async def revoke_role(self, user_id: UUID, role: Role) -> None:
        await run_in_threadpool(self._revoke_role, user_id, role)

    def _revoke_role(self, user_id: UUID, role: Role) -> None:
        with self._transaction() as db:
            assignment = db.scalars(
                select(UserRole).where(
                    UserRole.user_id == user_id,
                    UserRole.role == role.value,
                )
            ).first()
            if assignment is None:
                raise NotFoundError(resource="Role assignment", identifier=f"{user_id}:{role.value}")

            if role is Role.SUPER_ADMIN and self._count_super_admins(db) <= 1:
                raise LastSuperAdminError()

            db.delete(assignment)

    async def revoke_all_roles(self, user_id: UUID) -> List[Role]:
        return await run_in_threadpool(self._revoke_all_roles, user_id)

    def _revoke_all_roles(self, user_id: UUID) -> List[Role]:
        with self._transaction() as db:
            if db.get(User, user_id) is None:
                raise UserNotFoundError(identifier=str(user_id))

            assignments = db.scalars(
                select(UserRole).where(UserRole.user_id == user_id)
            ).all()
            held = [a.role for a in assignments]

            if Role.SUPER_ADMIN.value in held and self._count_super_admins(db) <= 1:
                raise LastSuperAdminError()

            for assignment in assignments:
                db.delete(assignment)

        return self._roles_from_rows(held, user_id)

    @staticmethod
    def _count_super_admins(db: Session) -> int:
        return db.scalar(
            select(func.count(UserRole.id)).where(UserRole.role == Role.SUPER_ADMIN.value)
        ) or 0

    @staticmethod
    def _holds_super_admin(db: Session, user_id: UUID) -> bool:
        return db.scalars(
            select(UserRole.id).where(
                UserRole.user_id == user_id,
                UserRole.role == Role.SUPER_ADMIN.value,
            )
        ).first() is not None

    # --------------------------
    # Impersonation sessions
    # --------------------------

    async def create_impersonation_session(
        self,
        admin_user_id: UUID,
        target_user_id: UUID,
        target_email: str,
    ) -> ImpersonationSessionRecord:
        record = await run_in_threadpool(
            self._create_impersonation_session,
            admin_user_id,
            target_user_id,
            target_email,
        )

        logger.info(
            "Impersonation session created",
            extra={
                "session_id": str(record.session_id),
                "admin_user_id": str(admin_user_id),
                "target_user_id": str(target_user_id),
            }
        )
        return record

    def _create_impersonation_session(
        self,
        admin_user_id: UUID,
        target_user_id: UUID,
        target_email: str,
    ) -> ImpersonationSessionRecord:
        now = self._clock()

        with self._transaction() as db:
            if not self._holds_super_admin(db, admin_user_id):
                raise SuperAdminRequiredError("start impersonation")

            if admin_user_id == target_user_id:
                raise ValidationError(message="You cannot impersonate yourself")

            target = db.get(User, target_user_id)
            if target is None:
                raise UserNotFoundError(identifier=str(target_user_id))

            if target.email.lower() != target_email.lower():
                raise ValidationError(
                    message="Target email does not match the target user",
                    details={"user_id": str(target_user_id)},
                )

            # Supersede any open session of this admin
            db.execute(
                update(ImpersonationSession)
                .where(
                    ImpersonationSession.admin_user_id == admin_user_id,
                    ImpersonationSession.ended_at.is_(None),
                )
                .values(ended_at=now)
            )

            row = ImpersonationSession(
                admin_user_id=admin_user_id,
                impersonated_user_id=target.id,
                impersonated_user_email=target.email,
                created_at=now,
                expires_at=now + self._session_lifetime,
            )
            db.add(row)
            db.flush()
            return self._session_record(row)

    async def get_active_impersonation_session(
        self,
        admin_user_id: UUID,
        now: Optional[datetime] = None,
    ) -> Optional[ImpersonationSessionRecord]:
        return await run_in_threadpool(
            self._get_active_impersonation_session,
            admin_user_id,
            now or self._clock(),
        )

    def _get_active_impersonation_session(
        self,
        admin_user_id: UUID,
        now: datetime,
    ) -> Optional[ImpersonationSessionRecord]:
        with self._transaction() as db:
            row = db.scalars(
                select(ImpersonationSession)
                .where(
                    ImpersonationSession.admin_user_id == admin_user_id,
                    ImpersonationSession.ended_at.is_(None),
                    ImpersonationSession.expires_at > now,
                )
                .order_by(ImpersonationSession.created_at.desc())
            ).first()
            return self._session_record(row) if row else None

    async def end_impersonation_session(self, admin_user_id: UUID, session_id: UUID) -> None:
        await run_in_threadpool(self._end_impersonation_session, admin_user_id, session_id)

    def _end_impersonation_session(self, admin_user_id: UUID, session_id: UUID) -> None:
        with self._transaction() as db:
            row = db.get(ImpersonationSession, session_id)
            if row is None or row.admin_user_id != admin_user_id:
                raise SessionNotFoundError(identifier=str(session_id))

            if row.ended_at is None:
                row.ended_at = self._clock()

    # --------------------------
    # Audit trail
    # --------------------------

    async def append_audit_record(
        self,
        actor_id: UUID,
        actor_email: str,
        action_type: str,
        target_type: Optional[str] = None,
        target_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> AuditRecord:
        return await run_in_threadpool(
            self._append_audit_record,
            actor_id,
            actor_email,
            action_type,
            target_type,
            target_id,
            details,
        )

    def _append_audit_record(
        self,
        actor_id: UUID,
        actor_email: str,
        action_type: str,
        target_type: Optional[str],
        target_id: Optional[str],
        details: Optional[Dict[str, Any]],
    ) -> AuditRecord:
        with self._transaction() as db:
            row = AdminActivityLog(
                admin_user_id=actor_id,
                admin_email=actor_email,
                action_type=action_type,
                target_type=target_type,
                target_id=target_id,
                details=details,
                created_at=self._clock(),
            )
            db.add(row)
            db.flush()
            return self._audit_record(row)

    async def list_audit_records(
        self,
        action_type: Optional[str] = None,
        actor_id: Optional[UUID] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[AuditRecord], int]:
        return await run_in_threadpool(
            self._list_audit_records, action_type, actor_id, limit, offset
        )

    def _list_audit_records(
        self,
        action_type: Optional[str],
        actor_id: Optional[UUID],
        limit: int,
        offset: int,
    ) -> Tuple[List[AuditRecord], int]:
        query = select(AdminActivityLog)
        if action_type:
            query = query.where(AdminActivityLog.action_type == action_type)
        if actor_id:
            query = query.where(AdminActivityLog.admin_user_id == actor_id)

        with self._transaction() as db:
            total = db.scalar(select(func.count()).select_from(query.subquery())) or 0
            rows = db.scalars(
                query.order_by(AdminActivityLog.created_at.desc())
                .offset(offset)
                .limit(limit)
            ).all()
            return [self._audit_record(row) for row in rows], total
