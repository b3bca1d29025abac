"""
SQL Session Store Tests
=======================

Tests for SqlSessionStore covering:
- Role assignment reads and writes
- Server-side impersonation enforcement
- One open session per admin
- Lazy expiry on read
- Append-only audit trail
- Database failures surfacing as StoreError
- Queries running off the event loop
"""

import asyncio
import time
import uuid
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from willskill.core.exceptions import (
    LastSuperAdminError,
    NotFoundError,
    RoleAlreadyHeldError,
    SessionNotFoundError,
    StoreError,
    SuperAdminRequiredError,
    UserNotFoundError,
    ValidationError,
)
from willskill.models.role_enum import Role
from willskill.models.user_role import UserRole
from willskill.store.sql import SqlSessionStore


pytestmark = pytest.mark.unit


class TestRoleAssignments:
    """Tests for reading and changing role assignments."""

    @pytest.mark.asyncio
    async def test_roles_are_returned_most_senior_first(self, store, make_user):
        # Arrange
        user = make_user("multi@example.com", Role.USER, Role.CHAIR, Role.EM)

        # Act
        roles = await store.get_roles_for_user(user.id)

        # Assert
        assert roles == [Role.CHAIR, Role.EM, Role.USER]

    @pytest.mark.asyncio
    async def test_user_without_roles(self, store, make_user):
        # Arrange
        user = make_user("nobody@example.com")

        # Act & Assert
        assert await store.get_roles_for_user(user.id) == []

    @pytest.mark.asyncio
    async def test_unknown_stored_role_is_ignored(self, store, make_user, db_session):
        # Arrange
        user = make_user("legacy@example.com", Role.EM)
        db_session.add(UserRole(user_id=user.id, role="moderator"))
        db_session.commit()

        # Act
        roles = await store.get_roles_for_user(user.id)

        # Assert
        assert roles == [Role.EM]

    @pytest.mark.asyncio
    async def test_assign_role(self, store, plain_user):
        # Act
        await store.assign_role(plain_user.id, Role.CO_CHAIR)

        # Assert
        assert await store.get_roles_for_user(plain_user.id) == [Role.CO_CHAIR, Role.USER]

    @pytest.mark.asyncio
    async def test_assign_duplicate_role(self, store, plain_user):
        # Act & Assert
        with pytest.raises(RoleAlreadyHeldError):
            await store.assign_role(plain_user.id, Role.USER)

    @pytest.mark.asyncio
    async def test_assign_to_missing_user(self, store, db_session):
        # Act & Assert
        with pytest.raises(UserNotFoundError):
            await store.assign_role(uuid.uuid4(), Role.USER)

    @pytest.mark.asyncio
    async def test_revoke_role(self, store, second_user):
        # Act
        await store.revoke_role(second_user.id, Role.EM)

        # Assert
        assert await store.get_roles_for_user(second_user.id) == [Role.USER]

    @pytest.mark.asyncio
    async def test_revoke_role_not_held(self, store, plain_user):
        # Act & Assert
        with pytest.raises(NotFoundError):
            await store.revoke_role(plain_user.id, Role.ADMIN)

    @pytest.mark.asyncio
    async def test_last_super_admin_cannot_be_revoked(self, store, super_admin):
        # Act & Assert
        with pytest.raises(LastSuperAdminError):
            await store.revoke_role(super_admin.id, Role.SUPER_ADMIN)
        assert await store.get_roles_for_user(super_admin.id) == [Role.SUPER_ADMIN]

    @pytest.mark.asyncio
    async def test_super_admin_revocable_when_another_exists(self, store, super_admin, make_user):
        # Arrange
        make_user("backup@example.com", Role.SUPER_ADMIN)

        # Act
        await store.revoke_role(super_admin.id, Role.SUPER_ADMIN)

        # Assert
        assert await store.get_roles_for_user(super_admin.id) == []

    @pytest.mark.asyncio
    async def test_revoke_all_roles(self, store, second_user):
        # Act
        removed = await store.revoke_all_roles(second_user.id)

        # Assert
        assert removed == [Role.EM, Role.USER]
        assert await store.get_roles_for_user(second_user.id) == []

    @pytest.mark.asyncio
    async def test_list_users_includes_roles(self, store, super_admin, second_user):
        # Act
        users = await store.list_users()

        # Assert
        by_email = {user.email: user for user in users}
        assert by_email["user2@example.com"].roles == (Role.EM, Role.USER)
        assert by_email["superadmin@example.com"].roles == (Role.SUPER_ADMIN,)

    @pytest.mark.asyncio
    async def test_get_user_by_email_ignores_case(self, store, plain_user):
        # Act
        record = await store.get_user_by_email("USER@Example.com")

        # Assert
        assert record is not None
        assert record.id == plain_user.id


@pytest.mark.impersonation
class TestImpersonationSessions:
    """Tests for impersonation session records."""

    @pytest.mark.asyncio
    async def test_create_session(self, store, clock, super_admin, plain_user):
        # Act
        session = await store.create_impersonation_session(
            super_admin.id, plain_user.id, plain_user.email
        )

        # Assert
        assert session.impersonated_user_id == plain_user.id
        assert session.impersonated_user_email == "user@example.com"
        assert session.created_at == clock.now
        assert session.expires_at == clock.now + timedelta(hours=2)

    @pytest.mark.asyncio
    async def test_only_super_admin_may_create(self, store, admin_user, plain_user):
        # Act & Assert
        with pytest.raises(SuperAdminRequiredError):
            await store.create_impersonation_session(
                admin_user.id, plain_user.id, plain_user.email
            )
        assert await store.get_active_impersonation_session(admin_user.id) is None

    @pytest.mark.asyncio
    async def test_target_must_exist(self, store, super_admin):
        # Act & Assert
        with pytest.raises(UserNotFoundError):
            await store.create_impersonation_session(
                super_admin.id, uuid.uuid4(), "ghost@example.com"
            )

    @pytest.mark.asyncio
    async def test_cannot_impersonate_self(self, store, super_admin):
        # Act & Assert
        with pytest.raises(ValidationError):
            await store.create_impersonation_session(
                super_admin.id, super_admin.id, super_admin.email
            )

    @pytest.mark.asyncio
    async def test_email_must_match_target(self, store, super_admin, plain_user):
        # Act & Assert
        with pytest.raises(ValidationError):
            await store.create_impersonation_session(
                super_admin.id, plain_user.id, "someone-else@example.com"
            )

    @pytest.mark.asyncio
    async def test_second_session_supersedes_first(self, store, clock, super_admin, plain_user, second_user):
        # Arrange
        first = await store.create_impersonation_session(
            super_admin.id, plain_user.id, plain_user.email
        )
        clock.advance(minutes=5)

        # Act
        second = await store.create_impersonation_session(
            super_admin.id, second_user.id, second_user.email
        )

        # Assert
        active = await store.get_active_impersonation_session(super_admin.id)
        assert active.session_id == second.session_id
        assert active.session_id != first.session_id
        assert active.impersonated_user_id == second_user.id

    @pytest.mark.asyncio
    async def test_expired_session_is_not_active(self, store, clock, super_admin, plain_user):
        # Arrange
        await store.create_impersonation_session(
            super_admin.id, plain_user.id, plain_user.email
        )

        # Act
        clock.advance(hours=2)

        # Assert
        assert await store.get_active_impersonation_session(super_admin.id) is None

    @pytest.mark.asyncio
    async def test_session_active_just_before_expiry(self, store, clock, super_admin, plain_user):
        # Arrange
        await store.create_impersonation_session(
            super_admin.id, plain_user.id, plain_user.email
        )

        # Act
        clock.advance(hours=1, minutes=59)

        # Assert
        assert await store.get_active_impersonation_session(super_admin.id) is not None

    @pytest.mark.asyncio
    async def test_custom_session_lifetime(self, session_factory, clock, super_admin, plain_user):
        # Arrange
        short_store = SqlSessionStore(
            session_factory,
            session_lifetime=timedelta(minutes=10),
            clock=clock,
        )

        # Act
        session = await short_store.create_impersonation_session(
            super_admin.id, plain_user.id, plain_user.email
        )

        # Assert
        assert session.expires_at - session.created_at == timedelta(minutes=10)

    @pytest.mark.asyncio
    async def test_end_session(self, store, super_admin, plain_user):
        # Arrange
        session = await store.create_impersonation_session(
            super_admin.id, plain_user.id, plain_user.email
        )

        # Act
        await store.end_impersonation_session(super_admin.id, session.session_id)

        # Assert
        assert await store.get_active_impersonation_session(super_admin.id) is None

    @pytest.mark.asyncio
    async def test_end_expired_session_succeeds(self, store, clock, super_admin, plain_user):
        # Arrange
        session = await store.create_impersonation_session(
            super_admin.id, plain_user.id, plain_user.email
        )
        clock.advance(hours=3)

        # Act & Assert
        await store.end_impersonation_session(super_admin.id, session.session_id)

    @pytest.mark.asyncio
    async def test_cannot_end_another_admins_session(self, store, super_admin, make_user, plain_user):
        # Arrange
        other_admin = make_user("other-super@example.com", Role.SUPER_ADMIN)
        session = await store.create_impersonation_session(
            super_admin.id, plain_user.id, plain_user.email
        )

        # Act & Assert
        with pytest.raises(SessionNotFoundError):
            await store.end_impersonation_session(other_admin.id, session.session_id)
        assert await store.get_active_impersonation_session(super_admin.id) is not None


class TestAuditTrail:
    """Tests for the append-only audit table."""

    @pytest.mark.asyncio
    async def test_append_and_list(self, store, clock, super_admin):
        # Arrange
        await store.append_audit_record(
            actor_id=super_admin.id,
            actor_email=super_admin.email,
            action_type="role_switch",
            details={"new_role": "em"},
        )
        clock.advance(seconds=1)
        await store.append_audit_record(
            actor_id=super_admin.id,
            actor_email=super_admin.email,
            action_type="logout",
        )

        # Act
        records, total = await store.list_audit_records()

        # Assert
        assert total == 2
        assert [r.action_type for r in records] == ["logout", "role_switch"]
        assert records[1].details == {"new_role": "em"}

    @pytest.mark.asyncio
    async def test_filter_by_action_type(self, store, super_admin, admin_user):
        # Arrange
        for actor in (super_admin, admin_user):
            await store.append_audit_record(actor.id, actor.email, "login")
        await store.append_audit_record(super_admin.id, super_admin.email, "logout")

        # Act
        records, total = await store.list_audit_records(action_type="login")

        # Assert
        assert total == 2
        assert {r.actor_email for r in records} == {"superadmin@example.com", "admin@example.com"}

    @pytest.mark.asyncio
    async def test_pagination_reports_full_total(self, store, clock, super_admin):
        # Arrange
        for _ in range(5):
            await store.append_audit_record(super_admin.id, super_admin.email, "login")
            clock.advance(seconds=1)

        # Act
        records, total = await store.list_audit_records(limit=2, offset=1)

        # Assert
        assert total == 5
        assert len(records) == 2


class TestStoreFailures:
    """Database errors surface as StoreError."""

    @pytest.mark.asyncio
    async def test_database_error_becomes_store_error(self, store, plain_user, monkeypatch):
        # Arrange
        from sqlalchemy.orm import Session

        def broken_scalars(self, *args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(Session, "scalars", broken_scalars)

        # Act & Assert
        with pytest.raises(StoreError):
            await store.get_roles_for_user(plain_user.id)


class TestEventLoopResponsiveness:
    """Store calls run on worker threads."""

    @pytest.mark.asyncio
    async def test_loop_keeps_running_during_slow_query(self, session_factory, clock, plain_user):
        """Other coroutines keep progressing while a query is in flight."""
        # Arrange
        def slow_factory():
            time.sleep(0.3)
            return session_factory()

        slow_store = SqlSessionStore(slow_factory, clock=clock)
        ticks = []

        async def ticker():
            while True:
                ticks.append(time.monotonic())
                await asyncio.sleep(0.02)

        task = asyncio.create_task(ticker())
        await asyncio.sleep(0)

        # Act
        roles = await slow_store.get_roles_for_user(plain_user.id)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        # Assert
        gaps = [later - earlier for earlier, later in zip(ticks, ticks[1:])]
        assert roles == [Role.USER]
        assert len(ticks) > 5
        assert max(gaps) < 0.2
