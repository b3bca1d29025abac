"""
Test Configuration and Fixtures
================================

Central configuration for pytest with all shared fixtures.

Features:
- SQLite database file per test; store calls run on worker threads,
  so each of them gets its own connection
- Session store with a controllable clock
- Users per role and their auth headers
- TestClient with dependency overrides for the database, the session
  store and the audit logger
"""

import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

# Set testing environment before importing app modules
os.environ["ENVIRONMENT"] = "testing"
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only-min-32-chars"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

from willskill.core.dependencies.context import get_audit_logger, get_session_store
from willskill.core.exceptions import StoreError
from willskill.core.identity import Identity
from willskill.db.base import Base
from willskill.db.session import get_db
from willskill.main import app as main_app
from willskill.models.role_enum import Role
from willskill.models.user import User
from willskill.models.user_role import UserRole
from willskill.services.audit_service import AuditLogger
from willskill.services.auth_service import AuthService
from willskill.store.sql import SqlSessionStore

TEST_PASSWORD = "TestPassword123!"


# =====================================
# Database Configuration
# =====================================

def _enable_foreign_keys(dbapi_connection, connection_record):
    """Enable foreign key constraints for SQLite."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class FakeClock:
    """Settable UTC clock for expiry tests."""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FailingAuditStore(SqlSessionStore):
    """Real store whose audit appends always fail."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.audit_attempts = 0

    async def append_audit_record(self, *args, **kwargs):
        self.audit_attempts += 1
        raise StoreError(message="audit table unavailable")


# =====================================
# Database Fixtures
# =====================================

@pytest.fixture(scope="function")
def engine(tmp_path) -> Generator[Engine, None, None]:
    """Fresh SQLite database file with all tables for each test."""
    test_engine = create_engine(
        f"sqlite:///{tmp_path / 'willskill-test.db'}",
        connect_args={"check_same_thread": False},
    )
    event.listen(test_engine, "connect", _enable_foreign_keys)
    Base.metadata.create_all(bind=test_engine)

    try:
        yield test_engine
    finally:
        test_engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )


@pytest.fixture(scope="function")
def db_session(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """Session for arranging and inspecting test data."""
    session = session_factory()

    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(db_session: Session, session_factory: sessionmaker, clock: FakeClock) -> SqlSessionStore:
    return SqlSessionStore(session_factory, clock=clock)


@pytest.fixture
def failing_audit_store(
    db_session: Session,
    session_factory: sessionmaker,
    clock: FakeClock,
) -> FailingAuditStore:
    return FailingAuditStore(session_factory, clock=clock)


@pytest.fixture
def audit_logger(store: SqlSessionStore) -> AuditLogger:
    return AuditLogger(store)


@pytest.fixture(scope="session")
def password_hash() -> str:
    """Argon2 is slow on purpose; hash the shared password once."""
    return AuthService.hash_password(TEST_PASSWORD)


# =====================================
# User Fixtures
# =====================================

@pytest.fixture
def make_user(db_session: Session, password_hash: str) -> Callable[..., User]:
    """
    Factory creating a user holding the given roles.

    Usage:
        chair = make_user("chair@example.com", Role.CHAIR)
    """
    def factory(email: str, *roles: Role, is_active: bool = True) -> User:
        user = User(
            id=uuid.uuid4(),
            email=email,
            full_name=email.split("@")[0].title(),
            hashed_password=password_hash,
            is_active=is_active,
        )
        db_session.add(user)
        for role in roles:
            db_session.add(UserRole(user_id=user.id, role=role.value))
        db_session.commit()
        db_session.refresh(user)
        return user

    return factory


@pytest.fixture
def super_admin(make_user) -> User:
    return make_user("superadmin@example.com", Role.SUPER_ADMIN)


@pytest.fixture
def admin_user(make_user) -> User:
    return make_user("admin@example.com", Role.ADMIN)


@pytest.fixture
def chair_user(make_user) -> User:
    return make_user("chair@example.com", Role.CHAIR)


@pytest.fixture
def plain_user(make_user) -> User:
    return make_user("user@example.com", Role.USER)


@pytest.fixture
def second_user(make_user) -> User:
    return make_user("user2@example.com", Role.USER, Role.EM)


@pytest.fixture
def super_admin_identity(super_admin: User) -> Identity:
    return Identity.from_user(super_admin)


@pytest.fixture
def admin_identity(admin_user: User) -> Identity:
    return Identity.from_user(admin_user)


# =====================================
# Auth Header Fixtures
# =====================================

@pytest.fixture
def headers_for() -> Callable[[User], dict]:
    """Build an Authorization header for any user."""
    def factory(user: User) -> dict:
        token = AuthService.create_access_token(
            user_id=user.id,
            token_version=user.token_version,
        )
        return {"Authorization": f"Bearer {token}"}

    return factory


@pytest.fixture
def super_admin_headers(super_admin: User, headers_for) -> dict:
    return headers_for(super_admin)


@pytest.fixture
def admin_headers(admin_user: User, headers_for) -> dict:
    return headers_for(admin_user)


@pytest.fixture
def user_headers(plain_user: User, headers_for) -> dict:
    return headers_for(plain_user)


# =====================================
# Client Fixture
# =====================================

@pytest.fixture(scope="function")
def client(
    db_session: Session,
    store: SqlSessionStore,
    audit_logger: AuditLogger,
) -> Generator[TestClient, None, None]:
    """
    TestClient wired to the test database.

    Background audit writes run on the client's event loop; call
    client.portal.call(audit_logger.drain) before asserting on them.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    main_app.dependency_overrides[get_db] = override_get_db
    main_app.dependency_overrides[get_session_store] = lambda: store
    main_app.dependency_overrides[get_audit_logger] = lambda: audit_logger

    with TestClient(main_app) as test_client:
        yield test_client
        test_client.portal.call(audit_logger.drain)

    main_app.dependency_overrides.clear()


@pytest.fixture
def drain(client: TestClient, audit_logger: AuditLogger) -> Callable[[], None]:
    """Wait for background audit writes started by earlier requests."""
    return lambda: client.portal.call(audit_logger.drain)
