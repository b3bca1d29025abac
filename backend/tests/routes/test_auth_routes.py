"""
Authentication Routes Integration Tests
=======================================

Integration tests for authentication endpoints including:
- POST /auth/login
- POST /auth/refresh
- POST /auth/logout
- GET /auth/me
"""

import inspect

import pytest
from fastapi import status

from willskill.models.role_enum import Role
from willskill.routes.auth_routes import login as login_handler
from willskill.routes.auth_routes import logout as logout_handler
from willskill.routes.auth_routes import refresh_token as refresh_handler


pytestmark = pytest.mark.integration

PASSWORD = "TestPassword123!"


def login(client, email: str, password: str = PASSWORD):
    return client.post("/auth/login", json={"email": email, "password": password})


class TestLoginEndpoint:
    """Integration tests for POST /auth/login."""

    def test_login_success(self, client, plain_user, store, drain):
        """Valid credentials return a token pair and are audited."""
        # Act
        response = login(client, "user@example.com")
        drain()

        # Assert
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert "access_token" in data
        assert "refresh_token" in data
        assert data["token_type"] == "bearer"

        records, _ = client.portal.call(store.list_audit_records)
        assert records[0].action_type == "login"
        assert "ip_address" in records[0].details

    def test_login_wrong_password(self, client, plain_user):
        # Act
        response = login(client, "user@example.com", "WrongPassword123!")

        # Assert
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_login_unknown_email(self, client, db_session):
        # Act
        response = login(client, "nobody@example.com")

        # Assert
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_login_disabled_account(self, client, make_user):
        # Arrange
        make_user("off@example.com", Role.EM, is_active=False)

        # Act
        response = login(client, "off@example.com")

        # Assert
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_login_invalid_email_format(self, client, db_session):
        # Act
        response = login(client, "not-an-email")

        # Assert
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


class TestRefreshEndpoint:
    """Integration tests for POST /auth/refresh."""

    def test_refresh_success(self, client, plain_user, drain):
        # Arrange
        tokens = login(client, "user@example.com").json()
        drain()

        # Act
        response = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})

        # Assert
        assert response.status_code == status.HTTP_200_OK
        assert "access_token" in response.json()

    def test_refresh_with_access_token(self, client, plain_user, drain):
        # Arrange
        tokens = login(client, "user@example.com").json()
        drain()

        # Act
        response = client.post("/auth/refresh", json={"refresh_token": tokens["access_token"]})

        # Assert
        assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestLogoutEndpoint:
    """Integration tests for POST /auth/logout."""

    def test_logout_invalidates_token(self, client, user_headers, drain):
        # Act
        response = client.post("/auth/logout", headers=user_headers)
        drain()

        # Assert
        assert response.status_code == status.HTTP_200_OK
        assert client.get("/auth/me", headers=user_headers).status_code == status.HTTP_401_UNAUTHORIZED

    def test_logout_clears_active_role_cookie(self, client, super_admin_headers, drain):
        # Arrange
        client.post("/roles/switch", json={"role": "em"}, headers=super_admin_headers)
        drain()

        # Act
        response = client.post("/auth/logout", headers=super_admin_headers)
        drain()

        # Assert
        set_cookie = response.headers.get("set-cookie", "")
        assert "activeRole=" in set_cookie
        assert "Max-Age=0" in set_cookie

    def test_logout_is_audited(self, client, user_headers, store, drain):
        # Act
        client.post("/auth/logout", headers=user_headers)
        drain()

        # Assert
        records, _ = client.portal.call(store.list_audit_records, "logout")
        assert len(records) == 1


class TestMeEndpoint:
    """Integration tests for GET /auth/me."""

    def test_me_returns_held_roles(self, client, second_user, headers_for):
        # Act
        response = client.get("/auth/me", headers=headers_for(second_user))

        # Assert
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["email"] == "user2@example.com"
        assert data["roles"] == ["em", "user"]

    def test_me_with_invalid_token(self, client, db_session):
        # Act
        response = client.get("/auth/me", headers={"Authorization": "Bearer invalid"})

        # Assert
        assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestHealthEndpoints:
    """Health checks need no authentication."""

    def test_root(self, client):
        # Act
        response = client.get("/")

        # Assert
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "healthy"

    def test_request_id_header(self, client):
        # Act
        response = client.get("/", headers={"X-Request-ID": "req-123"})

        # Assert
        assert response.headers["X-Request-ID"] == "req-123"
        assert response.headers["X-Content-Type-Options"] == "nosniff"


class TestHandlerStyle:
    """Handlers using a plain database session stay off the event loop."""

    def test_session_handlers_are_sync(self):
        # Assert
        for handler in (login_handler, refresh_handler, logout_handler):
            assert not inspect.iscoroutinefunction(handler)

    def test_login_audit_lands_with_the_response(self, client, plain_user, store):
        """The login entry is written as a background task before the call returns."""
        # Act
        response = login(client, "user@example.com")

        # Assert
        assert response.status_code == status.HTTP_200_OK
        records, _ = client.portal.call(store.list_audit_records, "login")
        assert len(records) == 1
