"""
Middleware Tests
================

Tests for request tagging and security headers.
"""

import pytest
from fastapi import status

from willskill.middleware import request_context


pytestmark = pytest.mark.integration


class RecordingLogger:
    """Collects the extra payload of every request log entry."""

    def __init__(self):
        self.entries = []

    def info(self, event, extra=None):
        self.entries.append(extra)

    warning = info
    error = info


class TestRequestContextMiddleware:
    """Tests for RequestContextMiddleware."""

    def test_request_id_is_echoed(self, client):
        # Act
        response = client.get("/health", headers={"X-Request-ID": "trace-42"})

        # Assert
        assert response.headers["X-Request-ID"] == "trace-42"

    def test_request_id_is_generated(self, client):
        # Act
        first = client.get("/health")
        second = client.get("/health")

        # Assert
        assert first.headers["X-Request-ID"]
        assert first.headers["X-Request-ID"] != second.headers["X-Request-ID"]

    def test_process_time_header(self, client):
        # Act
        response = client.get("/health")

        # Assert
        assert float(response.headers["X-Process-Time"]) >= 0

    def test_headers_on_error_responses(self, client):
        # Act
        response = client.get("/roles/context")

        # Assert
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert "X-Request-ID" in response.headers

    def test_request_log_user_id(self, client, user_headers, plain_user, monkeypatch):
        """Authenticated requests log the caller; requests refused before auth log None."""
        # Arrange
        recorder = RecordingLogger()
        monkeypatch.setattr(request_context, "logger", recorder)

        # Act
        client.get("/auth/me", headers=user_headers)
        client.get("/auth/me")

        # Assert
        assert recorder.entries[0]["user_id"] == str(plain_user.id)
        assert recorder.entries[1]["status_code"] == status.HTTP_401_UNAUTHORIZED
        assert recorder.entries[1]["user_id"] is None


class TestSecurityHeadersMiddleware:
    """Tests for SecurityHeadersMiddleware."""

    def test_security_headers_present(self, client):
        # Act
        response = client.get("/")

        # Assert
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert "frame-ancestors 'none'" in response.headers["Content-Security-Policy"]

    def test_no_hsts_outside_production(self, client):
        # Act
        response = client.get("/")

        # Assert
        assert "Strict-Transport-Security" not in response.headers
