"""
Logging Unit Tests
==================

Tests for tracing context binding.
"""

import pytest

from willskill.core.logging import (
    LogContext,
    actor_id_context,
    add_context_variables,
    request_id_context,
)


pytestmark = pytest.mark.unit


class TestLogContext:
    """Tests for LogContext."""

    def test_binds_and_restores(self):
        # Act
        with LogContext(request_id="req-7", actor_id="u-1"):
            inside = (request_id_context.get(), actor_id_context.get())

        # Assert
        assert inside == ("req-7", "u-1")
        assert request_id_context.get() is None
        assert actor_id_context.get() is None

    def test_nested_context_restores_outer(self):
        # Act
        with LogContext(request_id="outer"):
            with LogContext(request_id="inner"):
                pass
            after_inner = request_id_context.get()

        # Assert
        assert after_inner == "outer"

    def test_context_variables_are_merged_into_entries(self):
        # Act
        with LogContext(request_id="req-9"):
            event = add_context_variables(None, "info", {"event": "role_switched"})

        # Assert
        assert event["request_id"] == "req-9"
