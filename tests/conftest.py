"""
Pytest configuration and fixtures for testing.

Provides token factories, fake transports and registry fixtures shared by
the test modules.
"""

import os
import time

import pytest

# Set required environment variables for testing before importing app modules
os.environ.setdefault("JWT_SECRET", "test-secret-with-at-least-32-bytes")
os.environ.setdefault("LOG_FILE_PATH", os.devnull)

from tests.mocks.auth_mocks import make_token  # noqa: E402


@pytest.fixture
def admin_claims():
    """
    Provides claims of an admin panel user.

    Returns:
        dict: Claims resolving to the ``user7`` identity.
    """
    return {
        "user_id": 7,
        "user_name": "admin",
        "role_id": 1,
        "login_session": "session-admin",
        "exp": int(time.time()) + 3600,
    }


@pytest.fixture
def member_claims():
    """
    Provides claims of a member.

    Returns:
        dict: Claims resolving to the ``member10`` identity.
    """
    return {
        "user_id": 3,
        "member_id": 10,
        "user_name": "member",
        "login_session": "session-member",
        "exp": int(time.time()) + 3600,
    }


@pytest.fixture
def admin_token(admin_claims):
    return make_token(admin_claims)


@pytest.fixture
def member_token(member_claims):
    return make_token(member_claims)


@pytest.fixture
def registry():
    """
    Provides a fresh, independent connection registry.

    Returns:
        ConnectionRegistry: Empty registry instance.
    """
    from adminws.managers.websocket_connection_manager import (
        ConnectionRegistry,
    )

    return ConnectionRegistry()
