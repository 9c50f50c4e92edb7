"""Shared fixtures for API tests.

The database and external services are never reached: repository functions,
the Supabase client and the Stripe client are monkeypatched per test.
"""

import os

os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("JWT_SECRET", "test-access-secret")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret")
os.environ.setdefault("SUPABASE_URL", "http://supabase.test")
os.environ.setdefault("SUPABASE_ANON_KEY", "anon-key")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "service-key")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test")

from unittest.mock import AsyncMock  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from auth import repository as auth_repository  # noqa: E402
from auth import security  # noqa: E402
from core import supabase  # noqa: E402
from main import app  # noqa: E402

ADMIN_ID = "11111111-1111-4111-8111-111111111111"
OTHER_ADMIN_ID = "22222222-2222-4222-8222-222222222222"
SUPER_ADMIN_ID = "33333333-3333-4333-8333-333333333333"
STUDENT_ID = "44444444-4444-4444-8444-444444444444"
MODULE_ID = "55555555-5555-4555-8555-555555555555"

ADMIN_TOKEN = "admin-session-token"
OTHER_ADMIN_TOKEN = "other-admin-session-token"
SUPER_ADMIN_TOKEN = "super-admin-session-token"

_SUPABASE_USERS = {
    ADMIN_TOKEN: ADMIN_ID,
    OTHER_ADMIN_TOKEN: OTHER_ADMIN_ID,
    SUPER_ADMIN_TOKEN: SUPER_ADMIN_ID,
}
_ROLES = {
    ADMIN_ID: security.ADMIN_ROLE,
    OTHER_ADMIN_ID: security.ADMIN_ROLE,
    SUPER_ADMIN_ID: security.SUPER_ADMIN_ROLE,
}


def bearer(token):
    """Authorization header for a token."""
    return {"Authorization": f"Bearer {token}"}


def student_token(student_id=STUDENT_ID, admin_id=ADMIN_ID):
    """Signed student access token."""
    return security.build_student_access_token(student_id=student_id, admin_id=admin_id)


def patch_async(monkeypatch, module, name, return_value=None, side_effect=None):
    """Replace an async module function with an AsyncMock and return it."""
    mock = AsyncMock(return_value=return_value, side_effect=side_effect)
    monkeypatch.setattr(module, name, mock)
    return mock


@pytest.fixture
def client():
    """Test client; unhandled errors come back as 500 responses."""
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture(autouse=True)
def supabase_sessions(monkeypatch):
    """Known admin session tokens resolve to admin profiles."""

    async def fake_get_user(access_token):
        user_id = _SUPABASE_USERS.get(access_token)
        if user_id is None:
            raise supabase.SupabaseError("invalid JWT", 401)
        return {"id": user_id, "email": f"{user_id}@example.com"}

    async def fake_get_profile_role(profile_id):
        return _ROLES.get(profile_id)

    monkeypatch.setattr(supabase, "get_user", fake_get_user)
    monkeypatch.setattr(auth_repository, "get_profile_role", fake_get_profile_role)


@pytest.fixture
def admin_headers():
    return bearer(ADMIN_TOKEN)


@pytest.fixture
def other_admin_headers():
    return bearer(OTHER_ADMIN_TOKEN)


@pytest.fixture
def super_admin_headers():
    return bearer(SUPER_ADMIN_TOKEN)


@pytest.fixture
def student_headers():
    return bearer(student_token())
