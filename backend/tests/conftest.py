"""
Shared test setup.

Environment is set before any application module is imported so that
``get_settings()`` caches the test values.
"""

import os
import time
import uuid

os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("SUPABASE_URL", "https://auth.test.local")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "service-role-test-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-with-enough-length")
os.environ.setdefault("SENTRY_DSN", "")

import pytest
from jose import jwt
from unittest.mock import AsyncMock, MagicMock

JWT_SECRET = os.environ["SUPABASE_JWT_SECRET"]


def make_token(user_id: str, audience: str = "authenticated", expires_in: int = 3600, secret: str = JWT_SECRET) -> str:
    """Session token shaped like the ones the auth subsystem issues."""
    now = int(time.time())
    return jwt.encode(
        {"sub": user_id, "email": "someone@example.com", "aud": audience, "iat": now, "exp": now + expires_in},
        secret,
        algorithm="HS256",
    )


def _assign_primary_key(obj):
    if getattr(obj, "id", None) is None:
        obj.id = uuid.uuid4()


@pytest.fixture
def mock_db():
    """
    Mock AsyncSession. ``add`` is synchronous on the real session and gives
    the object a primary key, as the flush on commit would.
    """
    db = AsyncMock()
    db.execute = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.refresh = AsyncMock()
    db.delete = AsyncMock()
    db.add = MagicMock(side_effect=_assign_primary_key)
    return db


@pytest.fixture
def org_id():
    return "org-1"


@pytest.fixture
def user_id():
    return str(uuid.uuid4())


def scalar_result(value):
    """Result whose scalar_one_or_none() returns ``value``."""
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    result.scalar.return_value = value
    return result


def scalars_result(values):
    """Result whose scalars().all() returns ``values``."""
    result = MagicMock()
    result.scalars.return_value.all.return_value = list(values)
    return result
