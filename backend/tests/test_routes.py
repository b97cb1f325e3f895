"""
API Tests for path and query identifiers on the CRUD routes.

Run with: pytest tests/test_routes.py -v
"""

import uuid
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from conftest import scalar_result
from server import app
from database import get_db
from middleware.auth import require_admin, require_any_authenticated, require_sales
from services.auth import AuthUser

MALFORMED_ID_ROUTES = [
    ("GET", "/api/customers/not-a-uuid"),
    ("GET", "/api/customers/not-a-uuid/interactions"),
    ("DELETE", "/api/customers/not-a-uuid"),
    ("GET", "/api/orders/not-a-uuid"),
    ("DELETE", "/api/orders/not-a-uuid"),
    ("GET", "/api/teams/not-a-uuid"),
    ("DELETE", "/api/teams/not-a-uuid/members/also-bad"),
    ("GET", "/api/tasks/not-a-uuid/notes"),
    ("POST", "/api/tasks/not-a-uuid/toggle"),
    ("GET", "/api/users/not-a-uuid"),
    ("GET", "/api/tasks?user_id=not-a-uuid"),
    ("GET", "/api/customers/check-duplicate?exclude_id=not-a-uuid"),
]


@pytest.fixture
def db():
    session = AsyncMock()
    session.execute = AsyncMock(return_value=scalar_result(None))
    return session


@pytest.fixture
def client(db):
    admin = AuthUser(id=str(uuid.uuid4()), email="admin@firma.se", role="admin", organisation_id="org-1")

    async def session():
        yield db

    for dependency in (require_any_authenticated, require_sales, require_admin):
        app.dependency_overrides[dependency] = lambda: admin
    app.dependency_overrides[get_db] = session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.mark.parametrize("method,path", MALFORMED_ID_ROUTES)
def test_malformed_id_is_422(client, db, method, path):
    response = client.request(method, path)

    assert response.status_code == 422
    db.execute.assert_not_awaited()


def test_unknown_customer_is_404(client):
    response = client.get(f"/api/customers/{uuid.uuid4()}")

    assert response.status_code == 404


def test_unknown_team_is_404(client):
    response = client.get(f"/api/teams/{uuid.uuid4()}")

    assert response.status_code == 404
