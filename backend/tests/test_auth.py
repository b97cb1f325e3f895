"""
Unit Tests for session authentication

Tests:
- Token verification (signature, audience, expiry)
- Session context resolved from the caller's profile
- Role checks

Run with: pytest tests/test_auth.py -v
"""

import uuid
from types import SimpleNamespace

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from conftest import make_token, scalar_result
from middleware.auth import get_current_user_required, RoleChecker
from services.auth import decode_token, resolve_session, AuthUser, TokenData


def profile(**overrides):
    data = {
        "id": uuid.uuid4(),
        "email": "worker@firma.se",
        "role": "worker",
        "organisation_id": "org-1",
        "full_name": "Wilma Worker",
        "is_active": True,
    }
    data.update(overrides)
    return SimpleNamespace(**data)


def bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


class TestDecodeToken:

    def test_valid_token(self, user_id):
        data = decode_token(make_token(user_id))
        assert data.user_id == user_id
        assert data.email == "someone@example.com"

    def test_wrong_secret(self, user_id):
        assert decode_token(make_token(user_id, secret="another-secret-entirely")) is None

    def test_wrong_audience(self, user_id):
        assert decode_token(make_token(user_id, audience="anon")) is None

    def test_expired(self, user_id):
        assert decode_token(make_token(user_id, expires_in=-60)) is None

    def test_garbage(self):
        assert decode_token("not-a-token") is None


class TestResolveSession:

    @pytest.mark.asyncio
    async def test_builds_context_from_profile(self, mock_db):
        row = profile(role="sales", organisation_id="org-7")
        mock_db.execute.return_value = scalar_result(row)

        user = await resolve_session(mock_db, TokenData(user_id=str(row.id)))

        assert user.organisation_id == "org-7"
        assert user.role == "sales"
        assert user.is_sales() and not user.is_admin()

    @pytest.mark.asyncio
    async def test_no_profile(self, mock_db, user_id):
        mock_db.execute.return_value = scalar_result(None)
        assert await resolve_session(mock_db, TokenData(user_id=user_id)) is None

    @pytest.mark.asyncio
    async def test_non_uuid_subject(self, mock_db):
        assert await resolve_session(mock_db, TokenData(user_id="anon")) is None
        mock_db.execute.assert_not_awaited()


class TestGetCurrentUser:

    @pytest.mark.asyncio
    async def test_missing_credentials_is_401(self, mock_db):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user_required(None, mock_db)
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_token_is_401(self, mock_db):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user_required(bearer("junk"), mock_db)
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_inactive_profile_is_403(self, mock_db):
        row = profile(is_active=False)
        mock_db.execute.return_value = scalar_result(row)

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user_required(bearer(make_token(str(row.id))), mock_db)
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_missing_profile_is_403(self, mock_db, user_id):
        mock_db.execute.return_value = scalar_result(None)

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user_required(bearer(make_token(user_id)), mock_db)
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_active_profile(self, mock_db):
        row = profile()
        mock_db.execute.return_value = scalar_result(row)

        user = await get_current_user_required(bearer(make_token(str(row.id))), mock_db)

        assert user.id == str(row.id)
        assert user.organisation_id == "org-1"


class TestRoleChecker:

    @pytest.mark.asyncio
    async def test_allows_listed_role(self):
        user = AuthUser(id="u", email="e", role="sales", organisation_id="org-1")
        assert await RoleChecker(["admin", "sales"])(user) is user

    @pytest.mark.asyncio
    async def test_rejects_other_role(self):
        user = AuthUser(id="u", email="e", role="worker", organisation_id="org-1")
        with pytest.raises(HTTPException) as exc_info:
            await RoleChecker(["admin"])(user)
        assert exc_info.value.status_code == 403
