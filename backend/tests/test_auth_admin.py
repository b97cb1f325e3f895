"""
Unit Tests for the auth admin API client.

Uses httpx.MockTransport in place of the auth subsystem.

Run with: pytest tests/test_auth_admin.py -v
"""

import json

import httpx
import pytest

from services.auth_admin import AuthAdminClient, AuthAdminError, Identity

BASE_URL = "https://auth.test.local/auth/v1"


def client_with(handler) -> AuthAdminClient:
    return AuthAdminClient(BASE_URL, "service-key", transport=httpx.MockTransport(handler))


class TestCreateUser:

    @pytest.mark.asyncio
    async def test_sends_admin_request_and_parses_identity(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "id": "11111111-1111-1111-1111-111111111111",
                "email": "a@b.com",
                "user_metadata": {"full_name": "A B"},
                "email_confirmed_at": "2024-01-01T00:00:00Z",
            })

        identity = await client_with(handler).create_user(
            "a@b.com", "temporary-password-for-user", user_metadata={"full_name": "A B"}
        )

        assert seen["method"] == "POST"
        assert seen["path"] == "/auth/v1/admin/users"
        assert seen["headers"]["apikey"] == "service-key"
        assert seen["headers"]["authorization"] == "Bearer service-key"
        assert seen["body"] == {
            "email": "a@b.com",
            "password": "temporary-password-for-user",
            "email_confirm": True,
            "user_metadata": {"full_name": "A B"},
        }
        assert identity.id == "11111111-1111-1111-1111-111111111111"
        assert identity.email_confirmed_at is not None

    @pytest.mark.asyncio
    async def test_duplicate_email_is_rejected_with_message(self):
        def handler(request):
            return httpx.Response(422, json={"code": 422, "msg": "A user with this email address has already been registered"})

        with pytest.raises(AuthAdminError) as exc_info:
            await client_with(handler).create_user("a@b.com", "pw")

        assert exc_info.value.status_code == 422
        assert exc_info.value.message == "A user with this email address has already been registered"

    @pytest.mark.asyncio
    async def test_non_json_error_body(self):
        def handler(request):
            return httpx.Response(502, text="Bad Gateway")

        with pytest.raises(AuthAdminError) as exc_info:
            await client_with(handler).create_user("a@b.com", "pw")

        assert exc_info.value.message == "Bad Gateway"

    @pytest.mark.asyncio
    async def test_transport_error_is_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(AuthAdminError) as exc_info:
            await client_with(handler).create_user("a@b.com", "pw")

        assert exc_info.value.status_code is None
        assert "unavailable" in exc_info.value.message


class TestDeleteUser:

    @pytest.mark.asyncio
    async def test_deletes_by_id(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            return httpx.Response(200, json={})

        await client_with(handler).delete_user("abc")

        assert seen == {"method": "DELETE", "path": "/auth/v1/admin/users/abc"}

    @pytest.mark.asyncio
    async def test_failure_raises(self):
        def handler(request):
            return httpx.Response(404, json={"message": "User not found"})

        with pytest.raises(AuthAdminError) as exc_info:
            await client_with(handler).delete_user("abc")

        assert exc_info.value.message == "User not found"


def test_identity_accepts_wrapped_payload():
    identity = Identity.from_response({"user": {"id": "x", "email": "e@x.se"}})
    assert identity.id == "x"
    assert identity.user_metadata == {}
