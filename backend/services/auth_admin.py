"""
Auth Admin Client

Thin async client for the managed auth subsystem's admin API
(``{SUPABASE_URL}/auth/v1/admin/users``), authenticated with the
service-role key. Used to create and delete identities during user
provisioning.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from config import get_settings

logger = logging.getLogger(__name__)


class AuthAdminError(Exception):
    """Admin API call failed. ``status_code`` is None for transport errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


@dataclass
class Identity:
    """Identity record as returned by the auth admin API."""
    id: str
    email: str
    user_metadata: Dict[str, Any] = field(default_factory=dict)
    email_confirmed_at: Optional[str] = None

    @classmethod
    def from_response(cls, payload: Dict[str, Any]) -> "Identity":
        user = payload.get("user", payload)
        return cls(
            id=user["id"],
            email=user.get("email", ""),
            user_metadata=user.get("user_metadata") or {},
            email_confirmed_at=user.get("email_confirmed_at"),
        )


def _error_message(response: httpx.Response) -> str:
    """Pull the human readable message out of an admin API error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"

    if isinstance(body, dict):
        for key in ("msg", "message", "error_description", "error"):
            if body.get(key):
                return str(body[key])
    return f"HTTP {response.status_code}"


class AuthAdminClient:
    """
    Auth admin API client.

    Args:
        base_url: ``{SUPABASE_URL}/auth/v1``
        service_role_key: privileged key, sent as ``apikey`` and bearer token
        timeout: request timeout in seconds
        transport: optional httpx transport (tests pass ``httpx.MockTransport``)
    """

    def __init__(
        self,
        base_url: str,
        service_role_key: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self.headers = {
            "apikey": service_role_key,
            "Authorization": f"Bearer {service_role_key}",
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def create_user(
        self,
        email: str,
        password: str,
        email_confirm: bool = True,
        user_metadata: Optional[Dict[str, Any]] = None,
    ) -> Identity:
        """
        Create an identity.

        Raises:
            AuthAdminError: duplicate email, invalid email, or transport failure
        """
        body = {
            "email": email,
            "password": password,
            "email_confirm": email_confirm,
            "user_metadata": user_metadata or {},
        }
        try:
            async with self._client() as client:
                response = await client.post("/admin/users", json=body)
        except httpx.HTTPError as e:
            logger.error(f"Auth admin create_user transport error: {e}")
            raise AuthAdminError(f"Auth service unavailable: {e}") from e

        if response.status_code not in (200, 201):
            message = _error_message(response)
            logger.warning(f"Auth admin create_user rejected ({response.status_code}): {message}")
            raise AuthAdminError(message, response.status_code)

        identity = Identity.from_response(response.json())
        logger.info(f"Identity created: {identity.id}")
        return identity

    async def delete_user(self, user_id: str) -> None:
        """
        Delete an identity.

        Raises:
            AuthAdminError: non-2xx response or transport failure
        """
        try:
            async with self._client() as client:
                response = await client.delete(f"/admin/users/{user_id}")
        except httpx.HTTPError as e:
            logger.error(f"Auth admin delete_user transport error for {user_id}: {e}")
            raise AuthAdminError(f"Auth service unavailable: {e}") from e

        if response.status_code >= 300:
            message = _error_message(response)
            logger.error(f"Auth admin delete_user failed for {user_id} ({response.status_code}): {message}")
            raise AuthAdminError(message, response.status_code)

        logger.info(f"Identity deleted: {user_id}")


def get_auth_admin_client() -> AuthAdminClient:
    """FastAPI dependency: client configured from settings."""
    settings = get_settings()
    return AuthAdminClient(
        base_url=settings.auth_admin_url,
        service_role_key=settings.SUPABASE_SERVICE_ROLE_KEY,
        timeout=settings.AUTH_ADMIN_TIMEOUT_SECONDS,
    )
