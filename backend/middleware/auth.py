"""
Authentication Middleware and Dependencies

Provides:
- get_current_user_required: verify the bearer token and resolve the session context
- RoleChecker: Dependency for role validation

The organisation every request works in comes from the caller's profile,
never from the request body.
"""

from typing import List, Optional
import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from logging_config import set_request_context
from sentry_integration import set_user
from services.auth import decode_token, resolve_session, AuthUser
from provisioning.models import UserRole

logger = logging.getLogger(__name__)

# Security scheme
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"}
    )


async def get_current_user_required(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> AuthUser:
    """
    Resolve the current session.
    Raises 401 if no token or invalid token, 403 if the account has no active profile.
    """
    if not credentials:
        raise _unauthorized("Not authenticated")

    token_data = decode_token(credentials.credentials)
    if not token_data:
        raise _unauthorized("Invalid or expired token")

    user = await resolve_session(db, token_data)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No user profile for this account"
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated"
        )

    set_request_context(user_id=user.id, organisation_id=user.organisation_id)
    set_user(user.id, organisation_id=user.organisation_id, role=user.role)
    return user


class RoleChecker:
    """
    Dependency class for role-based access control.

    Usage:
        @router.get("/admin-only")
        async def admin_endpoint(user: AuthUser = Depends(RoleChecker(["admin"]))):
            ...
    """

    def __init__(self, allowed_roles: List[str]):
        self.allowed_roles = allowed_roles

    async def __call__(
        self,
        user: AuthUser = Depends(get_current_user_required)
    ) -> AuthUser:
        if user.role not in self.allowed_roles:
            logger.warning(f"Access denied for user {user.id} with role {user.role}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {self.allowed_roles}"
            )
        return user


# Convenience role checkers
require_admin = RoleChecker([UserRole.admin.value])
require_sales = RoleChecker([UserRole.admin.value, UserRole.sales.value])
require_any_authenticated = RoleChecker([r.value for r in UserRole])
