"""
Authentication Service for FieldOps Core

Session tokens are issued by the managed auth subsystem; this service only
verifies them and resolves the caller's session context (organisation and
role) from their user profile.

Roles:
- admin: Full access, including user provisioning and team management
- sales: Customers, orders and sales tasks
- worker: Own tasks and read access to orders
"""

import uuid
from typing import Optional
import logging

from jose import JWTError, jwt
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings
from database.models import UserProfileDB
from provisioning.models import UserRole

logger = logging.getLogger(__name__)


# ==================== MODELS ====================

class TokenData(BaseModel):
    """Data extracted from a session token"""
    user_id: str
    email: Optional[str] = None
    exp: Optional[int] = None


class AuthUser(BaseModel):
    """Authenticated session context"""
    id: str
    email: str
    role: str
    organisation_id: str
    full_name: Optional[str] = None
    is_active: bool = True

    def is_admin(self) -> bool:
        return self.role == UserRole.admin.value

    def is_sales(self) -> bool:
        return self.role in [UserRole.admin.value, UserRole.sales.value]


# ==================== TOKENS ====================

def decode_token(token: str) -> Optional[TokenData]:
    """Verify a session token. Returns None if the signature, audience or expiry is invalid."""
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
        )
    except JWTError as e:
        logger.debug(f"Token rejected: {e}")
        return None

    user_id = payload.get("sub")
    if not user_id:
        return None

    return TokenData(user_id=user_id, email=payload.get("email"), exp=payload.get("exp"))


# ==================== SESSION CONTEXT ====================

async def resolve_session(db: AsyncSession, token_data: TokenData) -> Optional[AuthUser]:
    """
    Load the caller's profile and build the session context.

    Returns None when the token's subject has no profile.
    """
    try:
        profile_id = uuid.UUID(token_data.user_id)
    except ValueError:
        return None

    result = await db.execute(select(UserProfileDB).where(UserProfileDB.id == profile_id))
    profile = result.scalar_one_or_none()
    if profile is None:
        return None

    return AuthUser(
        id=str(profile.id),
        email=profile.email,
        role=profile.role,
        organisation_id=profile.organisation_id,
        full_name=profile.full_name,
        is_active=profile.is_active,
    )
