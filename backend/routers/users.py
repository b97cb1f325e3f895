"""
User Profile API Router

Endpoints:
- GET /api/users/me - Caller's session context
- GET /api/users - List profiles in the caller's organisation
- GET /api/users/{user_id} - Get profile
- PUT /api/users/{user_id} - Update profile (admin)

New users are created through POST /api/users/provision (see provisioning).
"""

import logging
import uuid
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, HTTPException, status, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from middleware.auth import require_any_authenticated, require_admin
from provisioning.models import UserRole, EmploymentType
from services.auth import AuthUser
from services.users import UserProfileService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


class UserProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    role: Optional[UserRole] = None
    phone_number: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=255)
    postal_code: Optional[str] = Field(None, max_length=20)
    city: Optional[str] = Field(None, max_length=100)
    personnummer: Optional[str] = Field(None, max_length=20)
    bank_account_number: Optional[str] = Field(None, max_length=50)
    employment_type: Optional[EmploymentType] = None
    base_hourly_rate: Optional[Decimal] = Field(None, ge=0)
    base_monthly_salary: Optional[Decimal] = Field(None, ge=0)
    has_commission: Optional[bool] = None
    commission_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    is_active: Optional[bool] = None


@router.get("/me")
async def get_me(user: AuthUser = Depends(require_any_authenticated)):
    return user.model_dump()


@router.get("")
async def list_users(
    active_only: bool = Query(False),
    role: Optional[UserRole] = Query(None),
    user: AuthUser = Depends(require_any_authenticated),
    db: AsyncSession = Depends(get_db)
):
    profiles = await UserProfileService(db, user.organisation_id).list_user_profiles(
        active_only, role.value if role else None
    )
    return [p.to_dict() for p in profiles]


@router.get("/{user_id}")
async def get_user(
    user_id: uuid.UUID,
    user: AuthUser = Depends(require_any_authenticated),
    db: AsyncSession = Depends(get_db)
):
    profile = await UserProfileService(db, user.organisation_id).get_user_profile(user_id)
    return profile.to_dict()


@router.put("/{user_id}")
async def update_user(
    user_id: uuid.UUID,
    request: UserProfileUpdate,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Update a profile. Pay fields that do not match the employment type are cleared.
    """
    updates = request.model_dump(exclude_unset=True, mode="json")
    for key in ("base_hourly_rate", "base_monthly_salary", "commission_rate"):
        if updates.get(key) is not None:
            updates[key] = getattr(request, key)
    try:
        profile = await UserProfileService(db, admin.organisation_id).update_user_profile(user_id, updates)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return profile.to_dict()
