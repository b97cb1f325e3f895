"""
User Profile Service

Listing and editing of provisioned user profiles. Creation goes through
``provisioning``; this module never touches the auth subsystem.
"""

import uuid
import logging
from typing import Optional, Dict, Any, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import UserProfileDB
from services.errors import NotFoundError

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "full_name", "role", "phone_number", "address", "postal_code", "city",
    "personnummer", "bank_account_number", "employment_type",
    "base_hourly_rate", "base_monthly_salary", "has_commission",
    "commission_rate", "is_active",
)

OPTIONAL_TEXT_FIELDS = (
    "phone_number", "address", "postal_code", "city",
    "personnummer", "bank_account_number",
)


def apply_pay_rules(values: Dict[str, Any]) -> Dict[str, Any]:
    """
    Null the pay fields that do not apply to the employment type.

    ``values`` must hold the resulting employment_type and has_commission.
    """
    cleaned = dict(values)
    employment_type = cleaned.get("employment_type")
    if employment_type != "hourly":
        cleaned["base_hourly_rate"] = None
    if employment_type != "salary":
        cleaned["base_monthly_salary"] = None

    cleaned["has_commission"] = bool(cleaned.get("has_commission"))
    if not cleaned["has_commission"] or not cleaned.get("commission_rate"):
        cleaned["commission_rate"] = None
    return cleaned


class UserProfileService:
    def __init__(self, db: AsyncSession, organisation_id: str):
        self.db = db
        self.organisation_id = organisation_id

    async def list_user_profiles(self, active_only: bool = False, role: Optional[str] = None) -> List[UserProfileDB]:
        query = select(UserProfileDB).where(UserProfileDB.organisation_id == self.organisation_id)
        if active_only:
            query = query.where(UserProfileDB.is_active.is_(True))
        if role:
            query = query.where(UserProfileDB.role == role)
        result = await self.db.execute(query.order_by(UserProfileDB.full_name))
        return list(result.scalars().all())

    async def get_user_profile(self, user_id: str) -> UserProfileDB:
        result = await self.db.execute(
            select(UserProfileDB).where(
                UserProfileDB.organisation_id == self.organisation_id,
                UserProfileDB.id == uuid.UUID(str(user_id)),
            )
        )
        profile = result.scalar_one_or_none()
        if profile is None:
            raise NotFoundError("User profile", user_id)
        return profile

    async def update_user_profile(self, user_id: str, updates: Dict[str, Any]) -> UserProfileDB:
        """
        Update a profile. Email and organisation cannot change here.

        Pay fields are re-derived from the resulting employment type and
        commission flag.
        """
        profile = await self.get_user_profile(user_id)

        unknown = set(updates) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Fields cannot be updated: {sorted(unknown)}")

        values = {key: getattr(profile, key) for key in EDITABLE_FIELDS}
        values.update(updates)
        for key in OPTIONAL_TEXT_FIELDS:
            if isinstance(values.get(key), str):
                values[key] = values[key].strip() or None
        values = apply_pay_rules(values)

        for key, value in values.items():
            setattr(profile, key, value)
        await self.db.commit()
        await self.db.refresh(profile)

        logger.info(f"User profile {user_id} updated: {sorted(updates.keys())}")
        return profile
