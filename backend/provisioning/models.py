"""
User Provisioning - Request Models and Profile Mapping
"""

from decimal import Decimal
from enum import Enum
from typing import Optional, Dict, Any

from pydantic import BaseModel, Field, field_validator


class UserRole(str, Enum):
    admin = "admin"
    sales = "sales"
    worker = "worker"


class EmploymentType(str, Enum):
    hourly = "hourly"
    salary = "salary"


class UserDetails(BaseModel):
    """New user's details, without the organisation."""
    email: str = Field(..., min_length=1, max_length=255, description="Login email")
    full_name: str = Field(..., min_length=1, max_length=255)
    role: UserRole
    phone_number: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=255)
    postal_code: Optional[str] = Field(None, max_length=20)
    city: Optional[str] = Field(None, max_length=100)
    personnummer: Optional[str] = Field(None, max_length=20)
    bank_account_number: Optional[str] = Field(None, max_length=50)
    employment_type: EmploymentType
    base_hourly_rate: Optional[Decimal] = Field(None, ge=0)
    base_monthly_salary: Optional[Decimal] = Field(None, ge=0)
    has_commission: Optional[bool] = None
    commission_rate: Optional[Decimal] = Field(None, ge=0, le=100)

    model_config = {"str_strip_whitespace": True}

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class CreateUserRequest(UserDetails):
    """Request body for user creation."""
    organisation_id: str = Field(..., min_length=1, max_length=64)

    model_config = {
        "str_strip_whitespace": True,
        "json_schema_extra": {
            "example": {
                "email": "a@b.com",
                "full_name": "A B",
                "role": "worker",
                "organisation_id": "org-1",
                "employment_type": "hourly",
                "base_hourly_rate": 150,
            }
        },
    }


def _or_none(value: Optional[str]) -> Optional[str]:
    return value or None


def build_profile_row(request: CreateUserRequest, identity_id: str) -> Dict[str, Any]:
    """
    Map a creation request to a ``user_profiles`` row keyed by ``identity_id``.

    - absent or empty optional fields become explicit None
    - base_hourly_rate is kept only for hourly employment
    - base_monthly_salary is kept only for salaried employment
    - commission_rate is kept only when has_commission is true and a rate is given
    """
    has_commission = bool(request.has_commission)
    hourly = request.employment_type == EmploymentType.hourly
    salaried = request.employment_type == EmploymentType.salary

    return {
        "id": identity_id,
        "organisation_id": request.organisation_id,
        "full_name": request.full_name,
        "email": request.email,
        "role": request.role.value,
        "phone_number": _or_none(request.phone_number),
        "address": _or_none(request.address),
        "postal_code": _or_none(request.postal_code),
        "city": _or_none(request.city),
        "personnummer": _or_none(request.personnummer),
        "bank_account_number": _or_none(request.bank_account_number),
        "employment_type": request.employment_type.value,
        "base_hourly_rate": request.base_hourly_rate if hourly else None,
        "base_monthly_salary": request.base_monthly_salary if salaried else None,
        "has_commission": has_commission,
        "commission_rate": request.commission_rate if has_commission and request.commission_rate else None,
        "is_active": True,
    }
