"""
Customer API Router

Endpoints:
- GET /api/customers - Search customers (paged)
- GET /api/customers/check-duplicate - Check email/name collision
- GET /api/customers/{customer_id} - Get customer
- GET /api/customers/{customer_id}/interactions - Leads, quotes, jobs, invoices and timeline
- POST /api/customers - Create customer
- PUT /api/customers/{customer_id} - Update customer
- DELETE /api/customers/{customer_id} - Delete customer

Security:
- Reads require any session; writes require admin or sales
- All queries are scoped to the caller's organisation
"""

import logging
import uuid
from typing import Optional, Literal

from fastapi import APIRouter, HTTPException, status, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from middleware.auth import require_any_authenticated, require_sales
from services.auth import AuthUser
from services.customers import CustomerService, PAGE_SIZE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/customers", tags=["Customers"])


# ==================== REQUEST MODELS ====================

class CustomerBase(BaseModel):
    email: Optional[str] = Field(None, max_length=255)
    phone_number: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=255)
    postal_code: Optional[str] = Field(None, max_length=20)
    city: Optional[str] = Field(None, max_length=100)
    customer_type: Literal["private", "company"] = "company"
    org_number: Optional[str] = Field(None, max_length=20)
    sales_area: Optional[str] = Field(None, max_length=100)
    vat_handling: Literal["25%", "omvänd byggmoms"] = "25%"
    e_invoice_address: Optional[str] = Field(None, max_length=255)
    invoice_delivery_method: Literal["e-post", "brev", "e-faktura"] = "e-post"


class CustomerCreate(CustomerBase):
    name: str = Field(..., min_length=1, max_length=255)

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Fönsterbolaget AB",
                "email": "info@fonsterbolaget.se",
                "customer_type": "company",
                "org_number": "556677-8899",
                "city": "Göteborg"
            }
        }


class CustomerUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    phone_number: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=255)
    postal_code: Optional[str] = Field(None, max_length=20)
    city: Optional[str] = Field(None, max_length=100)
    customer_type: Optional[Literal["private", "company"]] = None
    org_number: Optional[str] = Field(None, max_length=20)
    sales_area: Optional[str] = Field(None, max_length=100)
    vat_handling: Optional[Literal["25%", "omvänd byggmoms"]] = None
    e_invoice_address: Optional[str] = Field(None, max_length=255)
    invoice_delivery_method: Optional[Literal["e-post", "brev", "e-faktura"]] = None


# ==================== ENDPOINTS ====================

@router.get("")
async def search_customers(
    search: Optional[str] = Query(None, description="Matches name, email or phone"),
    page: int = Query(1, ge=1),
    limit: int = Query(PAGE_SIZE, ge=1, le=100),
    user: AuthUser = Depends(require_any_authenticated),
    db: AsyncSession = Depends(get_db)
):
    """
    Search customers in the caller's organisation, ordered by name.

    **Returns:** ``{data, total_count, page, limit, total_pages}``
    """
    return await CustomerService(db, user.organisation_id).search_customers(search, page, limit)


@router.get("/check-duplicate")
async def check_duplicate(
    email: Optional[str] = Query(None),
    name: Optional[str] = Query(None),
    exclude_id: Optional[uuid.UUID] = Query(None, description="Customer being edited"),
    user: AuthUser = Depends(require_any_authenticated),
    db: AsyncSession = Depends(get_db)
):
    """**Returns:** ``{is_duplicate, duplicate_field}``"""
    return await CustomerService(db, user.organisation_id).check_duplicate_customer(email, name, exclude_id)


@router.get("/{customer_id}")
async def get_customer(
    customer_id: uuid.UUID,
    user: AuthUser = Depends(require_any_authenticated),
    db: AsyncSession = Depends(get_db)
):
    customer = await CustomerService(db, user.organisation_id).get_customer(customer_id)
    return customer.to_dict()


@router.get("/{customer_id}/interactions")
async def get_customer_interactions(
    customer_id: uuid.UUID,
    user: AuthUser = Depends(require_any_authenticated),
    db: AsyncSession = Depends(get_db)
):
    """Leads, quotes, jobs and invoices for a customer, with a newest-first timeline."""
    return await CustomerService(db, user.organisation_id).get_customer_interactions(customer_id)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_customer(
    request: CustomerCreate,
    user: AuthUser = Depends(require_sales),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a customer.

    **Errors:** 409 if a customer with the same email or name exists.
    """
    try:
        customer = await CustomerService(db, user.organisation_id).create_customer(request.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return customer.to_dict()


@router.put("/{customer_id}")
async def update_customer(
    customer_id: uuid.UUID,
    request: CustomerUpdate,
    user: AuthUser = Depends(require_sales),
    db: AsyncSession = Depends(get_db)
):
    try:
        customer = await CustomerService(db, user.organisation_id).update_customer(
            customer_id, request.model_dump(exclude_unset=True)
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return customer.to_dict()


@router.delete("/{customer_id}")
async def delete_customer(
    customer_id: uuid.UUID,
    user: AuthUser = Depends(require_sales),
    db: AsyncSession = Depends(get_db)
):
    await CustomerService(db, user.organisation_id).delete_customer(customer_id)
    return {"success": True, "customer_id": customer_id}
