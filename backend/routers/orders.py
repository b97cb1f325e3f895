"""
Order API Router

Endpoints:
- GET /api/orders - Filtered list or archive view with value totals
- GET /api/orders/workspace - Orders, users, customers and teams in one call
- GET /api/orders/{order_id} - Get order with line items and notes
- POST /api/orders - Create order
- PUT /api/orders/{order_id} - Update order
- DELETE /api/orders/{order_id} - Delete order

Security:
- Reads require any session; writes require admin or sales
"""

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Optional, List, Literal

from fastapi import APIRouter, HTTPException, status, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from middleware.auth import require_any_authenticated, require_sales
from services.auth import AuthUser
from services.orders import (
    OrderService, filter_orders, order_stats, load_order_workspace,
    ORDER_STATUSES, VIEW_LIST,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["Orders"])

OrderStatus = Literal[ORDER_STATUSES]


# ==================== REQUEST MODELS ====================

class LineItem(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    quantity: Decimal = Field(Decimal("1"), ge=0)
    unit: Optional[str] = Field("st", max_length=20)
    unit_price: Decimal = Field(Decimal("0"), ge=0)


class OrderCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    customer_id: Optional[str] = None
    status: OrderStatus = "öppen_order"
    value: Optional[Decimal] = Field(None, ge=0)
    job_type: Optional[str] = Field(None, max_length=50)
    assigned_to_user_id: Optional[str] = None
    assigned_to_team_id: Optional[str] = None
    line_items: List[LineItem] = Field(default_factory=list)
    note: Optional[str] = None


class OrderUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    customer_id: Optional[str] = None
    status: Optional[OrderStatus] = None
    value: Optional[Decimal] = Field(None, ge=0)
    job_type: Optional[str] = Field(None, max_length=50)
    assigned_to_user_id: Optional[str] = None
    assigned_to_team_id: Optional[str] = None
    line_items: Optional[List[LineItem]] = None
    note: Optional[str] = None


def _split(request: BaseModel, exclude_unset: bool):
    data = request.model_dump(exclude_unset=exclude_unset)
    line_items = data.pop("line_items", None)
    note = data.pop("note", None)
    return data, line_items, note


# ==================== ENDPOINTS ====================

@router.get("")
async def list_orders(
    view: Literal["list", "archive"] = Query(VIEW_LIST),
    search: Optional[str] = Query(None, description="Title, customer name or #id"),
    status_filter: Optional[str] = Query(None, alias="status"),
    customer: Optional[str] = Query(None),
    user_filter: Optional[str] = Query(None, alias="user"),
    team: Optional[str] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    user: AuthUser = Depends(require_any_authenticated),
    db: AsyncSession = Depends(get_db)
):
    """
    Orders for the list or archive view.

    The archive view only returns archived orders and ignores the status filter.

    **Returns:** ``{orders, total_count, filtered_count, stats}``
    """
    orders = [o.to_dict() for o in await OrderService(db, user.organisation_id).list_orders()]
    filters = {
        "search": search,
        "status": status_filter,
        "customer": customer,
        "user": user_filter,
        "team": team,
        "date_from": date_from,
        "date_to": date_to,
    }
    filtered = filter_orders(orders, filters, view)
    return {
        "orders": filtered,
        "total_count": len(orders),
        "filtered_count": len(filtered),
        "stats": order_stats(orders, filtered),
    }


@router.get("/workspace")
async def order_workspace(user: AuthUser = Depends(require_any_authenticated)):
    """Orders plus the users, customers and teams needed to edit them."""
    return await load_order_workspace(user.organisation_id)


@router.get("/{order_id}")
async def get_order(
    order_id: uuid.UUID,
    user: AuthUser = Depends(require_any_authenticated),
    db: AsyncSession = Depends(get_db)
):
    order = await OrderService(db, user.organisation_id).get_order(order_id)
    return order.to_dict()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_order(
    request: OrderCreate,
    user: AuthUser = Depends(require_sales),
    db: AsyncSession = Depends(get_db)
):
    """Create an order. When line items are given the value is their total."""
    data, line_items, note = _split(request, exclude_unset=False)
    try:
        order = await OrderService(db, user.organisation_id).create_order(data, line_items, note, user.id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return order.to_dict()


@router.put("/{order_id}")
async def update_order(
    order_id: uuid.UUID,
    request: OrderUpdate,
    user: AuthUser = Depends(require_sales),
    db: AsyncSession = Depends(get_db)
):
    """Update an order. A ``line_items`` list replaces all existing items."""
    data, line_items, note = _split(request, exclude_unset=True)
    try:
        order = await OrderService(db, user.organisation_id).update_order(
            order_id, data, line_items, note, user.id
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return order.to_dict()


@router.delete("/{order_id}")
async def delete_order(
    order_id: uuid.UUID,
    user: AuthUser = Depends(require_sales),
    db: AsyncSession = Depends(get_db)
):
    await OrderService(db, user.organisation_id).delete_order(order_id)
    return {"success": True, "order_id": order_id}
