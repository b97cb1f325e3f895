"""
Order Service

Orders are confirmed work for a customer, with line items and notes.

Key Features:
- Order CRUD; line items are replaced as a whole on update
- filter_orders / order_stats: pure list and archive view logic
- load_order_workspace: orders, users, customers and teams loaded concurrently
"""

import asyncio
import uuid
import logging
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Optional, Dict, Any, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from database import get_session_factory
from database.models import OrderDB, OrderLineItemDB, OrderNoteDB, CustomerDB, UserProfileDB, TeamDB
from services.errors import NotFoundError

logger = logging.getLogger(__name__)

ORDER_STATUSES = (
    "öppen_order", "bokad_bekräftad", "pågående", "slutförd", "fakturerad", "arkiverad"
)
ARCHIVED = "arkiverad"

VIEW_LIST = "list"
VIEW_ARCHIVE = "archive"

FOREIGN_KEYS = ("customer_id", "assigned_to_user_id", "assigned_to_team_id")


# ==================== PURE VIEW LOGIC ====================

def _parse_datetime(value) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _day_bound(value, end_of_day: bool) -> datetime:
    day = value if isinstance(value, date) and not isinstance(value, datetime) else _parse_datetime(value).date()
    return datetime.combine(day, time.max if end_of_day else time.min, tzinfo=timezone.utc)


def _created_between(order: Dict[str, Any], start: Optional[datetime], end: Optional[datetime]) -> bool:
    """Undated orders never match a date bound."""
    created = _parse_datetime(order.get("created_at"))
    if created is None:
        return False
    return (start is None or created >= start) and (end is None or created <= end)


def _active(value) -> bool:
    return value not in (None, "", "all")


def _value(order: Dict[str, Any]) -> float:
    return float(order.get("value") or 0)


def filter_orders(
    orders: List[Dict[str, Any]],
    filters: Optional[Dict[str, Any]] = None,
    view_mode: str = VIEW_LIST
) -> List[Dict[str, Any]]:
    """
    Apply the list/archive view filters to serialized orders.

    Filters (missing, empty or "all" means no filter):
    - search: title, customer name or "#<id>"
    - status: ignored in the archive view
    - customer, user, team: equality on the assignment ids
    - date_from / date_to: bounds on created_at, date_to inclusive through the whole day

    The archive view only shows archived orders; the list view hides them.
    Result is sorted newest first.
    """
    filters = filters or {}

    if view_mode == VIEW_ARCHIVE:
        result = [o for o in orders if o.get("status") == ARCHIVED]
    else:
        result = [o for o in orders if o.get("status") != ARCHIVED]

    search = (filters.get("search") or "").strip().lower()
    if search:
        def matches(order):
            customer = order.get("customer") or {}
            return (
                search in (order.get("title") or "").lower()
                or search in (customer.get("name") or "").lower()
                or search in f"#{order.get('id')}"
            )
        result = [o for o in result if matches(o)]

    if _active(filters.get("status")) and view_mode != VIEW_ARCHIVE:
        result = [o for o in result if o.get("status") == filters["status"]]

    for key, field in (("customer", "customer_id"), ("user", "assigned_to_user_id"), ("team", "assigned_to_team_id")):
        if _active(filters.get(key)):
            wanted = str(filters[key])
            result = [o for o in result if str(o.get(field)) == wanted]

    start = _day_bound(filters["date_from"], end_of_day=False) if _active(filters.get("date_from")) else None
    end = _day_bound(filters["date_to"], end_of_day=True) if _active(filters.get("date_to")) else None
    if start or end:
        result = [o for o in result if _created_between(o, start, end)]

    epoch = datetime.min.replace(tzinfo=timezone.utc)
    return sorted(result, key=lambda o: _parse_datetime(o.get("created_at")) or epoch, reverse=True)


def order_stats(
    orders: List[Dict[str, Any]],
    filtered: List[Dict[str, Any]],
    now: Optional[datetime] = None
) -> Dict[str, float]:
    """
    Order value totals.

    ``total_filtered_value`` sums the filtered list; the other totals only
    count non-archived orders. Orders without a value count as 0.
    """
    now = _parse_datetime(now) if now else datetime.now(timezone.utc)
    last_month = now - timedelta(days=30)
    last_6_months = now - timedelta(days=180)

    active = [o for o in orders if o.get("status") != ARCHIVED]

    def created_after(order, bound):
        created = _parse_datetime(order.get("created_at"))
        return created is not None and created > bound

    return {
        "total_filtered_value": sum(_value(o) for o in filtered),
        "total_all_time_value": sum(_value(o) for o in active),
        "total_last_month_value": sum(_value(o) for o in active if created_after(o, last_month)),
        "total_last_6_months_value": sum(_value(o) for o in active if created_after(o, last_6_months)),
    }


def line_items_total(line_items: List[Dict[str, Any]]) -> Decimal:
    return sum(
        (Decimal(str(item.get("quantity") or 0)) * Decimal(str(item.get("unit_price") or 0)) for item in line_items),
        Decimal("0"),
    )


def _uuid(value) -> Optional[uuid.UUID]:
    if value in (None, ""):
        return None
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


# ==================== SERVICE ====================

class OrderService:
    """Orders scoped to one organisation."""

    def __init__(self, db: AsyncSession, organisation_id: str):
        self.db = db
        self.organisation_id = organisation_id

    def _scoped(self):
        return (
            select(OrderDB)
            .where(OrderDB.organisation_id == self.organisation_id)
            .options(
                selectinload(OrderDB.customer),
                selectinload(OrderDB.line_items),
                selectinload(OrderDB.notes),
            )
        )

    async def get_order(self, order_id: str) -> OrderDB:
        result = await self.db.execute(self._scoped().where(OrderDB.id == _uuid(order_id)))
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFoundError("Order", order_id)
        return order

    async def list_orders(self) -> List[OrderDB]:
        result = await self.db.execute(self._scoped().order_by(OrderDB.created_at.desc()))
        return list(result.scalars().all())

    def _apply_fields(self, order: OrderDB, data: Dict[str, Any]) -> None:
        for key in FOREIGN_KEYS:
            if key in data:
                setattr(order, key, _uuid(data[key]))
        if "title" in data:
            title = (data["title"] or "").strip()
            if not title:
                raise ValueError("Order title is required")
            order.title = title
        if "description" in data:
            order.description = (data["description"] or "").strip() or None
        if "status" in data:
            if data["status"] not in ORDER_STATUSES:
                raise ValueError(f"Invalid order status: {data['status']}")
            order.status = data["status"]
        if "job_type" in data:
            order.job_type = data["job_type"] or None
        if "value" in data:
            order.value = data["value"]

    def _replace_line_items(self, order: OrderDB, line_items: List[Dict[str, Any]]) -> None:
        order.line_items = [
            OrderLineItemDB(
                name=item["name"],
                description=item.get("description") or None,
                quantity=item.get("quantity") or 1,
                unit=item.get("unit") or "st",
                unit_price=item.get("unit_price") or 0,
                sort_order=index,
            )
            for index, item in enumerate(line_items)
        ]
        order.value = line_items_total(line_items)

    def _append_note(self, order: OrderDB, note: Optional[str], user_id: Optional[str]) -> None:
        if note and note.strip():
            order.notes.append(OrderNoteDB(content=note.strip(), user_id=_uuid(user_id)))

    async def create_order(
        self,
        data: Dict[str, Any],
        line_items: Optional[List[Dict[str, Any]]] = None,
        note: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> OrderDB:
        """
        Create an order. When line items are given the order value is their total.

        Raises:
            ValueError: title missing or unknown status
        """
        if not (data.get("title") or "").strip():
            raise ValueError("Order title is required")

        order = OrderDB(organisation_id=self.organisation_id, status="öppen_order", line_items=[], notes=[])
        self._apply_fields(order, data)
        if line_items:
            self._replace_line_items(order, line_items)
        self._append_note(order, note, user_id)

        self.db.add(order)
        await self.db.commit()
        logger.info(f"Order {order.id} created with status {order.status}")
        return await self.get_order(str(order.id))

    async def update_order(
        self,
        order_id: str,
        data: Dict[str, Any],
        line_items: Optional[List[Dict[str, Any]]] = None,
        note: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> OrderDB:
        """Update an order. ``line_items`` (when not None) replaces all existing items."""
        order = await self.get_order(order_id)
        self._apply_fields(order, data)
        if line_items is not None:
            self._replace_line_items(order, line_items)
        self._append_note(order, note, user_id)

        await self.db.commit()
        logger.info(f"Order {order_id} updated: {sorted(data.keys())}")
        return await self.get_order(order_id)

    async def delete_order(self, order_id: str) -> None:
        order = await self.get_order(order_id)
        await self.db.delete(order)
        await self.db.commit()
        logger.info(f"Order {order_id} deleted")


async def load_order_workspace(organisation_id: str) -> Dict[str, Any]:
    """
    Everything the order views need, fetched concurrently.

    Each query runs on its own session; an AsyncSession cannot be shared
    between concurrent tasks.
    """
    session_factory = get_session_factory()

    async def orders():
        async with session_factory() as session:
            return [o.to_dict() for o in await OrderService(session, organisation_id).list_orders()]

    async def rows(model, order_by):
        async with session_factory() as session:
            result = await session.execute(
                select(model).where(model.organisation_id == organisation_id).order_by(order_by)
            )
            return [row.to_dict() for row in result.scalars().all()]

    async def teams():
        async with session_factory() as session:
            result = await session.execute(
                select(TeamDB)
                .where(TeamDB.organisation_id == organisation_id)
                .options(selectinload(TeamDB.members))
                .order_by(TeamDB.name)
            )
            return [t.to_dict(include_members=False) for t in result.scalars().all()]

    order_list, users, customers, team_list = await asyncio.gather(
        orders(),
        rows(UserProfileDB, UserProfileDB.full_name),
        rows(CustomerDB, CustomerDB.name),
        teams(),
    )
    return {"orders": order_list, "users": users, "customers": customers, "teams": team_list}
