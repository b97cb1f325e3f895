"""
Customer Service

Customer register for an organisation.

Key Features:
- Paged, case-insensitive search on name, email and phone
- Duplicate detection by email or name before create/update
- Interaction history (leads, quotes, jobs, invoices) merged into one timeline

Security:
- Every query is scoped to the caller's organisation
- Customer email, phone and name are never logged
"""

import math
import uuid
import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import CustomerDB, LeadDB, QuoteDB, JobDB, InvoiceDB
from services.errors import NotFoundError, DuplicateError

logger = logging.getLogger(__name__)

PAGE_SIZE = 20

CUSTOMER_TYPES = ("private", "company")
VAT_HANDLING = ("25%", "omvänd byggmoms")
INVOICE_DELIVERY_METHODS = ("e-post", "brev", "e-faktura")

DUPLICATE_MESSAGES = {
    "email": "En kund med samma e-postadress finns redan.",
    "name": "En kund med samma namn finns redan.",
}

OPTIONAL_FIELDS = (
    "email", "phone_number", "address", "postal_code", "city",
    "org_number", "sales_area", "e_invoice_address",
)


# ==================== AUDIT EVENTS ====================

class CustomerEvent:
    CUSTOMER_CREATED = "customer.created"
    CUSTOMER_UPDATED = "customer.updated"
    CUSTOMER_DELETED = "customer.deleted"
    DUPLICATE_REJECTED = "customer.duplicate_rejected"


def log_customer_event(event_type: str, customer_id: Optional[str], organisation_id: str,
                       details: Dict[str, Any], success: bool = True):
    """Log a customer change. Never logs name, email, phone or address."""
    pii_fields = ('name', 'email', 'phone_number', 'address', 'e_invoice_address')
    safe_details = {k: v for k, v in details.items() if k not in pii_fields}

    log_entry = {
        "event": event_type,
        "customer_id": customer_id,
        "organisation_id": organisation_id,
        "details": safe_details,
        "success": success,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
    if success:
        logger.info(f"Customer event: {event_type} for customer {customer_id}", extra=log_entry)
    else:
        logger.warning(f"Customer event FAILED: {event_type} for customer {customer_id}", extra=log_entry)


# ==================== PURE HELPERS ====================

def normalize_customer_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Clean a create/update payload.

    Empty optional strings become None; org_number is only kept for companies.
    """
    cleaned = dict(data)
    for key in OPTIONAL_FIELDS:
        if key in cleaned and isinstance(cleaned[key], str):
            cleaned[key] = cleaned[key].strip() or None
    if "name" in cleaned and isinstance(cleaned["name"], str):
        cleaned["name"] = cleaned["name"].strip()

    if cleaned.get("customer_type", "company") != "company":
        cleaned["org_number"] = None
    return cleaned


def build_timeline(interactions: Dict[str, List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """
    Merge leads, quotes, jobs and invoices into one list, newest first.

    Each entry gets a ``type`` key (lead, quote, job, invoice).
    """
    kinds = {"leads": "lead", "quotes": "quote", "jobs": "job", "invoices": "invoice"}
    timeline = []
    for key, kind in kinds.items():
        for item in interactions.get(key, []):
            timeline.append({**item, "type": kind})

    timeline.sort(key=lambda entry: entry.get("created_at") or "", reverse=True)
    return timeline


def _interaction(row, title: str, amount) -> Dict[str, Any]:
    return {
        "id": str(row.id),
        "title": title,
        "status": row.status,
        "amount": float(amount) if amount is not None else None,
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }


# ==================== SERVICE ====================

class CustomerService:
    """Customer register scoped to one organisation."""

    def __init__(self, db: AsyncSession, organisation_id: str):
        self.db = db
        self.organisation_id = organisation_id

    def _scoped(self):
        return select(CustomerDB).where(CustomerDB.organisation_id == self.organisation_id)

    async def get_customer(self, customer_id: str) -> CustomerDB:
        result = await self.db.execute(
            self._scoped().where(CustomerDB.id == uuid.UUID(str(customer_id)))
        )
        customer = result.scalar_one_or_none()
        if customer is None:
            raise NotFoundError("Customer", customer_id)
        return customer

    async def search_customers(
        self,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = PAGE_SIZE
    ) -> Dict[str, Any]:
        """
        Search customers, ordered by name.

        Returns:
            {data, total_count, page, limit, total_pages}
        """
        page = max(page, 1)
        query = self._scoped()
        if search and search.strip():
            term = f"%{search.strip()}%"
            query = query.where(or_(
                CustomerDB.name.ilike(term),
                CustomerDB.email.ilike(term),
                CustomerDB.phone_number.ilike(term),
            ))

        count_result = await self.db.execute(select(func.count()).select_from(query.subquery()))
        total_count = count_result.scalar() or 0

        result = await self.db.execute(
            query.order_by(CustomerDB.name).offset((page - 1) * limit).limit(limit)
        )
        customers = result.scalars().all()

        return {
            "data": [c.to_dict() for c in customers],
            "total_count": total_count,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total_count / limit) if limit else 0,
        }

    async def check_duplicate_customer(
        self,
        email: Optional[str],
        name: Optional[str],
        exclude_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Check for an existing customer with the same email or name (case-insensitive).

        Email is checked first. Returns {is_duplicate, duplicate_field}.
        """
        checks = []
        if email and email.strip():
            checks.append(("email", CustomerDB.email, email.strip()))
        if name and name.strip():
            checks.append(("name", CustomerDB.name, name.strip()))

        for field_name, column, value in checks:
            query = self._scoped().where(func.lower(column) == value.lower())
            if exclude_id:
                query = query.where(CustomerDB.id != uuid.UUID(str(exclude_id)))
            result = await self.db.execute(query.limit(1))
            if result.scalar_one_or_none() is not None:
                return {"is_duplicate": True, "duplicate_field": field_name}

        return {"is_duplicate": False, "duplicate_field": None}

    async def _reject_duplicates(self, data: Dict[str, Any], exclude_id: Optional[str] = None):
        check = await self.check_duplicate_customer(data.get("email"), data.get("name"), exclude_id)
        if check["is_duplicate"]:
            field = check["duplicate_field"]
            log_customer_event(
                CustomerEvent.DUPLICATE_REJECTED, exclude_id, self.organisation_id,
                {"duplicate_field": field}, success=False
            )
            raise DuplicateError(DUPLICATE_MESSAGES[field], field)

    async def create_customer(self, data: Dict[str, Any]) -> CustomerDB:
        """
        Create a customer.

        Raises:
            ValueError: name missing
            DuplicateError: email or name already registered
        """
        cleaned = normalize_customer_data(data)
        if not cleaned.get("name"):
            raise ValueError("Customer name is required")

        await self._reject_duplicates(cleaned)

        customer = CustomerDB(organisation_id=self.organisation_id, **cleaned)
        self.db.add(customer)
        await self.db.commit()
        await self.db.refresh(customer)

        log_customer_event(
            CustomerEvent.CUSTOMER_CREATED, str(customer.id), self.organisation_id,
            {"customer_type": customer.customer_type}
        )
        return customer

    async def update_customer(self, customer_id: str, data: Dict[str, Any]) -> CustomerDB:
        """Update a customer. Same duplicate rules as create, excluding the customer itself."""
        customer = await self.get_customer(customer_id)

        merged = {"customer_type": customer.customer_type, **data}
        cleaned = normalize_customer_data(merged)
        if "name" in data and not cleaned.get("name"):
            raise ValueError("Customer name is required")

        await self._reject_duplicates(cleaned, exclude_id=customer_id)

        for key, value in cleaned.items():
            setattr(customer, key, value)
        await self.db.commit()
        await self.db.refresh(customer)

        log_customer_event(
            CustomerEvent.CUSTOMER_UPDATED, customer_id, self.organisation_id,
            {"fields": sorted(data.keys())}
        )
        return customer

    async def delete_customer(self, customer_id: str) -> None:
        customer = await self.get_customer(customer_id)
        await self.db.delete(customer)
        await self.db.commit()
        log_customer_event(CustomerEvent.CUSTOMER_DELETED, customer_id, self.organisation_id, {})

    async def get_customer_interactions(self, customer_id: str) -> Dict[str, Any]:
        """
        Leads, quotes, jobs and invoices for a customer, plus the merged timeline.
        """
        await self.get_customer(customer_id)
        cid = uuid.UUID(str(customer_id))

        async def rows(model):
            result = await self.db.execute(
                select(model)
                .where(model.customer_id == cid, model.organisation_id == self.organisation_id)
                .order_by(model.created_at.desc())
            )
            return result.scalars().all()

        interactions = {
            "leads": [_interaction(r, r.title, r.estimated_value) for r in await rows(LeadDB)],
            "quotes": [_interaction(r, r.title, r.total_amount) for r in await rows(QuoteDB)],
            "jobs": [_interaction(r, r.title, r.value) for r in await rows(JobDB)],
            "invoices": [_interaction(r, r.invoice_number, r.amount) for r in await rows(InvoiceDB)],
        }
        interactions["timeline"] = build_timeline(interactions)
        return interactions
