"""
FieldOps Core - Database Models

SQLAlchemy models for the back-office tables: user profiles, customers,
teams, orders, sales tasks and the customer interaction records
(leads, quotes, jobs, invoices).
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Dict, Any

from sqlalchemy import (
    Column, String, Boolean, Integer, Date, DateTime, Numeric,
    ForeignKey, Text
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship

from .connection import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def _num(value) -> Optional[float]:
    if value is None:
        return None
    return float(value) if isinstance(value, Decimal) else value


def _id(value) -> Optional[str]:
    return str(value) if value else None


class UserProfileDB(Base):
    """
    User Profile - business-facing record for an employee.

    Keyed by the id of the identity in the auth subsystem.
    """
    __tablename__ = "user_profiles"

    id = Column(UUID(as_uuid=True), primary_key=True)
    organisation_id = Column(String(64), nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    role = Column(String(30), nullable=False)
    phone_number = Column(String(50))
    address = Column(String(255))
    postal_code = Column(String(20))
    city = Column(String(100))
    personnummer = Column(String(20))
    bank_account_number = Column(String(50))
    employment_type = Column(String(20), nullable=False)
    base_hourly_rate = Column(Numeric(10, 2))
    base_monthly_salary = Column(Numeric(12, 2))
    has_commission = Column(Boolean, default=False, nullable=False)
    commission_rate = Column(Numeric(5, 2))
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary. Personnummer and bank details are omitted."""
        return {
            "id": _id(self.id),
            "organisation_id": self.organisation_id,
            "full_name": self.full_name,
            "email": self.email,
            "role": self.role,
            "phone_number": self.phone_number,
            "address": self.address,
            "postal_code": self.postal_code,
            "city": self.city,
            "employment_type": self.employment_type,
            "base_hourly_rate": _num(self.base_hourly_rate),
            "base_monthly_salary": _num(self.base_monthly_salary),
            "has_commission": self.has_commission,
            "commission_rate": _num(self.commission_rate),
            "is_active": self.is_active,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class CustomerDB(Base):
    """Customer - private person or company buying services."""
    __tablename__ = "customers"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organisation_id = Column(String(64), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255))
    phone_number = Column(String(50))
    address = Column(String(255))
    postal_code = Column(String(20))
    city = Column(String(100))
    customer_type = Column(String(20), default="company", nullable=False)
    org_number = Column(String(20))
    sales_area = Column(String(100))
    vat_handling = Column(String(30), default="25%")
    e_invoice_address = Column(String(255))
    invoice_delivery_method = Column(String(20), default="e-post")
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": _id(self.id),
            "organisation_id": self.organisation_id,
            "name": self.name,
            "email": self.email,
            "phone_number": self.phone_number,
            "address": self.address,
            "postal_code": self.postal_code,
            "city": self.city,
            "customer_type": self.customer_type,
            "org_number": self.org_number,
            "sales_area": self.sales_area,
            "vat_handling": self.vat_handling,
            "e_invoice_address": self.e_invoice_address,
            "invoice_delivery_method": self.invoice_delivery_method,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class TeamDB(Base):
    """Team - a crew of workers with a leader and a set of cities."""
    __tablename__ = "teams"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organisation_id = Column(String(64), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    specialty = Column(String(50), default="allmänt", nullable=False)
    team_leader_id = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="SET NULL"))
    hourly_rate = Column(Numeric(10, 2))
    cities = Column(JSONB, default=list)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    members = relationship("TeamMemberDB", back_populates="team", cascade="all, delete-orphan")
    leader = relationship("UserProfileDB", foreign_keys=[team_leader_id])

    @property
    def active_members(self):
        return [m for m in self.members if m.is_active]

    def to_dict(self, include_members: bool = True) -> Dict[str, Any]:
        data = {
            "id": _id(self.id),
            "organisation_id": self.organisation_id,
            "name": self.name,
            "description": self.description,
            "specialty": self.specialty,
            "team_leader_id": _id(self.team_leader_id),
            "hourly_rate": _num(self.hourly_rate),
            "cities": self.cities or [],
            "is_active": self.is_active,
            "member_count": len(self.active_members),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_members:
            data["members"] = [m.to_dict() for m in self.active_members]
        return data


class TeamMemberDB(Base):
    """Team membership with the member's role inside the team."""
    __tablename__ = "team_members"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    team_id = Column(UUID(as_uuid=True), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    role_in_team = Column(String(30), default="medarbetare", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    joined_date = Column(DateTime(timezone=True), default=_utcnow)

    team = relationship("TeamDB", back_populates="members")
    user = relationship("UserProfileDB")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": _id(self.id),
            "team_id": _id(self.team_id),
            "user_id": _id(self.user_id),
            "role_in_team": self.role_in_team,
            "is_active": self.is_active,
            "joined_date": _iso(self.joined_date),
        }


class OrderDB(Base):
    """Order - confirmed work for a customer."""
    __tablename__ = "orders"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organisation_id = Column(String(64), nullable=False, index=True)
    customer_id = Column(UUID(as_uuid=True), ForeignKey("customers.id", ondelete="SET NULL"))
    title = Column(String(255), nullable=False)
    description = Column(Text)
    status = Column(String(30), default="öppen_order", nullable=False)
    value = Column(Numeric(12, 2))
    job_type = Column(String(50))
    assigned_to_user_id = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="SET NULL"))
    assigned_to_team_id = Column(UUID(as_uuid=True), ForeignKey("teams.id", ondelete="SET NULL"))
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    customer = relationship("CustomerDB")
    line_items = relationship(
        "OrderLineItemDB", back_populates="order",
        cascade="all, delete-orphan", order_by="OrderLineItemDB.sort_order"
    )
    notes = relationship(
        "OrderNoteDB", back_populates="order",
        cascade="all, delete-orphan", order_by="OrderNoteDB.created_at"
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": _id(self.id),
            "organisation_id": self.organisation_id,
            "customer_id": _id(self.customer_id),
            "customer": {"id": _id(self.customer.id), "name": self.customer.name} if self.customer else None,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "value": _num(self.value),
            "job_type": self.job_type,
            "assigned_to_user_id": _id(self.assigned_to_user_id),
            "assigned_to_team_id": _id(self.assigned_to_team_id),
            "line_items": [li.to_dict() for li in self.line_items],
            "notes": [n.to_dict() for n in self.notes],
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class OrderLineItemDB(Base):
    __tablename__ = "order_line_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    quantity = Column(Numeric(10, 2), default=1, nullable=False)
    unit = Column(String(20), default="st")
    unit_price = Column(Numeric(12, 2), default=0, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)

    order = relationship("OrderDB", back_populates="line_items")

    @property
    def total(self) -> Decimal:
        return Decimal(self.quantity or 0) * Decimal(self.unit_price or 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": _id(self.id),
            "name": self.name,
            "description": self.description,
            "quantity": _num(self.quantity),
            "unit": self.unit,
            "unit_price": _num(self.unit_price),
            "total": float(self.total),
            "sort_order": self.sort_order,
        }


class OrderNoteDB(Base):
    __tablename__ = "order_notes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="SET NULL"))
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    order = relationship("OrderDB", back_populates="notes")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": _id(self.id),
            "user_id": _id(self.user_id),
            "content": self.content,
            "created_at": _iso(self.created_at),
        }


class SalesTaskDB(Base):
    """Sales task assigned to a user, optionally tied to an order."""
    __tablename__ = "sales_tasks"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organisation_id = Column(String(64), nullable=False, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="SET NULL"))
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id", ondelete="SET NULL"))
    title = Column(String(255), nullable=False)
    description = Column(Text)
    due_date = Column(Date)
    status = Column(String(20), default="pending", nullable=False)
    is_completed = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    notes = relationship(
        "TaskNoteDB", back_populates="task",
        cascade="all, delete-orphan", order_by="TaskNoteDB.created_at"
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": _id(self.id),
            "organisation_id": self.organisation_id,
            "user_id": _id(self.user_id),
            "created_by": _id(self.created_by),
            "order_id": _id(self.order_id),
            "title": self.title,
            "description": self.description,
            "due_date": _iso(self.due_date),
            "status": self.status,
            "is_completed": self.is_completed,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class TaskNoteDB(Base):
    __tablename__ = "task_notes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    task_id = Column(UUID(as_uuid=True), ForeignKey("sales_tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="SET NULL"))
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    task = relationship("SalesTaskDB", back_populates="notes")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": _id(self.id),
            "task_id": _id(self.task_id),
            "user_id": _id(self.user_id),
            "content": self.content,
            "created_at": _iso(self.created_at),
        }


# ==================== CUSTOMER INTERACTIONS ====================

class LeadDB(Base):
    __tablename__ = "leads"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organisation_id = Column(String(64), nullable=False, index=True)
    customer_id = Column(UUID(as_uuid=True), ForeignKey("customers.id", ondelete="CASCADE"), index=True)
    title = Column(String(255), nullable=False)
    status = Column(String(30), default="new", nullable=False)
    estimated_value = Column(Numeric(12, 2))
    assigned_to_user_id = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="SET NULL"))
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    assigned_to = relationship("UserProfileDB")


class QuoteDB(Base):
    __tablename__ = "quotes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organisation_id = Column(String(64), nullable=False, index=True)
    customer_id = Column(UUID(as_uuid=True), ForeignKey("customers.id", ondelete="CASCADE"), index=True)
    lead_id = Column(UUID(as_uuid=True), ForeignKey("leads.id", ondelete="SET NULL"))
    title = Column(String(255), nullable=False)
    status = Column(String(30), default="draft", nullable=False)
    total_amount = Column(Numeric(12, 2))
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class JobDB(Base):
    __tablename__ = "jobs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organisation_id = Column(String(64), nullable=False, index=True)
    customer_id = Column(UUID(as_uuid=True), ForeignKey("customers.id", ondelete="CASCADE"), index=True)
    quote_id = Column(UUID(as_uuid=True), ForeignKey("quotes.id", ondelete="SET NULL"))
    title = Column(String(255), nullable=False)
    status = Column(String(30), default="pending", nullable=False)
    value = Column(Numeric(12, 2))
    assigned_to_user_id = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="SET NULL"))
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    assigned_to = relationship("UserProfileDB")


class InvoiceDB(Base):
    __tablename__ = "invoices"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organisation_id = Column(String(64), nullable=False, index=True)
    customer_id = Column(UUID(as_uuid=True), ForeignKey("customers.id", ondelete="CASCADE"), index=True)
    job_id = Column(UUID(as_uuid=True), ForeignKey("jobs.id", ondelete="SET NULL"))
    invoice_number = Column(String(50), nullable=False)
    status = Column(String(30), default="draft", nullable=False)
    amount = Column(Numeric(12, 2))
    created_at = Column(DateTime(timezone=True), default=_utcnow)
