"""
Unit Tests for Customer Service

Run with: pytest tests/test_customers.py -v
"""

import uuid
from unittest.mock import MagicMock

import pytest

from conftest import scalar_result, scalars_result
from database.models import CustomerDB
from services.customers import (
    CustomerService, normalize_customer_data, build_timeline, DUPLICATE_MESSAGES,
)
from services.errors import DuplicateError, NotFoundError


class TestNormalizeCustomerData:

    def test_empty_strings_become_none(self):
        cleaned = normalize_customer_data({"name": " Kund AB ", "email": "", "city": "  ", "customer_type": "company"})
        assert cleaned["name"] == "Kund AB"
        assert cleaned["email"] is None
        assert cleaned["city"] is None

    def test_org_number_only_for_companies(self):
        private = normalize_customer_data({"name": "P", "customer_type": "private", "org_number": "556677-8899"})
        company = normalize_customer_data({"name": "C", "customer_type": "company", "org_number": "556677-8899"})
        assert private["org_number"] is None
        assert company["org_number"] == "556677-8899"


class TestBuildTimeline:

    def test_newest_first_with_type(self):
        timeline = build_timeline({
            "leads": [{"id": "l1", "created_at": "2024-01-01T10:00:00+00:00"}],
            "quotes": [{"id": "q1", "created_at": "2024-03-01T10:00:00+00:00"}],
            "jobs": [{"id": "j1", "created_at": "2024-02-01T10:00:00+00:00"}],
            "invoices": [],
        })
        assert [(e["id"], e["type"]) for e in timeline] == [("q1", "quote"), ("j1", "job"), ("l1", "lead")]

    def test_empty(self):
        assert build_timeline({}) == []


class TestCustomerService:

    @pytest.fixture
    def service(self, mock_db, org_id):
        return CustomerService(mock_db, org_id)

    @pytest.mark.asyncio
    async def test_search_returns_page_envelope(self, service, mock_db):
        customers = [CustomerDB(id=uuid.uuid4(), organisation_id="org-1", name=f"Kund {i}") for i in range(3)]
        count = MagicMock()
        count.scalar.return_value = 45
        mock_db.execute.side_effect = [count, scalars_result(customers)]

        page = await service.search_customers("kund", page=2)

        assert page["total_count"] == 45
        assert page["page"] == 2
        assert page["limit"] == 20
        assert page["total_pages"] == 3
        assert [c["name"] for c in page["data"]] == ["Kund 0", "Kund 1", "Kund 2"]

    @pytest.mark.asyncio
    async def test_duplicate_check_email_first(self, service, mock_db):
        mock_db.execute.return_value = scalar_result(CustomerDB(name="x"))

        check = await service.check_duplicate_customer("info@kund.se", "Kund AB")

        assert check == {"is_duplicate": True, "duplicate_field": "email"}
        assert mock_db.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_duplicate_check_falls_back_to_name(self, service, mock_db):
        mock_db.execute.side_effect = [scalar_result(None), scalar_result(CustomerDB(name="x"))]

        check = await service.check_duplicate_customer("new@kund.se", "Kund AB")

        assert check == {"is_duplicate": True, "duplicate_field": "name"}

    @pytest.mark.asyncio
    async def test_no_duplicate(self, service, mock_db):
        mock_db.execute.return_value = scalar_result(None)
        check = await service.check_duplicate_customer(None, "Kund AB")
        assert check == {"is_duplicate": False, "duplicate_field": None}

    @pytest.mark.asyncio
    async def test_create_rejects_duplicate(self, service, mock_db):
        mock_db.execute.return_value = scalar_result(CustomerDB(name="x"))

        with pytest.raises(DuplicateError) as exc_info:
            await service.create_customer({"name": "Kund AB", "email": "info@kund.se"})

        assert exc_info.value.message == DUPLICATE_MESSAGES["email"]
        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_create_scopes_to_organisation(self, service, mock_db):
        mock_db.execute.return_value = scalar_result(None)

        await service.create_customer({"name": "Kund AB", "email": "", "customer_type": "private", "org_number": "1"})

        customer = mock_db.add.call_args[0][0]
        assert customer.organisation_id == "org-1"
        assert customer.email is None
        assert customer.org_number is None
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_create_requires_name(self, service):
        with pytest.raises(ValueError):
            await service.create_customer({"name": "  "})

    @pytest.mark.asyncio
    async def test_update_excludes_itself_from_duplicate_check(self, service, mock_db):
        existing = CustomerDB(id=uuid.uuid4(), organisation_id="org-1", name="Kund AB", customer_type="company")
        mock_db.execute.side_effect = [scalar_result(existing), scalar_result(None)]

        updated = await service.update_customer(str(existing.id), {"name": "Kund AB"})

        assert updated.name == "Kund AB"
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_get_missing_customer(self, service, mock_db):
        mock_db.execute.return_value = scalar_result(None)
        with pytest.raises(NotFoundError):
            await service.get_customer(str(uuid.uuid4()))
