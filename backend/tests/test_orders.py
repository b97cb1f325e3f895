"""
Unit Tests for order list/archive filtering, value totals and order writes.

Run with: pytest tests/test_orders.py -v
"""

import uuid
from datetime import datetime, date, timezone
from decimal import Decimal

import pytest

from conftest import scalar_result
from database.models import OrderDB
from services.orders import OrderService, filter_orders, order_stats, line_items_total

NOW = datetime(2024, 6, 30, 12, 0, tzinfo=timezone.utc)


def order(id, status="öppen_order", value=None, created_at="2024-06-01T08:00:00+00:00", **extra):
    data = {
        "id": id,
        "title": f"Order {id}",
        "status": status,
        "value": value,
        "created_at": created_at,
        "customer_id": None,
        "customer": None,
        "assigned_to_user_id": None,
        "assigned_to_team_id": None,
    }
    data.update(extra)
    return data


class TestFilterOrders:

    def test_list_view_hides_archived(self):
        orders = [order("a"), order("b", status="arkiverad")]
        assert [o["id"] for o in filter_orders(orders, {}, "list")] == ["a"]

    def test_archive_view_shows_only_archived_and_ignores_status(self):
        orders = [order("a", status="pågående"), order("b", status="arkiverad")]
        result = filter_orders(orders, {"status": "pågående"}, "archive")
        assert [o["id"] for o in result] == ["b"]

    def test_status_filter_in_list_view(self):
        orders = [order("a", status="pågående"), order("b", status="slutförd")]
        assert [o["id"] for o in filter_orders(orders, {"status": "slutförd"})] == ["b"]

    def test_all_means_no_filter(self):
        orders = [order("a", status="pågående"), order("b", status="slutförd")]
        assert len(filter_orders(orders, {"status": "all", "customer": "all", "user": "all", "team": "all"})) == 2

    def test_search_matches_title_customer_or_id(self):
        orders = [
            order("abc123", title="Fönsterputs Storgatan"),
            order("def456", customer={"id": "c1", "name": "Bostadsbolaget AB"}),
            order("ghi789"),
        ]
        assert [o["id"] for o in filter_orders(orders, {"search": "storgatan"})] == ["abc123"]
        assert [o["id"] for o in filter_orders(orders, {"search": "BOSTADS"})] == ["def456"]
        assert [o["id"] for o in filter_orders(orders, {"search": "#ghi"})] == ["ghi789"]

    def test_assignment_filters(self):
        orders = [
            order("a", customer_id="c1", assigned_to_user_id="u1", assigned_to_team_id="t1"),
            order("b", customer_id="c2", assigned_to_user_id="u1", assigned_to_team_id="t2"),
        ]
        assert [o["id"] for o in filter_orders(orders, {"customer": "c2"})] == ["b"]
        assert [o["id"] for o in filter_orders(orders, {"user": "u1", "team": "t1"})] == ["a"]

    def test_date_to_includes_the_whole_day(self):
        orders = [
            order("late", created_at="2024-06-10T23:59:59+00:00"),
            order("next", created_at="2024-06-11T00:00:00+00:00"),
        ]
        result = filter_orders(orders, {"date_to": "2024-06-10"})
        assert [o["id"] for o in result] == ["late"]

    def test_date_from_inclusive(self):
        orders = [
            order("before", created_at="2024-06-09T23:59:59+00:00"),
            order("start", created_at="2024-06-10T00:00:00+00:00"),
        ]
        assert [o["id"] for o in filter_orders(orders, {"date_from": date(2024, 6, 10)})] == ["start"]

    def test_undated_orders_excluded_by_date_bounds(self):
        orders = [order("dated", created_at="2024-06-10T12:00:00+00:00"), order("undated", created_at=None)]

        assert [o["id"] for o in filter_orders(orders, {"date_from": "2024-06-01"})] == ["dated"]
        assert [o["id"] for o in filter_orders(orders, {"date_to": "2024-06-30"})] == ["dated"]
        assert len(filter_orders(orders)) == 2

    def test_sorted_newest_first(self):
        orders = [
            order("old", created_at="2024-01-01T00:00:00+00:00"),
            order("new", created_at="2024-06-01T00:00:00+00:00"),
            order("mid", created_at="2024-03-01T00:00:00+00:00"),
        ]
        assert [o["id"] for o in filter_orders(orders)] == ["new", "mid", "old"]


class TestOrderStats:

    def test_totals(self):
        orders = [
            order("recent", value=1000, created_at="2024-06-20T00:00:00+00:00"),
            order("spring", value=500, created_at="2024-03-01T00:00:00+00:00"),
            order("old", value=200, created_at="2023-06-01T00:00:00+00:00"),
            order("novalue", value=None, created_at="2024-06-25T00:00:00+00:00"),
            order("archived", status="arkiverad", value=9999, created_at="2024-06-25T00:00:00+00:00"),
        ]
        filtered = filter_orders(orders, {"search": "recent"})

        stats = order_stats(orders, filtered, now=NOW)

        assert stats == {
            "total_filtered_value": 1000,
            "total_all_time_value": 1700,
            "total_last_month_value": 1000,
            "total_last_6_months_value": 1500,
        }

    def test_empty(self):
        assert order_stats([], [], now=NOW)["total_all_time_value"] == 0


def test_line_items_total():
    items = [{"quantity": 2, "unit_price": Decimal("150.50")}, {"quantity": None, "unit_price": 100}]
    assert line_items_total(items) == Decimal("301.00")


class TestOrderService:

    @pytest.fixture
    def service(self, mock_db, org_id):
        return OrderService(mock_db, org_id)

    @pytest.mark.asyncio
    async def test_create_nulls_empty_foreign_keys_and_totals_line_items(self, service, mock_db):
        mock_db.execute.return_value = scalar_result(OrderDB(title="stub"))

        await service.create_order(
            {"title": "Takrengöring", "customer_id": "", "assigned_to_team_id": "", "value": None},
            line_items=[{"name": "Tak", "quantity": 2, "unit_price": 1200}],
            note="Ring innan",
            user_id=str(uuid.uuid4()),
        )

        created = mock_db.add.call_args[0][0]
        assert created.organisation_id == "org-1"
        assert created.customer_id is None
        assert created.assigned_to_team_id is None
        assert created.value == Decimal("2400")
        assert [li.name for li in created.line_items] == ["Tak"]
        assert [n.content for n in created.notes] == ["Ring innan"]

    @pytest.mark.asyncio
    async def test_create_requires_title(self, service):
        with pytest.raises(ValueError):
            await service.create_order({"title": " "})

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_status(self, service, mock_db):
        mock_db.execute.return_value = scalar_result(OrderDB(title="x", line_items=[], notes=[]))
        with pytest.raises(ValueError):
            await service.update_order(str(uuid.uuid4()), {"status": "okänd"})
