"""
Tests for the order-status read path and its helpers
"""

import datetime
from decimal import Decimal

import pytest

from erpchat.models.order_models import DispatchDetail, DispatchSummary
from erpchat.models.query_models import QueryResult
from erpchat.services.order_status_service import (
    ORDER_LOOKUP_ERROR,
    OrderStatusService,
    coerce_sample_limit,
    present_order_status,
)

ORDER = {
    "id": 42,
    "order_number": "TBI-2526-0042",
    "customer_name": "SSPL Forgings",
    "quantity_kg": Decimal("1000.000"),
    "material_status": "Rolling",
    "expected_date": datetime.date(2026, 11, 5),
}


def order_with(status, **extra):
    return {**ORDER, "status": status, **extra}


def dispatch_responder(weights, invoices):
    """Responses for the per-dispatch weightment and invoice lookups"""
    def weight_rows(sql, params):
        return [{"weightment_weight": w} for w in weights.get(params[0], [])]

    def invoice_rows(sql, params):
        return invoices.get(params[0], [])

    return weight_rows, invoice_rows


@pytest.fixture
def service(executor, catalog, fake_client):
    return OrderStatusService(executor, catalog, fake_client)


@pytest.fixture
def order_store(fake_client):
    """One in_progress order with two dispatches, one of them invoiced"""
    weight_rows, invoice_rows = dispatch_responder(
        weights={"D-1": [400, Decimal("200.5")], "D-2": [Decimal("99.5")]},
        invoices={"D-1": [{"actual_time": datetime.datetime(2026, 10, 1, 9, 30), "status": "completed"}]},
    )
    fake_client.respond("WHERE o.order_number = %s", [order_with("in_progress")])
    fake_client.respond("Database_despatch WHERE order_no_id", [
        {"id": 1, "despatchno": "D-1"},
        {"id": 2, "despatchno": "D-2"},
        {"id": 3, "despatchno": None},
    ])
    fake_client.respond("Database_weightment", weight_rows)
    fake_client.respond("Database_despatchinvoice", invoice_rows)
    return fake_client


class TestPresenter:

    def summary(self, total):
        return DispatchSummary(
            dispatches=[DispatchDetail(despatch_number="D-1", weight=total, completed=True)],
            total_dispatched=total,
        )

    def test_pending_hides_progress(self):
        view = present_order_status(order_with("pending"), self.summary(700))
        data = view.to_dict()

        assert data["message"] == "Order is pending approval"
        assert data["show_material_status"] is False
        assert data["show_expected_date"] is False
        assert data["show_dispatch"] is False
        assert "dispatch_info" not in data
        assert "material_status" not in data
        assert "remaining_qty" not in data

    def test_in_progress_shows_everything(self):
        view = present_order_status(order_with("in_progress"), self.summary(700))
        data = view.to_dict()

        assert data["material_status"] == "Rolling"
        assert data["expected_date"] == "2026-11-05"
        assert data["total_dispatched"] == 700
        assert data["remaining_qty"] == 300
        assert data["dispatch_info"][0]["despatch_number"] == "D-1"
        assert "is_fully_dispatched" not in data

    def test_in_progress_without_material_status(self):
        view = present_order_status(order_with("in_progress", material_status=None), self.summary(0))

        assert view.material_status == "Not yet updated"

    def test_completed_fully_dispatched(self):
        view = present_order_status(order_with("completed"), self.summary(1000))
        data = view.to_dict()

        assert data["is_fully_dispatched"] is True
        assert data["remaining_qty"] == 0
        assert data["show_material_status"] is False

    def test_completed_short_shipped(self):
        view = present_order_status(order_with("completed"), self.summary(900))

        assert view.is_fully_dispatched is False
        assert view.remaining_qty == 100

    def test_other_status_shows_material_and_date_only(self):
        data = present_order_status(order_with("on_hold"), self.summary(10)).to_dict()

        assert data["show_material_status"] is True
        assert data["show_expected_date"] is True
        assert "show_dispatch" not in data
        assert "total_dispatched" not in data

    def test_raw_order_is_json_safe(self):
        data = present_order_status(order_with("pending"), self.summary(0)).to_dict()

        assert data["data"]["quantity_kg"] == 1000.0
        assert data["data"]["expected_date"] == "2026-11-05"
        assert data["order_qty"] == 1000.0


class TestGetOrderStatus:

    @pytest.mark.asyncio
    async def test_found_with_dispatches(self, order_store, service):
        view = await service.get_order_status("TBI-2526-0042")

        assert view.found is True
        assert view.order_status == "in_progress"
        assert view.total_dispatched == 700
        assert view.remaining_qty == 300
        details = {d.despatch_number: d for d in view.dispatch_info}
        assert details["D-1"].weight == 600.5
        assert details["D-1"].completed is True
        assert details["D-1"].completion_date == datetime.datetime(2026, 10, 1, 9, 30)
        assert details["D-2"].completed is False
        assert details["D-2"].completion_date is None

    @pytest.mark.asyncio
    async def test_exact_lookup_is_limited_and_bound(self, order_store, service):
        await service.get_order_status("TBI-2526-0042")

        sql, params = order_store.calls[0]
        assert sql.endswith("WHERE o.order_number = %s LIMIT 1")
        assert params == ["TBI-2526-0042"]

    @pytest.mark.asyncio
    async def test_case_insensitive_fallback(self, fake_client, service):
        fake_client.respond("UPPER(o.order_number) = UPPER(%s)", [order_with("pending")])

        view = await service.get_order_status("tbi-2526-0042")

        assert view.found is True
        assert view.order_number == "TBI-2526-0042"
        assert len(fake_client.sql_matching("Database_orderregister")) == 2

    @pytest.mark.asyncio
    async def test_not_found(self, service):
        view = await service.get_order_status("NOPE-1")

        assert view.to_dict() == {"found": False, "message": "Order number NOPE-1 not found in our system."}

    @pytest.mark.asyncio
    async def test_store_error(self, fake_client, service):
        fake_client.respond("Database_orderregister", error="Lost connection")

        view = await service.get_order_status("TBI-1")

        assert view.to_dict() == {"found": False, "error": True, "message": ORDER_LOOKUP_ERROR}


class TestDispatchDetails:

    @pytest.mark.asyncio
    async def test_no_order_id(self, fake_client, service):
        summary = await service.get_dispatch_details(None)

        assert summary.dispatches == []
        assert summary.total_dispatched == 0
        assert fake_client.calls == []

    @pytest.mark.asyncio
    async def test_dispatch_query_failure_is_empty(self, fake_client, service):
        fake_client.respond("Database_despatch", error="timeout")

        summary = await service.get_dispatch_details(42)

        assert summary.total_dispatched == 0

    @pytest.mark.asyncio
    async def test_blank_dispatch_numbers_skipped(self, order_store, service):
        summary = await service.get_dispatch_details(42)

        assert [d.despatch_number for d in summary.dispatches] == ["D-1", "D-2"]
        assert summary.total_dispatched == 700


class TestHelpers:

    @pytest.mark.asyncio
    async def test_search_orders(self, fake_client, service):
        fake_client.respond("order_number LIKE %s", [{"order_number": "TBI-1"}])

        result = await service.search_orders("TBI")

        assert result == {"found": True, "count": 1, "orders": [{"order_number": "TBI-1"}]}
        sql, params = fake_client.calls[0]
        assert sql.endswith("LIMIT 10")
        assert params == ["%TBI%"]

    @pytest.mark.asyncio
    async def test_search_customer_error(self, fake_client, service):
        fake_client.respond("mastercustomer", error="boom")

        result = await service.search_customer_by_name("SSPL")

        assert result == {"found": False, "error": True, "message": "Error searching for customer."}

    @pytest.mark.asyncio
    async def test_orders_by_customer_pending(self, order_store, service):
        order_store.respond("WHERE o.customer_id = %s", [order_with("pending"), order_with("in_progress", id=43)])

        result = await service.get_orders_by_customer(1929, "pending")

        sql, params = order_store.sql_matching("WHERE o.customer_id = %s")[0]
        assert "o.status IN ('pending', 'in_progress')" in sql
        assert sql.endswith("ORDER BY o.created_at DESC")
        assert params == [1929]
        assert result["count"] == 2
        assert result["orders"][0]["dispatch_info"]["total_dispatched"] == 700

    @pytest.mark.asyncio
    async def test_orders_by_customer_any_status(self, fake_client, service):
        await service.get_orders_by_customer(1929, "everything")

        sql, _ = fake_client.calls[0]
        assert "o.status" not in sql

    @pytest.mark.asyncio
    async def test_dispatch_by_number(self, fake_client, service):
        fake_client.respond("d.despatchno LIKE %s", [
            {"despatchno": "D-1", "order_number": "TBI-1", "customer_name": "SSPL"},
        ])
        fake_client.respond("Database_weightment", [{"weightment_weight": 120}])

        result = await service.get_dispatch_by_number("D-1")

        assert result["found"] is True
        assert result["dispatches"] == [{
            "dispatch_number": "D-1",
            "order_number": "TBI-1",
            "customer_name": "SSPL",
            "weight": 120.0,
            "completion_date": None,
            "invoice_status": "Not invoiced",
        }]

    @pytest.mark.asyncio
    async def test_dispatch_by_number_missing(self, service):
        assert await service.get_dispatch_by_number("D-404") == {"found": False, "message": "Dispatch not found."}

    @pytest.mark.asyncio
    async def test_marketing_persons(self, fake_client, service):
        fake_client.respond("DISTINCT marketing_person", [{"marketing_person": "Anu"}, {"marketing_person": "Ravi"}])

        result = await service.get_unique_marketing_persons()

        assert result == {"success": True, "count": 2, "marketing_persons": ["Anu", "Ravi"]}

    @pytest.mark.asyncio
    async def test_table_structure(self, fake_client, service):
        fake_client.respond("information_schema.COLUMNS", [
            {"table_name": "Database_orderregister", "column_name": "id", "column_type": "bigint",
             "is_nullable": "NO", "column_key": "PRI", "column_default": None},
        ])

        structure = await service.get_table_structure()

        assert structure == [{"field": "id", "type": "bigint", "nullable": False, "key": "PRI", "default": None}]
        assert fake_client.calls[0][1] == ["thirupathybright", "Database_orderregister"]

    @pytest.mark.asyncio
    async def test_table_structure_unavailable(self, service):
        assert await service.get_table_structure() is None

    @pytest.mark.asyncio
    async def test_sample_orders_limit_is_clamped(self, fake_client, service):
        await service.get_sample_orders("500")

        sql, params = fake_client.calls[0]
        assert sql.endswith("LIMIT 100")
        assert params == []

    @pytest.mark.asyncio
    async def test_connection_check(self, fake_client, service):
        assert await service.test_connection() is True
        fake_client.healthy = False
        assert await service.test_connection() is False

    def test_coerce_sample_limit(self):
        assert coerce_sample_limit(None) == 5
        assert coerce_sample_limit("abc") == 5
        assert coerce_sample_limit(0) == 5
        assert coerce_sample_limit("7") == 7
        assert coerce_sample_limit(-3) == 1
        assert coerce_sample_limit(1000) == 100


class TestRemainingQuantity:
    """1000 kg ordered, 300 kg weighed out"""

    @pytest.mark.asyncio
    async def test_order_status_path(self, fake_client, service):
        fake_client.respond("WHERE o.order_number = %s", [order_with("in_progress", quantity_kg=1000)])
        fake_client.respond("Database_despatch WHERE order_no_id", [{"despatchno": "D-9"}])
        fake_client.respond("Database_weightment", [{"weightment_weight": 120}, {"weightment_weight": 180}])

        view = await service.get_order_status("TBI-2526-0042")

        assert view.total_dispatched == 300
        assert view.remaining_qty == 700

    def test_formatter_paths_agree(self, formatter):
        row = {"order_number": "TBI-2526-0042", "quantity_kg": 1000, "total_dispatched": 300, "remaining_qty": 700}
        single = formatter.format(QueryResult(success=True, data=[row], count=1))
        listing = formatter.format(QueryResult(success=True, data=[row, {**row, "order_number": "TBI-2"}], count=2))

        assert "  total_dispatched: 300\n  remaining_qty: 700\n" in single.text
        assert "   Dispatched: 300 kg\n   Remaining : 700 kg\n" in listing.text
