"""
Tests for result shape classification and rendering
"""

import datetime
from decimal import Decimal

from erpchat.models.query_models import QueryResult, ReplyKind
from erpchat.services.result_formatter_service import (
    NO_DATA_REPLY,
    NOT_APPROVED_LABEL,
    production_status_labeler,
)


def rows_result(rows, **flags):
    return QueryResult(success=True, query="SELECT 1", data=rows, count=len(rows), **flags)


class TestSimpleBranches:

    def test_direct_reply_is_passed_through(self, formatter):
        reply = formatter.format(QueryResult.direct("Black Bar Stock Summary:\n", query="bartype-stock"))

        assert reply.kind == ReplyKind.DIRECT
        assert reply.text == "Black Bar Stock Summary:\n"

    def test_failure(self, formatter):
        reply = formatter.format(QueryResult.failure("Unknown column 'x'"))

        assert reply.is_direct
        assert reply.text == "Database error: Unknown column 'x'. Please try a different question."

    def test_empty(self, formatter):
        reply = formatter.format(rows_result([]))

        assert reply.is_direct
        assert reply.text == NO_DATA_REPLY

    def test_same_result_same_reply(self, formatter):
        result = rows_result([{"order_number": "TBI-1", "quantity_kg": 10}, {"order_number": "TBI-2"}])

        assert formatter.format(result) == formatter.format(result)


class TestStock:

    def test_sections_by_source(self, formatter):
        reply = formatter.format(rows_result([
            {"skuname": "EN8-10", "closing_qty": Decimal("1500.250"), "unit": "kg", "_stock_source": "regular"},
            {"skuname": "EN8-10", "closing_qty": 20, "_stock_source": "quarantine"},
        ], is_stock_query=True))

        assert reply.is_direct
        assert reply.text.startswith("Stock for: EN8-10\n" + "─" * 30 + "\n\n")
        assert "Regular Stock:\n  1. EN8-10\n     Unit        : kg\n     Closing Qty : 1,500.25\n\n" in reply.text
        assert "Quarantine Stock:\n  1. EN8-10\n     Closing Qty : 20\n" in reply.text
        assert "Rejected Stock" not in reply.text
        assert "Regular Stock : No data" not in reply.text

    def test_missing_regular_section_is_noted(self, formatter):
        reply = formatter.format(rows_result([
            {"skuname": "EN8-10", "closing_qty": 3, "_stock_source": "rejected"},
        ], is_stock_query=True))

        assert reply.text.endswith("Regular Stock : No data\n\n")

    def test_detected_by_closing_qty_in_any_row(self, formatter):
        reply = formatter.format(rows_result([
            {"id": 1},
            {"sku_code": "S-1", "closing_qty": 4},
        ]))

        assert reply.text.startswith("Stock Summary:\n")
        assert "  2. S-1\n" in reply.text


class TestProduction:

    def production_rows(self):
        return [
            {"ppno": "PP-2602-1", "customer_name": "SSPL", "sku": "EN8 - Black - Round - 20",
             "quantity_kg": Decimal("500.000"), "status": "in_progress",
             "expected_date": datetime.date(2026, 3, 1)},
            {"ppno": "PP-2602-2", "quantity_kg": 250, "status": "pending"},
        ]

    def test_listing_buckets_open_statuses(self, formatter):
        reply = formatter.format(rows_result(
            self.production_rows(), is_production_query=True, status_context="production pending",
        ))

        assert reply.text.startswith("Found 2 production record(s):\n")
        assert "1. PP-2602-1 | SSPL\n" in reply.text
        assert "   Qty (kg)    : 500\n" in reply.text
        assert "   Expected    : 2026-03-01\n" in reply.text
        assert reply.text.count(f"Status      : {NOT_APPROVED_LABEL}") == 2
        assert reply.text.endswith("Total Qty : 750 kg\n")

    def test_pp_lookup_shows_actual_status(self, formatter):
        reply = formatter.format(rows_result(
            self.production_rows()[:1], is_production_query=True, pp_lookup=True,
            status_context="PP-2602-1",
        ))

        assert "   Status      : In Progress\n" in reply.text
        assert NOT_APPROVED_LABEL not in reply.text

    def test_detected_by_ppno_without_flag(self, formatter):
        reply = formatter.format(rows_result([{"ppno": "PP-2602-9", "status": "completed"}]))

        assert reply.is_direct
        assert "Status      : Completed" in reply.text

    def test_labeler(self):
        bucketed = production_status_labeler("production pending", pp_lookup=False)
        assert bucketed("pending") == NOT_APPROVED_LABEL
        assert bucketed("in_progress") == NOT_APPROVED_LABEL
        assert bucketed("completed") == "Completed"
        assert bucketed(None) == "Unknown"
        assert bucketed("on_hold") == "on_hold"

        asked_completed = production_status_labeler("production completed", pp_lookup=False)
        assert asked_completed("pending") == "Pending"
        assert asked_completed("in_progress") == "In Progress"

        assert production_status_labeler(None, pp_lookup=True)("pending") == "Pending"


class TestRecords:

    def test_single_record_is_context(self, formatter):
        reply = formatter.format(rows_result([{
            "order_number": "TBI-1",
            "status": "pending",
            "quantity_kg": Decimal("700.00"),
            "remaining_qty": Decimal("300.50"),
            "internal_flag": True,
            "po_number": "",
        }]))

        assert reply.kind == ReplyKind.CONTEXT
        assert reply.text == (
            "[SYSTEM: Found 1 record.\nDATA:\n"
            "  order_number: TBI-1\n"
            "  status: pending\n"
            "  quantity_kg: 700\n"
            "  remaining_qty: 300.5\n"
            "Present this data as plain text, no markdown, no emojis.]"
        )
        assert reply.as_user_message("status of TBI-1").startswith("status of TBI-1\n\n[SYSTEM:")

    def test_order_list_with_totals(self, formatter):
        reply = formatter.format(rows_result([
            {"order_number": "TBI-1", "customer_name": "SSPL", "status": "pending",
             "quantity_kg": 1000, "total_dispatched": 700, "remaining_qty": 300,
             "material_status": "Awaiting RM", "expected_date": datetime.date(2026, 4, 2)},
            {"order_number": "TBI-2", "status": "completed", "quantity_kg": 500,
             "total_dispatched": 500, "remaining_qty": 0, "material_status": "Done"},
        ]))

        text = reply.text
        assert reply.is_direct
        assert text.startswith("Found 2 order(s):\n")
        assert "1. TBI-1 | SSPL\n" in text
        assert "   Dispatched: 700 kg\n   Remaining : 300 kg\n" in text
        assert "   Mat.Status: Awaiting RM\n" in text
        assert "   Expected  : 2026-04-02\n" in text
        assert "Mat.Status: Done" not in text
        assert "  Total Ordered   : 1,500 kg\n" in text
        assert "  Total Dispatched: 1,200 kg\n" in text
        assert text.endswith("  Total Remaining : 300 kg\n")

    def test_sku_list(self, formatter):
        reply = formatter.format(rows_result([
            {"skuname": "EN8-10", "unit": "kg"},
            {"skuname": "EN1A-20", "category": "Bright"},
        ]))

        assert reply.text.startswith("SKU List (2 item(s)):\n")
        assert "1. EN8-10\n   Unit        : kg\n" in reply.text
        assert "2. EN1A-20\n   Category    : Bright\n" in reply.text

    def test_generic_records_are_context(self, formatter):
        reply = formatter.format(rows_result([
            {"despatchno": "D-1", "weightment_weight": Decimal("120.5")},
            {"despatchno": "D-2", "misc": "ignored"},
        ]))

        assert reply.kind == ReplyKind.CONTEXT
        assert reply.text.startswith("[SYSTEM: Found 2 record(s).\nDATA:\nRecord 1:\n")
        assert "  weightment_weight: 120.5\n" in reply.text
        assert "ignored" not in reply.text
        assert reply.text.endswith("Present this data as plain text, no markdown, no emojis.]")
