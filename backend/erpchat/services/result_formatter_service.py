"""
Result Formatter Service

Classifies the shape of a query result and renders it either as a direct
reply (sent verbatim) or as context for a further generation pass.

Precedence, first match wins:
    pre-rendered reply, failure, empty, stock, production, single record,
    order list, SKU list, generic records
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from erpchat.models.query_models import FormattedReply, QueryResult, ReplyKind, Row
from erpchat.services.fast_path_service import (
    STOCK_SOURCE_FIELD,
    wants_cancelled,
    wants_completed,
)
from erpchat.utils.formatting import RULE, display_value, format_quantity, sum_field

logger = logging.getLogger(__name__)

NO_DATA_REPLY = "No data found for your query."
PRESENTATION_HINT = "Present this data as plain text, no markdown, no emojis."
NOT_APPROVED_LABEL = "Production Not Approved"

ESSENTIAL_FIELDS = (
    "order_number", "status", "customer_name", "sku", "material_status",
    "po_number", "po_date", "expected_date", "quantity_kg",
    "material", "rate", "payment_terms", "delivery_address",
    "total_dispatched", "remaining_qty", "dispatch_count",
    "despatchno", "weightment_weight", "actual_time",
)
SKU_NAME_FIELDS = ("sku_code", "sku_name", "skuname")
STOCK_SECTIONS = (
    ("regular", "Regular Stock"),
    ("rejected", "Rejected Stock"),
    ("quarantine", "Quarantine Stock"),
)
_STATUS_WORDS = {
    "completed": "Completed",
    "cancelled": "Cancelled",
    "in_progress": "In Progress",
    "pending": "Pending",
}


def _first(row: Row, *keys: str) -> Any:
    """First truthy value among keys"""
    for key in keys:
        value = row.get(key)
        if value:
            return value
    return None


def _present(value: Any) -> bool:
    return value is not None and value != ""


def _essential_lines(row: Row) -> List[str]:
    return [
        f"  {name}: {display_value(row[name])}\n"
        for name in ESSENTIAL_FIELDS
        if _present(row.get(name))
    ]


def production_status_labeler(status_context: Optional[str], pp_lookup: bool) -> Callable[[Any], str]:
    """
    Label function for production statuses.

    pending and in_progress share the bucket label unless the question asked
    for completed/cancelled rows or came from an exact PP lookup.
    """
    show_bucket = not pp_lookup and not wants_completed(status_context) and not wants_cancelled(status_context)

    def label(status: Any) -> str:
        if status in ("pending", "in_progress") and show_bucket:
            return NOT_APPROVED_LABEL
        return _STATUS_WORDS.get(status) or (str(status) if status else "Unknown")

    return label


class ResultFormatterService:
    """Pure formatting; the same result always yields the same reply"""

    def format(self, result: QueryResult) -> FormattedReply:
        if result.direct_reply is not None:
            return self._direct(result.direct_reply)

        if not result.success:
            return self._direct(f"Database error: {result.error}. Please try a different question.")

        data = result.data
        if result.count == 0 or not data:
            return self._direct(NO_DATA_REPLY)

        if result.is_stock_query or any("closing_qty" in row for row in data):
            return self._format_stock(data)

        if result.is_production_query or any("ppno" in row for row in data):
            return self._format_production(result)

        if result.count == 1:
            return self._context(
                "[SYSTEM: Found 1 record.\nDATA:\n"
                + "".join(_essential_lines(data[0]))
                + f"{PRESENTATION_HINT}]"
            )

        first = data[0]
        if "order_number" in first:
            return self._format_order_list(result)

        if any(field in first for field in SKU_NAME_FIELDS):
            return self._format_sku_list(result)

        return self._format_records(result)

    @staticmethod
    def _direct(text: str) -> FormattedReply:
        return FormattedReply(kind=ReplyKind.DIRECT, text=text)

    @staticmethod
    def _context(text: str) -> FormattedReply:
        return FormattedReply(kind=ReplyKind.CONTEXT, text=text)

    def _format_stock(self, data: Sequence[Row]) -> FormattedReply:
        sections: Dict[str, List[Row]] = {source: [] for source, _ in STOCK_SECTIONS}
        for row in data:
            source = row.get(STOCK_SOURCE_FIELD) or "regular"
            if source in sections:
                sections[source].append(row)

        if not any(sections.values()):
            return self._direct(NO_DATA_REPLY)

        header = _first(data[0], "skuname", "sku_code", "sku_name", "name")
        out = f"Stock for: {header}\n" if header else "Stock Summary:\n"
        out += f"{RULE}\n\n"

        for source, label in STOCK_SECTIONS:
            rows = sections[source]
            if not rows:
                continue
            out += f"{label}:\n"
            for i, row in enumerate(rows, start=1):
                item = _first(row, "skuname", "sku_code", "sku_name", "name", "sku_id", "id") or f"Item {i}"
                out += f"  {i}. {item}\n"
                if row.get("unit"):
                    out += f"     Unit        : {row['unit']}\n"
                if row.get("closing_qty") is not None:
                    out += f"     Closing Qty : {format_quantity(row['closing_qty'])}\n"
                if row.get("date"):
                    out += f"     Date        : {display_value(row['date'])}\n"
                out += "\n"

        if not sections["regular"]:
            out += "Regular Stock : No data\n\n"

        return self._direct(out)

    def _format_production(self, result: QueryResult) -> FormattedReply:
        label = production_status_labeler(result.status_context, result.pp_lookup)

        out = f"Found {result.count} production record(s):\n{RULE}\n"
        for i, row in enumerate(result.data, start=1):
            out += f"{i}. {_first(row, 'ppno', 'id') or 'N/A'}"
            if row.get("customer_name"):
                out += f" | {row['customer_name']}"
            out += "\n"

            if row.get("sku"):
                out += f"   SKU         : {row['sku']}\n"
            if row.get("quantity_kg") is not None:
                out += f"   Qty (kg)    : {format_quantity(row['quantity_kg'])}\n"
            if row.get("status"):
                out += f"   Status      : {label(row['status'])}\n"
            if row.get("expected_date"):
                out += f"   Expected    : {display_value(row['expected_date'])}\n"
            if row.get("ppnoreference"):
                out += f"   PP Ref      : {row['ppnoreference']}\n"
            if row.get("length"):
                out += f"   Length      : {display_value(row['length'])}\n"
            if row.get("notes"):
                out += f"   Notes       : {row['notes']}\n"
            out += "\n"

        out += f"{RULE}\n"
        out += f"Total Qty : {format_quantity(sum_field(result.data, 'quantity_kg'))} kg\n"
        return self._direct(out)

    def _format_order_list(self, result: QueryResult) -> FormattedReply:
        data = result.data

        out = f"Found {result.count} order(s):\n{RULE}\n"
        for i, row in enumerate(data, start=1):
            out += f"{i}. {row.get('order_number') or 'N/A'}"
            if row.get("customer_name"):
                out += f" | {row['customer_name']}"
            out += "\n"

            completed = row.get("status") == "completed"
            if row.get("sku"):
                out += f"   SKU      : {row['sku']}\n"
            if row.get("material"):
                out += f"   Material : {row['material']}\n"
            if row.get("quantity_kg") is not None:
                out += f"   Ordered  : {format_quantity(row['quantity_kg'])} kg\n"
            if row.get("total_dispatched") is not None:
                out += f"   Dispatched: {format_quantity(row['total_dispatched'])} kg\n"
            if row.get("remaining_qty") is not None:
                out += f"   Remaining : {format_quantity(row['remaining_qty'])} kg\n"
            if row.get("status"):
                out += f"   Status   : {row['status']}\n"
            if row.get("material_status") and not completed:
                out += f"   Mat.Status: {row['material_status']}\n"
            if row.get("expected_date") and not completed:
                out += f"   Expected  : {display_value(row['expected_date'])}\n"
            if row.get("po_number"):
                out += f"   PO Number : {row['po_number']}\n"
            out += "\n"

        out += f"{RULE}\n"
        out += "TOTALS:\n"
        out += f"  Total Ordered   : {format_quantity(sum_field(data, 'quantity_kg'))} kg\n"
        out += f"  Total Dispatched: {format_quantity(sum_field(data, 'total_dispatched'))} kg\n"
        out += f"  Total Remaining : {format_quantity(sum_field(data, 'remaining_qty'))} kg\n"
        return self._direct(out)

    def _format_sku_list(self, result: QueryResult) -> FormattedReply:
        out = f"SKU List ({result.count} item(s)):\n{RULE}\n"
        for i, row in enumerate(result.data, start=1):
            item = _first(row, "skuname", "sku_code", "sku_name", "name", "id") or f"SKU {i}"
            out += f"{i}. {item}\n"
            if row.get("description"):
                out += f"   Description : {row['description']}\n"
            if row.get("unit"):
                out += f"   Unit        : {row['unit']}\n"
            if row.get("category"):
                out += f"   Category    : {row['category']}\n"
            out += "\n"
        return self._direct(out)

    def _format_records(self, result: QueryResult) -> FormattedReply:
        out = f"[SYSTEM: Found {result.count} record(s).\nDATA:\n"
        for i, row in enumerate(result.data, start=1):
            out += f"Record {i}:\n"
            out += "".join(_essential_lines(row))
            out += "\n"
        out += f"{PRESENTATION_HINT}]"
        return self._context(out)
