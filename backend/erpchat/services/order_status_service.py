"""
Order Status Service
Customer-facing order lookup by number plus the order, customer and dispatch
helpers around it. Plain parameterized queries, no SQL generation.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from erpchat.core.exceptions import SchemaUnavailableException
from erpchat.core.mysql_client import MySQLClient
from erpchat.models.order_models import (
    DispatchDetail,
    DispatchRecord,
    DispatchSummary,
    OrderStatusView,
)
from erpchat.models.query_models import ORDER_TABLE, Row
from erpchat.services.query_executor import QueryExecutor
from erpchat.services.schema_catalog_service import SchemaCatalogService
from erpchat.utils.formatting import sum_field, to_number

logger = logging.getLogger(__name__)

ORDER_LOOKUP_ERROR = "Sorry, I encountered an error while checking the order status. Please try again later."
SEARCH_LIMIT = 10
DEFAULT_SAMPLE_LIMIT = 5


def coerce_sample_limit(limit: Any) -> int:
    """Integer within 1..100; anything unparseable becomes the default"""
    try:
        value = int(limit)
    except (TypeError, ValueError):
        value = 0
    if value == 0:
        value = DEFAULT_SAMPLE_LIMIT
    return max(1, min(100, value))


def present_order_status(order: Row, dispatch: DispatchSummary) -> OrderStatusView:
    """
    Status-conditional view of an order.

    pending: approval message only. in_progress: material status, expected
    date and dispatches. completed: dispatches and the fully-dispatched flag.
    Any other status: material status and expected date.
    """
    order_qty = to_number(order.get("quantity_kg")) or 0.0
    total_dispatched = dispatch.total_dispatched
    remaining = order_qty - total_dispatched
    status = order.get("status")

    base: Dict[str, Any] = {
        "found": True,
        "order_number": order.get("order_number"),
        "customer_name": order.get("customer_name"),
        "order_status": status,
        "order_qty": order_qty,
        "data": dict(order),
    }

    if status == "pending":
        return OrderStatusView(
            **base,
            message="Order is pending approval",
            show_material_status=False,
            show_expected_date=False,
            show_dispatch=False,
        )

    if status == "in_progress":
        return OrderStatusView(
            **base,
            material_status=order.get("material_status") or "Not yet updated",
            expected_date=order.get("expected_date"),
            show_material_status=True,
            show_expected_date=True,
            show_dispatch=True,
            dispatch_info=dispatch.dispatches,
            total_dispatched=total_dispatched,
            remaining_qty=remaining,
        )

    if status == "completed":
        return OrderStatusView(
            **base,
            show_material_status=False,
            show_expected_date=False,
            show_dispatch=True,
            dispatch_info=dispatch.dispatches,
            total_dispatched=total_dispatched,
            remaining_qty=remaining,
            is_fully_dispatched=remaining <= 0,
        )

    return OrderStatusView(
        **base,
        material_status=order.get("material_status"),
        expected_date=order.get("expected_date"),
        show_material_status=True,
        show_expected_date=True,
    )


class OrderStatusService:
    """Read path that bypasses fast-paths, SQL generation and the formatter"""

    def __init__(
        self,
        executor: QueryExecutor,
        catalog: SchemaCatalogService,
        client: MySQLClient,
    ):
        self._executor = executor
        self._catalog = catalog
        self._client = client

    def _order_select(self, where: str) -> str:
        t = self._executor.table
        return (
            "SELECT o.*, c.customer_name "
            f"FROM {t(ORDER_TABLE)} o "
            f"LEFT JOIN {t('mastercustomer')} c ON o.customer_id = c.id "
            f"{where}"
        )

    async def get_order_status(self, order_number: str) -> OrderStatusView:
        """Exact order-number match first, then a case-insensitive one"""
        logger.info(f"[QUERY] Searching for order: {order_number}")

        exact = await self._executor.execute(
            self._order_select("WHERE o.order_number = %s LIMIT 1"), [order_number]
        )
        if not exact.success:
            return OrderStatusView(found=False, error=True, message=ORDER_LOOKUP_ERROR)

        rows = exact.rows
        if not rows:
            fallback = await self._executor.execute(
                self._order_select("WHERE UPPER(o.order_number) = UPPER(%s) LIMIT 1"), [order_number]
            )
            if not fallback.success:
                return OrderStatusView(found=False, error=True, message=ORDER_LOOKUP_ERROR)
            rows = fallback.rows
            logger.info(f"Case-insensitive search: Found {len(rows)} rows")

        if not rows:
            return OrderStatusView(
                found=False,
                message=f"Order number {order_number} not found in our system.",
            )

        order = rows[0]
        dispatch = await self.get_dispatch_details(order.get("id"))
        logger.info(
            f"[OK] Order found: {order.get('order_number')} - "
            f"Customer: {order.get('customer_name')}, Status: {order.get('status')}"
        )
        return present_order_status(order, dispatch)

    async def _dispatch_detail(self, despatch_no: Any) -> DispatchDetail:
        t = self._executor.table
        weights, invoices = await asyncio.gather(
            self._executor.execute(
                f"SELECT weightment_weight FROM {t('Database_weightment')} WHERE despatch_no = %s",
                [despatch_no],
            ),
            self._executor.execute(
                f"SELECT actual_time FROM {t('Database_despatchinvoice')} "
                "WHERE despatch_no = %s AND status = 'completed'",
                [despatch_no],
            ),
        )
        return DispatchDetail(
            despatch_number=str(despatch_no),
            weight=sum_field(weights.rows, "weightment_weight"),
            completion_date=invoices.rows[0].get("actual_time") if invoices.rows else None,
            completed=bool(invoices.rows),
        )

    async def get_dispatch_details(self, order_id: Any) -> DispatchSummary:
        """Dispatches of one order with summed weightment weight"""
        if not order_id:
            logger.warning("[WARN] No order ID provided for dispatch lookup")
            return DispatchSummary()

        result = await self._executor.execute(
            f"SELECT * FROM {self._executor.table('Database_despatch')} WHERE order_no_id = %s",
            [order_id],
        )
        if not result.success:
            logger.error(f"Error fetching dispatch details for order {order_id}: {result.error}")
            return DispatchSummary()

        numbers = [row.get("despatchno") for row in result.rows]
        numbers = [n for n in numbers if n]
        details = await asyncio.gather(*(self._dispatch_detail(n) for n in numbers))

        total = sum(d.weight for d in details)
        logger.info(f"[PACKAGE] {len(details)} dispatches for order ID {order_id}, total {total} kg")
        return DispatchSummary(dispatches=list(details), total_dispatched=total)

    async def search_orders(self, term: str) -> Dict[str, Any]:
        result = await self._executor.execute(
            f"SELECT * FROM {self._executor.table(ORDER_TABLE)} "
            f"WHERE order_number LIKE %s LIMIT {SEARCH_LIMIT}",
            [f"%{term}%"],
        )
        if not result.success:
            return {"found": False, "error": True, "message": "Sorry, I encountered an error while searching for orders."}
        return {"found": result.count > 0, "count": result.count, "orders": result.rows}

    async def search_customer_by_name(self, name: str) -> Dict[str, Any]:
        result = await self._executor.execute(
            f"SELECT id, customer_name FROM {self._executor.table('mastercustomer')} "
            f"WHERE customer_name LIKE %s LIMIT {SEARCH_LIMIT}",
            [f"%{name}%"],
        )
        if not result.success:
            return {"found": False, "error": True, "message": "Error searching for customer."}
        logger.info(f"[QUERY] Found {result.count} customers matching '{name}'")
        return {"found": result.count > 0, "count": result.count, "customers": result.rows}

    async def get_orders_by_customer(self, customer_id: Any, status: Optional[str] = None) -> Dict[str, Any]:
        """
        Orders of one customer, newest first, each with its dispatch summary.

        status "pending" covers pending and in_progress; "completed" is exact;
        anything else returns all orders.
        """
        if status == "pending":
            where = "WHERE o.customer_id = %s AND o.status IN ('pending', 'in_progress')"
        elif status == "completed":
            where = "WHERE o.customer_id = %s AND o.status = 'completed'"
        else:
            where = "WHERE o.customer_id = %s"

        result = await self._executor.execute(
            self._order_select(f"{where} ORDER BY o.created_at DESC"), [customer_id]
        )
        if not result.success:
            return {"found": False, "error": True, "message": "Error retrieving customer orders."}

        summaries = await asyncio.gather(*(self.get_dispatch_details(o.get("id")) for o in result.rows))
        orders = [
            {**order, "dispatch_info": summary.to_dict()}
            for order, summary in zip(result.rows, summaries)
        ]
        logger.info(f"[LIST] Found {len(orders)} orders for customer ID {customer_id} (status: {status or 'all'})")
        return {"found": bool(orders), "count": len(orders), "orders": orders}

    async def _dispatch_record(self, row: Row) -> DispatchRecord:
        t = self._executor.table
        despatch_no = row.get("despatchno")
        weights, invoices = await asyncio.gather(
            self._executor.execute(
                f"SELECT weightment_weight FROM {t('Database_weightment')} WHERE despatch_no = %s",
                [despatch_no],
            ),
            self._executor.execute(
                f"SELECT actual_time, status FROM {t('Database_despatchinvoice')} WHERE despatch_no = %s",
                [despatch_no],
            ),
        )
        invoice = invoices.rows[0] if invoices.rows else None
        return DispatchRecord(
            dispatch_number=str(despatch_no),
            order_number=row.get("order_number"),
            customer_name=row.get("customer_name"),
            weight=sum_field(weights.rows, "weightment_weight"),
            completion_date=invoice.get("actual_time") if invoice else None,
            invoice_status=(invoice.get("status") or "Not invoiced") if invoice else "Not invoiced",
        )

    async def get_dispatch_by_number(self, dispatch_number: str) -> Dict[str, Any]:
        t = self._executor.table
        result = await self._executor.execute(
            "SELECT d.*, o.order_number, o.customer_id, c.customer_name "
            f"FROM {t('Database_despatch')} d "
            f"LEFT JOIN {t(ORDER_TABLE)} o ON d.order_no_id = o.id "
            f"LEFT JOIN {t('mastercustomer')} c ON o.customer_id = c.id "
            f"WHERE d.despatchno LIKE %s LIMIT {SEARCH_LIMIT}",
            [f"%{dispatch_number}%"],
        )
        if not result.success:
            return {"found": False, "error": True, "message": "Error searching for dispatch."}
        if not result.rows:
            return {"found": False, "message": "Dispatch not found."}

        records = await asyncio.gather(*(self._dispatch_record(row) for row in result.rows))
        return {
            "found": True,
            "count": len(records),
            "dispatches": [r.model_dump(mode="json") for r in records],
        }

    async def get_unique_marketing_persons(self) -> Dict[str, Any]:
        result = await self._executor.execute(
            "SELECT DISTINCT marketing_person "
            f"FROM {self._executor.table(ORDER_TABLE)} "
            "WHERE marketing_person IS NOT NULL AND marketing_person != '' "
            "ORDER BY marketing_person ASC"
        )
        if not result.success:
            return {"success": False, "error": result.error, "marketing_persons": []}

        persons = [row["marketing_person"] for row in result.rows]
        return {"success": True, "count": len(persons), "marketing_persons": persons}

    async def get_table_structure(self) -> Optional[List[Dict[str, Any]]]:
        """Column metadata of the order table (debugging aid)"""
        try:
            columns = await self._catalog.fetch_columns([ORDER_TABLE])
        except SchemaUnavailableException as e:
            logger.error(f"Error getting table structure: {e.message}")
            return None
        return [
            {"field": c.name, "type": c.type, "nullable": c.nullable, "key": c.key, "default": c.default}
            for c in columns.get(ORDER_TABLE, [])
        ]

    async def get_sample_orders(self, limit: Any = DEFAULT_SAMPLE_LIMIT) -> List[Row]:
        """
        A few orders for debugging.

        The limit is coerced into 1..100 and is the one value embedded in the
        SQL text.
        """
        limit_int = coerce_sample_limit(limit)
        result = await self._executor.execute(
            "SELECT order_number, material_status "
            f"FROM {self._executor.table(ORDER_TABLE)} LIMIT {limit_int}"
        )
        return result.rows if result.success else []

    async def test_connection(self) -> bool:
        health = await self._client.health_check()
        return bool(health.get("healthy"))
