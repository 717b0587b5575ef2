"""
Schema Catalog Service
Introspects the fixed set of ERP tables and renders the schema text used in
SQL generation prompts
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from erpchat.core.exceptions import SchemaUnavailableException
from erpchat.services.query_executor import QueryExecutor

logger = logging.getLogger(__name__)


CATALOG_TABLES: Sequence[str] = (
    "Database_orderregister",
    "mastercustomer",
    "Database_despatch",
    "Database_weightment",
    "Database_despatchinvoice",
    "Database_sku",
    "Database_stockregister",
    "Database_rejectedstock",
    "Database_quarantinestock",
    "Database_grade",
    "Database_condition",
    "Database_shape",
    "Database_size",
    "Database_production",
)


@dataclass(frozen=True)
class ColumnInfo:
    name: str
    type: str
    nullable: bool
    key: str = ""
    default: Optional[str] = None


RELATIONSHIP_NOTES = """
TABLE RELATIONSHIPS:
- Database_orderregister.customer_id -> mastercustomer.id
- Database_orderregister.grade_id -> Database_grade.id
- Database_orderregister.condition_id -> Database_condition.id
- Database_orderregister.shape_id -> Database_shape.id
- Database_orderregister.size_id -> Database_size.id
- Database_orderregister.id -> Database_despatch.order_no_id
- Database_despatch.despatchno -> Database_weightment.despatch_no
- Database_despatch.despatchno -> Database_despatchinvoice.despatch_no
- Database_stockregister.sku_id -> Database_sku.id
- Database_rejectedstock.sku_id -> Database_sku.id
- Database_quarantinestock.sku_id -> Database_sku.id
- Database_production.customer_id -> mastercustomer.id
- Database_production.grade_id -> Database_grade.id
- Database_production.condition_id -> Database_condition.id
- Database_production.shape_id -> Database_shape.id
- Database_production.finish_metal_size_id -> Database_size.id

SKU FORMAT: The SKU for an order or production record is built as:
  CONCAT(g.name, ' - ', cond.name, ' - ', sh.name, ' - ', sz.name)
where g = Database_grade, cond = Database_condition, sh = Database_shape, sz = Database_size

PRODUCTION STATUS LABELS:
- status = 'pending'     -> display as "Production Not Approved"
- status = 'in_progress' -> display as "Production Not Approved"
- status = 'completed'   -> display as "Completed"
- status = 'cancelled'   -> display as "Cancelled"
By default (when user asks for production pending), show status IN ('pending','in_progress') - both shown as "Production Not Approved".
Only show completed or cancelled when the user explicitly asks for them.
"""

COMMON_QUERIES = """
COMMON QUERIES:
- Order by number: SELECT from Database_orderregister WHERE order_number = ?
- Customer orders: JOIN Database_orderregister with mastercustomer
- Dispatch details: JOIN Database_despatch with Database_weightment and Database_despatchinvoice
- Order status: pending, in_progress, completed
- SKU list: SELECT from {schema}.Database_sku
- Regular stock: JOIN Database_stockregister with Database_sku on sku_id (closing_qty or closing_stock column)
- Rejected stock: JOIN Database_rejectedstock with Database_sku on sku_id
- Quarantine stock: JOIN Database_quarantinestock with Database_sku on sku_id
"""


def _capitalization_notes(tables: Sequence[str]) -> str:
    lines = ["", "IMPORTANT: Use correct table name capitalization:"]
    for table in tables:
        hint = "lowercase m" if table[0].islower() else "capital D"
        lines.append(f"- {table} ({hint})")
    return "\n".join(lines) + "\n"


class SchemaCatalogService:
    """
    Column metadata for the catalog tables.

    Nothing is cached between calls; every describe_schema() reads
    information_schema again through the query executor.
    """

    def __init__(self, executor: QueryExecutor, tables: Sequence[str] = CATALOG_TABLES):
        self._executor = executor
        self._tables = tuple(tables)

    @property
    def tables(self) -> Sequence[str]:
        return self._tables

    async def fetch_columns(self, tables: Optional[Sequence[str]] = None) -> Dict[str, List[ColumnInfo]]:
        """
        Fetch column metadata per table, in catalog order.

        Raises:
            SchemaUnavailableException: Metadata query failed or returned nothing
        """
        tables = tuple(tables or self._tables)
        placeholders = ", ".join(["%s"] * len(tables))
        sql = (
            "SELECT TABLE_NAME AS table_name, COLUMN_NAME AS column_name, "
            "COLUMN_TYPE AS column_type, IS_NULLABLE AS is_nullable, "
            "COLUMN_KEY AS column_key, COLUMN_DEFAULT AS column_default "
            "FROM information_schema.COLUMNS "
            f"WHERE TABLE_SCHEMA = %s AND TABLE_NAME IN ({placeholders}) "
            "ORDER BY TABLE_NAME, ORDINAL_POSITION"
        )
        result = await self._executor.execute(sql, [self._executor.database, *tables])

        if not result.success:
            raise SchemaUnavailableException(
                f"Failed to get database schema: {result.error}",
                details={"database": self._executor.database}
            )
        if not result.rows:
            raise SchemaUnavailableException(
                "Failed to get database schema: no columns found",
                details={"database": self._executor.database}
            )

        columns: Dict[str, List[ColumnInfo]] = {table: [] for table in tables}
        for row in result.rows:
            table = row["table_name"]
            if table not in columns:
                continue
            columns[table].append(ColumnInfo(
                name=row["column_name"],
                type=row["column_type"],
                nullable=row.get("is_nullable") == "YES",
                key=row.get("column_key") or "",
                default=row.get("column_default"),
            ))

        missing = [table for table, cols in columns.items() if not cols]
        if missing:
            logger.warning(f"Schema catalog tables without columns: {', '.join(missing)}")

        return columns

    @staticmethod
    def render(columns: Dict[str, List[ColumnInfo]], schema: str) -> str:
        """Render column metadata plus the static relationship notes"""
        parts: List[str] = []
        for table, cols in columns.items():
            parts.append(f"\nTable: {table}\n")
            parts.append("Columns:\n")
            for col in cols:
                line = f"  - {col.name} ({col.type})"
                if col.key == "PRI":
                    line += " PRIMARY KEY"
                elif col.key == "MUL":
                    line += " FOREIGN KEY"
                parts.append(line + "\n")

        parts.append(RELATIONSHIP_NOTES)
        parts.append(_capitalization_notes(list(columns)))
        parts.append(COMMON_QUERIES.format(schema=schema))
        return "".join(parts)

    async def describe_schema(self) -> str:
        """
        Schema text for prompt construction.

        Raises:
            SchemaUnavailableException: Metadata could not be fetched
        """
        columns = await self.fetch_columns()
        logger.debug(f"Schema catalog loaded for {len(columns)} tables")
        return self.render(columns, self._executor.database)
