"""
SQL Synthesis Service
Builds the generation prompt, cleans the generated SQL, verifies the access
scope was applied and executes the statement
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Tuple

from erpchat.core.exceptions import ScopeViolationException
from erpchat.core.generation_client import GenerationClient
from erpchat.core.sql_guard import clean_generated_sql
from erpchat.models.query_models import (
    ORDER_TABLE,
    AccessScope,
    CustomerMatch,
    QueryResult,
)
from erpchat.services.entity_resolver_service import EntityResolverService
from erpchat.services.query_executor import QueryExecutor
from erpchat.services.schema_catalog_service import SchemaCatalogService

logger = logging.getLogger(__name__)

PREAMBLE = "You are a SQL expert for Thirupathybright Industries database."
RESPONSE_FORMAT = "Return ONLY valid SQL query, nothing else. No explanations, no markdown, just SQL."

_space_re = re.compile(r"\s+")
_comment_re = re.compile(r"--[^\n]*|/\*.*?\*/", re.DOTALL)


def build_rules(schema: str) -> Tuple[Tuple[str, str], ...]:
    """Numbered business rules as (label, text) pairs"""
    return (
        ("1", "ONLY generate SELECT queries (no INSERT, UPDATE, DELETE)"),
        ("2", f"Always use fully qualified table names: {schema}.table_name"),
        ("3", "Use JOINs when data from multiple tables is needed"),
        ("4", "For order lookup: ALWAYS SELECT ALL FIELDS (o.*) from Database_orderregister and include customer name and SKU"),
        ("5", "For customer info: JOIN with mastercustomer to get customer_name"),
        ("5a", "For SKU: ALWAYS JOIN Database_grade, Database_condition, Database_shape, Database_size and build:\n"
               "    CONCAT(g.name, ' - ', cond.name, ' - ', sh.name, ' - ', sz.name) AS sku"),
        ("6", "For dispatch tracking: Use subqueries or JOINs to calculate:\n"
              "   - Total dispatched quantity: SUM of weightment_weight from Database_weightment\n"
              "   - Remaining quantity: order quantity_kg - total dispatched\n"
              "   - Number of dispatches completed"),
        ("7", "Field name mappings:\n"
              "   - Database_despatch has 'despatchno' (no underscore) - NOTE: Capital 'D'\n"
              "   - Database_weightment has 'despatch_no' (with underscore)\n"
              "   - Database_despatchinvoice has 'despatch_no' (with underscore) - NOTE: Capital 'D'"),
        ("8", "For order status queries, include:\n"
              "   - ALL order fields (order_number, po_number, po_date, quantity_kg, rate, material, payment_terms, etc.)\n"
              "   - Customer name from mastercustomer\n"
              "   - Total dispatched weight\n"
              "   - Remaining quantity to dispatch\n"
              "   - Dispatch count"),
        ("9", "Use LIMIT to prevent large result sets (max 50 rows)"),
        ("10", "CUSTOMER NAME FILTERING: If a customer_id IN filter is provided above, use that. Otherwise if the\n"
               "    question mentions a company name, use: c.customer_name LIKE '%KEYWORD%' (case-insensitive)."),
        ("11", "STOCK QUERIES - when the user asks about stock, inventory, closing stock, or SKU:\n"
               f"    - For SKU list: SELECT * FROM {schema}.Database_sku\n"
               "    - For regular stock: JOIN Database_stockregister with Database_sku on sku_id\n"
               "    - For rejected stock: JOIN Database_rejectedstock with Database_sku on sku_id\n"
               "    - For quarantine stock: JOIN Database_quarantinestock with Database_sku on sku_id\n"
               "    - When filtering by SKU name/code, always use LIKE (case-insensitive): LOWER(sk.skuname) LIKE LOWER('%keyword%')\n"
               "    - The closing quantity column may be named closing_qty or closing_stock - use whichever exists per the schema above\n"
               "    - Do NOT apply marketing_person filter to stock/SKU tables (they are not order tables)\n"
               "    - Do NOT apply customer_id filter to stock/SKU tables (they are not order tables)"),
        ("12", "STATUS RULE - CRITICAL:\n"
               "    - \"pending\" or \"pending orders\" means NOT completed and NOT cancelled.\n"
               "      Use: o.status IN ('pending', 'in_progress')\n"
               "    - \"in progress\" or \"in_progress\" means ONLY: o.status = 'in_progress'\n"
               "    - \"completed\" means ONLY: o.status = 'completed'\n"
               "    - Never use o.status = 'pending' alone when the user asks for pending orders."),
    )


def build_example(schema: str) -> str:
    return (
        "SELECT\n"
        "  o.*,\n"
        "  c.customer_name,\n"
        "  CONCAT(g.name, ' - ', cond.name, ' - ', sh.name, ' - ', sz.name) AS sku,\n"
        "  COALESCE(SUM(w.weightment_weight), 0) as total_dispatched,\n"
        "  (o.quantity_kg - COALESCE(SUM(w.weightment_weight), 0)) as remaining_qty,\n"
        "  COUNT(DISTINCT d.despatchno) as dispatch_count\n"
        f"FROM {schema}.Database_orderregister o\n"
        f"LEFT JOIN {schema}.mastercustomer c ON o.customer_id = c.id\n"
        f"LEFT JOIN {schema}.Database_grade g ON o.grade_id = g.id\n"
        f"LEFT JOIN {schema}.Database_condition cond ON o.condition_id = cond.id\n"
        f"LEFT JOIN {schema}.Database_shape sh ON o.shape_id = sh.id\n"
        f"LEFT JOIN {schema}.Database_size sz ON o.size_id = sz.id\n"
        f"LEFT JOIN {schema}.Database_despatch d ON d.order_no_id = o.id\n"
        f"LEFT JOIN {schema}.Database_weightment w ON w.despatch_no = d.despatchno\n"
        "WHERE o.status IN ('pending', 'in_progress')\n"
        "  AND o.customer_id IN (1929)\n"
        "GROUP BY o.id"
    )


def build_scope_clause(scope: AccessScope) -> Optional[str]:
    """Security instruction for the order table, None when unrestricted"""
    predicate = scope.predicate()
    if predicate is None:
        return None
    if len(scope.values) == 1:
        audience = f"marketing person: {scope.values[0]}"
    else:
        audience = f"these marketing persons: {', '.join(scope.values)}"
    return (
        "CRITICAL SECURITY FILTER:\n"
        f"You MUST add this WHERE clause to ALL queries involving {ORDER_TABLE}:\n"
        f"WHERE {predicate}\n\n"
        f"This user can ONLY see orders assigned to {audience}\n"
        "Always include this filter in your SQL queries. This is a security requirement."
    )


def build_customer_filter(match: Optional[CustomerMatch]) -> Optional[str]:
    if match is None:
        return None
    ids = ", ".join(str(i) for i in match.ids)
    return (
        "CUSTOMER FILTER (pre-resolved from database):\n"
        f"The question refers to customer keyword \"{match.keyword}\".\n"
        f"Matched customers in mastercustomer: {', '.join(match.names)}\n"
        f"Their customer IDs are: {ids}\n"
        f"You MUST filter orders using: o.customer_id IN ({ids})\n"
        "Do NOT use LIKE on customer_name - use the customer_id IN filter instead."
    )


@dataclass(frozen=True)
class SqlPromptSpec:
    """
    Structured generation prompt.

    Kept as fields until render() so tests can assert on each part without
    diffing the whole prompt.
    """
    question: str
    schema_text: str
    rules: Tuple[Tuple[str, str], ...]
    example: str
    scope_clause: Optional[str] = None
    customer_filter: Optional[str] = None

    def render(self) -> str:
        header = PREAMBLE
        for block in (self.scope_clause, self.customer_filter):
            if block:
                header += f"\n\n{block}"

        rules = "\n".join(f"{label}. {text}" for label, text in self.rules)
        return (
            f"{header}\n\n"
            f"DATABASE SCHEMA:\n{self.schema_text}\n\n"
            f"IMPORTANT RULES:\n{rules}\n\n"
            f"EXAMPLE for pending customer orders (includes in_progress):\n{self.example}\n\n"
            f"RESPONSE FORMAT:\n{RESPONSE_FORMAT}\n\n"
            f"Generate SQL query for: {self.question}"
        )


def _compact(text: str) -> str:
    return _space_re.sub("", text).lower()


def verify_scope(sql: str, scope: AccessScope) -> None:
    """
    Require the scope predicate in SQL that reads the order table.

    Comments are dropped, then comparison ignores whitespace and case. This
    is a textual presence check like the read-only guard: a predicate
    weakened by an OR branch still passes.

    Raises:
        ScopeViolationException: Order table referenced without the predicate
    """
    predicate = scope.predicate()
    if predicate is None:
        return
    compact_sql = _compact(_comment_re.sub(" ", sql))
    if ORDER_TABLE.lower() not in compact_sql:
        return
    if _compact(predicate) not in compact_sql:
        raise ScopeViolationException(
            f"Generated query does not apply the required access filter: {predicate}",
            predicate=predicate,
        )


class SqlSynthesisService:
    """Fallback path for questions no fast-path answers"""

    def __init__(
        self,
        executor: QueryExecutor,
        catalog: SchemaCatalogService,
        resolver: EntityResolverService,
        generator: GenerationClient,
    ):
        self._executor = executor
        self._catalog = catalog
        self._resolver = resolver
        self._generator = generator

    async def build_prompt_spec(self, question: str, scope: AccessScope) -> SqlPromptSpec:
        """
        Assemble the prompt parts.

        Raises:
            SchemaUnavailableException: Schema metadata could not be fetched
        """
        schema = self._executor.database
        schema_text = await self._catalog.describe_schema()

        match = await self._resolver.find_customer_in_question(question)
        if match:
            logger.info(
                f"[OK] Pre-resolved customer keyword '{match.keyword}' -> IDs: "
                f"{match.ids} ({', '.join(match.names)})"
            )

        return SqlPromptSpec(
            question=question,
            schema_text=schema_text,
            rules=build_rules(schema),
            example=build_example(schema),
            scope_clause=build_scope_clause(scope),
            customer_filter=build_customer_filter(match),
        )

    async def generate_sql(self, spec: SqlPromptSpec) -> str:
        """
        Raises:
            GenerationBackendException: Backend failed or returned no text
        """
        raw = await self._generator.complete(spec.render())
        sql = clean_generated_sql(raw)
        logger.info(f"[SQL] Generated SQL:\n{sql}")
        return sql

    async def query_from_natural_language(self, question: str, scope: AccessScope) -> QueryResult:
        """
        Generate, verify and execute SQL for a question.

        Guard rejections and driver errors come back as a failed result.

        Raises:
            SchemaUnavailableException: Schema metadata could not be fetched
            GenerationBackendException: Backend failed or returned no text
            ScopeViolationException: Generated SQL skipped the access filter
        """
        spec = await self.build_prompt_spec(question, scope)
        sql = await self.generate_sql(spec)
        verify_scope(sql, scope)

        execution = await self._executor.execute(sql)
        return QueryResult.from_execution(sql, execution)
