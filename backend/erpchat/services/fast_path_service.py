"""
Fast-Path Service

Answers high-frequency question shapes with hand-written parameterized SQL,
bypassing SQL generation. Routes are evaluated in a fixed order; later
predicates assume earlier ones did not match:

1. Bar-type stock totals ("black bar", "bright bar", "total stock")
2. Production-plan number lookup ("PP-2602-1595")
3. Production status listing (mentions "production")
4. Stock by SKU ("stock EN1A-Black-COIL-10")

None of these queries touch the order table, so no access scope applies.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, FrozenSet, List, Optional, Tuple

from erpchat.core.exceptions import DatabaseException
from erpchat.models.query_models import QueryResult, Row
from erpchat.services.entity_resolver_service import EntityResolverService
from erpchat.services.query_executor import QueryExecutor
from erpchat.utils.formatting import RULE, format_quantity, sum_field

logger = logging.getLogger(__name__)


# (source tag, table, alias) in merge order
STOCK_SOURCES: Tuple[Tuple[str, str, str], ...] = (
    ("regular", "Database_stockregister", "s"),
    ("rejected", "Database_rejectedstock", "r"),
    ("quarantine", "Database_quarantinestock", "q"),
)
STOCK_SOURCE_FIELD = "_stock_source"

BLACK_BAR_FLAG = 1
BRIGHT_BAR_FLAG = 0

_black_bar_re = re.compile(r"black\s*bar", re.IGNORECASE)
_bright_bar_re = re.compile(r"bright\s*bar", re.IGNORECASE)
_grand_total_re = re.compile(
    r"\b(total|grand|all)\b.*\bstock\b|\bstock\b.*\b(total|grand|all)\b",
    re.IGNORECASE,
)
_pp_number_re = re.compile(r"\b(PP[-\s]\d{4}[-\s]\d+)\b", re.IGNORECASE)
_pp_prefix_re = re.compile(r"^PP[-\s]", re.IGNORECASE)
_production_re = re.compile(r"\bproduction\b", re.IGNORECASE)
_completed_re = re.compile(r"\bcompleted?\b", re.IGNORECASE)
_cancelled_re = re.compile(r"\bcancel(?:led)?\b", re.IGNORECASE)
_leading_stock_re = re.compile(r"^stock\s+", re.IGNORECASE)
_trailing_stock_re = re.compile(r"\s+stock$", re.IGNORECASE)
_sku_shape_re = re.compile(r"^[a-zA-Z0-9]+([-\s][a-zA-Z0-9.]+){1,8}$")

# Words that mark a sentence rather than a SKU code
NATURAL_LANGUAGE_WORDS: FrozenSet[str] = frozenset({
    "what", "whats", "how", "show", "list", "give", "get", "find", "fetch",
    "tell", "is", "are", "the", "a", "an", "of", "for", "in", "all", "me",
    "check", "any", "current", "available", "total", "remaining",
    # order vocabulary
    "order", "orders", "pending", "completed", "progress", "inprogress",
    "dispatch", "dispatches", "invoice", "invoices", "status", "customer",
    # production vocabulary
    "production", "plan", "data", "number", "pp",
    # company-name vocabulary
    "pvt", "ltd", "private", "limited", "india", "industries", "company",
    "corp", "corporation", "enterprises", "solutions", "services", "group",
    "hose", "pipe", "steel", "metals", "forging", "casting", "engineering",
})


def wants_completed(text: Optional[str]) -> bool:
    return bool(_completed_re.search(text or ""))


def wants_cancelled(text: Optional[str]) -> bool:
    return bool(_cancelled_re.search(text or ""))


def requested_bar_flags(question: str) -> Tuple[int, ...]:
    """
    Bar flags a stock-total question asks for.

    Both flags for a grand total, or when both bar types are named.
    """
    has_black = bool(_black_bar_re.search(question))
    has_bright = bool(_bright_bar_re.search(question))
    if has_black and has_bright:
        return (BLACK_BAR_FLAG, BRIGHT_BAR_FLAG)
    if has_black:
        return (BLACK_BAR_FLAG,)
    if has_bright:
        return (BRIGHT_BAR_FLAG,)
    if _grand_total_re.search(question):
        return (BLACK_BAR_FLAG, BRIGHT_BAR_FLAG)
    return ()


def is_bar_stock_question(question: str) -> bool:
    return bool(requested_bar_flags(question))


def find_pp_number(question: str) -> Optional[str]:
    """PP number normalised to PP-YYYY-N form, or None"""
    match = _pp_number_re.search(question)
    if not match:
        return None
    return re.sub(r"\s", "-", match.group(1)).upper()


def is_production_question(question: str) -> bool:
    return bool(_production_re.search(question))


def production_status_clause(question: str) -> str:
    if wants_completed(question):
        return "p.status = 'completed'"
    if wants_cancelled(question):
        return "p.status = 'cancelled'"
    return "p.status IN ('pending', 'in_progress')"


def extract_sku_keyword(question: str) -> Optional[str]:
    """
    SKU keyword for a stock lookup, or None when the text reads as a sentence.

    A leading or trailing "stock" word is stripped first. The remainder
    qualifies when it has no natural-language word and either the stock
    word was present or the remainder has a SKU shape.
    """
    text = question.strip()
    stripped = _trailing_stock_re.sub("", _leading_stock_re.sub("", text)).strip()
    had_stock_word = len(stripped) < len(text)

    words = stripped.lower().split()
    if any(word in NATURAL_LANGUAGE_WORDS for word in words):
        return None
    if had_stock_word or _sku_shape_re.match(stripped):
        return stripped or None
    return None


@dataclass(frozen=True)
class BarTotals:
    regular: float
    rejected: float
    quarantine: float

    @property
    def total(self) -> float:
        return self.regular + self.rejected + self.quarantine


def render_single_bar(label: str, totals: BarTotals) -> str:
    return (
        f"{label} Stock Summary:\n"
        f"{RULE}\n\n"
        f"Regular Stock    : {format_quantity(totals.regular)}\n"
        f"Rejected Stock   : {format_quantity(totals.rejected)}\n"
        f"Quarantine Stock : {format_quantity(totals.quarantine)}\n"
        f"{RULE}\n"
        f"Total Stock      : {format_quantity(totals.total)}\n"
    )


def render_grand_total(black: BarTotals, bright: BarTotals) -> str:
    out = f"Total Stock Summary:\n{RULE}\n\n"
    for label, totals in (("Black Bar", black), ("Bright Bar", bright)):
        out += (
            f"{label}:\n"
            f"  Regular Stock    : {format_quantity(totals.regular)}\n"
            f"  Rejected Stock   : {format_quantity(totals.rejected)}\n"
            f"  Quarantine Stock : {format_quantity(totals.quarantine)}\n"
            f"  Sub-Total        : {format_quantity(totals.total)}\n\n"
        )
    out += f"{RULE}\n"
    out += f"Grand Total        : {format_quantity(black.total + bright.total)}\n"
    return out


@dataclass(frozen=True)
class FastPathRoute:
    """One entry of the ordered fast-path list"""
    name: str
    predicate: Callable[[str], bool]
    handler: Callable[[str], Awaitable[QueryResult]]


class FastPathService:
    """Ordered (predicate, handler) routes over hand-written SQL"""

    def __init__(self, executor: QueryExecutor, resolver: EntityResolverService):
        self._executor = executor
        self._resolver = resolver
        self.routes: List[FastPathRoute] = [
            FastPathRoute("bar_stock_totals", is_bar_stock_question, self.bar_stock_totals),
            FastPathRoute("pp_number_lookup", lambda q: find_pp_number(q) is not None, self.pp_number_lookup),
            FastPathRoute("production_listing", is_production_question, self.production_listing),
            FastPathRoute("sku_stock_lookup", lambda q: extract_sku_keyword(q) is not None, self.sku_stock_lookup),
        ]

    def classify(self, question: str) -> Optional[FastPathRoute]:
        """First route whose predicate accepts the question"""
        for route in self.routes:
            if route.predicate(question):
                return route
        return None

    async def run(self, question: str) -> Optional[QueryResult]:
        """Answer through the first matching route, None when no route matches"""
        route = self.classify(question)
        if route is None:
            return None
        logger.info(f"[FAST] Fast-path '{route.name}' matched")
        return await route.handler(question)

    def _production_sql(self, where: str) -> str:
        t = self._executor.table
        return (
            "SELECT\n"
            "  p.*,\n"
            "  c.customer_name,\n"
            "  CONCAT(g.name, ' - ', cond.name, ' - ', sh.name, ' - ', sz.name) AS sku\n"
            f"FROM {t('Database_production')} p\n"
            f"LEFT JOIN {t('mastercustomer')} c ON p.customer_id = c.id\n"
            f"LEFT JOIN {t('Database_grade')} g ON p.grade_id = g.id\n"
            f"LEFT JOIN {t('Database_condition')} cond ON p.condition_id = cond.id\n"
            f"LEFT JOIN {t('Database_shape')} sh ON p.shape_id = sh.id\n"
            f"LEFT JOIN {t('Database_size')} sz ON p.finish_metal_size_id = sz.id\n"
            f"{where}"
        )

    async def fetch_bar_totals(self, bar_flag: int) -> BarTotals:
        """
        Sum closing quantity per stock table for one bar flag, concurrently.

        Raises:
            DatabaseException: Any of the stock-table queries failed
        """
        t = self._executor.table
        queries = [
            (
                f"SELECT COALESCE({alias}.closing_qty, 0) AS closing_qty FROM {t(table)} {alias} "
                f"LEFT JOIN {t('Database_sku')} sk ON {alias}.sku_id = sk.id WHERE sk.is_blackbar = %s"
            )
            for _, table, alias in STOCK_SOURCES
        ]
        regular, rejected, quarantine = await asyncio.gather(
            *(self._executor.execute(sql, [bar_flag]) for sql in queries)
        )
        for (_, table, _), result in zip(STOCK_SOURCES, (regular, rejected, quarantine)):
            if not result.success:
                logger.error(f"Stock totals on {table} failed: {result.error}")
                raise DatabaseException(result.error or f"Stock query on {table} failed", {"table": table})
        return BarTotals(
            regular=sum_field(regular.rows, "closing_qty"),
            rejected=sum_field(rejected.rows, "closing_qty"),
            quarantine=sum_field(quarantine.rows, "closing_qty"),
        )

    async def bar_stock_totals(self, question: str) -> QueryResult:
        flags = requested_bar_flags(question)
        try:
            if len(flags) == 2:
                logger.info("[FAST] Grand total (Black Bar + Bright Bar) stock fast-path")
                black, bright = await asyncio.gather(
                    self.fetch_bar_totals(BLACK_BAR_FLAG),
                    self.fetch_bar_totals(BRIGHT_BAR_FLAG),
                )
                text = render_grand_total(black, bright)
            else:
                flag = flags[0]
                label = "Black Bar" if flag == BLACK_BAR_FLAG else "Bright Bar"
                logger.info(f"[FAST] {label} total stock fast-path")
                text = render_single_bar(label, await self.fetch_bar_totals(flag))
        except DatabaseException as e:
            return QueryResult.failure(e.message, query="bartype-stock")

        return QueryResult.direct(text, query="bartype-stock")

    async def pp_number_lookup(self, question: str) -> QueryResult:
        ppno = find_pp_number(question)
        pattern = f"%{_pp_prefix_re.sub('', ppno)}%"
        logger.info(f"[FAST] PP number fast-path for ppno: '{ppno}'")

        sql = self._production_sql(
            "WHERE UPPER(p.ppno) = %s OR UPPER(p.ppno) LIKE %s "
            "OR UPPER(p.ppnoreference) = %s OR UPPER(p.ppnoreference) LIKE %s"
        )
        result = await self._executor.execute(sql, [ppno, pattern, ppno, pattern])

        if not result.success or result.count == 0:
            return QueryResult.direct(
                f"Production plan {ppno} not found.\nPlease check the PP number and try again.",
                query=sql,
            )

        return QueryResult.from_execution(
            sql,
            result,
            is_production_query=True,
            status_context=question,
            pp_lookup=True,
        )

    async def production_listing(self, question: str) -> QueryResult:
        where = f"WHERE {production_status_clause(question)}"
        params: List[object] = []

        match = await self._resolver.find_customer_in_question(question)
        if match:
            ids = match.ids
            where += f" AND p.customer_id IN ({', '.join(['%s'] * len(ids))})"
            params.extend(ids)
            logger.info(f"[OK] Production customer filter: IDs {ids}")

        sql = self._production_sql(f"{where}\nORDER BY p.created_at DESC")
        result = await self._executor.execute(sql, params)
        return QueryResult.from_execution(
            sql,
            result,
            is_production_query=True,
            status_context=question,
        )

    async def sku_stock_lookup(self, question: str) -> QueryResult:
        keyword = extract_sku_keyword(question)
        logger.info(f"[FAST] Stock fast-path for SKU keyword: '{keyword}'")

        t = self._executor.table
        like = [f"%{keyword}%"]
        results = await asyncio.gather(*(
            self._executor.execute(
                f"SELECT {alias}.*, sk.skuname FROM {t(table)} {alias} "
                f"LEFT JOIN {t('Database_sku')} sk ON {alias}.sku_id = sk.id "
                "WHERE LOWER(sk.skuname) LIKE LOWER(%s)",
                like,
            )
            for _, table, alias in STOCK_SOURCES
        ))

        combined: List[Row] = []
        for (source, table, _), result in zip(STOCK_SOURCES, results):
            if not result.success:
                logger.warning(f"Stock lookup on {table} failed: {result.error}")
            combined.extend({**row, STOCK_SOURCE_FIELD: source} for row in result.rows)

        if not any(result.success for result in results):
            return QueryResult.failure(results[0].error or "Stock lookup failed", query="combined-stock")

        return QueryResult(
            success=True,
            query="combined-stock",
            data=combined,
            count=len(combined),
            is_stock_query=True,
        )

