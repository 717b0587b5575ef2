"""
Entity Resolver Service
Binds a customer-id filter from free text before any SQL is generated
"""

import logging
import re
from typing import FrozenSet, List, Optional

from erpchat.models.query_models import CustomerMatch, Row
from erpchat.services.query_executor import QueryExecutor

logger = logging.getLogger(__name__)

CUSTOMER_LOOKUP_LIMIT = 20

# Tokens that are never customer names
SKIP_WORDS: FrozenSet[str] = frozenset({
    "give", "me", "all", "show", "list", "get", "find", "fetch", "what",
    "are", "is", "was", "were", "have", "has", "do", "does", "did", "can",
    "pending", "completed", "in_progress", "inprogress", "progress",
    "order", "orders", "dispatch", "dispatches", "invoice", "invoices",
    "status", "detail", "details", "summary", "report", "available",
    "the", "a", "an", "and", "or", "of", "for", "by", "in", "on", "at",
    "my", "our", "their", "today", "yesterday", "week", "month", "year",
    "customer", "customers", "marketing", "person", "how", "many",
    "which", "where", "when", "who", "why", "please", "tell", "about",
    "stock", "sku", "inventory", "closing", "opening", "inward", "outward",
})

_non_alnum_re = re.compile(r"[^a-zA-Z0-9]")


def candidate_tokens(text: str) -> List[str]:
    """Tokens worth probing against customer names, in question order"""
    tokens = []
    for word in (text or "").split():
        clean = _non_alnum_re.sub("", word)
        if len(clean) < 2 or clean.lower() in SKIP_WORDS:
            continue
        tokens.append(clean)
    return tokens


class EntityResolverService:
    """
    First-match customer resolution.

    Tokens are tried one at a time in question order; the first token with
    any match wins. There is no scoring, so a token that is an English word
    missing from SKIP_WORDS can bind a wrong customer.
    """

    def __init__(self, executor: QueryExecutor):
        self._executor = executor

    async def lookup_customer_ids(self, keyword: str) -> List[Row]:
        """Case-insensitive substring lookup on customer name, capped at 20"""
        sql = (
            f"SELECT id, customer_name FROM {self._executor.table('mastercustomer')} "
            f"WHERE LOWER(customer_name) LIKE LOWER(%s) LIMIT {CUSTOMER_LOOKUP_LIMIT}"
        )
        result = await self._executor.execute(sql, [f"%{keyword}%"])
        if not result.success:
            logger.error(f"Customer lookup error for '{keyword}': {result.error}")
            return []

        logger.info(
            f"Customer lookup for '{keyword}': found {result.count} match(es): "
            f"{[r.get('customer_name') for r in result.rows]}"
        )
        return result.rows

    async def find_customer_in_question(self, text: str) -> Optional[CustomerMatch]:
        for token in candidate_tokens(text):
            customers = await self.lookup_customer_ids(token)
            if customers:
                return CustomerMatch(keyword=token, customers=tuple(customers))
        return None
