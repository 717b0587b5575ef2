"""
Query Engine
Entry point for chat handlers: free text in, formatted reply out
"""

import logging
from typing import Iterable, Optional, Union

from erpchat.core.exceptions import BaseAppException
from erpchat.core.logging_config import bind_request_context, clear_request_context, get_logger
from erpchat.models.order_models import OrderStatusView
from erpchat.models.query_models import AccessScope, FormattedReply, QueryResult
from erpchat.services.fast_path_service import FastPathService
from erpchat.services.order_status_service import OrderStatusService
from erpchat.services.result_formatter_service import ResultFormatterService
from erpchat.services.sql_synthesis_service import SqlSynthesisService

logger = logging.getLogger(__name__)
event_logger = get_logger(__name__)

ScopeInput = Union[None, str, Iterable[str], AccessScope]


class QueryEngine:
    """
    Facade over the fast-path chain, SQL synthesis and the formatter.

    Every failure past this boundary is returned as a failed QueryResult,
    so callers always have something to send back.
    """

    def __init__(
        self,
        fast_paths: FastPathService,
        synthesizer: SqlSynthesisService,
        formatter: ResultFormatterService,
        order_status: OrderStatusService,
    ):
        self.fast_paths = fast_paths
        self.synthesizer = synthesizer
        self.formatter = formatter
        self.order_status = order_status

    async def query_from_natural_language(
        self,
        question: str,
        scope_values: ScopeInput = None,
    ) -> QueryResult:
        """
        Answer a question with a fast-path when one matches, otherwise with
        generated SQL. An empty scope is unrestricted.
        """
        scope = AccessScope.of(scope_values)
        logger.info(f"[BOT] Processing natural language query: '{question}' [scope: {scope}]")

        try:
            result = await self.fast_paths.run(question)
            if result is not None:
                return result
            return await self.synthesizer.query_from_natural_language(question, scope)
        except BaseAppException as e:
            logger.error(f"[ERROR] Natural language query error [{e.error_code}]: {e.message}")
            return QueryResult.failure(e.message)

    async def answer(
        self,
        question: str,
        scope_values: ScopeInput = None,
        user_ref: Optional[str] = None,
    ) -> FormattedReply:
        """Run a question and format the result, with logging context bound"""
        scope = AccessScope.of(scope_values)
        bind_request_context(user_ref=user_ref, scope=scope.values)
        try:
            result = await self.query_from_natural_language(question, scope)
            reply = self.formatter.format(result)
            event_logger.info("reply_ready", kind=reply.kind.value, rows=result.count, success=result.success)
            return reply
        finally:
            clear_request_context()

    async def get_order_status(self, order_number: str) -> OrderStatusView:
        return await self.order_status.get_order_status(order_number)
