"""
Query Executor
Single entry point for every statement: read-only guard, then pooled execution
"""

import logging
from typing import Any, Optional, Sequence

from erpchat.core.exceptions import DatabaseException, GuardRejectionException
from erpchat.core.mysql_client import MySQLClient
from erpchat.core.sql_guard import check_read_only, normalize_whitespace
from erpchat.models.query_models import ExecutionResult

logger = logging.getLogger(__name__)


class QueryExecutor:
    """
    Runs hand-written and generated SQL alike.

    Never raises: guard rejections and driver errors come back as a failed
    ExecutionResult so callers always have a result shape to branch on.
    """

    def __init__(self, client: MySQLClient):
        self._client = client

    @property
    def database(self) -> str:
        return self._client.database

    def table(self, name: str) -> str:
        """Fully-qualified table name"""
        return f"{self._client.database}.{name}"

    async def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> ExecutionResult:
        """
        Execute one SELECT statement.

        Args:
            sql: Statement with %s placeholders
            params: Values bound to the placeholders

        Returns:
            ExecutionResult with rows as dictionaries
        """
        try:
            check_read_only(sql)
        except GuardRejectionException as e:
            logger.warning(f"SQL rejected by guard: {e.message}")
            return ExecutionResult.failed(e.message)

        param_count = len(params) if params else 0
        logger.info(f"Executing SQL ({param_count} params): {normalize_whitespace(sql)}")

        try:
            rows = await self._client.fetch_all(sql, params)
        except DatabaseException as e:
            logger.error(f"SQL execution error: {e.message}")
            return ExecutionResult.failed(e.message)

        logger.info(f"Query returned {len(rows)} rows")
        return ExecutionResult.ok(rows)
