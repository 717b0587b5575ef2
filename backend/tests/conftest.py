"""Pytest configuration and shared fixtures."""
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import pytest

# Add backend root to path for imports
backend_root = Path(__file__).parent.parent
sys.path.insert(0, str(backend_root))

from erpchat.core.exceptions import DatabaseException, GenerationBackendException  # noqa: E402
from erpchat.core.lifespan import build_engine  # noqa: E402
from erpchat.services import (  # noqa: E402
    EntityResolverService,
    FastPathService,
    QueryExecutor,
    ResultFormatterService,
    SchemaCatalogService,
)

RowsOrFactory = Union[List[Dict[str, Any]], Callable[[str, List[Any]], List[Dict[str, Any]]]]


class FakeMySQLClient:
    """
    In-memory stand-in for MySQLClient.

    Responses are matched by a substring of the SQL text, first match wins.
    Every call is recorded as (sql, params).
    """

    def __init__(self, database: str = "thirupathybright"):
        self.database = database
        self.calls: List[tuple] = []
        self.healthy = True
        self._responses: List[tuple] = []

    def respond(self, marker: str, rows: RowsOrFactory = None, error: Optional[str] = None):
        self._responses.append((marker, rows if rows is not None else [], error))
        return self

    async def fetch_all(self, sql: str, params: Optional[Sequence[Any]] = None):
        params = list(params) if params else []
        self.calls.append((sql, params))
        for marker, rows, error in self._responses:
            if marker in sql:
                if error:
                    raise DatabaseException(error)
                produced = rows(sql, params) if callable(rows) else rows
                return [dict(r) for r in produced]
        return []

    async def health_check(self):
        return {"status": "healthy" if self.healthy else "unhealthy", "healthy": self.healthy}

    def sql_matching(self, marker: str) -> List[tuple]:
        return [call for call in self.calls if marker in call[0]]


class StubGenerationClient:
    """Returns canned completions and records prompts"""

    def __init__(self, reply: str = "SELECT 1", error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.prompts: List[str] = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.reply

    async def chat(self, messages):
        return await self.complete(messages[-1]["content"])

    async def close(self):
        pass


def customers_by_keyword(customers: List[Dict[str, Any]]):
    """Customer lookup responder: substring match on the LIKE parameter"""
    def responder(sql: str, params: List[Any]):
        keyword = params[0].strip("%").lower()
        return [c for c in customers if keyword in c["customer_name"].lower()]
    return responder


def schema_rows(tables: Sequence[str]):
    """information_schema rows: an id primary key and a name column per table"""
    rows = []
    for table in tables:
        rows.append({"table_name": table, "column_name": "id", "column_type": "int",
                     "is_nullable": "NO", "column_key": "PRI", "column_default": None})
        rows.append({"table_name": table, "column_name": "name", "column_type": "varchar(255)",
                     "is_nullable": "YES", "column_key": "", "column_default": None})
    return rows


@pytest.fixture
def fake_client():
    return FakeMySQLClient()


@pytest.fixture
def executor(fake_client):
    return QueryExecutor(fake_client)


@pytest.fixture
def resolver(executor):
    return EntityResolverService(executor)


@pytest.fixture
def catalog(executor):
    return SchemaCatalogService(executor)


@pytest.fixture
def fast_paths(executor, resolver):
    return FastPathService(executor, resolver)


@pytest.fixture
def formatter():
    return ResultFormatterService()


@pytest.fixture
def generator():
    return StubGenerationClient()


@pytest.fixture
def engine(fake_client, generator):
    return build_engine(fake_client, generator)


@pytest.fixture
def failing_generator():
    return StubGenerationClient(error=GenerationBackendException("Generation API error: 500 - boom", status_code=500))
