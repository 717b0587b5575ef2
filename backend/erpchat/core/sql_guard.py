"""
SQL Guard and Cleanup Utilities
Read-only gate applied to every statement, plus cleanup of generated SQL text
"""

from __future__ import annotations

import logging
import re
from typing import Tuple

from erpchat.core.exceptions import GuardRejectionException

logger = logging.getLogger(__name__)

# Matched as whole words anywhere in the statement, string literals and
# comments included. This is a textual gate, not a parser.
FORBIDDEN_KEYWORDS: Tuple[str, ...] = (
    "INSERT",
    "UPDATE",
    "DELETE",
    "DROP",
    "CREATE",
    "ALTER",
    "TRUNCATE",
    "REPLACE",
    "MERGE",
    "CALL",
    "EXEC",
    "GRANT",
    "REVOKE",
)

_FORBIDDEN_PATTERNS = tuple(
    (keyword, re.compile(rf"\b{keyword}\b")) for keyword in FORBIDDEN_KEYWORDS
)
_SELECT_PREFIX_RE = re.compile(r"^SELECT\b")

_code_fence_re = re.compile(r"```[a-zA-Z]*")
_limit_re = re.compile(
    r"\s*\bLIMIT\s+\d+(?:\s*,\s*\d+|\s+OFFSET\s+\d+)?",
    re.IGNORECASE,
)
_whitespace_re = re.compile(r"\s+")


def check_read_only(sql: str) -> None:
    """
    Reject anything that is not a plain SELECT.

    Raises:
        GuardRejectionException: Statement does not start with SELECT or
            contains a forbidden keyword (the keyword is attached)
    """
    normalized = (sql or "").strip().upper()

    if not _SELECT_PREFIX_RE.match(normalized):
        raise GuardRejectionException("Only SELECT queries are allowed")

    for keyword, pattern in _FORBIDDEN_PATTERNS:
        if pattern.search(normalized):
            raise GuardRejectionException(
                f"Query contains forbidden keyword: {keyword}",
                keyword=keyword,
            )


def strip_code_fences(text: str) -> str:
    """Remove Markdown code fences, with any language tag, from model output"""
    return _code_fence_re.sub("", text or "").strip()


def strip_limit_clauses(sql: str) -> str:
    """Remove every LIMIT clause; the full result set is always wanted"""
    return _limit_re.sub("", sql or "").strip()


def clean_generated_sql(text: str) -> str:
    """
    Turn raw model output into a single SQL statement.

    Fences are removed first, then LIMIT clauses, then trailing semicolons.
    """
    sql = strip_code_fences(text)
    sql = strip_limit_clauses(sql)
    sql = sql.rstrip()
    while sql.endswith(";"):
        sql = sql[:-1].rstrip()
    return sql


def normalize_whitespace(sql: str) -> str:
    """Collapse whitespace runs to single spaces"""
    return _whitespace_re.sub(" ", sql or "").strip()
