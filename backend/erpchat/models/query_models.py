"""
Query Result Models
Result types passed between the executor, the fast-path chain, the formatter
and the engine facade, plus the caller's access scope
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

Row = Dict[str, Any]

ORDER_TABLE = "Database_orderregister"
SCOPE_COLUMN = "marketing_person"


@dataclass
class ExecutionResult:
    """Outcome of one statement run by the query executor"""
    success: bool
    rows: List[Row] = field(default_factory=list)
    count: int = 0
    error: Optional[str] = None

    @classmethod
    def ok(cls, rows: List[Row]) -> "ExecutionResult":
        return cls(success=True, rows=rows, count=len(rows))

    @classmethod
    def failed(cls, error: str) -> "ExecutionResult":
        return cls(success=False, rows=[], count=0, error=error)


@dataclass
class QueryResult:
    """
    Result of answering one question.

    ``direct_reply`` carries a pre-rendered reply (bar-type totals, PP not
    found). The ``is_stock_query``/``is_production_query`` flags and
    ``status_context``/``pp_lookup`` steer the formatter's shape detection.
    """
    success: bool
    query: Optional[str] = None
    data: List[Row] = field(default_factory=list)
    count: int = 0
    error: Optional[str] = None
    direct_reply: Optional[str] = None
    is_stock_query: bool = False
    is_production_query: bool = False
    status_context: Optional[str] = None
    pp_lookup: bool = False

    @classmethod
    def from_execution(cls, query: str, execution: ExecutionResult, **flags: Any) -> "QueryResult":
        return cls(
            success=execution.success,
            query=query,
            data=execution.rows,
            count=execution.count,
            error=execution.error,
            **flags,
        )

    @classmethod
    def failure(cls, error: str, query: Optional[str] = None) -> "QueryResult":
        return cls(success=False, query=query, data=[], count=0, error=error)

    @classmethod
    def direct(cls, text: str, query: str) -> "QueryResult":
        return cls(success=True, query=query, data=[], count=0, direct_reply=text)


@dataclass(frozen=True)
class CustomerMatch:
    """Customers matched by the first resolvable token of a question"""
    keyword: str
    customers: Tuple[Row, ...]

    @property
    def ids(self) -> List[Any]:
        return [c["id"] for c in self.customers]

    @property
    def names(self) -> List[str]:
        return [str(c.get("customer_name")) for c in self.customers]


class ReplyKind(str, Enum):
    """How a formatted reply is delivered"""
    DIRECT = "direct"    # send verbatim
    CONTEXT = "context"  # append to the user's message for a generation pass


@dataclass(frozen=True)
class FormattedReply:
    kind: ReplyKind
    text: str

    @property
    def is_direct(self) -> bool:
        return self.kind == ReplyKind.DIRECT

    def as_user_message(self, question: str) -> str:
        """User message for the next generation call"""
        if self.kind == ReplyKind.CONTEXT:
            return f"{question}\n\n{self.text}"
        return question


def _quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


@dataclass(frozen=True)
class AccessScope:
    """
    Owner values a caller may see on the order table.

    An empty scope is unrestricted.
    """
    values: Tuple[str, ...] = ()

    @classmethod
    def of(cls, values: Union[None, str, Iterable[str], "AccessScope"]) -> "AccessScope":
        if isinstance(values, AccessScope):
            return values
        if values is None:
            return cls()
        if isinstance(values, str):
            values = [values]

        seen: List[str] = []
        for value in values:
            if value is None:
                continue
            value = str(value).strip()
            if value and value not in seen:
                seen.append(value)
        return cls(tuple(seen))

    @property
    def is_unrestricted(self) -> bool:
        return not self.values

    def predicate(self, column: str = SCOPE_COLUMN) -> Optional[str]:
        """SQL filter for the scope, None when unrestricted"""
        if not self.values:
            return None
        if len(self.values) == 1:
            return f"{column} = {_quote(self.values[0])}"
        return f"{column} IN ({', '.join(_quote(v) for v in self.values)})"

    def __str__(self) -> str:
        return ", ".join(self.values) if self.values else "unrestricted"
