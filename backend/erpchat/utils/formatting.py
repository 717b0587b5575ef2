"""
Plain-text formatting helpers shared by the fast-paths and the result formatter
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

RULE = "─" * 30


def to_number(value: Any) -> Optional[float]:
    """Numeric value of a driver field, None when it is not a number"""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(Decimal(str(value).strip()))
    except (InvalidOperation, ValueError):
        return None


def format_quantity(value: Any) -> str:
    """
    Thousands separators and at most three decimals, trailing zeros dropped.

    1234.5 -> "1,234.5", 300 -> "300". Non-numeric values are returned as text.
    """
    number = to_number(value)
    if number is None:
        return "0" if value is None or value == "" else str(value)
    text = f"{number:,.3f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def sum_field(rows: Iterable[dict], field: str) -> float:
    """Sum a numeric field across rows, treating missing values as zero"""
    total = 0.0
    for row in rows:
        number = to_number(row.get(field))
        if number is not None:
            total += number
    return total


def display_value(value: Any) -> str:
    """
    Plain text for one field value.

    Numbers drop a zero fraction (Decimal("700.00") -> "700"), dates use ISO form.
    """
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (Decimal, float)):
        number = float(value)
        return str(int(number)) if number.is_integer() else str(number)
    return str(value)
