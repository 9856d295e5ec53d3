"""
Query composition helpers

Shared by every repository: limit/offset clamping, date normalization and a
small conjunction builder for WHERE clauses.
"""
from datetime import date, datetime
from typing import Any, List, Optional, Tuple

from dateutil import parser as date_parser

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


def clamp_limit(limit: Optional[int], default: int = DEFAULT_PAGE_SIZE, maximum: int = MAX_PAGE_SIZE) -> int:
    """
    Effective page size: absent or non-positive -> default, above cap -> cap.

    >>> clamp_limit(None), clamp_limit(0), clamp_limit(500), clamp_limit(25)
    (50, 50, 200, 25)
    """
    if limit is None or limit <= 0:
        return default
    return min(limit, maximum)


def clamp_offset(offset: Optional[int]) -> int:
    if offset is None or offset <= 0:
        return 0
    return offset


def normalize_date(value: Any) -> Optional[str]:
    """
    Normalize a date-like value to 'YYYY-MM-DD'.

    Accepts date/datetime objects and free-form date strings. Ambiguous
    slashed dates read month-first ("03/04/2025" is March 4th). Anything
    unparseable returns None, which callers treat as "no filter".
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    try:
        return date_parser.parse(text, dayfirst=False).date().isoformat()
    except (ValueError, OverflowError):
        return None


def as_float(value: Any) -> float:
    """NUMERIC/NULL aggregate -> float (NULL sums become 0.0)."""
    if value is None:
        return 0.0
    return float(value)


def as_int(value: Any) -> int:
    return int(value) if value is not None else 0


class QueryFilter:
    """
    Conjunction of SQL predicates built from optional parameters.

    Absent values (None, or empty strings for text filters) add no predicate,
    so a filter built from an empty parameter object matches every row.

    Example:
        qf = QueryFilter().equals("bill_to_party_code", code).date_range("invoice_date", start, end)
        cursor.execute(f"SELECT * FROM invoice WHERE {qf.where()}", qf.params)
    """

    def __init__(self):
        self.conditions: List[str] = []
        self.params: List[Any] = []

    def raw(self, clause: str, *params: Any) -> "QueryFilter":
        self.conditions.append(clause)
        self.params.extend(params)
        return self

    def equals(self, column: str, value: Any) -> "QueryFilter":
        if value is None or value == "":
            return self
        return self.raw(f"{column} = %s", value)

    def iequals(self, column: str, value: Optional[str]) -> "QueryFilter":
        if not value:
            return self
        return self.raw(f"LOWER({column}) = LOWER(%s)", value)

    def ilike(self, column: str, value: Optional[str]) -> "QueryFilter":
        if not value:
            return self
        return self.raw(f"{column} ILIKE %s", f"%{value}%")

    def gte(self, column: str, value: Any) -> "QueryFilter":
        if value is None:
            return self
        return self.raw(f"{column} >= %s", value)

    def lte(self, column: str, value: Any) -> "QueryFilter":
        if value is None:
            return self
        return self.raw(f"{column} <= %s", value)

    def date_range(self, column: str, from_date: Any = None, to_date: Any = None) -> "QueryFilter":
        """Inclusive range on normalized YYYY-MM-DD bounds; bad input is ignored."""
        self.gte(column, normalize_date(from_date))
        self.lte(column, normalize_date(to_date))
        return self

    def where(self) -> str:
        return " AND ".join(self.conditions) if self.conditions else "TRUE"

    def build(self) -> Tuple[str, List[Any]]:
        return self.where(), list(self.params)
