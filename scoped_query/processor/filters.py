"""Request filter and pagination parsing."""

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from ..plan.predicates import ColumnRef, Equality, FreeText, Range, TypeClass, column_list

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100
MAX_LIMIT = 1000

DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y")
RANGE_SEPARATOR = re.compile(r"\s+-\s+|\s+to\s+", re.IGNORECASE)


def parse_date(value: Any) -> Optional[date]:
    """Parse ``YYYY-MM-DD`` or ``MM/DD/YYYY``; anything else is None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def parse_date_range(value: Optional[str]) -> Optional[Tuple[datetime, datetime]]:
    """Parse ``"<start> - <end>"`` into an inclusive datetime range.

    The end extends to the last microsecond of its day. Returns None when
    either side does not parse.
    """
    if not value or not isinstance(value, str):
        return None
    parts = RANGE_SEPARATOR.split(value.strip(), maxsplit=1)
    if len(parts) != 2:
        return None
    start = parse_date(parts[0])
    end = parse_date(parts[1])
    if start is None or end is None:
        return None
    return datetime.combine(start, time.min), datetime.combine(end, time.max)


def _int_or_default(value: Any, default: int) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class Pagination:
    """LIMIT/OFFSET values, already clamped."""

    limit: int = DEFAULT_LIMIT
    offset: int = 0

    @classmethod
    def from_params(cls, params: Mapping[str, Any], max_limit: int = MAX_LIMIT) -> "Pagination":
        """Read ``limit``/``offset``; limit is clamped to 1..max_limit."""
        limit = _int_or_default(params.get("limit"), DEFAULT_LIMIT)
        offset = _int_or_default(params.get("offset"), 0)
        return cls(limit=min(max_limit, max(1, limit)), offset=max(0, offset))


@dataclass
class QueryFilters:
    """Ordinary list filters a caller may supply.

    Attributes:
        date_column: Column the date range applies to
        start: Inclusive lower bound
        end: Inclusive upper bound
        equals: Equality filters, applied in order
        search_term: Free-text term
        search_columns: Columns searched by the free-text term
    """

    date_column: Optional[ColumnRef] = None
    start: Any = None
    end: Any = None
    equals: List[Equality] = field(default_factory=list)
    search_term: Optional[str] = None
    search_columns: Tuple[ColumnRef, ...] = ()

    def add_equality(
        self,
        column: Any,
        value: Any,
        type_class: Optional[TypeClass] = None,
        case_insensitive: bool = False,
    ) -> "QueryFilters":
        if not isinstance(column, ColumnRef):
            column = ColumnRef(column)
        self.equals.append(Equality(column, value, type_class, case_insensitive))
        return self

    def date_range(self) -> Optional[Range]:
        if self.date_column is None or (self.start is None and self.end is None):
            return None
        return Range(self.date_column, self.start, self.end)

    def free_text(self) -> Optional[FreeText]:
        if self.search_term is None or not str(self.search_term).strip():
            return None
        if not self.search_columns:
            raise ValueError("A search term needs at least one search column")
        return FreeText(tuple(self.search_columns), self.search_term)

    @classmethod
    def from_params(
        cls,
        params: Mapping[str, Any],
        date_column: Optional[str] = None,
        equality_columns: Optional[Mapping[str, str]] = None,
        search_columns: Sequence[str] = (),
        qualifier: Optional[str] = None,
    ) -> "QueryFilters":
        """Build filters from request query arguments.

        Args:
            params: Request arguments (``start``, ``end``, ``date_range``,
                ``q`` and the keys of equality_columns)
            date_column: Column for the date range, if the list has one
            equality_columns: Request argument name -> column name, e.g.
                ``{"status": "status", "category": "category"}``
            search_columns: Columns searched by ``q``
            qualifier: Table alias applied to every column

        Returns:
            Parsed filters; unparseable dates are ignored

        Raises:
            ValueError: If a search term is given but no search columns
        """
        filters = cls()
        if date_column:
            filters.date_column = ColumnRef(date_column, qualifier)
            combined = parse_date_range(params.get("date_range"))
            if combined is not None:
                filters.start, filters.end = combined
            else:
                start = parse_date(params.get("start"))
                end = parse_date(params.get("end"))
                if start is not None:
                    filters.start = datetime.combine(start, time.min)
                if end is not None:
                    filters.end = datetime.combine(end, time.max)
                if params.get("start") and start is None:
                    logger.debug("Ignoring unparseable start date")
                if params.get("end") and end is None:
                    logger.debug("Ignoring unparseable end date")

        if equality_columns:
            for name, column in equality_columns.items():
                value = params.get(name)
                if value is None or str(value).strip() == "":
                    continue
                filters.add_equality(
                    ColumnRef(column, qualifier),
                    str(value).strip(),
                    case_insensitive=(name == "status"),
                )

        term = params.get("q")
        if term is not None and str(term).strip():
            if not search_columns:
                raise ValueError("A search term needs at least one search column")
            filters.search_term = str(term).strip()
            filters.search_columns = column_list(search_columns, qualifier)
        return filters
