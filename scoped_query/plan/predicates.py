"""Typed predicate fragments.

Conditions are built as small immutable trees and only turned into SQL text
when compiled against a starting placeholder index. Compiling yields a
``Predicate``: the SQL fragment, its bound parameters, and the placeholder
range it occupies.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union

from .identifiers import column_reference, is_safe_identifier

logger = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r"\$(\d+)")

INT4_MAX = 2147483647


class TypeClass(Enum):
    """Comparison strategy for a column."""

    NUMERIC = "numeric"
    TEXT = "text"


@dataclass(frozen=True)
class Predicate:
    """A compiled SQL fragment with positional parameters.

    Placeholders in ``sql`` are numbered ``$start_index`` through
    ``$next_param_index - 1``.
    """

    sql: str
    params: Tuple[Any, ...] = ()
    start_index: int = 1

    @property
    def next_param_index(self) -> int:
        return self.start_index + len(self.params)

    def is_false(self) -> bool:
        return self.sql == "FALSE"

    def is_true(self) -> bool:
        return self.sql == "TRUE"

    def renumber(self, start_index: int) -> "Predicate":
        """Return the same predicate with placeholders starting at start_index."""
        if start_index == self.start_index:
            return self
        offset = start_index - self.start_index

        def shift(match):
            return f"${int(match.group(1)) + offset}"

        sql = PLACEHOLDER.sub(shift, self.sql)
        return Predicate(sql=sql, params=self.params, start_index=start_index)

    def and_(self, other: "Predicate") -> "Predicate":
        """Combine with AND, renumbering other after this predicate."""
        if self.is_false():
            return self
        if other.is_false():
            return false_predicate(self.start_index)
        if self.is_true():
            return other.renumber(self.start_index)
        if other.is_true():
            return self
        shifted = other.renumber(self.next_param_index)
        return Predicate(
            sql=f"({self.sql}) AND ({shifted.sql})",
            params=self.params + shifted.params,
            start_index=self.start_index,
        )

    def or_(self, other: "Predicate") -> "Predicate":
        """Combine with OR, renumbering other after this predicate."""
        if self.is_true():
            return self
        if other.is_true():
            return true_predicate(self.start_index)
        if self.is_false():
            return other.renumber(self.start_index)
        if other.is_false():
            return self
        shifted = other.renumber(self.next_param_index)
        return Predicate(
            sql=f"({self.sql} OR {shifted.sql})",
            params=self.params + shifted.params,
            start_index=self.start_index,
        )

    def __repr__(self) -> str:
        return f"Predicate({self.sql!r}, params={len(self.params)})"


def false_predicate(start_index: int = 1) -> Predicate:
    """A predicate that never matches and binds nothing."""
    return Predicate(sql="FALSE", params=(), start_index=start_index)


def true_predicate(start_index: int = 1) -> Predicate:
    """A predicate that always matches and binds nothing."""
    return Predicate(sql="TRUE", params=(), start_index=start_index)


def parse_integer(value: Any) -> Optional[int]:
    """Return value as an int if it is an integer or an integer literal.

    Booleans, fractional numbers, and anything else return None. Strings are
    never coerced beyond an optional sign and surrounding whitespace.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        try:
            if value == int(value):
                return int(value)
        except (ValueError, OverflowError, ArithmeticError):
            pass
        return None
    if isinstance(value, str):
        text = value.strip()
        if re.fullmatch(r"[+-]?\d+", text):
            return int(text)
    return None


@dataclass(frozen=True)
class ColumnRef:
    """A column name, possibly unresolved, with an optional table alias."""

    name: Optional[str]
    qualifier: Optional[str] = None

    def render(self) -> Optional[str]:
        """Return SQL text for the column, or None if it cannot be used."""
        if self.name is None:
            return None
        if not is_safe_identifier(self.name):
            logger.warning(f"Rejecting unsafe column name {self.name!r}")
            return None
        if self.qualifier is not None and not is_safe_identifier(self.qualifier):
            logger.warning(f"Rejecting unsafe column qualifier {self.qualifier!r}")
            return None
        return column_reference(self.name, self.qualifier)

    def __repr__(self) -> str:
        if self.qualifier:
            return f"ColumnRef({self.qualifier}.{self.name})"
        return f"ColumnRef({self.name})"


ColumnLike = Union[ColumnRef, str, None]


def as_column(column: ColumnLike) -> ColumnRef:
    if isinstance(column, ColumnRef):
        return column
    return ColumnRef(column)


class Condition(ABC):
    """Base class for predicate fragments."""

    @abstractmethod
    def compile(self, start_index: int = 1) -> Predicate:
        """Render SQL with placeholders starting at start_index."""
        pass


@dataclass(frozen=True)
class Constant(Condition):
    """TRUE or FALSE."""

    value: bool

    def compile(self, start_index: int = 1) -> Predicate:
        if self.value:
            return true_predicate(start_index)
        return false_predicate(start_index)


@dataclass(frozen=True)
class Equality(Condition):
    """``column = value``.

    With a type class the bound value is made to match the column: NUMERIC
    requires an integer value (anything else compiles to FALSE), TEXT compares
    ``column::text`` with the stringified value.
    """

    column: ColumnRef
    value: Any
    type_class: Optional[TypeClass] = None
    case_insensitive: bool = False

    def compile(self, start_index: int = 1) -> Predicate:
        column_sql = as_column(self.column).render()
        if column_sql is None:
            return false_predicate(start_index)

        if self.value is None:
            return Predicate(f"{column_sql} IS NULL", (), start_index)

        placeholder = f"${start_index}"
        if self.type_class is TypeClass.NUMERIC:
            number = parse_integer(self.value)
            if number is None:
                return false_predicate(start_index)
            return Predicate(f"{column_sql} = {placeholder}", (number,), start_index)

        if self.type_class is TypeClass.TEXT:
            sql = f"{column_sql}::text = {placeholder}"
            if self.case_insensitive:
                sql = f"LOWER({column_sql}::text) = LOWER({placeholder})"
            return Predicate(sql, (str(self.value),), start_index)

        if self.case_insensitive:
            sql = f"LOWER({column_sql}) = LOWER({placeholder})"
        else:
            sql = f"{column_sql} = {placeholder}"
        return Predicate(sql, (self.value,), start_index)


@dataclass(frozen=True)
class Membership(Condition):
    """``column`` is one of ``ids``, compared according to the column's type."""

    column: ColumnRef
    ids: Tuple[Any, ...]
    type_class: TypeClass = TypeClass.TEXT

    def compile(self, start_index: int = 1) -> Predicate:
        return build_membership(self.column, self.type_class, self.ids, start_index)


@dataclass(frozen=True)
class Range(Condition):
    """Inclusive range on a column; either bound may be absent."""

    column: ColumnRef
    start: Any = None
    end: Any = None

    def compile(self, start_index: int = 1) -> Predicate:
        if self.start is None and self.end is None:
            return true_predicate(start_index)
        column_sql = as_column(self.column).render()
        if column_sql is None:
            return false_predicate(start_index)

        if self.start is not None and self.end is not None:
            sql = f"{column_sql} BETWEEN ${start_index} AND ${start_index + 1}"
            return Predicate(sql, (self.start, self.end), start_index)
        if self.start is not None:
            return Predicate(f"{column_sql} >= ${start_index}", (self.start,), start_index)
        return Predicate(f"{column_sql} <= ${start_index}", (self.end,), start_index)


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so term matches literally."""
    escaped = term.replace("\\", "\\\\")
    escaped = escaped.replace("%", "\\%")
    return escaped.replace("_", "\\_")


@dataclass(frozen=True)
class FreeText(Condition):
    """Case-insensitive substring match of one term across several columns.

    All columns share a single bound ``%term%`` parameter.
    """

    columns: Tuple[ColumnRef, ...]
    term: Optional[str]

    def compile(self, start_index: int = 1) -> Predicate:
        if self.term is None or not str(self.term).strip():
            return true_predicate(start_index)

        rendered = []
        for column in self.columns:
            column_sql = as_column(column).render()
            if column_sql is not None:
                rendered.append(column_sql)
        if not rendered:
            return false_predicate(start_index)

        placeholder = f"${start_index}"
        clauses = []
        for column_sql in rendered:
            clauses.append(f"{column_sql}::text ILIKE {placeholder} ESCAPE '\\'")
        pattern = f"%{escape_like(str(self.term).strip())}%"
        return Predicate(f"({' OR '.join(clauses)})", (pattern,), start_index)


@dataclass(frozen=True)
class Conjunction(Condition):
    """All parts must hold."""

    parts: Tuple[Condition, ...] = field(default_factory=tuple)

    def compile(self, start_index: int = 1) -> Predicate:
        result = true_predicate(start_index)
        for part in self.parts:
            result = result.and_(part.compile(result.next_param_index))
        return result


@dataclass(frozen=True)
class Disjunction(Condition):
    """At least one part must hold."""

    parts: Tuple[Condition, ...] = field(default_factory=tuple)

    def compile(self, start_index: int = 1) -> Predicate:
        result = false_predicate(start_index)
        for part in self.parts:
            result = result.or_(part.compile(result.next_param_index))
        return result


def build_membership(
    column: ColumnLike,
    type_class: Optional[TypeClass],
    ids: Iterable[Any],
    start_param_index: int = 1,
) -> Predicate:
    """Build a set-membership predicate for column.

    Args:
        column: Resolved column (name or ColumnRef); None means not found
        type_class: NUMERIC or TEXT; None is treated as TEXT
        ids: Candidate identifier values
        start_param_index: Number of the first placeholder to use

    Returns:
        ``<col> = ANY($n::int[])`` for numeric columns,
        ``<col>::text = ANY($n::text[])`` otherwise, or FALSE with no
        parameters when there is nothing that could match.
    """
    values = _normalize_ids(ids)
    column_sql = as_column(column).render()
    if column_sql is None or not values:
        return false_predicate(start_param_index)

    placeholder = f"${start_param_index}"
    if type_class is TypeClass.NUMERIC:
        numbers: List[int] = []
        for value in values:
            number = parse_integer(value)
            if number is not None:
                numbers.append(number)
        if not numbers:
            return false_predicate(start_param_index)
        array_type = "int[]"
        for number in numbers:
            if abs(number) > INT4_MAX:
                array_type = "bigint[]"
                break
        sql = f"{column_sql} = ANY({placeholder}::{array_type})"
        return Predicate(sql, (numbers,), start_param_index)

    strings: List[str] = []
    for value in values:
        strings.append(str(value))
    sql = f"{column_sql}::text = ANY({placeholder}::text[])"
    return Predicate(sql, (strings,), start_param_index)


def _normalize_ids(ids: Optional[Iterable[Any]]) -> List[Any]:
    """Drop None entries; a bare string counts as a single id."""
    if ids is None:
        return []
    if isinstance(ids, (str, bytes, int)):
        ids = [ids]
    values = []
    for value in ids:
        if value is not None:
            values.append(value)
    return values


def placeholder_indices(sql: str) -> List[int]:
    """Return the distinct placeholder numbers in sql, in order of first use."""
    seen: List[int] = []
    for match in PLACEHOLDER.finditer(sql):
        number = int(match.group(1))
        if number not in seen:
            seen.append(number)
    return seen


def column_list(columns: Sequence[ColumnLike], qualifier: Optional[str] = None) -> Tuple[ColumnRef, ...]:
    """Build ColumnRefs for plain names, applying a shared qualifier."""
    refs = []
    for column in columns:
        if isinstance(column, ColumnRef):
            refs.append(column)
        else:
            refs.append(ColumnRef(column, qualifier))
    return tuple(refs)
