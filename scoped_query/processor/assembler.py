"""Assembly of scoped, filtered, paginated queries."""

import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple, Union

from ..plan.identifiers import column_reference, quote_identifier
from ..plan.predicates import Condition, Predicate, true_predicate
from .filters import Pagination, QueryFilters

logger = logging.getLogger(__name__)

AuthLike = Union[Predicate, Condition, Any, None]


@dataclass(frozen=True)
class AssembledQuery:
    """Final SQL text and its parameters."""

    sql: str
    params: Tuple[Any, ...] = ()
    unsatisfiable: bool = False

    def __repr__(self) -> str:
        return f"AssembledQuery({self.sql!r}, params={len(self.params)})"


class QueryPlan:
    """Accumulates WHERE fragments, renumbering placeholders as they arrive.

    A plan is consumed by ``build()`` exactly once.
    """

    def __init__(self, base_sql: str):
        self.base_sql = base_sql.strip()
        self.where_fragments: List[str] = []
        self.parameters: List[Any] = []
        self.unsatisfiable = False
        self._suffix: List[str] = []
        self._pagination: Optional[Tuple[int, int]] = None
        self._consumed = False

    @property
    def next_param_index(self) -> int:
        return len(self.parameters) + 1

    def add(self, fragment: Union[Predicate, Condition, None]) -> "QueryPlan":
        """Append a predicate or condition; TRUE fragments are dropped."""
        self._check_open()
        if fragment is None:
            return self
        if isinstance(fragment, Condition):
            predicate = fragment.compile(self.next_param_index)
        else:
            predicate = fragment.renumber(self.next_param_index)
        if predicate.is_true():
            return self
        if predicate.is_false():
            self.unsatisfiable = True
        self.where_fragments.append(predicate.sql)
        self.parameters.extend(predicate.params)
        return self

    def order_by(self, columns: Sequence[Union[str, Tuple[str, str]]], qualifier: Optional[str] = None) -> "QueryPlan":
        """Append ORDER BY; each entry is a column or (column, ASC|DESC)."""
        self._check_open()
        if not columns:
            return self
        parts = []
        for entry in columns:
            direction = "ASC"
            if isinstance(entry, tuple):
                entry, direction = entry
            direction = str(direction).upper()
            if direction not in ("ASC", "DESC"):
                raise ValueError(f"Invalid sort direction: {direction!r}")
            parts.append(f"{column_reference(entry, qualifier)} {direction}")
        self._suffix.append("ORDER BY " + ", ".join(parts))
        return self

    def paginate(self, pagination: Optional[Pagination]) -> "QueryPlan":
        """Append LIMIT/OFFSET; their parameters come after every filter."""
        self._check_open()
        if pagination is None:
            return self
        limit_index = self.next_param_index
        self._suffix.append(f"LIMIT ${limit_index} OFFSET ${limit_index + 1}")
        self._pagination = (pagination.limit, pagination.offset)
        return self

    def build(self) -> AssembledQuery:
        """Produce the final query."""
        self._check_open()
        self._consumed = True
        parts = [self.base_sql]
        if self.where_fragments:
            parts.append("WHERE " + " AND ".join(self.where_fragments))
        params = list(self.parameters)
        for suffix in self._suffix:
            parts.append(suffix)
        if self._pagination is not None:
            params.extend(self._pagination)
        return AssembledQuery(
            sql=" ".join(parts),
            params=tuple(params),
            unsatisfiable=self.unsatisfiable,
        )

    def _check_open(self) -> None:
        if self._consumed:
            raise RuntimeError("QueryPlan has already been built")


class QueryAssembler:
    """Merges the authorization predicate with caller filters.

    Fragments are always appended in this order, whatever order the caller
    supplied them in:

    1. authorization predicate
    2. date range
    3. equality filters
    4. free-text search

    Pagination parameters are appended last.
    """

    def select(self, table: str, columns: Sequence[str] = (), qualifier: Optional[str] = None) -> str:
        """``SELECT <columns> FROM <table> [<alias>]`` with validated names."""
        if columns:
            rendered = []
            for column in columns:
                rendered.append(column_reference(column, qualifier))
            column_sql = ", ".join(rendered)
        else:
            column_sql = f"{quote_identifier(qualifier)}.*" if qualifier else "*"
        sql = f"SELECT {column_sql} FROM {quote_identifier(table)}"
        if qualifier:
            sql += f" {quote_identifier(qualifier)}"
        return sql

    def plan(
        self,
        base_sql: str,
        auth: AuthLike = None,
        filters: Optional[QueryFilters] = None,
    ) -> QueryPlan:
        """Start a plan with auth and filters applied in the fixed order."""
        plan = QueryPlan(base_sql)
        plan.add(_auth_predicate(auth))
        if filters is not None:
            plan.add(filters.date_range())
            for equality in filters.equals:
                plan.add(equality)
            plan.add(filters.free_text())
        return plan

    def assemble(
        self,
        base_sql: str,
        auth: AuthLike = None,
        filters: Optional[QueryFilters] = None,
        order_by: Sequence[Union[str, Tuple[str, str]]] = (),
        pagination: Optional[Pagination] = None,
        qualifier: Optional[str] = None,
    ) -> AssembledQuery:
        """Assemble a complete query.

        Args:
            base_sql: ``SELECT ... FROM ...`` without a WHERE clause
            auth: Scope decision, predicate or condition restricting rows
            filters: Caller filters
            order_by: Sort columns, optionally paired with a direction
            pagination: LIMIT/OFFSET
            qualifier: Table alias for the sort columns

        Returns:
            The query; ``unsatisfiable`` is set when any fragment is FALSE
        """
        plan = self.plan(base_sql, auth, filters)
        plan.order_by(order_by, qualifier)
        plan.paginate(pagination)
        query = plan.build()
        if query.unsatisfiable:
            logger.debug(f"Assembled query cannot match any row: {query.sql}")
        return query


def _auth_predicate(auth: AuthLike) -> Union[Predicate, Condition]:
    if auth is None:
        return true_predicate()
    if isinstance(auth, (Predicate, Condition)):
        return auth
    # ScopeDecision and anything else carrying a compiled predicate
    predicate = getattr(auth, "predicate", None)
    if isinstance(predicate, Predicate):
        return predicate
    raise TypeError(f"Unsupported authorization fragment: {auth!r}")
