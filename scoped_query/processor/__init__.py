"""Query assembly and execution."""

from .assembler import AssembledQuery, QueryAssembler, QueryPlan
from .executor import ExecutionResult, ExecutionStatus, SafeExecutor
from .filters import (
    DEFAULT_LIMIT,
    MAX_LIMIT,
    Pagination,
    QueryFilters,
    parse_date,
    parse_date_range,
)

__all__ = [
    "AssembledQuery",
    "QueryAssembler",
    "QueryPlan",
    "ExecutionResult",
    "ExecutionStatus",
    "SafeExecutor",
    "DEFAULT_LIMIT",
    "MAX_LIMIT",
    "Pagination",
    "QueryFilters",
    "parse_date",
    "parse_date_range",
]
