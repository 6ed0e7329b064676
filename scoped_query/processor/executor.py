"""Query execution that tolerates optional tables being absent."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from ..datasources.base import CancelToken, DataSource, QueryResult
from ..utils.logging import get_contextual_logger

logger = logging.getLogger(__name__)


class ExecutionStatus(Enum):
    """How a statement finished."""

    OK = "ok"
    TABLE_MISSING = "table_missing"
    SKIPPED = "skipped"


@dataclass
class ExecutionResult:
    """Rows from a statement, or an explicit empty result.

    ``TABLE_MISSING`` means a referenced relation does not exist;
    ``SKIPPED`` means the query could not match anything and was never sent.
    """

    status: ExecutionStatus
    rows: List[Dict[str, Any]] = field(default_factory=list)
    row_count: int = 0
    columns: List[str] = field(default_factory=list)

    @classmethod
    def from_query_result(cls, result: QueryResult) -> "ExecutionResult":
        return cls(
            status=ExecutionStatus.OK,
            rows=result.rows,
            row_count=result.row_count,
            columns=result.columns,
        )

    @classmethod
    def table_missing(cls) -> "ExecutionResult":
        return cls(status=ExecutionStatus.TABLE_MISSING)

    @classmethod
    def skipped(cls) -> "ExecutionResult":
        return cls(status=ExecutionStatus.SKIPPED)

    @property
    def is_table_missing(self) -> bool:
        return self.status is ExecutionStatus.TABLE_MISSING

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self):
        return iter(self.rows)


class SafeExecutor:
    """Runs statements against a data source.

    An undefined-relation error becomes ``ExecutionResult.table_missing()``.
    Any other error is logged with the SQL text and the number of bound
    parameters (never their values) and re-raised unchanged. Nothing is
    retried.
    """

    def __init__(self, datasource: DataSource):
        self.datasource = datasource

    def run(
        self,
        sql: str,
        params: Sequence[Any] = (),
        cancel_token: Optional[CancelToken] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> ExecutionResult:
        """Execute sql with positional params.

        Args:
            sql: SQL text with ``$n`` placeholders
            params: Bound values
            cancel_token: Request cancellation signal
            context: Request context for log records (request id, route)

        Returns:
            Execution result

        Raises:
            Exception: Whatever the data source raised, other than a missing table
        """
        log = get_contextual_logger(__name__, context or {})
        try:
            result = self.datasource.execute(sql, params, cancel_token)
        except Exception as e:
            if self.datasource.is_undefined_relation(e):
                log.info(f"Relation missing on {self.datasource.name}; returning empty result: {e}")
                return ExecutionResult.table_missing()
            log.error(
                f"Query failed on {self.datasource.name} "
                f"({len(params)} params): {type(e).__name__}: {sql}"
            )
            raise
        return ExecutionResult.from_query_result(result)

    def run_query(
        self,
        query,
        cancel_token: Optional[CancelToken] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> ExecutionResult:
        """Execute an AssembledQuery, skipping it when it cannot match."""
        if query.unsatisfiable:
            logger.debug("Skipping query whose scope predicate is FALSE")
            return ExecutionResult.skipped()
        return self.run(query.sql, query.params, cancel_token, context)

    def __repr__(self) -> str:
        return f"SafeExecutor(datasource={self.datasource.name})"
