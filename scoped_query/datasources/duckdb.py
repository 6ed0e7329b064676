"""DuckDB data source implementation."""

import logging
import re
from typing import Any, Dict, List, Optional, Sequence

import duckdb

from .base import CancelToken, ColumnMetadata, DataSource, QueryResult

logger = logging.getLogger(__name__)

MISSING_TABLE = re.compile(r"Table with name \S+ does not exist", re.IGNORECASE)


class DuckDBDataSource(DataSource):
    """DuckDB data source connector."""

    driver_errors = (duckdb.Error,)

    def __init__(self, name: str, config: Dict[str, Any]):
        """Initialize DuckDB data source.

        Config should include:
            - path: Path to DuckDB database file (or :memory: for in-memory)
            - read_only: Whether to open in read-only mode (default: True for files)
            - schema: Schema searched by catalog lookups (default: main)
        """
        super().__init__(name, config)
        self.connection = None
        self.db_path = config.get("path", ":memory:")
        self.read_only = config.get("read_only", self.db_path != ":memory:")
        self.schema = config.get("schema", "main")

    def connect(self) -> None:
        """Establish connection to DuckDB."""
        logger.info(f"Connecting to DuckDB at '{self.db_path}'")
        self.connection = duckdb.connect(self.db_path, read_only=self.read_only)
        self._connected = True
        logger.info(f"Successfully connected to DuckDB: {self.name}")

    def disconnect(self) -> None:
        """Close DuckDB connection."""
        if self.connection:
            self.connection.close()
            logger.info(f"Disconnected from DuckDB: {self.name}")
            self.connection = None
            self._connected = False

    def _cursor(self):
        """Open a per-call cursor so concurrent callers do not share state."""
        if self.connection is None:
            raise RuntimeError(f"Not connected to {self.name}")
        return self.connection.cursor()

    def _fetch(self, sql: str, params: Sequence[Any]) -> List[tuple]:
        cursor = self._cursor()
        try:
            return cursor.execute(sql, list(params)).fetchall()
        finally:
            cursor.close()

    def table_exists(self, table: str) -> bool:
        rows = self._fetch(
            """
            SELECT 1
            FROM information_schema.tables
            WHERE table_schema = $1 AND table_name = $2
            LIMIT 1
            """,
            [self.schema, table],
        )
        return len(rows) > 0

    def column_exists(self, table: str, column: str) -> bool:
        rows = self._fetch(
            """
            SELECT 1
            FROM information_schema.columns
            WHERE table_schema = $1 AND table_name = $2 AND column_name = $3
            LIMIT 1
            """,
            [self.schema, table, column],
        )
        return len(rows) > 0

    def column_type(self, table: str, column: str) -> Optional[str]:
        rows = self._fetch(
            """
            SELECT data_type
            FROM information_schema.columns
            WHERE table_schema = $1 AND table_name = $2 AND column_name = $3
            LIMIT 1
            """,
            [self.schema, table, column],
        )
        if not rows:
            return None
        return rows[0][0]

    def list_columns(self, table: str) -> List[ColumnMetadata]:
        rows = self._fetch(
            """
            SELECT column_name, data_type, is_nullable, ordinal_position
            FROM information_schema.columns
            WHERE table_schema = $1 AND table_name = $2
            ORDER BY ordinal_position
            """,
            [self.schema, table],
        )
        columns = []
        for row in rows:
            columns.append(
                ColumnMetadata(
                    name=row[0],
                    data_type=row[1],
                    nullable=row[2] == "YES",
                    ordinal_position=row[3],
                )
            )
        return columns

    def execute(
        self,
        sql: str,
        params: Sequence[Any] = (),
        cancel_token: Optional[CancelToken] = None,
    ) -> QueryResult:
        """Execute a statement on a dedicated cursor."""
        if cancel_token is None:
            cancel_token = CancelToken()
        cursor = self._cursor()
        try:
            with cancel_token.interrupt_with(cursor.interrupt):
                logger.debug(f"Executing query on {self.name}: {sql[:100]}...")
                if params:
                    cursor.execute(sql, list(params))
                else:
                    cursor.execute(sql)
                if cursor.description is None:
                    return QueryResult()
                columns = []
                for desc in cursor.description:
                    columns.append(desc[0])
                rows = []
                for values in cursor.fetchall():
                    rows.append(dict(zip(columns, values)))
                return QueryResult(rows=rows, row_count=len(rows), columns=columns)
        finally:
            cursor.close()

    def is_undefined_relation(self, error: BaseException) -> bool:
        if not isinstance(error, duckdb.CatalogException):
            return False
        return MISSING_TABLE.search(str(error)) is not None
