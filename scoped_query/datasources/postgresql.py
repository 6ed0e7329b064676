"""PostgreSQL data source implementation."""

import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

import psycopg2
from psycopg2 import errorcodes, pool
from psycopg2.extras import RealDictCursor

from .base import CancelToken, ColumnMetadata, DataSource, QueryResult

logger = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r"\$(\d+)")


def to_pyformat(sql: str, params: Sequence[Any]) -> Tuple[str, Dict[str, Any]]:
    """Translate ``$n`` placeholders into psycopg2 named parameters.

    Named parameters let the same bound value appear more than once in the
    statement (a free-text search shares one pattern across columns).

    Args:
        sql: SQL text with ``$n`` placeholders
        params: Values for ``$1`` .. ``$len(params)``

    Returns:
        Tuple of (pyformat SQL, parameter mapping)

    Raises:
        ValueError: If a placeholder has no matching parameter
    """
    escaped = sql.replace("%", "%%")

    def replace(match):
        index = int(match.group(1))
        if index < 1 or index > len(params):
            raise ValueError(
                f"Placeholder ${index} has no parameter ({len(params)} supplied)"
            )
        return f"%(p{index})s"

    converted = PLACEHOLDER.sub(replace, escaped)
    mapping = {}
    for position, value in enumerate(params, start=1):
        mapping[f"p{position}"] = value
    return converted, mapping


class PostgreSQLDataSource(DataSource):
    """PostgreSQL data source connector with connection pooling."""

    driver_errors = (psycopg2.Error,)

    def __init__(self, name: str, config: Dict[str, Any]):
        """Initialize PostgreSQL data source.

        Config should include:
            - host: Database host
            - port: Database port
            - database: Database name
            - user: Username
            - password: Password
            - dsn: Connection string used instead of the discrete fields (optional)
            - schemas: Schemas searched by catalog lookups (default: ["public"])
            - min_connections: Minimum connections in pool (default: 1)
            - max_connections: Maximum connections in pool (default: 5)
        """
        super().__init__(name, config)
        self.schemas = list(config.get("schemas", ["public"]))
        self._pool = None
        self._min_connections = config.get("min_connections", 1)
        self._max_connections = config.get("max_connections", 5)

    def connect(self) -> None:
        """Establish connection pool to PostgreSQL."""
        try:
            if self.config.get("dsn"):
                logger.info(f"Connecting to PostgreSQL data source {self.name} via DSN")
                self._pool = pool.ThreadedConnectionPool(
                    self._min_connections, self._max_connections, self.config["dsn"]
                )
            else:
                logger.info(
                    f"Connecting to PostgreSQL database '{self.config['database']}' at {self.config['host']}"
                )
                self._pool = pool.ThreadedConnectionPool(
                    self._min_connections,
                    self._max_connections,
                    host=self.config["host"],
                    port=self.config.get("port", 5432),
                    database=self.config["database"],
                    user=self.config["user"],
                    password=self.config["password"],
                )
            # Get a test connection to verify it works
            conn = self._pool.getconn()
            self._pool.putconn(conn)
            self._connected = True
            logger.info(f"Successfully connected to PostgreSQL: {self.name}")
        except psycopg2.Error as e:
            logger.error(f"Failed to connect to PostgreSQL {self.name}: {e}")
            raise ConnectionError(f"PostgreSQL connection failed: {e}") from e

    def disconnect(self) -> None:
        """Close all connections in the pool."""
        if self._pool:
            self._pool.closeall()
            logger.info(f"Disconnected from PostgreSQL: {self.name}")
            self._pool = None
            self.connection = None
            self._connected = False

    def _get_connection(self):
        """Get a connection from the pool."""
        if not self._pool:
            raise RuntimeError(f"Not connected to {self.name}")
        return self._pool.getconn()

    def _return_connection(self, conn):
        """Return a connection to the pool."""
        if self._pool:
            self._pool.putconn(conn)

    def _catalog_query(self, sql: str, params: Sequence[Any]) -> List[Dict[str, Any]]:
        """Run a read-only information_schema query."""
        conn = self._get_connection()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cursor:
                cursor.execute(sql, params)
                rows = cursor.fetchall()
            conn.rollback()
            return rows
        except psycopg2.Error as e:
            logger.warning(f"Catalog query failed on {self.name}: {e}")
            conn.rollback()
            raise
        finally:
            self._return_connection(conn)

    def table_exists(self, table: str) -> bool:
        rows = self._catalog_query(
            """
            SELECT 1
            FROM information_schema.tables
            WHERE table_schema = ANY(%s) AND table_name = %s
            LIMIT 1
            """,
            (self.schemas, table),
        )
        return len(rows) > 0

    def column_exists(self, table: str, column: str) -> bool:
        rows = self._catalog_query(
            """
            SELECT 1
            FROM information_schema.columns
            WHERE table_schema = ANY(%s) AND table_name = %s AND column_name = %s
            LIMIT 1
            """,
            (self.schemas, table, column),
        )
        return len(rows) > 0

    def column_type(self, table: str, column: str) -> Optional[str]:
        rows = self._catalog_query(
            """
            SELECT data_type
            FROM information_schema.columns
            WHERE table_schema = ANY(%s) AND table_name = %s AND column_name = %s
            LIMIT 1
            """,
            (self.schemas, table, column),
        )
        if not rows:
            return None
        return rows[0]["data_type"]

    def list_columns(self, table: str) -> List[ColumnMetadata]:
        rows = self._catalog_query(
            """
            SELECT column_name, data_type, is_nullable, ordinal_position
            FROM information_schema.columns
            WHERE table_schema = ANY(%s) AND table_name = %s
            ORDER BY ordinal_position
            """,
            (self.schemas, table),
        )
        columns = []
        for row in rows:
            columns.append(
                ColumnMetadata(
                    name=row["column_name"],
                    data_type=row["data_type"],
                    nullable=row["is_nullable"] == "YES",
                    ordinal_position=row["ordinal_position"],
                )
            )
        return columns

    def execute(
        self,
        sql: str,
        params: Sequence[Any] = (),
        cancel_token: Optional[CancelToken] = None,
    ) -> QueryResult:
        """Execute a statement and commit; roll back on failure."""
        statement, mapping = to_pyformat(sql, params)
        if cancel_token is None:
            cancel_token = CancelToken()
        conn = self._get_connection()
        try:
            with cancel_token.interrupt_with(conn.cancel):
                with conn.cursor(cursor_factory=RealDictCursor) as cursor:
                    remaining = cancel_token.remaining()
                    if remaining is not None:
                        timeout_ms = max(1, int(remaining * 1000))
                        cursor.execute(f"SET LOCAL statement_timeout = {timeout_ms}")
                    logger.debug(f"Executing query on {self.name}: {sql[:100]}...")
                    cursor.execute(statement, mapping)
                    result = self._build_result(cursor)
            conn.commit()
            return result
        except psycopg2.Error:
            conn.rollback()
            raise
        finally:
            self._return_connection(conn)

    def _build_result(self, cursor) -> QueryResult:
        if cursor.description is None:
            return QueryResult(rows=[], row_count=cursor.rowcount, columns=[])
        columns = []
        for desc in cursor.description:
            columns.append(desc[0])
        rows = []
        for row in cursor.fetchall():
            rows.append(dict(row))
        return QueryResult(rows=rows, row_count=cursor.rowcount, columns=columns)

    def is_undefined_relation(self, error: BaseException) -> bool:
        return getattr(error, "pgcode", None) == errorcodes.UNDEFINED_TABLE
