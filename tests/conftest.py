"""Shared fixtures: a scripted fake data source and an in-memory DuckDB schema."""

import threading
from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence

import pytest

from scoped_query.datasources.base import CancelToken, ColumnMetadata, DataSource, QueryResult
from scoped_query.datasources.duckdb import DuckDBDataSource


class FakeDriverError(Exception):
    """Stands in for a driver exception such as psycopg2.Error."""

    def __init__(self, message: str, undefined_relation: bool = False):
        super().__init__(message)
        self.undefined_relation = undefined_relation


class FakeDataSource(DataSource):
    """In-memory catalog with call counting and error injection.

    ``schema`` maps table -> {column: declared type}. Names listed in
    ``failing`` (a table, or a (table, column) pair) raise FakeDriverError on
    every catalog lookup. ``results`` is a queue of QueryResult objects or
    exceptions handed out by ``execute``.
    """

    driver_errors = (FakeDriverError,)

    def __init__(self, schema: Optional[Dict[str, Dict[str, str]]] = None, name: str = "fake"):
        super().__init__(name, {})
        self.schema: Dict[str, Dict[str, str]] = {}
        for table, columns in (schema or {}).items():
            self.schema[table] = dict(columns)
        self.failing = set()
        self.results: List[Any] = []
        self.executed: List[tuple] = []
        self.calls: Dict[str, int] = defaultdict(int)
        self.probed: List[tuple] = []
        self._lock = threading.Lock()

    def _record(self, operation: str, *args) -> None:
        with self._lock:
            self.calls[operation] += 1
            self.probed.append((operation,) + args)
        if args[0] in self.failing or tuple(args[:2]) in self.failing:
            raise FakeDriverError(f"catalog lookup failed for {args}")

    def connect(self) -> None:
        self._connected = True

    def disconnect(self) -> None:
        self._connected = False

    def table_exists(self, table: str) -> bool:
        self._record("table_exists", table)
        return table in self.schema

    def column_exists(self, table: str, column: str) -> bool:
        self._record("column_exists", table, column)
        return column in self.schema.get(table, {})

    def column_type(self, table: str, column: str) -> Optional[str]:
        self._record("column_type", table, column)
        return self.schema.get(table, {}).get(column)

    def list_columns(self, table: str) -> List[ColumnMetadata]:
        self._record("list_columns", table)
        columns = []
        position = 1
        for name, data_type in self.schema.get(table, {}).items():
            columns.append(ColumnMetadata(name, data_type, True, position))
            position += 1
        return columns

    def execute(
        self,
        sql: str,
        params: Sequence[Any] = (),
        cancel_token: Optional[CancelToken] = None,
    ) -> QueryResult:
        if cancel_token is not None:
            cancel_token.check()
        with self._lock:
            self.calls["execute"] += 1
            self.executed.append((sql, tuple(params)))
            outcome = self.results.pop(0) if self.results else QueryResult()
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def is_undefined_relation(self, error: BaseException) -> bool:
        return getattr(error, "undefined_relation", False)


HOTEL_SCHEMA = {
    "hotels": {"id": "integer", "name": "character varying", "manager_id": "integer", "branch": "character varying"},
    "users": {"id": "integer", "hotel_id": "integer", "branch": "character varying"},
    "tickets": {"id": "integer", "hotel_ref": "character varying", "branch": "character varying"},
    "attendance": {"id": "integer", "hotel_id": "integer", "user_id": "integer"},
    "rooms": {"id": "integer", "number": "character varying", "branch": "character varying"},
}


@pytest.fixture
def fake_datasource():
    """Fake data source preloaded with a small hotel schema."""
    return FakeDataSource(HOTEL_SCHEMA)


@pytest.fixture
def hotel_db():
    """In-memory DuckDB data source with hotel tables."""
    ds = DuckDBDataSource("hotel_db", {"path": ":memory:", "read_only": False})
    ds.connect()

    conn = ds.connection
    conn.execute("""
        CREATE TABLE hotels (
            id INTEGER,
            name VARCHAR,
            manager_id INTEGER,
            branch VARCHAR
        )
    """)
    conn.execute("""
        INSERT INTO hotels VALUES
            (3, 'Harbor View', 10, 'North'),
            (7, 'Lakeside', 10, 'North'),
            (9, 'Summit', 11, 'South')
    """)
    conn.execute("""
        CREATE TABLE users (
            id INTEGER,
            name VARCHAR,
            "hotelId" INTEGER,
            branch VARCHAR
        )
    """)
    conn.execute("""
        INSERT INTO users VALUES
            (10, 'Mara', NULL, 'North'),
            (20, 'Ines', 3, 'North'),
            (21, 'Olek', 9, 'South')
    """)
    conn.execute("""
        CREATE TABLE tickets (
            id INTEGER,
            hotel_ref VARCHAR,
            title VARCHAR,
            description VARCHAR,
            status VARCHAR,
            branch VARCHAR,
            created_at TIMESTAMP
        )
    """)
    conn.execute("""
        INSERT INTO tickets VALUES
            (1, '3', 'Broken heater', 'Room 12 heater is cold', 'Open', 'North', TIMESTAMP '2024-01-05 09:00:00'),
            (2, '7', 'Lobby light out', 'Main lobby', 'Closed', 'North', TIMESTAMP '2024-01-20 14:30:00'),
            (3, '9', 'Leaking tap', 'Kitchen tap leaks', 'open', 'South', TIMESTAMP '2024-02-02 08:15:00')
    """)
    conn.execute("""
        CREATE TABLE service_users (
            id INTEGER,
            name VARCHAR,
            property_ref INTEGER
        )
    """)

    yield ds

    ds.disconnect()
