"""Base data source interface."""

import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple


@dataclass
class ColumnMetadata:
    """Metadata about a column."""

    name: str
    data_type: str
    nullable: bool
    ordinal_position: int = 0


@dataclass
class QueryResult:
    """Rows returned by a statement.

    Each row is a dict preserving the column order of the result set.
    """

    rows: List[Dict[str, Any]] = field(default_factory=list)
    row_count: int = 0
    columns: List[str] = field(default_factory=list)


class QueryCancelledError(RuntimeError):
    """Raised when a request abandons a query before it reaches the database."""


class CancelToken:
    """Request-scoped cancellation signal.

    A data source registers an interrupt callback for the duration of a
    statement; ``cancel()`` fires it from any thread. An optional timeout
    turns into a deadline that cancels the statement when it passes.
    """

    def __init__(self, timeout: Optional[float] = None):
        self._lock = threading.Lock()
        self._cancelled = False
        self._callbacks: List[Callable[[], Any]] = []
        self.timeout = timeout
        self.deadline: Optional[float] = None
        if timeout is not None:
            self.deadline = time.monotonic() + timeout

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None without a deadline."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0.0

    def cancel(self) -> None:
        """Cancel the request and interrupt any running statement."""
        with self._lock:
            self._cancelled = True
            callbacks = list(self._callbacks)
        for callback in callbacks:
            callback()

    def check(self) -> None:
        """Raise QueryCancelledError if the request is already cancelled."""
        if self._cancelled:
            raise QueryCancelledError("Request cancelled before query execution")
        if self.expired():
            raise QueryCancelledError("Request deadline passed before query execution")

    @contextmanager
    def interrupt_with(self, callback: Callable[[], Any]) -> Iterator[None]:
        """Register callback as the interrupt for the enclosed statement."""
        self.check()
        with self._lock:
            self._callbacks.append(callback)

        timer = None
        remaining = self.remaining()
        if remaining is not None:
            timer = threading.Timer(remaining, self.cancel)
            timer.daemon = True
            timer.start()
        try:
            yield
        finally:
            if timer is not None:
                timer.cancel()
            with self._lock:
                self._callbacks.remove(callback)

    def __repr__(self) -> str:
        return f"CancelToken(cancelled={self._cancelled}, timeout={self.timeout})"


class DataSource(ABC):
    """Abstract base class for data sources.

    A data source exposes the metadata catalog (tables, columns and their
    declared types) and executes parameterized SQL using ``$n`` positional
    placeholders.
    """

    # Driver exception classes raised by catalog and query calls
    driver_errors: Tuple[type, ...] = ()

    def __init__(self, name: str, config: Dict[str, Any]):
        """Initialize data source.

        Args:
            name: Unique name for this data source
            config: Configuration dictionary
        """
        self.name = name
        self.config = config
        self.connection = None
        self._connected = False

    @abstractmethod
    def connect(self) -> None:
        """Establish connection to the data source."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Close connection to the data source."""
        pass

    @abstractmethod
    def table_exists(self, table: str) -> bool:
        """Check whether a table is visible in the catalog.

        Args:
            table: Table name

        Returns:
            True if the table exists
        """
        pass

    @abstractmethod
    def column_exists(self, table: str, column: str) -> bool:
        """Check whether a column exists on a table.

        Args:
            table: Table name
            column: Column name, matched exactly

        Returns:
            True if the column exists
        """
        pass

    @abstractmethod
    def column_type(self, table: str, column: str) -> Optional[str]:
        """Get the declared type of a column.

        Args:
            table: Table name
            column: Column name

        Returns:
            Declared type string, or None if the column does not exist
        """
        pass

    @abstractmethod
    def list_columns(self, table: str) -> List[ColumnMetadata]:
        """List the columns of a table in ordinal order.

        Args:
            table: Table name

        Returns:
            Column metadata; empty if the table does not exist
        """
        pass

    @abstractmethod
    def execute(
        self,
        sql: str,
        params: Sequence[Any] = (),
        cancel_token: Optional[CancelToken] = None,
    ) -> QueryResult:
        """Execute a parameterized statement.

        Args:
            sql: SQL text with ``$1``, ``$2``, ... placeholders
            params: Values bound to the placeholders, in order
            cancel_token: Optional cancellation signal for the request

        Returns:
            Query result
        """
        pass

    @abstractmethod
    def is_undefined_relation(self, error: BaseException) -> bool:
        """Return True if error means a referenced table does not exist."""
        pass

    def is_connected(self) -> bool:
        """Check if data source is connected.

        Returns:
            True if connected, False otherwise
        """
        return self._connected

    def ensure_connected(self) -> None:
        """Ensure data source is connected.

        Raises:
            ConnectionError: If connection cannot be established
        """
        if not self.is_connected():
            self.connect()
            self._connected = True

    def __enter__(self):
        """Context manager entry."""
        self.ensure_connected()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.disconnect()
        self._connected = False
        return False

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name})"
