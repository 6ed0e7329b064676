"""Process-lifetime cache of catalog lookups.

One ``MetadataCache`` is created at startup and handed to every component
that probes the schema. Reads are plain dictionary lookups; writes go through
a lock and the first stored value wins, so two threads racing on the same key
both end up observing one answer.
"""

import threading
from typing import Any, Dict, Hashable, Optional, Tuple

from .schema import ColumnCandidate, ResolvedColumn

MISSING = object()


def _attribute_key(candidate: ColumnCandidate) -> Tuple[str, str, Tuple[str, ...], Tuple[str, ...]]:
    return (candidate.table, candidate.logical_name, candidate.candidates, candidate.keywords)


class MetadataCache:
    """Read-through cache for column, type, table and resolution lookups."""

    def __init__(self, enabled: bool = True):
        """Initialize cache.

        Args:
            enabled: When False nothing is stored and every lookup misses
        """
        self.enabled = enabled
        self._lock = threading.Lock()
        self._columns: Dict[Tuple[str, str], bool] = {}
        self._types: Dict[Tuple[str, str], Optional[str]] = {}
        self._tables: Dict[str, bool] = {}
        self._resolutions: Dict[Tuple[str, Tuple[str, ...], Tuple[str, ...]], Optional[str]] = {}
        self._table_resolutions: Dict[Tuple[str, ...], Optional[str]] = {}
        self._attributes: Dict[Tuple[str, str, Tuple[str, ...], Tuple[str, ...]], ResolvedColumn] = {}
        self._hits = 0
        self._misses = 0

    def _lookup(self, store: Dict, key: Hashable) -> Any:
        value = store.get(key, MISSING)
        with self._lock:
            if value is MISSING:
                self._misses += 1
            else:
                self._hits += 1
        return value

    def _remember(self, store: Dict, key: Hashable, value: Any) -> Any:
        if not self.enabled:
            return value
        with self._lock:
            return store.setdefault(key, value)

    def column_exists(self, table: str, column: str) -> Any:
        """Cached existence flag, or MISSING."""
        return self._lookup(self._columns, (table, column))

    def remember_column_exists(self, table: str, column: str, exists: bool) -> bool:
        return self._remember(self._columns, (table, column), exists)

    def column_type(self, table: str, column: str) -> Any:
        """Cached declared type (None for absent), or MISSING."""
        return self._lookup(self._types, (table, column))

    def remember_column_type(self, table: str, column: str, declared: Optional[str]) -> Optional[str]:
        return self._remember(self._types, (table, column), declared)

    def table_exists(self, table: str) -> Any:
        return self._lookup(self._tables, table)

    def remember_table_exists(self, table: str, exists: bool) -> bool:
        return self._remember(self._tables, table, exists)

    def resolution(self, table: str, candidates: Tuple[str, ...], keywords: Tuple[str, ...] = ()) -> Any:
        """Cached resolved column name (None for not found), or MISSING."""
        return self._lookup(self._resolutions, (table, candidates, keywords))

    def remember_resolution(
        self,
        table: str,
        candidates: Tuple[str, ...],
        keywords: Tuple[str, ...],
        actual_name: Optional[str],
    ) -> Optional[str]:
        return self._remember(self._resolutions, (table, candidates, keywords), actual_name)

    def table_resolution(self, candidates: Tuple[str, ...]) -> Any:
        return self._lookup(self._table_resolutions, candidates)

    def remember_table_resolution(self, candidates: Tuple[str, ...], table: Optional[str]) -> Optional[str]:
        return self._remember(self._table_resolutions, candidates, table)

    def attribute(self, candidate: ColumnCandidate) -> Any:
        """Cached resolution of candidate, or MISSING.

        Keyed by the candidate and keyword lists as well as the logical name,
        so two candidate lists for one attribute never share an answer.
        """
        return self._lookup(self._attributes, _attribute_key(candidate))

    def remember_attribute(self, candidate: ColumnCandidate, resolved: ResolvedColumn) -> ResolvedColumn:
        return self._remember(self._attributes, _attribute_key(candidate), resolved)

    def invalidate(self, table: Optional[str] = None) -> None:
        """Forget cached entries for one table, or everything.

        Table resolutions are not keyed by a single table and are dropped on
        any invalidation.
        """
        with self._lock:
            if table is None:
                self._columns.clear()
                self._types.clear()
                self._tables.clear()
                self._resolutions.clear()
                self._table_resolutions.clear()
                self._attributes.clear()
                return
            for store in (self._columns, self._types, self._resolutions, self._attributes):
                for key in list(store):
                    if key[0] == table:
                        del store[key]
            self._tables.pop(table, None)
            self._table_resolutions.clear()

    def stats(self) -> Dict[str, int]:
        """Hit/miss counters and entry counts."""
        with self._lock:
            return {
                "hits": self._hits,
                "misses": self._misses,
                "columns": len(self._columns),
                "types": len(self._types),
                "tables": len(self._tables),
                "resolutions": len(self._resolutions) + len(self._table_resolutions),
                "attributes": len(self._attributes),
            }

    def __repr__(self) -> str:
        return f"MetadataCache(enabled={self.enabled}, attributes={len(self._attributes)})"
