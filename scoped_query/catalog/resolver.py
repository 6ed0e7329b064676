"""Runtime discovery of which physical column backs a logical attribute."""

import logging
from typing import Iterable, Optional, Sequence, Tuple

from ..datasources.base import DataSource
from ..plan.identifiers import is_safe_identifier
from ..plan.predicates import TypeClass
from .cache import MISSING, MetadataCache
from .schema import ColumnCandidate, ResolvedColumn
from .types import TypeClassifier

logger = logging.getLogger(__name__)


class SchemaProbe:
    """Resolves candidate column and table names against the live catalog.

    Every answer is memoized in the injected ``MetadataCache``. A candidate
    whose catalog lookup fails is treated as absent; an outcome influenced by
    such a failure is returned but not cached, so the next request probes
    again. Resolution never falls back to a guessed name.
    """

    def __init__(
        self,
        datasource: DataSource,
        cache: Optional[MetadataCache] = None,
        classifier: Optional[TypeClassifier] = None,
    ):
        """Initialize probe.

        Args:
            datasource: Catalog to query
            cache: Shared cache; a private one is created when omitted
            classifier: Type classifier sharing the same cache
        """
        self.datasource = datasource
        if cache is None:
            cache = MetadataCache()
        self.cache = cache
        if classifier is None:
            classifier = TypeClassifier(datasource, cache)
        self.classifier = classifier

    def column_exists(self, table: str, column: str) -> Optional[bool]:
        """Existence of table.column; None when the catalog lookup failed."""
        cached = self.cache.column_exists(table, column)
        if cached is not MISSING:
            return cached
        try:
            exists = self.datasource.column_exists(table, column)
        except self.datasource.driver_errors as e:
            logger.warning(f"Column lookup failed for {table}.{column}: {e}")
            return None
        return self.cache.remember_column_exists(table, column, bool(exists))

    def table_exists(self, table: str) -> Optional[bool]:
        """Existence of table; None when the catalog lookup failed."""
        cached = self.cache.table_exists(table)
        if cached is not MISSING:
            return cached
        try:
            exists = self.datasource.table_exists(table)
        except self.datasource.driver_errors as e:
            logger.warning(f"Table lookup failed for {table}: {e}")
            return None
        return self.cache.remember_table_exists(table, bool(exists))

    def resolve(
        self,
        table: str,
        candidates: Sequence[str],
        keywords: Iterable[str] = (),
        logical_name: Optional[str] = None,
    ) -> Optional[str]:
        """Return the first candidate column that exists on table.

        Args:
            table: Table to inspect
            candidates: Column names in order of preference
            keywords: Substrings tried against the table's columns when no
                candidate matches
            logical_name: Attribute name used in log messages

        Returns:
            The matching column name, or None
        """
        candidates = tuple(candidates)
        keywords = tuple(keywords)
        cached = self.cache.resolution(table, candidates, keywords)
        if cached is not MISSING:
            return cached

        label = logical_name or "column"
        if not is_safe_identifier(table):
            logger.warning(f"Refusing to resolve {label} on unsafe table name {table!r}")
            return None

        errored = False
        for candidate in candidates:
            if not is_safe_identifier(candidate):
                logger.warning(f"Skipping unsafe candidate {candidate!r} for {table}.{label}")
                continue
            exists = self.column_exists(table, candidate)
            if exists is None:
                errored = True
                continue
            if exists:
                logger.debug(f"Resolved {table}.{label} -> {candidate}")
                if errored:
                    return candidate
                return self.cache.remember_resolution(table, candidates, keywords, candidate)

        if keywords:
            found, keyword_errored = self._search_keywords(table, keywords)
            errored = errored or keyword_errored
            if found is not None:
                logger.debug(f"Resolved {table}.{label} -> {found} by keyword")
                if errored:
                    return found
                return self.cache.remember_resolution(table, candidates, keywords, found)

        if errored:
            logger.warning(
                f"Could not resolve {table}.{label} from {list(candidates)} "
                f"because of catalog errors; treating as not found"
            )
            return None

        logger.warning(f"No column for {table}.{label}; tried {list(candidates)}")
        return self.cache.remember_resolution(table, candidates, keywords, None)

    def _search_keywords(self, table: str, keywords: Tuple[str, ...]) -> Tuple[Optional[str], bool]:
        try:
            columns = self.datasource.list_columns(table)
        except self.datasource.driver_errors as e:
            logger.warning(f"Column listing failed for {table}: {e}")
            return None, True
        for keyword in keywords:
            needle = keyword.lower()
            for column in columns:
                if needle in column.name.lower() and is_safe_identifier(column.name):
                    return column.name, False
        return None, False

    def resolve_table(self, candidates: Sequence[str], logical_name: Optional[str] = None) -> Optional[str]:
        """Return the first candidate table that exists, or None."""
        candidates = tuple(candidates)
        cached = self.cache.table_resolution(candidates)
        if cached is not MISSING:
            return cached

        errored = False
        for candidate in candidates:
            if not is_safe_identifier(candidate):
                logger.warning(f"Skipping unsafe table candidate {candidate!r}")
                continue
            exists = self.table_exists(candidate)
            if exists is None:
                errored = True
                continue
            if exists:
                if errored:
                    return candidate
                return self.cache.remember_table_resolution(candidates, candidate)

        label = logical_name or "table"
        logger.warning(f"No table for {label}; tried {list(candidates)}")
        if errored:
            return None
        return self.cache.remember_table_resolution(candidates, None)

    def classify(self, table: str, column: Optional[str]) -> TypeClass:
        return self.classifier.classify(table, column)

    def resolve_attribute(self, candidate: ColumnCandidate) -> ResolvedColumn:
        """Resolve a logical attribute to its column and type class.

        The result is immutable and cached per (table, logical name, candidates,
        keywords) once the outcome is definite.
        """
        cached = self.cache.attribute(candidate)
        if cached is not MISSING:
            return cached

        actual = self.resolve(
            candidate.table,
            candidate.candidates,
            candidate.keywords,
            logical_name=candidate.logical_name,
        )
        # Outcomes touched by a catalog error were not cached by resolve()
        definite = self.cache.resolution(
            candidate.table, candidate.candidates, candidate.keywords
        ) is not MISSING
        if actual is None:
            resolved = ResolvedColumn(candidate.table, candidate.logical_name)
            if not definite:
                return resolved
            return self.cache.remember_attribute(candidate, resolved)

        declared = self.classifier.declared_type(candidate.table, actual)
        type_class = self.classifier.classify(candidate.table, actual)
        resolved = ResolvedColumn(candidate.table, candidate.logical_name, actual, type_class)
        if declared is None or not definite:
            # Keep the TEXT fallback for this request only
            return resolved
        return self.cache.remember_attribute(candidate, resolved)

    def __repr__(self) -> str:
        return f"SchemaProbe(datasource={self.datasource.name})"
