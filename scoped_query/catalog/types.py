"""Declared column type classification."""

import logging
import re
from typing import Optional

from ..datasources.base import DataSource
from ..plan.predicates import TypeClass
from .cache import MISSING, MetadataCache

logger = logging.getLogger(__name__)

NUMERIC_TYPE_MARKERS = frozenset(
    [
        # integers
        "int", "integer", "int2", "int4", "int8",
        "tinyint", "smallint", "bigint", "hugeint",
        "utinyint", "usmallint", "uinteger", "ubigint", "uhugeint",
        "serial", "smallserial", "bigserial", "serial2", "serial4", "serial8",
        # exact and approximate numerics
        "numeric", "decimal",
        "real", "double", "double precision",
        "float", "float4", "float8",
    ]
)

TYPE_MODIFIER = re.compile(r"\s*\(.*\)\s*$")


def classify_declared_type(declared: Optional[str]) -> TypeClass:
    """Map a declared type string to NUMERIC or TEXT.

    Matching is case-insensitive and ignores precision/scale modifiers
    (``DECIMAL(18,3)``). Unknown, array and absent types are TEXT.
    """
    if not declared:
        return TypeClass.TEXT
    normalized = TYPE_MODIFIER.sub("", declared.strip().lower())
    normalized = " ".join(normalized.split())
    if normalized in NUMERIC_TYPE_MARKERS:
        return TypeClass.NUMERIC
    return TypeClass.TEXT


class TypeClassifier:
    """Looks up declared column types through the catalog and classifies them."""

    def __init__(self, datasource: DataSource, cache: Optional[MetadataCache] = None):
        self.datasource = datasource
        if cache is None:
            cache = MetadataCache()
        self.cache = cache

    def declared_type(self, table: str, column: str) -> Optional[str]:
        """Declared type of table.column, None if absent or the lookup failed.

        Failed lookups are not cached.
        """
        cached = self.cache.column_type(table, column)
        if cached is not MISSING:
            return cached
        try:
            declared = self.datasource.column_type(table, column)
        except self.datasource.driver_errors as e:
            logger.warning(f"Type lookup failed for {table}.{column}: {e}")
            return None
        return self.cache.remember_column_type(table, column, declared)

    def classify(self, table: str, column: Optional[str]) -> TypeClass:
        """Classify table.column; lookup failures fall back to TEXT."""
        if column is None:
            return TypeClass.TEXT
        return classify_declared_type(self.declared_type(table, column))
