"""Catalog probing: which columns exist, what they are called, what type they hold."""

from .attributes import AttributeRegistry
from .cache import MetadataCache
from .resolver import SchemaProbe
from .schema import ColumnCandidate, ResolvedColumn
from .types import TypeClassifier, classify_declared_type

__all__ = [
    "AttributeRegistry",
    "MetadataCache",
    "SchemaProbe",
    "ColumnCandidate",
    "ResolvedColumn",
    "TypeClassifier",
    "classify_declared_type",
]
