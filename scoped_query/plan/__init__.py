"""Predicate fragments and identifier handling."""

from .identifiers import (
    IdentifierError,
    column_reference,
    is_safe_identifier,
    quote_identifier,
)
from .predicates import (
    ColumnRef,
    Condition,
    Conjunction,
    Constant,
    Disjunction,
    Equality,
    FreeText,
    Membership,
    Predicate,
    Range,
    TypeClass,
    build_membership,
    false_predicate,
    parse_integer,
    placeholder_indices,
    true_predicate,
)

__all__ = [
    "IdentifierError",
    "column_reference",
    "is_safe_identifier",
    "quote_identifier",
    "ColumnRef",
    "Condition",
    "Conjunction",
    "Constant",
    "Disjunction",
    "Equality",
    "FreeText",
    "Membership",
    "Predicate",
    "Range",
    "TypeClass",
    "build_membership",
    "false_predicate",
    "parse_integer",
    "placeholder_indices",
    "true_predicate",
]
