"""SQL identifier validation and rendering.

Column and table names discovered from the catalog end up interpolated into
SQL text. Only names matching ``[A-Za-z_][A-Za-z0-9_]*`` are ever rendered;
everything else is rejected before it reaches a statement.
"""

import re
from typing import Optional

SAFE_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Words that must be quoted to be used as a bare column or table name
RESERVED_WORDS = frozenset(
    [
        "all", "and", "any", "array", "as", "asc", "between", "case", "cast",
        "check", "column", "constraint", "create", "default", "desc",
        "distinct", "else", "end", "false", "from", "grant", "group",
        "having", "in", "is", "join", "like", "limit", "not", "null",
        "offset", "on", "or", "order", "primary", "references", "select",
        "table", "then", "to", "true", "union", "unique", "user", "using",
        "when", "where", "with",
    ]
)


class IdentifierError(ValueError):
    """Raised when a name cannot be safely used as a SQL identifier."""


def is_safe_identifier(name: Optional[str]) -> bool:
    """Return True if name may be interpolated into SQL text."""
    if not isinstance(name, str):
        return False
    return SAFE_IDENTIFIER.fullmatch(name) is not None


def quote_identifier(name: str) -> str:
    """Render a validated identifier.

    Lower-case names are emitted bare. Names carrying upper-case letters
    (``hotelId``) or colliding with a reserved word are double-quoted so the
    database sees the exact catalog spelling.

    Args:
        name: Identifier to render

    Returns:
        SQL text for the identifier

    Raises:
        IdentifierError: If name fails the safe identifier rule
    """
    if not is_safe_identifier(name):
        raise IdentifierError(f"Unsafe SQL identifier: {name!r}")
    if name != name.lower() or name in RESERVED_WORDS:
        return f'"{name}"'
    return name


def column_reference(name: str, qualifier: Optional[str] = None) -> str:
    """Render ``qualifier.name`` (or just ``name``) with both parts validated."""
    column_sql = quote_identifier(name)
    if qualifier:
        return f"{quote_identifier(qualifier)}.{column_sql}"
    return column_sql
