"""Schema metadata classes."""

from dataclasses import dataclass
from typing import Optional, Tuple

from ..plan.predicates import ColumnRef, TypeClass


@dataclass(frozen=True)
class ColumnCandidate:
    """A logical attribute and the physical names that may back it.

    Candidates are ordered by preference; resolution returns the first that
    exists. Keywords are a last-resort substring search over the table's
    columns.
    """

    table: str
    logical_name: str
    candidates: Tuple[str, ...]
    keywords: Tuple[str, ...] = ()

    def __post_init__(self):
        if not self.candidates:
            raise ValueError(
                f"Candidate list for {self.table}.{self.logical_name} must not be empty"
            )
        # Accept lists from callers and config files
        object.__setattr__(self, "candidates", tuple(self.candidates))
        object.__setattr__(self, "keywords", tuple(self.keywords))

    @property
    def key(self) -> str:
        return f"{self.table}.{self.logical_name}"

    def on_table(self, table: str) -> "ColumnCandidate":
        """Same logical attribute and candidates on another table."""
        return ColumnCandidate(table, self.logical_name, self.candidates, self.keywords)

    def __repr__(self) -> str:
        return f"ColumnCandidate({self.key}, {list(self.candidates)})"


@dataclass(frozen=True)
class ResolvedColumn:
    """Outcome of resolving a logical attribute on the running schema."""

    table: str
    logical_name: str
    actual_name: Optional[str] = None
    type_class: Optional[TypeClass] = None

    @property
    def found(self) -> bool:
        return self.actual_name is not None

    def ref(self, qualifier: Optional[str] = None) -> ColumnRef:
        """Column reference for predicates; unresolved columns compile to FALSE."""
        return ColumnRef(self.actual_name, qualifier)

    def __repr__(self) -> str:
        type_name = self.type_class.value if self.type_class else None
        return f"ResolvedColumn({self.table}.{self.logical_name} -> {self.actual_name}, {type_name})"
