"""Well-known logical attributes and their candidate column names."""

from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .schema import ColumnCandidate

HOTEL_REFERENCE = ("hotel_id", "hotelId", "hotel", "hotelid")
MANAGER_REFERENCE = ("manager_id", "managerId", "manager", "managerid")
USER_REFERENCE = ("user_id", "userId", "employee_id", "staff_id", "userid")
BRANCH_REFERENCE = ("branch", "branch_name", "branchName")

HOTEL_TABLES = ("hotels", "hotel", "properties", "property", "accommodations", "accommodation")
ROOM_TABLES = ("rooms", "room", "hotel_rooms", "hotel_room", "rooms_table")

DEFAULT_ATTRIBUTES = (
    ColumnCandidate("users", "hotel", HOTEL_REFERENCE),
    ColumnCandidate("users", "manager", MANAGER_REFERENCE),
    ColumnCandidate("users", "branch", BRANCH_REFERENCE),
    ColumnCandidate("attendance", "hotel", HOTEL_REFERENCE),
    ColumnCandidate("attendance", "user", USER_REFERENCE),
    ColumnCandidate("hotels", "manager", MANAGER_REFERENCE + ("owner_id",)),
    ColumnCandidate("hotels", "branch", BRANCH_REFERENCE),
    ColumnCandidate(
        "service_users",
        "hotel",
        ("hotel_id", "hotels_id", "property_id", "accommodation_id", "accom_id", "hotelid"),
        keywords=("hotel", "property", "accom"),
    ),
    ColumnCandidate("tickets", "hotel", HOTEL_REFERENCE),
)

# Candidates used for a logical name on a table with no explicit entry
GENERIC_CANDIDATES = {
    "hotel": HOTEL_REFERENCE,
    "manager": MANAGER_REFERENCE,
    "user": USER_REFERENCE,
    "branch": BRANCH_REFERENCE,
}

DEFAULT_TABLES = {
    "hotel": HOTEL_TABLES,
    "room": ROOM_TABLES,
}


class AttributeRegistry:
    """Per-deployment set of logical attributes, keyed ``table.logical_name``.

    Each registry owns its entries; overrides from configuration never leak
    into another instance.
    """

    def __init__(
        self,
        attributes: Iterable[ColumnCandidate] = DEFAULT_ATTRIBUTES,
        tables: Optional[Mapping[str, Sequence[str]]] = None,
    ):
        self._attributes: Dict[str, ColumnCandidate] = {}
        for attribute in attributes:
            self._attributes[attribute.key] = attribute
        self._tables: Dict[str, tuple] = {}
        if tables is None:
            tables = DEFAULT_TABLES
        for logical_name, candidates in tables.items():
            self._tables[logical_name] = tuple(candidates)

    def get(self, table: str, logical_name: str) -> ColumnCandidate:
        """Candidate list for a logical attribute on a table.

        Falls back to the generic list for the logical name when the table has
        no explicit entry.

        Raises:
            KeyError: If neither an explicit nor a generic list exists
        """
        key = f"{table}.{logical_name}"
        if key in self._attributes:
            return self._attributes[key]
        if logical_name in GENERIC_CANDIDATES:
            return ColumnCandidate(table, logical_name, GENERIC_CANDIDATES[logical_name])
        raise KeyError(f"No candidate list for logical attribute {key}")

    def override(self, key: str, candidates: Sequence[str], keywords: Sequence[str] = ()) -> None:
        """Replace the candidates for ``table.logical_name``."""
        if "." not in key:
            raise ValueError(f"Attribute key must look like table.logical_name: {key!r}")
        table, logical_name = key.split(".", 1)
        self._attributes[key] = ColumnCandidate(table, logical_name, tuple(candidates), tuple(keywords))

    def table_candidates(self, logical_name: str) -> tuple:
        """Candidate table names for a logical table (``hotel``, ``room``)."""
        if logical_name not in self._tables:
            raise KeyError(f"No table candidates for {logical_name!r}")
        return self._tables[logical_name]

    def override_tables(self, logical_name: str, candidates: Sequence[str]) -> None:
        if not candidates:
            raise ValueError(f"Table candidates for {logical_name!r} must not be empty")
        self._tables[logical_name] = tuple(candidates)

    def attributes(self) -> List[ColumnCandidate]:
        result = []
        for key in sorted(self._attributes):
            result.append(self._attributes[key])
        return result

    def __contains__(self, key: str) -> bool:
        return key in self._attributes

    def __repr__(self) -> str:
        return f"AttributeRegistry(attributes={len(self._attributes)})"
