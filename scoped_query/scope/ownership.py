"""Lookup of the hotels a manager owns."""

import logging
from typing import Any, Optional, Tuple

from ..catalog.attributes import AttributeRegistry
from ..catalog.resolver import SchemaProbe
from ..plan.identifiers import quote_identifier
from ..plan.predicates import Equality
from ..processor.executor import SafeExecutor
from .context import CallerIdentity, Role, ScopeContext

logger = logging.getLogger(__name__)

HOTEL_ID_CANDIDATES = ("id", "hotel_id")


class OwnershipLookup:
    """Finds the ids of hotels whose owner column points at a manager.

    The hotel table, its id column and its owner column are all resolved
    through the schema probe. If any of them cannot be resolved, ownership
    is unknown and the manager is given no scope.
    """

    def __init__(
        self,
        probe: SchemaProbe,
        executor: Optional[SafeExecutor] = None,
        registry: Optional[AttributeRegistry] = None,
    ):
        self.probe = probe
        if executor is None:
            executor = SafeExecutor(probe.datasource)
        self.executor = executor
        if registry is None:
            registry = AttributeRegistry()
        self.registry = registry

    def owned_hotel_ids(self, manager_id: Any) -> Optional[Tuple[Any, ...]]:
        """Ids of hotels owned by manager_id, in id order.

        Driver errors from the ownership query propagate unchanged.

        Args:
            manager_id: The manager's user id

        Returns:
            Tuple of hotel ids, empty when none are owned; None when the hotel
            table or its id or owner column cannot be resolved
        """
        if manager_id is None:
            return ()

        table = self.probe.resolve_table(self.registry.table_candidates("hotel"), "hotel table")
        if table is None:
            logger.warning("No hotel table found; hotel ownership is unknown")
            return None
        id_column = self.probe.resolve(table, HOTEL_ID_CANDIDATES, logical_name="id")
        owner = self.probe.resolve_attribute(self.registry.get(table, "manager"))
        if id_column is None or not owner.found:
            logger.warning(f"Cannot look up hotel ownership on {table}; hotel ownership is unknown")
            return None

        predicate = Equality(owner.ref(), manager_id, type_class=owner.type_class).compile(1)
        if predicate.is_false():
            return ()

        id_sql = quote_identifier(id_column)
        sql = (
            f"SELECT {id_sql} AS id FROM {quote_identifier(table)} "
            f"WHERE {predicate.sql} ORDER BY {id_sql}"
        )
        result = self.executor.run(sql, predicate.params)
        if result.is_table_missing:
            logger.warning(f"Hotel table {table} disappeared; hotel ownership is unknown")
            return None

        ids = []
        for row in result.rows:
            if row.get("id") is not None:
                ids.append(row["id"])
        return tuple(ids)

    def owns_hotel(self, manager_id: Any, hotel_id: Any) -> bool:
        """Whether hotel_id is one of manager_id's hotels (compared as text)."""
        if hotel_id is None:
            return False
        owned = self.owned_hotel_ids(manager_id)
        if owned is None:
            return False
        wanted = str(hotel_id).strip()
        for owned_id in owned:
            if str(owned_id) == wanted:
                return True
        return False

    def __repr__(self) -> str:
        return f"OwnershipLookup(probe={self.probe!r})"


def build_scope_context(identity: CallerIdentity, ownership: Optional[OwnershipLookup] = None) -> ScopeContext:
    """Construct the per-request scope context for identity.

    Ownership is only looked up for managers.
    """
    owned: Optional[Tuple[Any, ...]] = ()
    if Role.parse(identity.role) is Role.MANAGER and ownership is not None:
        owned = ownership.owned_hotel_ids(identity.user_id)
    return ScopeContext.from_identity(identity, owned)
