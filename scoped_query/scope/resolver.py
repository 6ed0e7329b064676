"""Authorization scope resolution."""

import logging
from typing import Optional

from ..catalog.attributes import AttributeRegistry
from ..catalog.resolver import SchemaProbe
from ..catalog.schema import ColumnCandidate, ResolvedColumn
from ..plan.predicates import (
    Equality,
    Predicate,
    TypeClass,
    build_membership,
    false_predicate,
    true_predicate,
)
from .context import CallerIdentity, ScopeContext, ScopeDecision, ScopeState, ScopeTarget
from .ownership import OwnershipLookup, build_scope_context

logger = logging.getLogger(__name__)


class ScopeResolver:
    """Turns a caller's scope into a row filter for a target table.

    States and their predicates:

    - UNRESTRICTED (admin): ``TRUE``
    - OWNED_SET (manager owning hotels): membership of the table's hotel
      column in the owned ids, typed to the column
    - BRANCH_SCOPED (manager without hotels, or staff, with a branch):
      ``<branch column> = $n``
    - EMPTY: ``FALSE``

    Any column that cannot be resolved turns the predicate into ``FALSE``.
    """

    def __init__(
        self,
        probe: SchemaProbe,
        registry: Optional[AttributeRegistry] = None,
        ownership: Optional[OwnershipLookup] = None,
        manager_includes_branch: bool = False,
    ):
        """Initialize resolver.

        Args:
            probe: Schema probe shared across requests
            registry: Logical attribute candidates
            ownership: Lookup of manager-owned hotels, for identity resolution
            manager_includes_branch: Let managers owning hotels also see rows
                of their own branch
        """
        self.probe = probe
        if registry is None:
            registry = AttributeRegistry()
        self.registry = registry
        self.ownership = ownership
        self.manager_includes_branch = manager_includes_branch

    def target(self, table: str, qualifier: Optional[str] = None) -> ScopeTarget:
        return ScopeTarget.for_table(table, self.registry, qualifier)

    def resolve(
        self,
        context: ScopeContext,
        target: ScopeTarget,
        start_param_index: int = 1,
    ) -> ScopeDecision:
        """Decide the row filter for context on target.

        Args:
            context: Per-request scope context
            target: Table being queried
            start_param_index: Number of the first placeholder to use

        Returns:
            Scope decision carrying the state and predicate
        """
        state = context.state

        if state is ScopeState.UNRESTRICTED:
            return ScopeDecision(state, true_predicate(start_param_index))

        if state is ScopeState.EMPTY:
            logger.info(
                f"Caller with role {context.role.value if context.role else None} "
                f"has no scope on {target.table}"
            )
            return ScopeDecision(state, false_predicate(start_param_index))

        if state is ScopeState.OWNED_SET:
            column = self._resolve(target, target.hotel_attribute, "hotel")
            predicate = build_membership(
                column.ref(target.qualifier),
                column.type_class,
                context.owned_hotel_ids,
                start_param_index,
            )
            if self.manager_includes_branch and context.branch is not None:
                predicate = predicate.or_(
                    self._branch_predicate(context, target, predicate.next_param_index)
                )
            return ScopeDecision(state, predicate, column)

        column = self._resolve(target, target.branch_attribute, "branch")
        predicate = self._branch_equality(column, context.branch, target.qualifier, start_param_index)
        return ScopeDecision(state, predicate, column)

    def resolve_identity(
        self,
        identity: CallerIdentity,
        target: ScopeTarget,
        start_param_index: int = 1,
    ) -> ScopeDecision:
        """Build the request's context (loading ownership) and resolve it."""
        context = build_scope_context(identity, self.ownership)
        return self.resolve(context, target, start_param_index)

    def _branch_predicate(self, context: ScopeContext, target: ScopeTarget, start_param_index: int) -> Predicate:
        column = self._resolve(target, target.branch_attribute, "branch")
        return self._branch_equality(column, context.branch, target.qualifier, start_param_index)

    def _branch_equality(
        self,
        column: ResolvedColumn,
        branch: Optional[str],
        qualifier: Optional[str],
        start_param_index: int,
    ) -> Predicate:
        type_class = None
        if column.type_class is TypeClass.NUMERIC:
            type_class = TypeClass.NUMERIC
        condition = Equality(column.ref(qualifier), branch, type_class=type_class)
        return condition.compile(start_param_index)

    def _resolve(
        self,
        target: ScopeTarget,
        attribute: Optional[ColumnCandidate],
        logical_name: str,
    ) -> ResolvedColumn:
        if attribute is None:
            try:
                attribute = self.registry.get(target.table, logical_name)
            except KeyError:
                logger.warning(f"No {logical_name} attribute registered for {target.table}")
                return ResolvedColumn(target.table, logical_name)
        if attribute.table != target.table:
            attribute = attribute.on_table(target.table)
        resolved = self.probe.resolve_attribute(attribute)
        if not resolved.found:
            logger.warning(
                f"Scope column {target.table}.{logical_name} not found; "
                f"denying access (tried {list(attribute.candidates)})"
            )
        return resolved

    def __repr__(self) -> str:
        return f"ScopeResolver(probe={self.probe!r})"
