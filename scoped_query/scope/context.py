"""Caller identity and per-request authorization scope."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional, Tuple

from ..catalog.attributes import AttributeRegistry
from ..catalog.schema import ColumnCandidate, ResolvedColumn
from ..plan.predicates import Predicate


class Role(Enum):
    """Caller roles."""

    ADMIN = "admin"
    MANAGER = "manager"
    STAFF = "staff"

    @classmethod
    def parse(cls, value: Any) -> Optional["Role"]:
        """Parse a role name case-insensitively; unknown roles return None."""
        if isinstance(value, Role):
            return value
        if value is None:
            return None
        text = str(value).strip().lower()
        for role in cls:
            if role.value == text:
                return role
        return None


class ScopeState(Enum):
    """Authorization states, evaluated once per request."""

    UNRESTRICTED = "unrestricted"
    OWNED_SET = "owned_set"
    BRANCH_SCOPED = "branch_scoped"
    EMPTY = "empty"


def _present(value: Any) -> Optional[str]:
    """Blank, "null" and "undefined" strings count as absent."""
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() in ("null", "undefined"):
        return None
    return text


def _unique_ids(values: Optional[Iterable[Any]]) -> Tuple[Any, ...]:
    if values is None:
        return ()
    seen = set()
    result = []
    for value in values:
        if value is None:
            continue
        key = str(value)
        if key in seen:
            continue
        seen.add(key)
        result.append(value)
    return tuple(result)


@dataclass(frozen=True)
class CallerIdentity:
    """Authenticated caller as supplied by the surrounding application."""

    role: Any
    user_id: Any = None
    branch: Optional[str] = None


@dataclass(frozen=True)
class ScopeContext:
    """Everything needed to decide what one request may see.

    Built per request and never cached; owned hotel ids keep the order the
    ownership lookup returned them in. ``ownership_known`` is False when a
    manager's hotels could not be determined; such a manager sees nothing.
    """

    role: Optional[Role]
    user_id: Any = None
    branch: Optional[str] = None
    owned_hotel_ids: Tuple[Any, ...] = field(default_factory=tuple)
    ownership_known: bool = True

    def __post_init__(self):
        object.__setattr__(self, "role", Role.parse(self.role))
        object.__setattr__(self, "branch", _present(self.branch))
        object.__setattr__(self, "owned_hotel_ids", _unique_ids(self.owned_hotel_ids))

    @classmethod
    def from_identity(
        cls,
        identity: CallerIdentity,
        owned_hotel_ids: Optional[Iterable[Any]] = (),
    ) -> "ScopeContext":
        """Context for identity; owned_hotel_ids of None means ownership is unknown."""
        return cls(
            role=identity.role,
            user_id=identity.user_id,
            branch=identity.branch,
            owned_hotel_ids=tuple(owned_hotel_ids or ()),
            ownership_known=owned_hotel_ids is not None,
        )

    @property
    def state(self) -> ScopeState:
        """Authorization state, by the fixed transition order."""
        if self.role is Role.ADMIN:
            return ScopeState.UNRESTRICTED
        if self.role is Role.MANAGER and not self.ownership_known:
            return ScopeState.EMPTY
        if self.role is Role.MANAGER and self.owned_hotel_ids:
            return ScopeState.OWNED_SET
        if self.role in (Role.MANAGER, Role.STAFF) and self.branch is not None:
            return ScopeState.BRANCH_SCOPED
        return ScopeState.EMPTY


@dataclass(frozen=True)
class ScopeTarget:
    """The table being scoped and the attributes that carry hotel and branch."""

    table: str
    hotel_attribute: Optional[ColumnCandidate] = None
    branch_attribute: Optional[ColumnCandidate] = None
    qualifier: Optional[str] = None

    @classmethod
    def for_table(
        cls,
        table: str,
        registry: Optional[AttributeRegistry] = None,
        qualifier: Optional[str] = None,
    ) -> "ScopeTarget":
        """Target using the registry's hotel and branch candidates for table."""
        if registry is None:
            registry = AttributeRegistry()
        return cls(
            table=table,
            hotel_attribute=registry.get(table, "hotel"),
            branch_attribute=registry.get(table, "branch"),
            qualifier=qualifier,
        )


@dataclass(frozen=True)
class ScopeDecision:
    """Result of scope resolution for one request and one table."""

    state: ScopeState
    predicate: Predicate
    column: Optional[ResolvedColumn] = None

    @property
    def short_circuit(self) -> bool:
        """True when nothing can match and the query should not run."""
        return self.predicate.is_false()

    def __repr__(self) -> str:
        return f"ScopeDecision({self.state.value}, {self.predicate.sql!r})"
