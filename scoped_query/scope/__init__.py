"""Per-request authorization scoping."""

from .context import (
    CallerIdentity,
    Role,
    ScopeContext,
    ScopeDecision,
    ScopeState,
    ScopeTarget,
)
from .ownership import OwnershipLookup, build_scope_context
from .resolver import ScopeResolver

__all__ = [
    "CallerIdentity",
    "Role",
    "ScopeContext",
    "ScopeDecision",
    "ScopeState",
    "ScopeTarget",
    "OwnershipLookup",
    "build_scope_context",
    "ScopeResolver",
]
