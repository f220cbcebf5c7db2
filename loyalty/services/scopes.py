"""Role-scoped entity resolution.

This is the only module that branches on the actor's role.  Everything
downstream works on the id-sets produced by :func:`partition_members`.
"""
from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass, field

from loyalty.core.errors import ScopeError
from loyalty.models.enums import TransactionType, UserRole
from loyalty.services.records import QueryFilter, UserRecord


class ActorRole(str, enum.Enum):
    ADMIN = "admin"
    DEALER = "dealer"


class ScopeKind(str, enum.Enum):
    GLOBAL = "global"
    MY_SALES = "my_sales"
    NETWORK = "network"


SELLER_ROLES = frozenset({UserRole.DEALER, UserRole.SUB_DEALER})

_ALLOWED_SCOPES = {
    ActorRole.ADMIN: frozenset({ScopeKind.GLOBAL}),
    ActorRole.DEALER: frozenset({ScopeKind.MY_SALES, ScopeKind.NETWORK}),
}


@dataclass(frozen=True, slots=True)
class ScopeSpec:
    kind: ScopeKind
    dealer_id: str | None = None

    @classmethod
    def global_scope(cls) -> "ScopeSpec":
        return cls(kind=ScopeKind.GLOBAL)

    @classmethod
    def my_sales(cls, dealer_id: str) -> "ScopeSpec":
        return cls(kind=ScopeKind.MY_SALES, dealer_id=dealer_id)

    @classmethod
    def network(cls, dealer_id: str) -> "ScopeSpec":
        return cls(kind=ScopeKind.NETWORK, dealer_id=dealer_id)


def scope_for_actor(
    actor_role: ActorRole | str,
    scope: ScopeKind | str | None = None,
    dealer_id: str | None = None,
) -> ScopeSpec:
    """Validate an actor/scope combination and build the matching spec.

    Admins default to the global scope and dealers to their own sales.
    """

    try:
        role = ActorRole(actor_role)
    except ValueError as exc:
        raise ScopeError(f"Role '{actor_role}' has no analytics scope") from exc

    if scope is None:
        kind = ScopeKind.GLOBAL if role is ActorRole.ADMIN else ScopeKind.MY_SALES
    else:
        try:
            kind = ScopeKind(scope)
        except ValueError as exc:
            raise ScopeError(f"Unknown scope '{scope}'") from exc

    if kind not in _ALLOWED_SCOPES[role]:
        raise ScopeError(f"Scope '{kind.value}' is not available to role '{role.value}'")
    if role is ActorRole.DEALER and not dealer_id:
        raise ScopeError("Dealer scopes require a dealer id")

    if kind is ScopeKind.GLOBAL:
        return ScopeSpec.global_scope()
    return ScopeSpec(kind=kind, dealer_id=dealer_id)


def scope_user_filter(scope: ScopeSpec) -> QueryFilter:
    """Return the filter that selects the members of ``scope``."""

    if scope.kind is ScopeKind.GLOBAL:
        return QueryFilter(within={"role": SELLER_ROLES})
    if scope.kind is ScopeKind.MY_SALES:
        return QueryFilter(equals={"id": scope.dealer_id, "role": UserRole.DEALER})
    return QueryFilter(equals={"created_by": scope.dealer_id, "role": UserRole.SUB_DEALER})


def population_filter(scope: ScopeSpec) -> QueryFilter:
    """Users fetched to resolve ``scope``.

    The global scope reads every user so the role distribution can be reported;
    members are still selected with :func:`scope_user_filter` after the fetch.
    """
    if scope.kind is ScopeKind.GLOBAL:
        return QueryFilter()
    return scope_user_filter(scope)


@dataclass(frozen=True, slots=True)
class ResolvedScope:
    """Members of a scope, split into disjoint dealer and sub-dealer id-sets."""

    scope: ScopeSpec
    users: tuple[UserRecord, ...] = ()
    dealer_ids: frozenset[str] = field(default_factory=frozenset)
    sub_dealer_ids: frozenset[str] = field(default_factory=frozenset)
    population: tuple[UserRecord, ...] = ()

    @property
    def member_ids(self) -> frozenset[str]:
        return self.dealer_ids | self.sub_dealer_ids


def partition_members(scope: ScopeSpec, users: Iterable[UserRecord]) -> ResolvedScope:
    """Split fetched users into the disjoint id-sets ``scope`` contributes."""

    population = tuple(users)
    member_filter = scope_user_filter(scope)
    members = tuple(user for user in population if member_filter.matches(user))
    dealer_ids = frozenset(user.id for user in members if user.role is UserRole.DEALER)
    sub_dealer_ids = frozenset(user.id for user in members if user.role is UserRole.SUB_DEALER)
    if scope.kind is ScopeKind.MY_SALES:
        # The dealer's own sales are attributed to it even before its record is visible.
        dealer_ids = frozenset({scope.dealer_id}) if scope.dealer_id else frozenset()
    return ResolvedScope(
        scope=scope,
        users=members,
        dealer_ids=dealer_ids,
        sub_dealer_ids=sub_dealer_ids,
        population=population,
    )


def countersign_filter(actor_role: ActorRole | str, dealer_id: str | None = None) -> QueryFilter:
    """Transactions an actor is responsible for approving.

    Admins review every request; dealers only those they countersign.
    """

    try:
        role = ActorRole(actor_role)
    except ValueError as exc:
        raise ScopeError(f"Role '{actor_role}' does not approve requests") from exc
    if role is ActorRole.ADMIN:
        return QueryFilter()
    if not dealer_id:
        raise ScopeError("Dealer scopes require a dealer id")
    return QueryFilter(equals={"dealer_id": dealer_id})


def performance_filter(dealer_id: str) -> QueryFilter:
    """Earned transactions countersigned by ``dealer_id``."""
    return QueryFilter(equals={"dealer_id": dealer_id, "type": TransactionType.EARNED})


__all__ = [
    "ActorRole",
    "ResolvedScope",
    "SELLER_ROLES",
    "ScopeKind",
    "ScopeSpec",
    "countersign_filter",
    "partition_members",
    "performance_filter",
    "population_filter",
    "scope_for_actor",
    "scope_user_filter",
]
