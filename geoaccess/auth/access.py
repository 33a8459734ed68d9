"""
Resource-level read access for catalog models and geographic zones.

Read access is the OR of independent grant sources. Each source is a named
check evaluated in order; a check answers True (grant), False (deny, stop)
or None (no opinion, continue). Ordering only affects cost: public resources
and admins never reach the grant tables.

Administering a resource (access level, grant lists) is not governed here;
it requires the admin role through the role gate.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, TypeVar

from geoaccess.auth.identity import AccessLevel, Identity, ResourceKind
from geoaccess.auth.stores import GrantStore, ResourceRecord
from geoaccess.core.errors import NotFound

R = TypeVar("R", bound=ResourceRecord)

Decision = Optional[bool]


@dataclass(frozen=True)
class AccessCheck:
    name: str
    decide: Callable[[GrantStore, Identity, ResourceKind, ResourceRecord], Decision]


def public_resource(store: GrantStore, identity: Identity, kind: ResourceKind, resource: ResourceRecord) -> Decision:
    return True if resource.access_level == AccessLevel.PUBLIC.value else None


def anonymous_caller(store: GrantStore, identity: Identity, kind: ResourceKind, resource: ResourceRecord) -> Decision:
    return False if identity.is_anonymous else None


def admin_role(store: GrantStore, identity: Identity, kind: ResourceKind, resource: ResourceRecord) -> Decision:
    # current store role, not the one frozen into a session token
    return True if store.is_admin(identity.principal_id) else None


def direct_grant(store: GrantStore, identity: Identity, kind: ResourceKind, resource: ResourceRecord) -> Decision:
    return True if store.has_direct_grant(kind, resource.id, identity.principal_id) else None


def group_grant(store: GrantStore, identity: Identity, kind: ResourceKind, resource: ResourceRecord) -> Decision:
    return True if store.has_group_grant(kind, resource.id, identity.principal_id) else None


DEFAULT_CHECKS: Sequence[AccessCheck] = (
    AccessCheck("public", public_resource),
    AccessCheck("anonymous", anonymous_caller),
    AccessCheck("admin", admin_role),
    AccessCheck("direct_grant", direct_grant),
    AccessCheck("group_grant", group_grant),
)


class AccessEvaluator:
    def __init__(self, store: GrantStore, checks: Sequence[AccessCheck] = DEFAULT_CHECKS) -> None:
        self._store = store
        self._checks = tuple(checks)

    def explain(self, identity: Identity, kind: ResourceKind, resource: ResourceRecord) -> Optional[str]:
        """Name of the check that granted read access, or None when denied."""
        kind = ResourceKind(kind)
        for check in self._checks:
            decision = check.decide(self._store, identity, kind, resource)
            if decision is True:
                return check.name
            if decision is False:
                return None
        return None

    def can_read_resource(self, identity: Identity, kind: ResourceKind, resource: ResourceRecord) -> bool:
        return self.explain(identity, kind, resource) is not None

    def can_read(self, identity: Identity, kind: ResourceKind, resource_id: str) -> bool:
        resource = self._store.get_resource(ResourceKind(kind), resource_id)
        if resource is None:
            return False
        return self.can_read_resource(identity, kind, resource)

    def require_readable(self, identity: Identity, kind: ResourceKind, resource_id: str) -> ResourceRecord:
        """
        Single-resource lookup. Missing and unreadable both raise NotFound so
        unauthorized callers learn nothing about private resources.
        """
        kind = ResourceKind(kind)
        resource = self._store.get_resource(kind, resource_id)
        if resource is None or not self.can_read_resource(identity, kind, resource):
            raise NotFound(f"{kind.value.capitalize()} not found")
        return resource

    def filter_readable(self, identity: Identity, kind: ResourceKind, resources: Iterable[R]) -> List[R]:
        return [r for r in resources if self.can_read_resource(identity, kind, r)]
