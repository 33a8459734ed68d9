"""
Read contracts the auth core needs from persistence.

The resolver and evaluator depend on these protocols only; the SQLAlchemy
implementation lives in ``geoaccess.crud.store`` and tests pass fakes.
"""

from __future__ import annotations

from typing import Optional, Protocol

from geoaccess.auth.identity import ResourceKind


class PrincipalRecord(Protocol):
    id: str
    username: str
    role: str
    is_active: bool


class ResourceRecord(Protocol):
    id: str
    access_level: str


class CredentialStore(Protocol):
    def find_principal_by_api_key(self, key: str) -> Optional[PrincipalRecord]: ...


class GrantStore(Protocol):
    def get_resource(self, kind: ResourceKind, resource_id: str) -> Optional[ResourceRecord]: ...

    def is_admin(self, principal_id: str) -> bool: ...

    def has_direct_grant(self, kind: ResourceKind, resource_id: str, principal_id: str) -> bool: ...

    def has_group_grant(self, kind: ResourceKind, resource_id: str, principal_id: str) -> bool: ...
