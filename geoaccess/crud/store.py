# store.py

from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from geoaccess.auth.identity import ResourceKind
from geoaccess.core.database import translate_store_errors
from geoaccess.crud import crud_access, crud_auth
from geoaccess.crud.crud_access import ProtectedResource
from geoaccess.models.auth import Principal


class SqlStore:
    """Credential and grant lookups bound to one request session."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def find_principal_by_api_key(self, key: str) -> Optional[Principal]:
        with translate_store_errors():
            return crud_auth.find_principal_by_api_key(self.db, key)

    def is_admin(self, principal_id: str) -> bool:
        with translate_store_errors():
            return crud_auth.is_admin(self.db, principal_id)

    def get_resource(self, kind: ResourceKind, resource_id: str) -> Optional[ProtectedResource]:
        with translate_store_errors():
            return crud_access.get_resource(self.db, kind, resource_id)

    def has_direct_grant(self, kind: ResourceKind, resource_id: str, principal_id: str) -> bool:
        with translate_store_errors():
            return crud_access.has_direct_grant(self.db, kind, resource_id, principal_id)

    def has_group_grant(self, kind: ResourceKind, resource_id: str, principal_id: str) -> bool:
        with translate_store_errors():
            return crud_access.has_group_grant(self.db, kind, resource_id, principal_id)
