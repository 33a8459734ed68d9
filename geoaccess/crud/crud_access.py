# crud_access.py

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Union

from sqlalchemy.orm import Session

from geoaccess.auth.identity import AccessLevel, ResourceKind
from geoaccess.core.errors import Conflict, NotFound, ValidationFailed
from geoaccess.models.access import AccessZone, CatalogModel, DirectGrant, Group, GroupGrant, GroupMembership
from geoaccess.models.auth import Principal

ProtectedResource = Union[CatalogModel, AccessZone]

RESOURCE_MODELS = {
    ResourceKind.MODEL: CatalogModel,
    ResourceKind.ZONE: AccessZone,
}


def get_resource(db: Session, kind: ResourceKind, resource_id: str) -> Optional[ProtectedResource]:
    model = RESOURCE_MODELS[ResourceKind(kind)]
    return db.query(model).filter(model.id == resource_id).first()


def get_resource_or_404(db: Session, kind: ResourceKind, resource_id: str) -> ProtectedResource:
    obj = get_resource(db, kind, resource_id)
    if not obj:
        raise NotFound(f"{ResourceKind(kind).value.capitalize()} not found")
    return obj


def list_resources(db: Session, kind: ResourceKind) -> List[ProtectedResource]:
    model = RESOURCE_MODELS[ResourceKind(kind)]
    return db.query(model).order_by(model.name, model.id).all()


def create_model(
    db: Session,
    name: str,
    access_level: AccessLevel = AccessLevel.PUBLIC,
    description: Optional[str] = None,
) -> CatalogModel:
    obj = CatalogModel(name=name, description=description, access_level=AccessLevel(access_level).value)
    db.add(obj)
    db.flush()
    return obj


def create_zone(
    db: Session,
    name: str,
    access_level: AccessLevel = AccessLevel.PRIVATE,
    description: Optional[str] = None,
    created_by: Optional[str] = None,
) -> AccessZone:
    obj = AccessZone(
        name=name,
        description=description,
        access_level=AccessLevel(access_level).value,
        created_by=created_by,
    )
    db.add(obj)
    db.flush()
    return obj


def has_direct_grant(db: Session, kind: ResourceKind, resource_id: str, principal_id: str) -> bool:
    row = (
        db.query(DirectGrant.id)
        .filter(
            DirectGrant.resource_kind == ResourceKind(kind).value,
            DirectGrant.resource_id == resource_id,
            DirectGrant.principal_id == principal_id,
        )
        .first()
    )
    return row is not None


def has_group_grant(db: Session, kind: ResourceKind, resource_id: str, principal_id: str) -> bool:
    # one level of indirection: grant -> group -> current membership
    row = (
        db.query(GroupGrant.id)
        .join(GroupMembership, GroupMembership.group_id == GroupGrant.group_id)
        .filter(
            GroupGrant.resource_kind == ResourceKind(kind).value,
            GroupGrant.resource_id == resource_id,
            GroupMembership.principal_id == principal_id,
        )
        .first()
    )
    return row is not None


def grants_snapshot(db: Session, kind: ResourceKind, resource: ProtectedResource) -> Dict[str, Any]:
    kind_value = ResourceKind(kind).value
    users = (
        db.query(Principal.id, Principal.username)
        .join(DirectGrant, DirectGrant.principal_id == Principal.id)
        .filter(DirectGrant.resource_kind == kind_value, DirectGrant.resource_id == resource.id)
        .order_by(Principal.username)
        .all()
    )
    groups = (
        db.query(Group.id, Group.name)
        .join(GroupGrant, GroupGrant.group_id == Group.id)
        .filter(GroupGrant.resource_kind == kind_value, GroupGrant.resource_id == resource.id)
        .order_by(Group.name)
        .all()
    )
    return {
        "resource_id": resource.id,
        "resource_name": resource.name,
        "access_level": resource.access_level,
        "user_permissions": [{"id": u.id, "username": u.username} for u in users],
        "group_permissions": [{"id": g.id, "name": g.name} for g in groups],
    }


def set_access_level(db: Session, resource: ProtectedResource, access_level: AccessLevel) -> None:
    resource.access_level = AccessLevel(access_level).value
    db.flush()


def _check_ids_exist(db: Session, column, ids: List[str], label: str) -> None:
    if not ids:
        return
    found = {r[0] for r in db.query(column).filter(column.in_(ids)).all()}
    invalid = [i for i in ids if i not in found]
    if invalid:
        raise ValidationFailed(f"{label} not found", details={"invalid_ids": invalid})


def replace_direct_grants(
    db: Session,
    kind: ResourceKind,
    resource_id: str,
    principal_ids: Iterable[str],
    created_by: Optional[str],
) -> None:
    ids = list(dict.fromkeys(principal_ids))
    if ids:
        active = (
            db.query(Principal.id)
            .filter(Principal.id.in_(ids), Principal.is_active == True)  # noqa: E712
            .all()
        )
        found = {r[0] for r in active}
        invalid = [i for i in ids if i not in found]
        if invalid:
            raise ValidationFailed("Users not found", details={"invalid_ids": invalid})

    kind_value = ResourceKind(kind).value
    db.query(DirectGrant).filter(
        DirectGrant.resource_kind == kind_value,
        DirectGrant.resource_id == resource_id,
    ).delete(synchronize_session=False)
    for principal_id in ids:
        db.add(
            DirectGrant(
                resource_kind=kind_value,
                resource_id=resource_id,
                principal_id=principal_id,
                created_by=created_by,
            )
        )
    db.flush()


def replace_group_grants(
    db: Session,
    kind: ResourceKind,
    resource_id: str,
    group_ids: Iterable[str],
    created_by: Optional[str],
) -> None:
    ids = list(dict.fromkeys(group_ids))
    _check_ids_exist(db, Group.id, ids, "Groups")

    kind_value = ResourceKind(kind).value
    db.query(GroupGrant).filter(
        GroupGrant.resource_kind == kind_value,
        GroupGrant.resource_id == resource_id,
    ).delete(synchronize_session=False)
    for group_id in ids:
        db.add(
            GroupGrant(
                resource_kind=kind_value,
                resource_id=resource_id,
                group_id=group_id,
                created_by=created_by,
            )
        )
    db.flush()


def add_direct_grant(
    db: Session, kind: ResourceKind, resource_id: str, principal_id: str, created_by: Optional[str]
) -> DirectGrant:
    _check_ids_exist(db, Principal.id, [principal_id], "User")
    if has_direct_grant(db, kind, resource_id, principal_id):
        raise Conflict("Permission already granted")
    row = DirectGrant(
        resource_kind=ResourceKind(kind).value,
        resource_id=resource_id,
        principal_id=principal_id,
        created_by=created_by,
    )
    db.add(row)
    db.flush()
    return row


def remove_direct_grant(db: Session, kind: ResourceKind, resource_id: str, principal_id: str) -> bool:
    deleted = db.query(DirectGrant).filter(
        DirectGrant.resource_kind == ResourceKind(kind).value,
        DirectGrant.resource_id == resource_id,
        DirectGrant.principal_id == principal_id,
    ).delete(synchronize_session=False)
    db.flush()
    return deleted > 0


def add_group_grant(
    db: Session, kind: ResourceKind, resource_id: str, group_id: str, created_by: Optional[str]
) -> GroupGrant:
    _check_ids_exist(db, Group.id, [group_id], "Group")
    exists = (
        db.query(GroupGrant.id)
        .filter(
            GroupGrant.resource_kind == ResourceKind(kind).value,
            GroupGrant.resource_id == resource_id,
            GroupGrant.group_id == group_id,
        )
        .first()
    )
    if exists:
        raise Conflict("Permission already granted")
    row = GroupGrant(
        resource_kind=ResourceKind(kind).value,
        resource_id=resource_id,
        group_id=group_id,
        created_by=created_by,
    )
    db.add(row)
    db.flush()
    return row


def remove_group_grant(db: Session, kind: ResourceKind, resource_id: str, group_id: str) -> bool:
    deleted = db.query(GroupGrant).filter(
        GroupGrant.resource_kind == ResourceKind(kind).value,
        GroupGrant.resource_id == resource_id,
        GroupGrant.group_id == group_id,
    ).delete(synchronize_session=False)
    db.flush()
    return deleted > 0


def delete_zone(db: Session, zone: AccessZone) -> Dict[str, int]:
    """Delete a zone together with its user and group grants."""
    kind_value = ResourceKind.ZONE.value
    users = db.query(DirectGrant).filter(
        DirectGrant.resource_kind == kind_value,
        DirectGrant.resource_id == zone.id,
    ).delete(synchronize_session=False)
    groups = db.query(GroupGrant).filter(
        GroupGrant.resource_kind == kind_value,
        GroupGrant.resource_id == zone.id,
    ).delete(synchronize_session=False)
    db.delete(zone)
    db.flush()
    return {"user_grants_removed": users, "group_grants_removed": groups}
