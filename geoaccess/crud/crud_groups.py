# crud_groups.py

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from geoaccess.core.errors import Conflict, NotFound, ValidationFailed
from geoaccess.models.access import Group, GroupGrant, GroupMembership
from geoaccess.models.auth import Principal


def get_group(db: Session, group_id: str) -> Optional[Group]:
    return db.query(Group).filter(Group.id == group_id).first()


def list_groups(db: Session) -> List[Group]:
    return db.query(Group).order_by(Group.name).all()


def get_group_or_404(db: Session, group_id: str) -> Group:
    group = get_group(db, group_id)
    if not group:
        raise NotFound("Group not found")
    return group


def create_group(db: Session, name: str, description: Optional[str], created_by: Optional[str]) -> Group:
    if db.query(Group.id).filter(Group.name == name).first():
        raise Conflict("A group with this name already exists")
    group = Group(name=name, description=description, created_by=created_by)
    db.add(group)
    db.flush()
    db.refresh(group)
    return group


def update_group(
    db: Session,
    group: Group,
    name: Optional[str] = None,
    description: Optional[str] = None,
) -> Dict[str, Dict[str, Any]]:
    changes: Dict[str, Dict[str, Any]] = {}
    if name and name != group.name:
        taken = db.query(Group.id).filter(Group.name == name, Group.id != group.id).first()
        if taken:
            raise Conflict("A group with this name already exists")
        changes["name"] = {"old": group.name, "new": name}
        group.name = name
    if description is not None and description != group.description:
        changes["description"] = {"old": group.description, "new": description}
        group.description = description
    if changes:
        db.flush()
    return changes


def delete_group(db: Session, group: Group) -> Dict[str, int]:
    """Delete a group together with its memberships and grants."""
    members = db.query(GroupMembership).filter(GroupMembership.group_id == group.id).delete(synchronize_session=False)
    grants = db.query(GroupGrant).filter(GroupGrant.group_id == group.id).delete(synchronize_session=False)
    db.delete(group)
    db.flush()
    return {"members_removed": members, "grants_removed": grants}


def is_member(db: Session, group_id: str, principal_id: str) -> bool:
    row = (
        db.query(GroupMembership.group_id)
        .filter(GroupMembership.group_id == group_id, GroupMembership.principal_id == principal_id)
        .first()
    )
    return row is not None


def add_member(db: Session, group: Group, principal_id: str, added_by: Optional[str]) -> GroupMembership:
    if not db.query(Principal.id).filter(Principal.id == principal_id).first():
        raise ValidationFailed("User not found", details={"invalid_ids": [principal_id]})
    if is_member(db, group.id, principal_id):
        raise Conflict("User is already a member of this group")
    row = GroupMembership(group_id=group.id, principal_id=principal_id, added_by=added_by)
    db.add(row)
    db.flush()
    return row


def add_memberships(db: Session, principal_id: str, group_ids: List[str], added_by: Optional[str]) -> None:
    ids = list(dict.fromkeys(group_ids))
    found = {r[0] for r in db.query(Group.id).filter(Group.id.in_(ids)).all()} if ids else set()
    invalid = [i for i in ids if i not in found]
    if invalid:
        raise ValidationFailed("Groups not found", details={"invalid_ids": invalid})
    for group_id in ids:
        db.add(GroupMembership(group_id=group_id, principal_id=principal_id, added_by=added_by))
    db.flush()


def remove_member(db: Session, group: Group, principal_id: str) -> None:
    deleted = (
        db.query(GroupMembership)
        .filter(GroupMembership.group_id == group.id, GroupMembership.principal_id == principal_id)
        .delete(synchronize_session=False)
    )
    if not deleted:
        raise NotFound("User is not a member of this group")
    db.flush()


def list_groups_for_principal(db: Session, principal_id: str) -> List[Dict[str, Any]]:
    rows = (
        db.query(Group, GroupMembership.added_at, GroupMembership.added_by)
        .join(GroupMembership, GroupMembership.group_id == Group.id)
        .filter(GroupMembership.principal_id == principal_id)
        .order_by(Group.name)
        .all()
    )
    return [
        {
            "id": g.id,
            "name": g.name,
            "description": g.description,
            "added_at": added_at,
            "added_by": added_by,
        }
        for g, added_at, added_by in rows
    ]
