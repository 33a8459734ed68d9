# routes_groups.py

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from geoaccess.api.deps import get_request_context, require_admin, require_authenticated
from geoaccess.auth.audit import AuditAction, AuditTarget, TargetType, audit
from geoaccess.auth.identity import AuthenticatedPrincipal, RequestContext
from geoaccess.core.database import get_db, unit_of_work
from geoaccess.crud import crud_groups
from geoaccess.schemas.access import GroupCreate, GroupRead, GroupUpdate, MembershipCreate, MyGroupRead

router = APIRouter(prefix="/groups", tags=["groups"])


@router.get("", response_model=List[GroupRead])
def list_groups(
    db: Session = Depends(get_db),
    _: AuthenticatedPrincipal = Depends(require_admin),
):
    return crud_groups.list_groups(db)


@router.get("/mine", response_model=List[MyGroupRead])
def my_groups(
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(require_authenticated),
):
    return crud_groups.list_groups_for_principal(db, principal.principal_id)


@router.post("", response_model=GroupRead, status_code=201)
def create_group(
    payload: GroupCreate,
    db: Session = Depends(get_db),
    admin: AuthenticatedPrincipal = Depends(require_admin),
    ctx: RequestContext = Depends(get_request_context),
):
    with unit_of_work(db):
        group = crud_groups.create_group(db, payload.name, payload.description, created_by=admin.principal_id)
        audit.record(
            db,
            AuditAction.GROUP_CREATE,
            actor_id=admin.principal_id,
            target=AuditTarget(TargetType.GROUP, group.id, group.name),
            details={"name": group.name, "description": group.description},
            context=ctx,
        )
        result = GroupRead.model_validate(group)
    return result


@router.put("/{group_id}", response_model=GroupRead)
def update_group(
    group_id: str,
    payload: GroupUpdate,
    db: Session = Depends(get_db),
    admin: AuthenticatedPrincipal = Depends(require_admin),
    ctx: RequestContext = Depends(get_request_context),
):
    with unit_of_work(db):
        group = crud_groups.get_group_or_404(db, group_id)
        changes = crud_groups.update_group(db, group, name=payload.name, description=payload.description)
        if changes:
            audit.record(
                db,
                AuditAction.GROUP_UPDATE,
                actor_id=admin.principal_id,
                target=AuditTarget(TargetType.GROUP, group.id, group.name),
                details={"changes": changes},
                context=ctx,
            )
        result = GroupRead.model_validate(group)
    return result


@router.delete("/{group_id}")
def delete_group(
    group_id: str,
    db: Session = Depends(get_db),
    admin: AuthenticatedPrincipal = Depends(require_admin),
    ctx: RequestContext = Depends(get_request_context),
):
    with unit_of_work(db):
        group = crud_groups.get_group_or_404(db, group_id)
        target = AuditTarget(TargetType.GROUP, group.id, group.name)
        removed = crud_groups.delete_group(db, group)
        audit.record(db, AuditAction.GROUP_DELETE, admin.principal_id, target, removed, ctx)
    return {"message": "Group deleted", **removed}


@router.post("/{group_id}/members", status_code=201)
def add_member(
    group_id: str,
    payload: MembershipCreate,
    db: Session = Depends(get_db),
    admin: AuthenticatedPrincipal = Depends(require_admin),
    ctx: RequestContext = Depends(get_request_context),
):
    with unit_of_work(db):
        group = crud_groups.get_group_or_404(db, group_id)
        crud_groups.add_member(db, group, payload.user_id, added_by=admin.principal_id)
        audit.record(
            db,
            AuditAction.GROUP_UPDATE,
            actor_id=admin.principal_id,
            target=AuditTarget(TargetType.GROUP, group.id, group.name),
            details={"member_added": payload.user_id},
            context=ctx,
        )
    return {"message": "Member added"}


@router.delete("/{group_id}/members/{user_id}")
def remove_member(
    group_id: str,
    user_id: str,
    db: Session = Depends(get_db),
    admin: AuthenticatedPrincipal = Depends(require_admin),
    ctx: RequestContext = Depends(get_request_context),
):
    with unit_of_work(db):
        group = crud_groups.get_group_or_404(db, group_id)
        crud_groups.remove_member(db, group, user_id)
        audit.record(
            db,
            AuditAction.GROUP_UPDATE,
            actor_id=admin.principal_id,
            target=AuditTarget(TargetType.GROUP, group.id, group.name),
            details={"member_removed": user_id},
            context=ctx,
        )
    return {"message": "Member removed"}
