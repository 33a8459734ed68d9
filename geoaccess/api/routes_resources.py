# routes_resources.py

import enum
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from geoaccess.api.deps import get_evaluator, get_identity, get_request_context, require_admin
from geoaccess.auth.access import AccessEvaluator
from geoaccess.auth.audit import AuditAction, AuditTarget, TargetType, audit
from geoaccess.auth.identity import AuthenticatedPrincipal, Identity, RequestContext, ResourceKind
from geoaccess.core.database import get_db, unit_of_work
from geoaccess.core.errors import NotFound
from geoaccess.crud import crud_access
from geoaccess.schemas.access import PermissionsRead, PermissionsUpdate, ResourceRead, ZoneCreate

router = APIRouter(tags=["resources"])


class Collection(str, enum.Enum):
    models = "models"
    zones = "zones"

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.MODEL if self is Collection.models else ResourceKind.ZONE


PERMISSION_ACTIONS = {
    ResourceKind.MODEL: (AuditAction.MODEL_PERMISSION_CHANGE, TargetType.MODEL),
    ResourceKind.ZONE: (AuditAction.ZONE_PERMISSION_CHANGE, TargetType.ZONE),
}


def _readable(db: Session, evaluator: AccessEvaluator, identity: Identity, kind: ResourceKind):
    return evaluator.filter_readable(identity, kind, crud_access.list_resources(db, kind))


@router.get("/models", response_model=List[ResourceRead])
def list_models(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
    evaluator: AccessEvaluator = Depends(get_evaluator),
):
    return _readable(db, evaluator, identity, ResourceKind.MODEL)


@router.get("/models/{model_id}", response_model=ResourceRead)
def get_model(
    model_id: str,
    identity: Identity = Depends(get_identity),
    evaluator: AccessEvaluator = Depends(get_evaluator),
):
    return evaluator.require_readable(identity, ResourceKind.MODEL, model_id)


@router.get("/zones", response_model=List[ResourceRead])
def list_zones(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
    evaluator: AccessEvaluator = Depends(get_evaluator),
):
    return _readable(db, evaluator, identity, ResourceKind.ZONE)


@router.get("/zones/{zone_id}", response_model=ResourceRead)
def get_zone(
    zone_id: str,
    identity: Identity = Depends(get_identity),
    evaluator: AccessEvaluator = Depends(get_evaluator),
):
    return evaluator.require_readable(identity, ResourceKind.ZONE, zone_id)


@router.post("/zones", response_model=ResourceRead, status_code=201)
def create_zone(
    payload: ZoneCreate,
    db: Session = Depends(get_db),
    admin: AuthenticatedPrincipal = Depends(require_admin),
    ctx: RequestContext = Depends(get_request_context),
):
    with unit_of_work(db):
        zone = crud_access.create_zone(
            db,
            name=payload.name,
            access_level=payload.access_level,
            description=payload.description,
            created_by=admin.principal_id,
        )
        if payload.user_ids:
            crud_access.replace_direct_grants(db, ResourceKind.ZONE, zone.id, payload.user_ids, admin.principal_id)
        if payload.group_ids:
            crud_access.replace_group_grants(db, ResourceKind.ZONE, zone.id, payload.group_ids, admin.principal_id)
        audit.record(
            db,
            AuditAction.ZONE_CREATE,
            actor_id=admin.principal_id,
            target=AuditTarget(TargetType.ZONE, zone.id, zone.name),
            details={
                "access_level": zone.access_level,
                "user_ids": payload.user_ids,
                "group_ids": payload.group_ids,
            },
            context=ctx,
        )
        result = ResourceRead.model_validate(zone)
    return result


@router.delete("/zones/{zone_id}")
def delete_zone(
    zone_id: str,
    db: Session = Depends(get_db),
    admin: AuthenticatedPrincipal = Depends(require_admin),
    ctx: RequestContext = Depends(get_request_context),
):
    with unit_of_work(db):
        zone = crud_access.get_resource_or_404(db, ResourceKind.ZONE, zone_id)
        target = AuditTarget(TargetType.ZONE, zone.id, zone.name)
        removed = crud_access.delete_zone(db, zone)
        audit.record(db, AuditAction.ZONE_DELETE, admin.principal_id, target, removed, ctx)
    return {"message": "Zone deleted", **removed}


@router.get("/{collection}/{resource_id}/permissions", response_model=PermissionsRead)
def get_permissions(
    collection: Collection,
    resource_id: str,
    db: Session = Depends(get_db),
    _: AuthenticatedPrincipal = Depends(require_admin),
):
    resource = crud_access.get_resource_or_404(db, collection.kind, resource_id)
    return crud_access.grants_snapshot(db, collection.kind, resource)


@router.put("/{collection}/{resource_id}/permissions", response_model=PermissionsRead)
def update_permissions(
    collection: Collection,
    resource_id: str,
    payload: PermissionsUpdate,
    db: Session = Depends(get_db),
    admin: AuthenticatedPrincipal = Depends(require_admin),
    ctx: RequestContext = Depends(get_request_context),
):
    kind = collection.kind
    action, target_type = PERMISSION_ACTIONS[kind]

    with unit_of_work(db, serializable=True):
        resource = crud_access.get_resource_or_404(db, kind, resource_id)
        previous = crud_access.grants_snapshot(db, kind, resource)

        if payload.access_level is not None:
            crud_access.set_access_level(db, resource, payload.access_level)
        if payload.user_ids is not None:
            crud_access.replace_direct_grants(db, kind, resource.id, payload.user_ids, admin.principal_id)
        if payload.group_ids is not None:
            crud_access.replace_group_grants(db, kind, resource.id, payload.group_ids, admin.principal_id)

        audit.record(
            db,
            action,
            actor_id=admin.principal_id,
            target=AuditTarget(target_type, resource.id, resource.name),
            details={
                "previous": {
                    "access_level": previous["access_level"],
                    "user_ids": [u["id"] for u in previous["user_permissions"]],
                    "group_ids": [g["id"] for g in previous["group_permissions"]],
                },
                "access_level": payload.access_level,
                "user_ids": payload.user_ids,
                "group_ids": payload.group_ids,
            },
            context=ctx,
        )
        current = crud_access.grants_snapshot(db, kind, resource)
    return current


def _zone_grant_change(
    db: Session,
    zone_id: str,
    admin: AuthenticatedPrincipal,
    ctx: RequestContext,
    details: dict,
    change,
) -> None:
    with unit_of_work(db):
        zone = crud_access.get_resource_or_404(db, ResourceKind.ZONE, zone_id)
        change(zone)
        audit.record(
            db,
            AuditAction.ZONE_PERMISSION_CHANGE,
            actor_id=admin.principal_id,
            target=AuditTarget(TargetType.ZONE, zone.id, zone.name),
            details=details,
            context=ctx,
        )


@router.post("/zones/{zone_id}/permissions/users/{user_id}", status_code=201)
def grant_zone_user(
    zone_id: str,
    user_id: str,
    db: Session = Depends(get_db),
    admin: AuthenticatedPrincipal = Depends(require_admin),
    ctx: RequestContext = Depends(get_request_context),
):
    _zone_grant_change(
        db, zone_id, admin, ctx,
        {"user_added": user_id},
        lambda zone: crud_access.add_direct_grant(db, ResourceKind.ZONE, zone.id, user_id, admin.principal_id),
    )
    return {"message": "Permission granted"}


@router.delete("/zones/{zone_id}/permissions/users/{user_id}")
def revoke_zone_user(
    zone_id: str,
    user_id: str,
    db: Session = Depends(get_db),
    admin: AuthenticatedPrincipal = Depends(require_admin),
    ctx: RequestContext = Depends(get_request_context),
):
    def change(zone):
        if not crud_access.remove_direct_grant(db, ResourceKind.ZONE, zone.id, user_id):
            raise NotFound("Permission not found")

    _zone_grant_change(db, zone_id, admin, ctx, {"user_removed": user_id}, change)
    return {"message": "Permission revoked"}


@router.post("/zones/{zone_id}/permissions/groups/{group_id}", status_code=201)
def grant_zone_group(
    zone_id: str,
    group_id: str,
    db: Session = Depends(get_db),
    admin: AuthenticatedPrincipal = Depends(require_admin),
    ctx: RequestContext = Depends(get_request_context),
):
    _zone_grant_change(
        db, zone_id, admin, ctx,
        {"group_added": group_id},
        lambda zone: crud_access.add_group_grant(db, ResourceKind.ZONE, zone.id, group_id, admin.principal_id),
    )
    return {"message": "Permission granted"}


@router.delete("/zones/{zone_id}/permissions/groups/{group_id}")
def revoke_zone_group(
    zone_id: str,
    group_id: str,
    db: Session = Depends(get_db),
    admin: AuthenticatedPrincipal = Depends(require_admin),
    ctx: RequestContext = Depends(get_request_context),
):
    def change(zone):
        if not crud_access.remove_group_grant(db, ResourceKind.ZONE, zone.id, group_id):
            raise NotFound("Permission not found")

    _zone_grant_change(db, zone_id, admin, ctx, {"group_removed": group_id}, change)
    return {"message": "Permission revoked"}
