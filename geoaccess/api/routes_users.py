# routes_users.py

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from geoaccess.api.deps import get_auth_settings, get_request_context, require_admin, require_authenticated
from geoaccess.auth.audit import AuditAction, AuditTarget, TargetType, audit
from geoaccess.auth.identity import AuthenticatedPrincipal, RequestContext, Role
from geoaccess.auth.roles import require_role
from geoaccess.core.config import AuthSettings
from geoaccess.core.database import get_db, unit_of_work
from geoaccess.core.errors import Unauthenticated, ValidationFailed
from geoaccess.crud.crud_auth import (
    create_principal,
    get_principal_or_404,
    list_principals,
    set_password,
    update_principal,
)
from geoaccess.crud.crud_groups import add_memberships
from geoaccess.schemas.auth import PasswordUpdate, PrincipalCreate, PrincipalCreated, PrincipalRead, PrincipalUpdate
from geoaccess.security.hashing import verify_password

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=List[PrincipalRead])
def list_users(
    db: Session = Depends(get_db),
    _: AuthenticatedPrincipal = Depends(require_admin),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
):
    return list_principals(db, limit=limit, offset=offset)


@router.post("", response_model=PrincipalCreated, status_code=201)
def create_user(
    payload: PrincipalCreate,
    db: Session = Depends(get_db),
    admin: AuthenticatedPrincipal = Depends(require_admin),
    settings: AuthSettings = Depends(get_auth_settings),
    ctx: RequestContext = Depends(get_request_context),
):
    with unit_of_work(db):
        row, api_key = create_principal(
            db,
            username=payload.username,
            password=payload.password,
            pepper=settings.password_pepper,
            role=payload.role,
            email=payload.email,
            created_by=admin.principal_id,
        )
        if payload.group_ids:
            add_memberships(db, row.id, payload.group_ids, added_by=admin.principal_id)
        audit.record(
            db,
            AuditAction.USER_CREATE,
            actor_id=admin.principal_id,
            target=AuditTarget(TargetType.USER, row.id, row.username),
            details={
                "username": row.username,
                "email": row.email,
                "role": row.role,
                "group_ids": payload.group_ids,
            },
            context=ctx,
        )
        created = PrincipalCreated(**PrincipalRead.model_validate(row).model_dump(), api_key=api_key)
    return created


@router.get("/{user_id}", response_model=PrincipalRead)
def get_user(
    user_id: str,
    db: Session = Depends(get_db),
    _: AuthenticatedPrincipal = Depends(require_admin),
):
    return get_principal_or_404(db, user_id)


@router.put("/{user_id}", response_model=PrincipalRead)
def update_user(
    user_id: str,
    payload: PrincipalUpdate,
    db: Session = Depends(get_db),
    admin: AuthenticatedPrincipal = Depends(require_admin),
    ctx: RequestContext = Depends(get_request_context),
):
    with unit_of_work(db):
        row = get_principal_or_404(db, user_id)
        if user_id == admin.principal_id and payload.is_active is False:
            raise ValidationFailed("Administrators cannot deactivate themselves")

        changes = update_principal(db, row, email=payload.email, role=payload.role, is_active=payload.is_active)
        target = AuditTarget(TargetType.USER, row.id, row.username)
        if changes:
            audit.record(db, AuditAction.USER_UPDATE, admin.principal_id, target, {"changes": changes}, ctx)
        if "role" in changes:
            audit.record(
                db,
                AuditAction.USER_ROLE_CHANGE,
                admin.principal_id,
                target,
                {"old_role": changes["role"]["old"], "new_role": changes["role"]["new"]},
                ctx,
            )
        result = PrincipalRead.model_validate(row)
    return result


@router.put("/{user_id}/password")
def change_password(
    user_id: str,
    payload: PasswordUpdate,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(require_authenticated),
    settings: AuthSettings = Depends(get_auth_settings),
    ctx: RequestContext = Depends(get_request_context),
):
    is_self = user_id == principal.principal_id
    if not is_self:
        require_role(principal, [Role.ADMIN], ctx)

    with unit_of_work(db):
        row = get_principal_or_404(db, user_id)
        if is_self:
            # own password: prove knowledge of the current one
            if not payload.current_password or not verify_password(
                payload.current_password, row.password_hash, settings.password_pepper
            ):
                raise Unauthenticated("Current password is incorrect")

        set_password(db, row, payload.new_password, settings.password_pepper)
        audit.record(
            db,
            AuditAction.USER_UPDATE,
            actor_id=principal.principal_id,
            target=AuditTarget(TargetType.USER, row.id, row.username),
            details={"passwordChanged": True},
            context=ctx,
        )
    return {"message": "Password updated"}
