# routes_auth.py

from typing import List

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from geoaccess.api.deps import (
    apply_cookie,
    get_auth_settings,
    get_credentials,
    get_request_context,
    get_resolution,
    get_resolver,
    get_token_codec,
    require_authenticated,
)
from geoaccess.auth.audit import AuditAction, AuditTarget, TargetType, audit
from geoaccess.auth.identity import AuthenticatedPrincipal, CredentialBundle, RequestContext
from geoaccess.auth.renewal import session_cookie
from geoaccess.auth.resolver import CredentialResolver, Resolution
from geoaccess.core.config import AuthSettings
from geoaccess.core.database import get_db, unit_of_work
from geoaccess.core.errors import Unauthenticated
from geoaccess.core.logging import get_security_logger
from geoaccess.crud.crud_auth import (
    authenticate_password,
    list_api_key_history,
    principal_identity,
    rotate_api_key,
)
from geoaccess.schemas.auth import (
    ApiKeyHistoryRead,
    ApiKeyRotated,
    ApiKeyValidation,
    LoginRequest,
    LoginResponse,
    Me,
    PrincipalRead,
)
from geoaccess.security.tokens import TokenCodec

security_log = get_security_logger()

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    response: Response,
    db: Session = Depends(get_db),
    settings: AuthSettings = Depends(get_auth_settings),
    codec: TokenCodec = Depends(get_token_codec),
    ctx: RequestContext = Depends(get_request_context),
):
    try:
        with unit_of_work(db):
            row = authenticate_password(db, payload.username, payload.password, settings.password_pepper)
            user = PrincipalRead.model_validate(row)
    except Unauthenticated as e:
        security_log.warning(
            "Password login rejected",
            extra={"path": ctx.path, "method": ctx.method, "reason": e.message},
        )
        raise

    token = codec.sign(principal_identity(row))
    apply_cookie(response, session_cookie(settings, token))
    return LoginResponse(user=user, token=token, expires_in=int(codec.ttl.total_seconds()))


@router.post("/logout")
def logout(response: Response, settings: AuthSettings = Depends(get_auth_settings)):
    response.delete_cookie(
        key=settings.cookie_name,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_same_site,
    )
    return {"message": "Logged out"}


@router.get("/me", response_model=Me)
def me(
    principal: AuthenticatedPrincipal = Depends(require_authenticated),
    resolution: Resolution = Depends(get_resolution),
):
    return Me(
        id=principal.principal_id,
        username=principal.username,
        role=principal.role,
        auth_method=resolution.method,
    )


@router.post("/api-key/regenerate", response_model=ApiKeyRotated)
def regenerate_api_key(
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(require_authenticated),
    ctx: RequestContext = Depends(get_request_context),
):
    with unit_of_work(db, serializable=True):
        rotated = rotate_api_key(db, principal.principal_id, revoked_by=principal.principal_id)
        audit.record(
            db,
            AuditAction.API_KEY_REGENERATE,
            actor_id=principal.principal_id,
            target=AuditTarget(TargetType.USER, principal.principal_id, principal.username),
            details={"key_prefix": rotated.key_prefix},
            context=ctx,
        )
        history = [ApiKeyHistoryRead.model_validate(h) for h in list_api_key_history(db, principal.principal_id)]

    return ApiKeyRotated(api_key=rotated.key, generated_at=rotated.created_at, previous_keys=history)


@router.get("/api-key/history", response_model=List[ApiKeyHistoryRead])
def api_key_history(
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(require_authenticated),
):
    return list_api_key_history(db, principal.principal_id)


@router.get("/validate-api-key", response_model=ApiKeyValidation)
def validate_api_key(
    bundle: CredentialBundle = Depends(get_credentials),
    resolver: CredentialResolver = Depends(get_resolver),
):
    # upstream proxies only look at the status code
    principal = resolver.validate_api_key(bundle.api_key)
    return ApiKeyValidation(
        valid=True,
        principal_id=principal.principal_id,
        username=principal.username,
        role=principal.role,
    )
