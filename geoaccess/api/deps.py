from functools import lru_cache
from typing import Callable, Optional

from fastapi import Depends, Header, Query, Request, Response
from sqlalchemy.orm import Session

from geoaccess.auth.access import AccessEvaluator
from geoaccess.auth.identity import AuthenticatedPrincipal, CredentialBundle, Identity, RequestContext, Role
from geoaccess.auth.renewal import SessionRenewalPolicy, SetCookie
from geoaccess.auth.resolver import CredentialResolver, Resolution
from geoaccess.auth.roles import require_role
from geoaccess.core.config import AuthSettings, load_auth_settings
from geoaccess.core.database import get_db
from geoaccess.crud.store import SqlStore
from geoaccess.security.tokens import TokenCodec


@lru_cache
def get_auth_settings() -> AuthSettings:
    return load_auth_settings()


def get_token_codec(settings: AuthSettings = Depends(get_auth_settings)) -> TokenCodec:
    return TokenCodec(settings)


def get_store(db: Session = Depends(get_db)) -> SqlStore:
    return SqlStore(db)


def get_resolver(
    store: SqlStore = Depends(get_store),
    codec: TokenCodec = Depends(get_token_codec),
    settings: AuthSettings = Depends(get_auth_settings),
) -> CredentialResolver:
    return CredentialResolver(store, codec, SessionRenewalPolicy(codec, settings))


def get_request_context(request: Request) -> RequestContext:
    return RequestContext(
        path=request.url.path,
        method=request.method,
        ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def get_credentials(
    request: Request,
    settings: AuthSettings = Depends(get_auth_settings),
    x_api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
    api_key: Optional[str] = Query(default=None, include_in_schema=False),
    authorization: Optional[str] = Header(default=None),
) -> CredentialBundle:
    # cookie first, then Authorization: Bearer
    token = request.cookies.get(settings.cookie_name)
    if not token and authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:]
    return CredentialBundle(api_key=api_key or x_api_key, token=token)


def apply_cookie(response: Response, cookie: SetCookie) -> None:
    response.set_cookie(
        key=cookie.name,
        value=cookie.value,
        max_age=cookie.max_age,
        httponly=cookie.httponly,
        secure=cookie.secure,
        samesite=cookie.samesite,
    )


def get_resolution(
    response: Response,
    bundle: CredentialBundle = Depends(get_credentials),
    resolver: CredentialResolver = Depends(get_resolver),
) -> Resolution:
    resolution = resolver.resolve(bundle)
    if resolution.renewal is not None:
        apply_cookie(response, resolution.renewal)
    return resolution


def get_identity(resolution: Resolution = Depends(get_resolution)) -> Identity:
    return resolution.identity


def require_roles(*roles: Role) -> Callable[..., AuthenticatedPrincipal]:
    """Dependency factory: no roles means any authenticated principal."""

    def dependency(
        identity: Identity = Depends(get_identity),
        ctx: RequestContext = Depends(get_request_context),
    ) -> AuthenticatedPrincipal:
        return require_role(identity, roles, ctx)

    return dependency


require_authenticated = require_roles()
require_admin = require_roles(Role.ADMIN)


def get_evaluator(store: SqlStore = Depends(get_store)) -> AccessEvaluator:
    return AccessEvaluator(store)
