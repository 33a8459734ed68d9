"""Role gate for principal-level operations."""

from __future__ import annotations

from typing import Iterable, Optional

from geoaccess.auth.identity import AuthenticatedPrincipal, Identity, RequestContext, Role
from geoaccess.core.errors import Forbidden, Unauthenticated
from geoaccess.core.logging import get_security_logger

security_log = get_security_logger()


def require_role(
    identity: Identity,
    allowed: Iterable[Role] = (),
    context: Optional[RequestContext] = None,
) -> AuthenticatedPrincipal:
    """
    Accept an authenticated principal whose role is in ``allowed``.

    Anonymous callers get Unauthenticated. An empty ``allowed`` admits any
    authenticated principal. Role mismatches raise Forbidden and are reported
    on the security channel.
    """
    if identity.is_anonymous:
        raise Unauthenticated("User not authenticated")

    required = frozenset(Role(r) for r in allowed)
    if not required or identity.role in required:
        return identity

    ctx = context or RequestContext()
    security_log.warning(
        "Role check rejected",
        extra={
            "path": ctx.path,
            "method": ctx.method,
            "principal_id": identity.principal_id,
            "required_roles": sorted(r.value for r in required),
            "actual_role": identity.role.value,
        },
    )
    raise Forbidden("Access denied")
