"""
Credential resolution: turns the credentials a request presented into an
identity.

Precedence:

1. nothing presented            -> anonymous (not an error)
2. API key of an active owner   -> that principal; any token is ignored
3. session token                -> identity embedded in the signed token,
                                   no store lookup; may trigger renewal
4. bad API key and no token     -> KeyInvalid (never silently anonymous)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from geoaccess.auth.identity import ANONYMOUS, AuthenticatedPrincipal, CredentialBundle, Identity, Role
from geoaccess.auth.renewal import SessionRenewalPolicy, SetCookie
from geoaccess.auth.stores import CredentialStore
from geoaccess.core.errors import KeyInvalid, TokenExpired, TokenInvalid
from geoaccess.core.logging import get_security_logger
from geoaccess.security.hashing import KEY_DISPLAY_LEN
from geoaccess.security.tokens import SessionClaims, TokenCodec

logger = logging.getLogger(__name__)
security_log = get_security_logger()


@dataclass(frozen=True)
class Resolution:
    identity: Identity
    method: str  # anonymous | api_key | session
    claims: Optional[SessionClaims] = None
    renewal: Optional[SetCookie] = None


class CredentialResolver:
    def __init__(
        self,
        store: CredentialStore,
        codec: TokenCodec,
        renewal: Optional[SessionRenewalPolicy] = None,
    ) -> None:
        self._store = store
        self._codec = codec
        self._renewal = renewal

    def resolve(self, bundle: CredentialBundle) -> Resolution:
        if bundle.is_empty:
            return Resolution(identity=ANONYMOUS, method="anonymous")

        if bundle.api_key is not None:
            principal = self._principal_for_key(bundle.api_key)
            if principal is not None:
                return Resolution(identity=principal, method="api_key")
            if bundle.token is None:
                raise KeyInvalid()

        return self._resolve_token(bundle.token)

    def validate_api_key(self, api_key: Optional[str]) -> AuthenticatedPrincipal:
        """Definite allow/deny for upstream proxies; raises KeyInvalid on deny."""
        key = (api_key or "").strip()
        if not key:
            security_log.warning("API key validation without key", extra={"reason": "missing"})
            raise KeyInvalid("API key not provided")
        principal = self._principal_for_key(key)
        if principal is None:
            raise KeyInvalid()
        return principal

    def _principal_for_key(self, api_key: str) -> Optional[AuthenticatedPrincipal]:
        row = self._store.find_principal_by_api_key(api_key)
        if row is None:
            security_log.warning(
                "Unknown API key presented",
                extra={"reason": "unknown_key", "key_prefix": api_key[:KEY_DISPLAY_LEN]},
            )
            return None
        if not row.is_active:
            security_log.warning(
                "API key of inactive principal presented",
                extra={"reason": "inactive_principal", "principal_id": row.id},
            )
            return None
        return AuthenticatedPrincipal(principal_id=row.id, username=row.username, role=Role(row.role))

    def _resolve_token(self, token: str) -> Resolution:
        try:
            claims = self._codec.verify(token)
        except TokenExpired:
            logger.info("Expired session token presented")
            raise
        except TokenInvalid:
            security_log.warning("Invalid session token presented", extra={"reason": "token_invalid"})
            raise

        renewal = None
        if self._renewal is not None:
            renewal = self._renewal.issue_session_cookie_if_near_expiry(claims)
        return Resolution(identity=claims.principal, method="session", claims=claims, renewal=renewal)
