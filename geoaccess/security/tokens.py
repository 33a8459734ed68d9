# security/tokens.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

import jwt

from geoaccess.auth.identity import AuthenticatedPrincipal, Role
from geoaccess.core.config import AuthSettings
from geoaccess.core.errors import TokenExpired, TokenInvalid
from geoaccess.utils.datetime import utcnow

REQUIRED_CLAIMS = ["sub", "username", "role", "iat", "exp"]


@dataclass(frozen=True)
class SessionClaims:
    principal: AuthenticatedPrincipal
    issued_at: datetime
    expires_at: datetime

    def remaining(self, now: datetime) -> timedelta:
        return self.expires_at - now


class TokenCodec:
    """
    Signs and verifies session tokens (HS256 JWT by default).

    Pure CPU work: no store access. Verification fails closed, any defect in
    the token raises instead of returning a partial identity.
    """

    def __init__(self, settings: AuthSettings, clock: Callable[[], datetime] = utcnow) -> None:
        self._secret = settings.jwt_secret
        self._algorithm = settings.jwt_algorithm
        self._ttl = settings.session_ttl
        self._clock = clock

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def now(self) -> datetime:
        return self._clock()

    def sign(self, principal: AuthenticatedPrincipal) -> str:
        issued = int(self._clock().timestamp())
        payload = {
            "sub": principal.principal_id,
            "username": principal.username,
            "role": principal.role.value,
            "iat": issued,
            "exp": issued + int(self._ttl.total_seconds()),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> SessionClaims:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                # expiry is checked below against the injected clock
                options={
                    "require": REQUIRED_CLAIMS,
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                },
            )
        except jwt.InvalidTokenError as e:
            raise TokenInvalid() from e

        try:
            principal = AuthenticatedPrincipal(
                principal_id=str(payload["sub"]),
                username=str(payload["username"]),
                role=Role(payload["role"]),
            )
            issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc)
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
        except (KeyError, TypeError, ValueError, OverflowError) as e:
            raise TokenInvalid() from e

        # valid only while now < expires_at
        if self._clock() >= expires_at:
            raise TokenExpired()

        return SessionClaims(principal=principal, issued_at=issued_at, expires_at=expires_at)
