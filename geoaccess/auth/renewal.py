"""Silent reissue of session tokens that are about to expire."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from geoaccess.core.config import AuthSettings
from geoaccess.core.logging import get_security_logger
from geoaccess.security.tokens import SessionClaims, TokenCodec

logger = logging.getLogger(__name__)
security_log = get_security_logger()


@dataclass(frozen=True)
class SetCookie:
    name: str
    value: str
    max_age: int
    httponly: bool = True
    secure: bool = False
    samesite: str = "strict"


def session_cookie(settings: AuthSettings, token: str) -> SetCookie:
    return SetCookie(
        name=settings.cookie_name,
        value=token,
        max_age=int(settings.session_ttl.total_seconds()),
        secure=settings.cookie_secure,
        samesite=settings.cookie_same_site,
    )


class SessionRenewalPolicy:
    def __init__(self, codec: TokenCodec, settings: AuthSettings) -> None:
        self._codec = codec
        self._settings = settings

    def needs_renewal(self, claims: SessionClaims) -> bool:
        return claims.remaining(self._codec.now()) < self._settings.renewal_threshold

    def issue_session_cookie_if_near_expiry(self, claims: SessionClaims) -> Optional[SetCookie]:
        """
        Returns a replacement cookie when the verified token is inside the
        renewal window, otherwise None.

        Signing failures are logged and swallowed: the original token is still
        valid, so the next request simply tries again.
        """
        if not self.needs_renewal(claims):
            return None
        try:
            token = self._codec.sign(claims.principal)
        except Exception:
            security_log.warning(
                "Session renewal failed",
                exc_info=True,
                extra={"principal_id": claims.principal.principal_id, "reason": "sign_failed"},
            )
            return None
        logger.debug("Session token renewed for %s", claims.principal.principal_id)
        return session_cookie(self._settings, token)
