"""
Access-control error taxonomy.

Every failure the credential resolver, role gate, access evaluator and the
stores can surface is one of these kinds. The HTTP layer maps ``status_code``
straight onto the response; ``message`` is safe to show to callers,
``details`` is structured context for the caller when it carries no secrets.
"""

from __future__ import annotations

from typing import Any, Optional


class AccessError(Exception):
    status_code = 500
    kind = "internal"
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Optional[dict[str, Any]] = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class Unauthenticated(AccessError):
    status_code = 401
    kind = "unauthenticated"
    default_message = "Authentication required"


class TokenExpired(Unauthenticated):
    kind = "token_expired"
    default_message = "Session token expired"


class TokenInvalid(Unauthenticated):
    kind = "token_invalid"
    default_message = "Session token invalid"


class KeyInvalid(Unauthenticated):
    kind = "key_invalid"
    default_message = "Invalid API key"


class Forbidden(AccessError):
    status_code = 403
    kind = "forbidden"
    default_message = "Access denied"


class NotFound(AccessError):
    status_code = 404
    kind = "not_found"
    default_message = "Resource not found"


class Conflict(AccessError):
    status_code = 409
    kind = "conflict"
    default_message = "Conflicting change"


class ValidationFailed(AccessError):
    status_code = 422
    kind = "validation_failed"
    default_message = "Invalid data"


class ServiceUnavailable(AccessError):
    """Transient store failure; the only kind a caller may retry."""

    status_code = 503
    kind = "service_unavailable"
    default_message = "Service unavailable"
