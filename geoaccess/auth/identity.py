"""Identity value types shared by the resolver, role gate and access evaluator."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional, Union


class Role(str, enum.Enum):
    ADMIN = "admin"
    USER = "user"


class AccessLevel(str, enum.Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class ResourceKind(str, enum.Enum):
    MODEL = "model"
    ZONE = "zone"


@dataclass(frozen=True)
class AuthenticatedPrincipal:
    principal_id: str
    username: str
    role: Role

    @property
    def is_anonymous(self) -> bool:
        return False


@dataclass(frozen=True)
class AnonymousPrincipal:
    """The caller presented no credential at all."""

    @property
    def is_anonymous(self) -> bool:
        return True


ANONYMOUS = AnonymousPrincipal()

Identity = Union[AuthenticatedPrincipal, AnonymousPrincipal]


@dataclass(frozen=True)
class CredentialBundle:
    """Credentials extracted once at the transport boundary."""

    api_key: Optional[str] = None
    token: Optional[str] = None

    def __post_init__(self):
        # blank values count as absent
        object.__setattr__(self, "api_key", (self.api_key or "").strip() or None)
        object.__setattr__(self, "token", (self.token or "").strip() or None)

    @property
    def is_empty(self) -> bool:
        return self.api_key is None and self.token is None


@dataclass(frozen=True)
class RequestContext:
    path: Optional[str] = None
    method: Optional[str] = None
    ip: Optional[str] = None
    user_agent: Optional[str] = None
