"""
Audit recorder for privileged mutations.

``record`` takes the unit-of-work session the mutation runs in and never
opens or commits a transaction of its own, so the audit row and the change
it documents commit or roll back together.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from geoaccess.auth.identity import RequestContext
from geoaccess.crud.crud_audit import insert_audit_entry
from geoaccess.models.auth import AuditEntry


class AuditAction(str, enum.Enum):
    USER_CREATE = "USER_CREATE"
    USER_UPDATE = "USER_UPDATE"
    USER_ROLE_CHANGE = "USER_ROLE_CHANGE"
    GROUP_CREATE = "GROUP_CREATE"
    GROUP_UPDATE = "GROUP_UPDATE"
    GROUP_DELETE = "GROUP_DELETE"
    ZONE_CREATE = "ZONE_CREATE"
    ZONE_DELETE = "ZONE_DELETE"
    MODEL_PERMISSION_CHANGE = "MODEL_PERMISSION_CHANGE"
    ZONE_PERMISSION_CHANGE = "ZONE_PERMISSION_CHANGE"
    API_KEY_REGENERATE = "API_KEY_REGENERATE"


class TargetType(str, enum.Enum):
    USER = "USER"
    GROUP = "GROUP"
    MODEL = "MODEL"
    ZONE = "ZONE"
    SYSTEM = "SYSTEM"


@dataclass(frozen=True)
class AuditTarget:
    type: TargetType
    id: Optional[str] = None
    name: Optional[str] = None


class AuditRecorder:
    def record(
        self,
        uow: Session,
        action: AuditAction,
        actor_id: str,
        target: AuditTarget,
        details: Optional[Dict[str, Any]] = None,
        context: Optional[RequestContext] = None,
    ) -> AuditEntry:
        if not uow.in_transaction():
            raise RuntimeError("audit entries must be written inside the mutation's transaction")
        ctx = context or RequestContext()
        return insert_audit_entry(
            uow,
            action=AuditAction(action).value,
            actor_id=actor_id,
            target_type=target.type.value,
            target_id=target.id,
            target_name=target.name,
            details=details,
            ip=ctx.ip,
            user_agent=ctx.user_agent,
        )


audit = AuditRecorder()
