# routes_audit.py

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from geoaccess.api.deps import require_admin
from geoaccess.auth.identity import AuthenticatedPrincipal
from geoaccess.core.database import get_db
from geoaccess.crud.crud_audit import list_audit_entries, verify_audit_chain
from geoaccess.schemas.auth import AuditEntryRead

router = APIRouter(prefix="/admin/audit", tags=["audit"])


@router.get("", response_model=List[AuditEntryRead])
def list_audit(
    db: Session = Depends(get_db),
    _: AuthenticatedPrincipal = Depends(require_admin),
    action: Optional[str] = Query(default=None),
    actor_id: Optional[str] = Query(default=None),
    target_id: Optional[str] = Query(default=None),
    since: Optional[datetime] = Query(default=None),
    until: Optional[datetime] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
):
    return list_audit_entries(
        db,
        action=action,
        actor_id=actor_id,
        target_id=target_id,
        since=since,
        until=until,
        limit=limit,
    )


@router.get("/verify")
def verify_audit(
    db: Session = Depends(get_db),
    _: AuthenticatedPrincipal = Depends(require_admin),
):
    first_bad = verify_audit_chain(db)
    return {"valid": first_bad is None, "first_invalid_id": first_bad}
