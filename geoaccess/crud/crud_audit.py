# crud_audit.py

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from geoaccess.core.errors import Conflict
from geoaccess.models.auth import AuditChainHead, AuditEntry
from geoaccess.security.hashing import canonical_json, sha256_hex
from geoaccess.security.redaction import redact_details
from geoaccess.utils.datetime import as_utc, utcnow


def _entry_payload(
    action: str,
    actor_id: str,
    target_type: Optional[str],
    target_id: Optional[str],
    target_name: Optional[str],
    details: Optional[Dict[str, Any]],
    created_at: datetime,
    prev_hash: Optional[str],
) -> Dict[str, Any]:
    return {
        "action": action,
        "actor_id": actor_id,
        "target_type": target_type,
        "target_id": target_id,
        "target_name": target_name,
        "details": details,
        "created_at": as_utc(created_at).isoformat(),
        "prev_hash": prev_hash,
    }


def chain_hash(prev_hash: Optional[str], payload: Dict[str, Any]) -> str:
    return sha256_hex((prev_hash or "") + "|" + canonical_json(payload))


CHAIN_HEAD_ID = 1


def _lock_chain_head(db: Session) -> AuditChainHead:
    # FOR UPDATE blocks concurrent appenders on PostgreSQL; populate_existing
    # makes sure the values come from that locked read
    head = (
        db.query(AuditChainHead)
        .filter(AuditChainHead.id == CHAIN_HEAD_ID)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if head is None:
        tail = db.query(AuditEntry).order_by(AuditEntry.id.desc()).first()
        head = AuditChainHead(
            id=CHAIN_HEAD_ID,
            length=db.query(AuditEntry).count(),
            last_hash=tail.hash if tail else None,
        )
        db.add(head)
        db.flush()
    return head


def _advance_chain_head(db: Session, seen_length: int, new_hash: str) -> None:
    advanced = (
        db.query(AuditChainHead)
        .filter(AuditChainHead.id == CHAIN_HEAD_ID, AuditChainHead.length == seen_length)
        .update(
            {AuditChainHead.length: seen_length + 1, AuditChainHead.last_hash: new_hash},
            synchronize_session=False,
        )
    )
    if not advanced:
        raise Conflict("Audit trail changed concurrently, retry the operation")


def insert_audit_entry(
    db: Session,
    action: str,
    actor_id: str,
    target_type: Optional[str] = None,
    target_id: Optional[str] = None,
    target_name: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    ip: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> AuditEntry:
    """
    Append one row to the trail inside the caller's open transaction.

    Never commits: the entry becomes durable only together with the mutation
    it documents. hash = sha256(prev_hash + "|" + canonical_json(payload))

    The previous hash is taken from the locked chain head, and the head only
    advances if nobody appended since it was read. A stale append raises
    Conflict instead of forking the chain.
    """
    # round-trip through JSON so the stored blob hashes the same when read back
    safe_details = json.loads(canonical_json(redact_details(details))) if details is not None else None

    head = _lock_chain_head(db)
    seen_length, prev_hash = head.length, head.last_hash

    created_at = utcnow()
    payload = _entry_payload(action, actor_id, target_type, target_id, target_name, safe_details, created_at, prev_hash)
    entry_hash = chain_hash(prev_hash, payload)

    _advance_chain_head(db, seen_length, entry_hash)

    row = AuditEntry(
        action=action,
        actor_id=actor_id,
        target_type=target_type,
        target_id=target_id,
        target_name=target_name,
        details=safe_details,
        ip=ip,
        user_agent=user_agent[:300] if user_agent else None,
        created_at=created_at,
        prev_hash=prev_hash,
        hash=entry_hash,
    )
    db.add(row)
    db.flush()
    return row


def list_audit_entries(
    db: Session,
    action: Optional[str] = None,
    actor_id: Optional[str] = None,
    target_id: Optional[str] = None,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
    limit: int = 50,
) -> List[AuditEntry]:
    q = db.query(AuditEntry)
    if action:
        q = q.filter(AuditEntry.action == action)
    if actor_id:
        q = q.filter(AuditEntry.actor_id == actor_id)
    if target_id:
        q = q.filter(AuditEntry.target_id == target_id)
    if since:
        q = q.filter(AuditEntry.created_at >= since)
    if until:
        q = q.filter(AuditEntry.created_at <= until)
    return q.order_by(AuditEntry.id.desc()).limit(limit).all()


def verify_audit_chain(db: Session) -> Optional[int]:
    """Returns the id of the first entry whose hash does not match, or None."""
    prev_hash: Optional[str] = None
    for row in db.query(AuditEntry).order_by(AuditEntry.id.asc()).yield_per(500):
        if row.prev_hash != prev_hash:
            return row.id
        payload = _entry_payload(
            row.action,
            row.actor_id,
            row.target_type,
            row.target_id,
            row.target_name,
            row.details,
            row.created_at,
            row.prev_hash,
        )
        if chain_hash(row.prev_hash, payload) != row.hash:
            return row.id
        prev_hash = row.hash
    return None
