# crud_auth.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from geoaccess.auth.identity import AuthenticatedPrincipal, Role
from geoaccess.core.errors import Conflict, NotFound, Unauthenticated
from geoaccess.models.auth import ApiKeyHistory, Principal
from geoaccess.security.hashing import generate_api_key, hash_api_key, hash_password, verify_password
from geoaccess.utils.datetime import as_utc, utcnow


@dataclass(frozen=True)
class RotatedKey:
    key: str
    key_prefix: str
    created_at: datetime


def principal_identity(row: Principal) -> AuthenticatedPrincipal:
    return AuthenticatedPrincipal(principal_id=row.id, username=row.username, role=Role(row.role))


def get_principal(db: Session, principal_id: str) -> Optional[Principal]:
    return db.query(Principal).filter(Principal.id == principal_id).first()


def find_principal_by_api_key(db: Session, api_key_plain: str) -> Optional[Principal]:
    """Owner of an active key, active or not; revoked keys live only in history."""
    if not api_key_plain or not api_key_plain.strip():
        return None
    key_hash = hash_api_key(api_key_plain)
    return db.query(Principal).filter(Principal.api_key_hash == key_hash).first()


def find_principal_by_username(db: Session, username: str) -> Optional[Principal]:
    return db.query(Principal).filter(Principal.username == username).first()


def is_admin(db: Session, principal_id: str) -> bool:
    row = (
        db.query(Principal.id)
        .filter(
            Principal.id == principal_id,
            Principal.role == Role.ADMIN.value,
            Principal.is_active == True,  # noqa: E712
        )
        .first()
    )
    return row is not None


def create_principal(
    db: Session,
    username: str,
    password: str,
    pepper: str,
    role: Role = Role.USER,
    email: Optional[str] = None,
    created_by: Optional[str] = None,
) -> tuple[Principal, str]:
    if find_principal_by_username(db, username):
        raise Conflict("Username already in use")
    if email and db.query(Principal.id).filter(Principal.email == email).first():
        raise Conflict("Email already in use")

    api_key_plain, key_hash, key_prefix = generate_api_key()
    row = Principal(
        username=username,
        email=email,
        password_hash=hash_password(password, pepper),
        role=Role(role).value,
        is_active=True,
        api_key_hash=key_hash,
        api_key_prefix=key_prefix,
        api_key_created_at=utcnow(),
        created_by=created_by,
    )
    db.add(row)
    db.flush()
    return row, api_key_plain


def authenticate_password(db: Session, username: str, password: str, pepper: str) -> Principal:
    row = find_principal_by_username(db, username)
    if not row or not verify_password(password, row.password_hash, pepper):
        raise Unauthenticated("Invalid credentials")
    if not row.is_active:
        raise Unauthenticated("Inactive account")

    row.last_login = utcnow()
    db.flush()
    return row


def update_principal(
    db: Session,
    row: Principal,
    email: Optional[str] = None,
    role: Optional[Role] = None,
    is_active: Optional[bool] = None,
) -> Dict[str, Dict[str, Any]]:
    """Apply the given fields, return {field: {"old", "new"}} for what changed."""
    changes: Dict[str, Dict[str, Any]] = {}

    if email is not None and email != row.email:
        taken = db.query(Principal.id).filter(Principal.email == email, Principal.id != row.id).first()
        if taken:
            raise Conflict("Email already in use")
        changes["email"] = {"old": row.email, "new": email}
        row.email = email

    if role is not None and Role(role).value != row.role:
        changes["role"] = {"old": row.role, "new": Role(role).value}
        row.role = Role(role).value

    if is_active is not None and is_active != row.is_active:
        changes["is_active"] = {"old": row.is_active, "new": is_active}
        row.is_active = is_active

    if changes:
        db.flush()
    return changes


def set_password(db: Session, row: Principal, new_password: str, pepper: str) -> None:
    row.password_hash = hash_password(new_password, pepper)
    db.flush()


def _lock_active_principal(db: Session, principal_id: str) -> Optional[Principal]:
    return (
        db.query(Principal)
        .filter(Principal.id == principal_id, Principal.is_active == True)  # noqa: E712
        .with_for_update()
        .populate_existing()
        .first()
    )


def rotate_api_key(
    db: Session,
    principal_id: str,
    revoked_by: str,
    new_key: Optional[str] = None,
) -> RotatedKey:
    """
    Move the current key to history as revoked and install a new one.

    Flush only: the caller's transaction decides commit or rollback. The
    principal row is locked so concurrent rotations serialize on PostgreSQL,
    and the key swap only applies while the key read under that lock is still
    the active one. A rotation that lost the race raises Conflict rather than
    writing history for a key it never saw.
    """
    row = _lock_active_principal(db, principal_id)
    if not row:
        raise NotFound("Principal not found")

    if new_key is None:
        new_key, key_hash, key_prefix = generate_api_key()
    else:
        key_hash, key_prefix = hash_api_key(new_key), new_key[:12]
    if key_hash == row.api_key_hash:
        raise Conflict("New API key must differ from the active one")

    old_hash, old_prefix, old_created = row.api_key_hash, row.api_key_prefix, row.api_key_created_at

    now = utcnow()
    # keep key timestamps strictly increasing per principal
    previous_created = as_utc(old_created)
    if previous_created is not None and now <= previous_created:
        now = previous_created + timedelta(microseconds=1)

    swapped = (
        db.query(Principal)
        .filter(Principal.id == row.id, Principal.api_key_hash == old_hash)
        .update(
            {
                Principal.api_key_hash: key_hash,
                Principal.api_key_prefix: key_prefix,
                Principal.api_key_created_at: now,
            },
            synchronize_session=False,
        )
    )
    if not swapped:
        raise Conflict("API key was rotated concurrently, retry the operation")

    db.add(
        ApiKeyHistory(
            principal_id=row.id,
            key_hash=old_hash,
            key_prefix=old_prefix,
            issued_at=old_created,
            created_at=now,
            revoked_at=now,
            revoked_by=revoked_by,
        )
    )
    db.flush()
    db.refresh(row)

    return RotatedKey(key=new_key, key_prefix=key_prefix, created_at=now)


def list_api_key_history(db: Session, principal_id: str) -> List[ApiKeyHistory]:
    return (
        db.query(ApiKeyHistory)
        .filter(ApiKeyHistory.principal_id == principal_id)
        .order_by(ApiKeyHistory.created_at.desc(), ApiKeyHistory.id.desc())
        .all()
    )


def list_principals(db: Session, limit: int = 100, offset: int = 0) -> List[Principal]:
    return db.query(Principal).order_by(Principal.username).offset(offset).limit(limit).all()


def get_principal_or_404(db: Session, principal_id: str) -> Principal:
    row = get_principal(db, principal_id)
    if not row:
        raise NotFound("User not found")
    return row
