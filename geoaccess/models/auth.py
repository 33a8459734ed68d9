# models/auth.py

import uuid

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase

from geoaccess.utils.datetime import utcnow


class Base(DeclarativeBase):
    pass


# JSONB on PostgreSQL, plain JSON elsewhere (test suite runs on SQLite)
JsonType = JSON().with_variant(JSONB(), "postgresql")


def new_id() -> str:
    return str(uuid.uuid4())


class Principal(Base):
    __tablename__ = "principals"

    id = Column(String(36), primary_key=True, default=new_id)
    username = Column(String(100), nullable=False, unique=True, index=True)
    email = Column(String(200), nullable=True, unique=True)

    # bcrypt hash of sha256(password + pepper)
    password_hash = Column(String(100), nullable=False)

    role = Column(String(20), nullable=False, default="user", server_default="user", index=True)  # admin|user
    is_active = Column(Boolean, nullable=False, default=True, server_default="true", index=True)

    # Store only a hash of the active key, never the plaintext
    api_key_hash = Column(String(64), nullable=False, unique=True, index=True)
    api_key_prefix = Column(String(12), nullable=False)
    api_key_created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    last_login = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"Principal(id={self.id!r}, username={self.username!r}, role={self.role!r}, is_active={self.is_active!r})"


class ApiKeyHistory(Base):
    __tablename__ = "api_key_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    principal_id = Column(String(36), ForeignKey("principals.id", ondelete="CASCADE"), nullable=False, index=True)

    key_hash = Column(String(64), nullable=False, index=True)
    key_prefix = Column(String(12), nullable=False)

    # when the revoked key was originally issued
    issued_at = Column(DateTime(timezone=True), nullable=True)
    # when this history row was written, i.e. the rotation time
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    revoked_at = Column(DateTime(timezone=True), nullable=False)
    revoked_by = Column(String(36), nullable=True)

    __table_args__ = (
        Index("ix_api_key_history_principal_created", "principal_id", "created_at"),
    )


class AuditEntry(Base):
    __tablename__ = "audit_trail"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # examples: "USER_CREATE", "GROUP_DELETE", "MODEL_PERMISSION_CHANGE", "API_KEY_REGENERATE"
    action = Column(String(50), nullable=False, index=True)
    actor_id = Column(String(36), nullable=False, index=True)

    target_type = Column(String(20), nullable=True, index=True)  # USER|GROUP|MODEL|ZONE|SYSTEM
    target_id = Column(String(36), nullable=True, index=True)
    target_name = Column(String(200), nullable=True)

    # redacted, never raw secrets
    details = Column(JsonType, nullable=True)

    ip = Column(String(64), nullable=True)
    user_agent = Column(String(300), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    # tamper-evident chain over the whole trail
    prev_hash = Column(String(64), nullable=True)
    hash = Column(String(64), nullable=False, index=True)


class AuditChainHead(Base):
    __tablename__ = "audit_chain_head"

    # single row; appenders lock it so the trail stays one linear chain
    id = Column(Integer, primary_key=True)
    length = Column(Integer, nullable=False, default=0)
    last_hash = Column(String(64), nullable=True)
