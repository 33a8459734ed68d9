# models/access.py

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from geoaccess.models.auth import Base, new_id  # reuse Base from models/auth.py


class Group(Base):
    __tablename__ = "groups"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(100), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)

    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class GroupMembership(Base):
    __tablename__ = "group_memberships"

    group_id = Column(String(36), ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True)
    principal_id = Column(String(36), ForeignKey("principals.id", ondelete="CASCADE"), primary_key=True, index=True)

    added_by = Column(String(36), nullable=True)
    added_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class CatalogModel(Base):
    """3D model entry of the catalog."""

    __tablename__ = "catalog_models"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=True)
    access_level = Column(String(10), nullable=False, server_default="public", index=True)  # public|private

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class AccessZone(Base):
    """Geographic zone; geometry is managed by the spatial layer."""

    __tablename__ = "access_zones"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=True)
    access_level = Column(String(10), nullable=False, server_default="private", index=True)

    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class DirectGrant(Base):
    __tablename__ = "direct_grants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    resource_kind = Column(String(10), nullable=False)  # model|zone
    resource_id = Column(String(36), nullable=False)
    principal_id = Column(String(36), ForeignKey("principals.id", ondelete="CASCADE"), nullable=False, index=True)

    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("resource_kind", "resource_id", "principal_id", name="uq_direct_grant"),
        Index("ix_direct_grants_resource", "resource_kind", "resource_id"),
    )


class GroupGrant(Base):
    __tablename__ = "group_grants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    resource_kind = Column(String(10), nullable=False)
    resource_id = Column(String(36), nullable=False)
    group_id = Column(String(36), ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)

    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("resource_kind", "resource_id", "group_id", name="uq_group_grant"),
        Index("ix_group_grants_resource", "resource_kind", "resource_id"),
    )
