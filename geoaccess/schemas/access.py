# schemas/access.py

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from geoaccess.auth.identity import AccessLevel


class ResourceRead(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    access_level: AccessLevel
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ZoneCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    access_level: AccessLevel = AccessLevel.PRIVATE
    user_ids: List[str] = Field(default_factory=list)
    group_ids: List[str] = Field(default_factory=list)


class PermissionsUpdate(BaseModel):
    # None leaves the corresponding list untouched, [] clears it
    access_level: Optional[AccessLevel] = None
    user_ids: Optional[List[str]] = None
    group_ids: Optional[List[str]] = None


class GrantedUser(BaseModel):
    id: str
    username: str


class GrantedGroup(BaseModel):
    id: str
    name: str


class PermissionsRead(BaseModel):
    resource_id: str
    resource_name: str
    access_level: AccessLevel
    user_permissions: List[GrantedUser]
    group_permissions: List[GrantedGroup]


class GroupCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None


class GroupUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None


class GroupRead(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MembershipCreate(BaseModel):
    user_id: str


class MyGroupRead(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    added_at: datetime
    added_by: Optional[str] = None
