# schemas/auth.py

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from geoaccess.auth.identity import Role


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1)


class PrincipalRead(BaseModel):
    id: str
    username: str
    email: Optional[str] = None
    role: Role
    is_active: bool
    api_key_prefix: str
    api_key_created_at: datetime
    last_login: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LoginResponse(BaseModel):
    user: PrincipalRead
    token: str
    expires_in: int


class Me(BaseModel):
    id: str
    username: str
    role: Role
    auth_method: str


class PrincipalCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=100)
    password: str = Field(..., min_length=8)
    email: Optional[str] = Field(default=None, max_length=200)
    role: Role = Role.USER
    group_ids: List[str] = Field(default_factory=list)


class PrincipalCreated(PrincipalRead):
    api_key: str  # shown once


class PrincipalUpdate(BaseModel):
    email: Optional[str] = Field(default=None, max_length=200)
    role: Optional[Role] = None
    is_active: Optional[bool] = None


class PasswordUpdate(BaseModel):
    current_password: Optional[str] = None
    new_password: str = Field(..., min_length=8)


class ApiKeyHistoryRead(BaseModel):
    key_prefix: str
    issued_at: Optional[datetime] = None
    created_at: datetime
    revoked_at: datetime
    revoked_by: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ApiKeyRotated(BaseModel):
    api_key: str  # shown once
    generated_at: datetime
    previous_keys: List[ApiKeyHistoryRead]


class ApiKeyValidation(BaseModel):
    valid: bool
    principal_id: str
    username: str
    role: Role


class AuditEntryRead(BaseModel):
    id: int
    action: str
    actor_id: str
    target_type: Optional[str] = None
    target_id: Optional[str] = None
    target_name: Optional[str] = None
    details: Optional[Any] = None
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime
    prev_hash: Optional[str] = None
    hash: str

    model_config = ConfigDict(from_attributes=True)
