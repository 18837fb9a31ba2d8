from pydantic import EmailStr, Field
from typing import Optional
from datetime import datetime
from uuid import UUID

from suipic.models.enums import UserRole
from suipic.schemas.common import CamelModel


class UserBrief(CamelModel):
    id: UUID
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: UserRole


class UserResponse(UserBrief):
    created_by_id: Optional[UUID] = None
    is_pending: bool = False
    created_at: datetime


class SyncRequest(CamelModel):
    identity_key: str = Field(min_length=1, max_length=255)
    email: EmailStr
    first_name: Optional[str] = Field(default=None, max_length=255)
    last_name: Optional[str] = Field(default=None, max_length=255)
    role: Optional[UserRole] = None

    class Config:
        json_schema_extra = {
            "example": {
                "identityKey": "f2a4c1e8-1b7e-4c55-9a53-0f3f7c1d2e90",
                "email": "client@example.com",
                "firstName": "Jane",
                "lastName": "Doe",
            }
        }


class UserCreate(CamelModel):
    email: EmailStr
    identity_key: Optional[str] = Field(default=None, min_length=1, max_length=255)
    first_name: Optional[str] = Field(default=None, max_length=255)
    last_name: Optional[str] = Field(default=None, max_length=255)
    role: UserRole = UserRole.CLIENT


class UserUpdate(CamelModel):
    first_name: Optional[str] = Field(default=None, max_length=255)
    last_name: Optional[str] = Field(default=None, max_length=255)
    role: Optional[UserRole] = None
