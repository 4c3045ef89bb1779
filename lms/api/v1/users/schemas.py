from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import EmailStr, Field

from lms.core.enums import Sex, UserRole, UserStatus
from lms.core.schemas import CamelModel


class UserCreate(CamelModel):
    """Admin-created account. status defaults to pending; userId is generated in backend."""

    username: str = Field(..., min_length=3)
    first_name: str = Field(..., min_length=1)
    middle_name: Optional[str] = None
    last_name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=8)
    phone_number: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    role: UserRole
    sex: Sex
    gender: Optional[str] = None
    status: Optional[UserStatus] = None
    bio: Optional[str] = None
    profile_picture: Optional[str] = None


class UserUpdate(CamelModel):
    username: Optional[str] = Field(None, min_length=3)
    first_name: Optional[str] = Field(None, min_length=1)
    middle_name: Optional[str] = None
    last_name: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = Field(None, min_length=1)
    address: Optional[str] = Field(None, min_length=1)
    sex: Optional[Sex] = None
    gender: Optional[str] = None
    bio: Optional[str] = None
    profile_picture: Optional[str] = None
    # Accepted only to reject: role is fixed, passwords go through /password
    role: Optional[UserRole] = None
    password: Optional[str] = None
    status: Optional[UserStatus] = None


class UserPasswordUpdate(CamelModel):
    new_password: Optional[str] = None


class UserRestore(CamelModel):
    status: Optional[UserStatus] = None


class UserSummary(CamelModel):
    """User as embedded in course payloads."""

    id: UUID
    user_id: str
    username: str
    email: str
    first_name: str
    last_name: str
    profile_picture: Optional[str] = None
    status: str


class UserResponse(CamelModel):
    id: UUID
    user_id: str
    username: str
    email: str
    first_name: str
    middle_name: Optional[str] = None
    last_name: str
    phone_number: str
    address: str
    sex: str
    gender: Optional[str] = None
    bio: Optional[str] = None
    profile_picture: Optional[str] = None
    role: str
    status: str
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    # Teacher only
    assigned_courses: Optional[List[UUID]] = None
    # Student only
    enrolled_courses: Optional[List[UUID]] = None


class UserStatusResponse(CamelModel):
    id: UUID
    status: str
