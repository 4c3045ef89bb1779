from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from lms.core.enums import Sex
from lms.core.schemas import CamelModel
from lms.api.v1.users.schemas import UserResponse


class LoginRequest(CamelModel):
    # Email or username
    identifier: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class LoginResponse(CamelModel):
    success: bool = True
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserResponse
    issued_at: datetime


class RefreshRequest(CamelModel):
    refresh_token: str


class AccessTokenResponse(CamelModel):
    success: bool = True
    access_token: str
    token_type: str = "bearer"


class ProfileUpdate(CamelModel):
    """Self-service profile fields. Role, status, email and password are not editable here."""

    first_name: Optional[str] = Field(None, min_length=1)
    middle_name: Optional[str] = None
    last_name: Optional[str] = Field(None, min_length=1)
    phone_number: Optional[str] = Field(None, min_length=1)
    address: Optional[str] = Field(None, min_length=1)
    sex: Optional[Sex] = None
    gender: Optional[str] = None
    bio: Optional[str] = None
    profile_picture: Optional[str] = None


class CurrentUser(BaseModel):
    """Lightweight representation of the authenticated user for role checks."""

    id: UUID
    role: str
    username: str
