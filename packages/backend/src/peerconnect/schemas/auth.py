"""Pydantic schemas for registration, login and user profiles."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field

from peerconnect.db.models import UserRole, UserStatus
from peerconnect.schemas.base import CamelModel, TopicIds


# ─── Requests ───────────────────────────────────────────

class RegisterRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    profile_picture: Optional[str] = None
    bio: Optional[str] = Field(None, max_length=2000)


class RegisterWithTopicsRequest(RegisterRequest):
    topic_ids: TopicIds


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshRequest(CamelModel):
    refresh_token: str


class ResendVerificationRequest(CamelModel):
    email: EmailStr


class CompleteProfileRequest(CamelModel):
    bio: Optional[str] = Field(None, max_length=2000)
    profile_picture: Optional[str] = None
    topic_ids: TopicIds


class UpdateUserRequest(CamelModel):
    email: Optional[EmailStr] = None
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    profile_picture: Optional[str] = None
    bio: Optional[str] = Field(None, max_length=2000)
    status: Optional[UserStatus] = None


# ─── Responses ──────────────────────────────────────────

class UserRead(CamelModel):
    id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    profile_picture: Optional[str] = None
    bio: Optional[str] = None
    role: UserRole
    status: UserStatus
    is_email_verified: bool
    is_approved: bool
    profile_completed: bool
    created_at: datetime
    updated_at: datetime


class UserSummary(CamelModel):
    """Public view of another user (chat senders, group members)."""
    id: uuid.UUID
    first_name: str
    last_name: str
    profile_picture: Optional[str] = None
    role: UserRole


class RegisterResponse(CamelModel):
    message: str
    user_id: uuid.UUID


class TokenPair(CamelModel):
    access_token: str
    refresh_token: str
    expires_in: int


class LoginResponse(UserRead):
    access_token: str
    refresh_token: str
    expires_in: int


class ProfileCompletionStatus(CamelModel):
    profile_completed: bool


class RoleProbeResponse(CamelModel):
    message: str
    user: UserRead
