"""Pydantic schemas for groups, memberships and group messages."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field

from peerconnect.db.models import GroupRole, MessageType
from peerconnect.schemas.auth import UserSummary
from peerconnect.schemas.base import CamelModel, Pagination


# ─── Groups ─────────────────────────────────────────────

class GroupCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    topic_id: uuid.UUID
    max_members: Optional[int] = Field(None, ge=1, le=500)
    meeting_schedule: Optional[str] = Field(None, max_length=500)


class GroupRead(CamelModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    topic_id: uuid.UUID
    leader_id: Optional[uuid.UUID] = None
    is_active: bool
    max_members: int
    meeting_schedule: Optional[str] = None
    created_at: datetime
    member_count: int = 0


class GroupMemberRead(CamelModel):
    id: uuid.UUID
    user_id: uuid.UUID
    role: GroupRole
    joined_at: datetime
    user: UserSummary


class GroupDetail(GroupRead):
    members: list[GroupMemberRead] = []


class CanSendMessage(CamelModel):
    can_send_message: bool


# ─── Messages ───────────────────────────────────────────

class MessageCreate(CamelModel):
    content: str = Field(..., min_length=1, max_length=4000)
    message_type: MessageType = MessageType.TEXT
    file_url: Optional[str] = None


class MessageRead(CamelModel):
    id: uuid.UUID
    sender_id: uuid.UUID
    group_id: Optional[uuid.UUID] = None
    meeting_id: Optional[uuid.UUID] = None
    content: str
    message_type: MessageType
    file_url: Optional[str] = None
    is_read: bool
    created_at: datetime
    sender: UserSummary


class MessagePage(CamelModel):
    messages: list[MessageRead]
    pagination: Pagination
