"""Pydantic schemas for the chat REST endpoints."""

import uuid
from typing import Optional

from pydantic import Field, model_validator

from peerconnect.db.models import MessageType
from peerconnect.schemas.base import CamelModel
from peerconnect.schemas.group import MessageRead


class SendMessageRequest(CamelModel):
    content: str = Field(..., min_length=1, max_length=4000)
    group_id: Optional[uuid.UUID] = None
    meeting_id: Optional[uuid.UUID] = None
    message_type: MessageType = MessageType.TEXT
    file_url: Optional[str] = None

    @model_validator(mode="after")
    def one_room(self):
        if (self.group_id is None) == (self.meeting_id is None):
            raise ValueError("Exactly one of groupId or meetingId is required")
        return self


class ChatHistory(CamelModel):
    data: list[MessageRead]
    total: int
    page: int
    limit: int
    total_pages: int


class ChatRoom(CamelModel):
    group_id: uuid.UUID
    name: str
    is_active: bool
    last_message: Optional[MessageRead] = None
