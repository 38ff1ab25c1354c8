"""Pydantic schemas for notifications."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field

from peerconnect.db.models import NotificationType
from peerconnect.schemas.base import CamelModel, Pagination


class NotificationCreate(CamelModel):
    user_id: uuid.UUID
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1)
    type: NotificationType
    related_id: Optional[str] = Field(None, max_length=100)
    send_email: bool = False


class BulkNotificationCreate(CamelModel):
    user_ids: list[uuid.UUID] = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1)
    type: NotificationType
    related_id: Optional[str] = Field(None, max_length=100)
    send_email: bool = False


class NotificationRead(CamelModel):
    id: uuid.UUID
    user_id: uuid.UUID
    title: str
    message: str
    type: NotificationType
    is_read: bool
    related_id: Optional[str] = None
    created_at: datetime


class NotificationPage(CamelModel):
    notifications: list[NotificationRead]
    pagination: Pagination


class UnreadCount(CamelModel):
    unread_count: int


class NotificationStats(CamelModel):
    total: int
    unread: int
    by_type: dict[str, int]


class CountResponse(CamelModel):
    count: int
