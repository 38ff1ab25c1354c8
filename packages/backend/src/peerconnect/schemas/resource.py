"""Pydantic schemas for shared resources."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field

from peerconnect.db.models import ResourceType
from peerconnect.schemas.base import CamelModel


class ResourceCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=4000)
    type: ResourceType
    file_url: str = Field(..., min_length=1)
    topic_id: uuid.UUID


class ResourceUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=4000)
    type: Optional[ResourceType] = None
    file_url: Optional[str] = Field(None, min_length=1)
    topic_id: Optional[uuid.UUID] = None


class ResourceApproval(CamelModel):
    is_approved: bool


class ResourceRead(CamelModel):
    id: uuid.UUID
    title: str
    description: str
    type: ResourceType
    file_url: str
    topic_id: uuid.UUID
    uploaded_by_id: uuid.UUID
    is_approved: bool
    download_count: int
    created_at: datetime


class DownloadResponse(CamelModel):
    file_url: str
    download_count: int
