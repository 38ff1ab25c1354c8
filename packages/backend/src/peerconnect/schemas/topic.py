"""Pydantic schemas for topics and a user's topic selection."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field

from peerconnect.schemas.base import CamelModel, TopicIds


class TopicCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)


class TopicRead(CamelModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    created_at: datetime


class TopicSelectionRead(TopicRead):
    is_selected: bool


class TopicSelectionRequest(CamelModel):
    topic_ids: TopicIds
