"""Pydantic schemas for group meetings."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field, model_validator

from peerconnect.db.models import MeetingStatus, MeetingType
from peerconnect.schemas.base import CamelModel


class MeetingCreate(CamelModel):
    group_id: uuid.UUID
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=4000)
    type: MeetingType
    scheduled_start_time: datetime
    scheduled_end_time: Optional[datetime] = None
    agenda: list[str] = Field(default_factory=list)
    max_participants: Optional[int] = Field(None, ge=1, le=1000)
    notes_template: Optional[str] = None

    @model_validator(mode="after")
    def end_after_start(self):
        if (
            self.scheduled_end_time is not None
            and self.scheduled_end_time <= self.scheduled_start_time
        ):
            raise ValueError("scheduledEndTime must be after scheduledStartTime")
        return self


class MeetingUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=4000)
    type: Optional[MeetingType] = None
    status: Optional[MeetingStatus] = None
    scheduled_start_time: Optional[datetime] = None
    scheduled_end_time: Optional[datetime] = None
    agenda: Optional[list[str]] = None
    max_participants: Optional[int] = Field(None, ge=1, le=1000)
    notes_template: Optional[str] = None


class MeetingRead(CamelModel):
    id: uuid.UUID
    group_id: uuid.UUID
    title: str
    description: str
    type: MeetingType
    status: MeetingStatus
    scheduled_start_time: datetime
    scheduled_end_time: Optional[datetime] = None
    actual_start_time: Optional[datetime] = None
    actual_end_time: Optional[datetime] = None
    agenda: list[str] = []
    max_participants: Optional[int] = None
    notes_template: Optional[str] = None
    created_by: uuid.UUID
    created_at: datetime
