"""Meeting service — scheduling group sessions and driving their lifecycle.

Learn: who may manage a meeting (start, end, edit, delete)?
- its creator,
- a platform ADMIN,
- the group's leader or an ADMIN/LISTENER member of the group.
"""

import uuid
from datetime import datetime

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from peerconnect.db.models import (
    Meeting,
    MeetingStatus,
    NotificationType,
    User,
    ensure_utc,
    utcnow,
)
from peerconnect.errors import BadRequestError, ForbiddenError, NotFoundError
from peerconnect.services.group_service import GroupService

logger = structlog.get_logger()


class MeetingService:
    """Business logic for meetings."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.groups = GroupService(db)

    async def create_meeting(self, creator: User, group_id: uuid.UUID, **fields) -> Meeting:
        group = await self.groups.get_group(group_id)
        if not await self.groups.is_moderator(creator, group_id):
            raise ForbiddenError("Only group admins and listeners can schedule meetings")

        meeting = Meeting(
            group_id=group_id,
            created_by=creator.id,
            status=MeetingStatus.SCHEDULED,
            **fields,
        )
        self.db.add(meeting)
        await self.db.commit()
        logger.info("meeting.created", meeting_id=str(meeting.id), group_id=str(group_id))

        await self._notify_members(
            meeting,
            exclude=creator.id,
            title=f"New meeting in {group.name}",
            message=(
                f"{meeting.title} is scheduled for "
                f"{ensure_utc(meeting.scheduled_start_time):%Y-%m-%d %H:%M} UTC"
            ),
        )
        return meeting

    async def get_meeting(self, meeting_id: uuid.UUID) -> Meeting:
        meeting = await self.db.get(Meeting, meeting_id)
        if not meeting:
            raise NotFoundError("Meeting not found")
        return meeting

    async def list_for_group(self, group_id: uuid.UUID) -> list[Meeting]:
        await self.groups.get_group(group_id)
        result = await self.db.execute(
            select(Meeting)
            .where(Meeting.group_id == group_id)
            .order_by(Meeting.scheduled_start_time)
        )
        return list(result.scalars().all())

    # ─── Lifecycle ──────────────────────────────────────

    async def start_meeting(self, user: User, meeting_id: uuid.UUID) -> Meeting:
        meeting = await self._managed(user, meeting_id, "start")
        if meeting.status != MeetingStatus.SCHEDULED:
            raise ForbiddenError("Meeting cannot be started in its current status")
        meeting.status = MeetingStatus.ACTIVE
        meeting.actual_start_time = utcnow()
        await self.db.commit()
        logger.info("meeting.started", meeting_id=str(meeting.id))
        await self._notify_members(
            meeting,
            exclude=user.id,
            title="Meeting started",
            message=f"{meeting.title} has started",
            related_suffix="started",
        )
        return meeting

    async def end_meeting(self, user: User, meeting_id: uuid.UUID) -> Meeting:
        meeting = await self._managed(user, meeting_id, "end")
        if meeting.status != MeetingStatus.ACTIVE:
            raise ForbiddenError("Meeting is not active")
        meeting.status = MeetingStatus.COMPLETED
        meeting.actual_end_time = utcnow()
        await self.db.commit()
        logger.info("meeting.ended", meeting_id=str(meeting.id))
        return meeting

    async def update_meeting(
        self, user: User, meeting_id: uuid.UUID, changes: dict
    ) -> Meeting:
        meeting = await self._managed(user, meeting_id, "update")

        start: datetime = changes.get("scheduled_start_time") or meeting.scheduled_start_time
        end: datetime | None = changes.get("scheduled_end_time", meeting.scheduled_end_time)
        if end is not None and ensure_utc(end) <= ensure_utc(start):
            raise BadRequestError("scheduledEndTime must be after scheduledStartTime")

        for field, value in changes.items():
            setattr(meeting, field, value)
        await self.db.commit()
        logger.info("meeting.updated", meeting_id=str(meeting.id), fields=sorted(changes))
        return meeting

    async def delete_meeting(self, user: User, meeting_id: uuid.UUID) -> None:
        meeting = await self._managed(user, meeting_id, "delete")
        await self.db.delete(meeting)
        await self.db.commit()
        logger.info("meeting.deleted", meeting_id=str(meeting_id))

    # ─── Helpers ────────────────────────────────────────

    async def can_manage(self, user: User, meeting: Meeting) -> bool:
        if meeting.created_by == user.id:
            return True
        return await self.groups.is_moderator(user, meeting.group_id)

    async def _managed(self, user: User, meeting_id: uuid.UUID, action: str) -> Meeting:
        meeting = await self.get_meeting(meeting_id)
        if not await self.can_manage(user, meeting):
            raise ForbiddenError(f"You cannot {action} this meeting")
        return meeting

    async def _notify_members(
        self,
        meeting: Meeting,
        exclude: uuid.UUID,
        title: str,
        message: str,
        related_suffix: str = "scheduled",
    ) -> None:
        members = [
            m.user_id for m in await self.groups.get_members(meeting.group_id)
            if m.user_id != exclude
        ]
        if members:
            await self.groups.notifications.create_bulk(
                members,
                title=title,
                message=message,
                type=NotificationType.MEETING_UPDATE,
                related_id=f"{meeting.id}:{related_suffix}",
            )
