"""Notification sweeper — periodic housekeeping in the background.

Learn: Runs as a long-lived task in the FastAPI lifespan. Every
`interval` seconds it
  1. reminds the members of each group about meetings that start within
     the reminder window (SESSION_REMINDER; the 24h de-duplication of
     NotificationService makes repeated sweeps harmless), and
  2. deletes read notifications older than the retention period.

Each sweep gets its own DB session for transaction isolation.

Usage:
    sweeper = NotificationSweeper()
    asyncio.create_task(sweeper.run_loop())
"""

import asyncio
from datetime import timedelta
from typing import Callable

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from peerconnect.config import settings
from peerconnect.db.engine import async_session_factory
from peerconnect.db.models import (
    GroupMember,
    Meeting,
    MeetingStatus,
    NotificationType,
    ensure_utc,
    utcnow,
)
from peerconnect.services.notification_service import NotificationService

logger = structlog.get_logger()


class NotificationSweeper:
    """Background worker for meeting reminders and notification cleanup."""

    def __init__(
        self,
        interval: float | None = None,
        session_factory: Callable[[], AsyncSession] = async_session_factory,
    ):
        self.interval = interval or settings.sweeper_interval_seconds
        self.session_factory = session_factory
        self._running = False

    async def run_loop(self) -> None:
        """Main worker loop — sweep, then sleep."""
        self._running = True
        logger.info("sweeper.started", interval=self.interval)

        while self._running:
            try:
                await self.sweep()
            except Exception:
                logger.exception("sweeper.error")
            await asyncio.sleep(self.interval)

    async def sweep(self) -> dict:
        async with self.session_factory() as db:
            reminded = await self.send_meeting_reminders(db)
            removed = await NotificationService(db).cleanup_read(
                settings.notification_retention_days
            )
        if reminded or removed:
            logger.info("sweeper.swept", reminders=reminded, removed=removed)
        return {"reminders": reminded, "removed": removed}

    async def send_meeting_reminders(self, db: AsyncSession) -> int:
        now = utcnow()
        horizon = now + timedelta(minutes=settings.meeting_reminder_minutes)
        result = await db.execute(
            select(Meeting).where(
                Meeting.status == MeetingStatus.SCHEDULED,
                Meeting.scheduled_start_time > now,
                Meeting.scheduled_start_time <= horizon,
            )
        )
        meetings = list(result.scalars().all())

        notifications = NotificationService(db)
        sent = 0
        for meeting in meetings:
            members = await db.execute(
                select(GroupMember.user_id).where(GroupMember.group_id == meeting.group_id)
            )
            starts = ensure_utc(meeting.scheduled_start_time)
            minutes = max(1, int((starts - now).total_seconds() // 60))
            for user_id in members.scalars().all():
                await notifications.create(
                    user_id,
                    title="Upcoming meeting",
                    message=f"{meeting.title} starts in {minutes} minutes",
                    type=NotificationType.SESSION_REMINDER,
                    related_id=str(meeting.id),
                )
                sent += 1
        return sent

    def stop(self) -> None:
        """Signal the worker to stop."""
        self._running = False
        logger.info("sweeper.stopping")
