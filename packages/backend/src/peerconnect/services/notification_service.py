"""Notification service — in-app notifications, pushed live and optionally mailed.

Learn: creation is idempotent over a 24h window. A notification with the
same (user, type, related_id) created in the last day is returned instead
of a duplicate, so retried requests and the periodic reminder sweep don't
spam anyone. Without a related_id, any same-type notification counts.
"""

import uuid
from datetime import timedelta

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from peerconnect.db.models import Notification, NotificationType, User, utcnow
from peerconnect.errors import NotFoundError
from peerconnect.realtime.hub import hub
from peerconnect.realtime.messages import NOTIFICATION, envelope
from peerconnect.schemas.notification import NotificationRead
from peerconnect.services.mailer import MailDeliveryError, MailerService

logger = structlog.get_logger()

DEDUP_WINDOW = timedelta(hours=24)


class NotificationService:
    """Business logic for notifications."""

    def __init__(self, db: AsyncSession, mailer: MailerService | None = None):
        self.db = db
        self.mailer = mailer or MailerService()

    # ─── Creation ───────────────────────────────────────

    async def create(
        self,
        user_id: uuid.UUID,
        title: str,
        message: str,
        type: NotificationType,
        related_id: str | None = None,
        send_email: bool = False,
    ) -> Notification:
        existing = await self._recent_duplicate(user_id, type, related_id)
        if existing:
            logger.debug(
                "notification.deduplicated",
                user_id=str(user_id),
                type=type,
                related_id=related_id,
            )
            return existing

        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            related_id=related_id,
        )
        self.db.add(notification)
        await self.db.commit()

        await self._push(notification)
        if send_email:
            await self._mail(notification)
        return notification

    async def create_bulk(
        self,
        user_ids: list[uuid.UUID],
        title: str,
        message: str,
        type: NotificationType,
        related_id: str | None = None,
        send_email: bool = False,
    ) -> list[Notification]:
        created = []
        for user_id in dict.fromkeys(user_ids):
            created.append(
                await self.create(user_id, title, message, type, related_id, send_email)
            )
        return created

    async def _recent_duplicate(
        self, user_id: uuid.UUID, type: str, related_id: str | None
    ) -> Notification | None:
        q = select(Notification).where(
            Notification.user_id == user_id,
            Notification.type == type,
            Notification.created_at >= utcnow() - DEDUP_WINDOW,
        )
        if related_id is not None:
            q = q.where(Notification.related_id == related_id)
        result = await self.db.execute(q.order_by(Notification.created_at.desc()))
        return result.scalars().first()

    async def _push(self, notification: Notification) -> None:
        data = NotificationRead.model_validate(notification).model_dump(
            mode="json", by_alias=True
        )
        await hub.publish_to_user(notification.user_id, envelope(NOTIFICATION, data))

    async def _mail(self, notification: Notification) -> None:
        user = await self.db.get(User, notification.user_id)
        if not user:
            return
        try:
            await self.mailer.send_notification_email(
                user.email,
                user.first_name,
                notification.title,
                notification.message,
                notification.type,
            )
        except MailDeliveryError as e:
            # The in-app notification already exists; mail is best-effort
            logger.warning(
                "notification.mail_failed",
                notification_id=str(notification.id),
                error=str(e),
            )

    # ─── Reading ────────────────────────────────────────

    async def list_for_user(
        self, user_id: uuid.UUID, page: int = 1, limit: int = 20
    ) -> tuple[list[Notification], int]:
        total = await self._count(Notification.user_id == user_id)
        result = await self.db.execute(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def unread_count(self, user_id: uuid.UUID) -> int:
        return await self._count(
            Notification.user_id == user_id, Notification.is_read.is_(False)
        )

    async def stats(self, user_id: uuid.UUID) -> dict:
        result = await self.db.execute(
            select(Notification.type, func.count())
            .where(Notification.user_id == user_id)
            .group_by(Notification.type)
        )
        by_type = {t: n for t, n in result.all()}
        return {
            "total": sum(by_type.values()),
            "unread": await self.unread_count(user_id),
            "by_type": by_type,
        }

    async def _count(self, *criteria) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Notification).where(*criteria)
        )
        return result.scalar_one()

    # ─── Updates ────────────────────────────────────────

    async def mark_as_read(
        self, notification_id: uuid.UUID, user_id: uuid.UUID
    ) -> Notification:
        notification = await self._owned(notification_id, user_id)
        notification.is_read = True
        await self.db.commit()
        return notification

    async def mark_all_as_read(self, user_id: uuid.UUID) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
        await self.db.commit()
        return result.rowcount

    async def delete(self, notification_id: uuid.UUID, user_id: uuid.UUID) -> None:
        notification = await self._owned(notification_id, user_id)
        await self.db.delete(notification)
        await self.db.commit()

    async def cleanup_read(self, older_than_days: int) -> int:
        """Delete read notifications older than the retention period."""
        cutoff = utcnow() - timedelta(days=older_than_days)
        result = await self.db.execute(
            delete(Notification).where(
                Notification.is_read.is_(True),
                Notification.created_at < cutoff,
            )
        )
        await self.db.commit()
        return result.rowcount

    async def _owned(
        self, notification_id: uuid.UUID, user_id: uuid.UUID
    ) -> Notification:
        result = await self.db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
        )
        notification = result.scalars().first()
        if not notification:
            raise NotFoundError("Notification not found")
        return notification
