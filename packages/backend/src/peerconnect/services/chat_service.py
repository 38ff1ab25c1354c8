"""Chat service — persisting group/meeting messages and fanning them out.

Learn: the HTTP endpoints and the WebSocket gateway both post through
send_message(), so moderation, membership rules and the live broadcast
behave identically whichever transport the client uses.
"""

import uuid

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from peerconnect.db.models import (
    GroupRole,
    Meeting,
    Message,
    MessageType,
    NotificationType,
    User,
)
from peerconnect.errors import ForbiddenError, NotFoundError
from peerconnect.realtime.hub import hub
from peerconnect.realtime.messages import CHAT_MESSAGE, envelope
from peerconnect.schemas.group import MessageRead
from peerconnect.services import content_filter
from peerconnect.services.group_service import GroupService

logger = structlog.get_logger()

ROOM_HISTORY_LIMIT = 50


def message_payload(message: Message) -> dict:
    return MessageRead.model_validate(message).model_dump(mode="json", by_alias=True)


class ChatService:
    """Business logic for chat messages."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.groups = GroupService(db)

    async def send_message(
        self,
        sender: User,
        content: str,
        group_id: uuid.UUID | None = None,
        meeting_id: uuid.UUID | None = None,
        message_type: MessageType = MessageType.TEXT,
        file_url: str | None = None,
    ) -> Message:
        """Validate, moderate, persist and broadcast one message."""
        if meeting_id is not None:
            meeting = await self.db.get(Meeting, meeting_id)
            if not meeting:
                raise NotFoundError("Meeting not found")
            group_id = meeting.group_id
        if group_id is None:
            raise NotFoundError("Group not found")

        group = await self.groups.get_group(group_id)
        membership = await self.groups.require_membership(group_id, sender.id)
        if not group.is_active and membership.role == GroupRole.MEMBER:
            raise ForbiddenError(
                "Group is inactive. Only admins and leads can send messages."
            )

        verdict = content_filter.filter_content(content, "message")
        if verdict.action == content_filter.BAN:
            logger.warning(
                "chat.message_blocked",
                user_id=str(sender.id),
                group_id=str(group_id),
                flags=verdict.flags,
            )
            raise ForbiddenError("Message blocked due to scam/illicit content.")
        if verdict.is_flagged:
            logger.info(
                "chat.message_flagged",
                user_id=str(sender.id),
                group_id=str(group_id),
                severity=verdict.severity,
                action=verdict.action,
            )

        message = Message(
            sender_id=sender.id,
            group_id=group_id,
            meeting_id=meeting_id,
            content=content,
            message_type=message_type,
            file_url=file_url,
        )
        self.db.add(message)
        await self.db.commit()
        message = await self.get_message(message.id)

        if verdict.action == content_filter.LISTENER_RESPONSE:
            await self._alert_moderators(group_id, sender, message)

        await hub.publish_to_group(group_id, envelope(CHAT_MESSAGE, message_payload(message)))
        logger.info("chat.message_sent", message_id=str(message.id), group_id=str(group_id))
        return message

    async def _alert_moderators(
        self, group_id: uuid.UUID, sender: User, message: Message
    ) -> None:
        moderators = [
            uid for uid in await self.groups.moderator_ids(group_id) if uid != sender.id
        ]
        if moderators:
            await self.groups.notifications.create_bulk(
                moderators,
                title="Listener response needed",
                message=f"A message from {sender.full_name} may need a listener's attention.",
                type=NotificationType.GROUP_ACTIVITY,
                related_id=str(message.id),
            )

    async def get_message(self, message_id: uuid.UUID) -> Message:
        result = await self.db.execute(
            select(Message)
            .where(Message.id == message_id)
            .execution_options(populate_existing=True)
        )
        message = result.scalars().first()
        if not message:
            raise NotFoundError("Message not found")
        return message

    # ─── History ────────────────────────────────────────

    async def history(
        self,
        user: User,
        group_id: uuid.UUID | None = None,
        meeting_id: uuid.UUID | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[Message], int]:
        """One page of a room's messages, newest first."""
        if meeting_id is not None:
            meeting = await self.db.get(Meeting, meeting_id)
            if not meeting:
                raise NotFoundError("Meeting not found")
            await self.groups.require_membership(meeting.group_id, user.id)
            criteria = Message.meeting_id == meeting_id
        else:
            await self.groups.get_group(group_id)
            await self.groups.require_membership(group_id, user.id)
            criteria = Message.group_id == group_id

        total = (
            await self.db.execute(select(func.count()).select_from(Message).where(criteria))
        ).scalar_one()
        result = await self.db.execute(
            select(Message)
            .where(criteria)
            .order_by(Message.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def recent(self, group_id: uuid.UUID, limit: int = ROOM_HISTORY_LIMIT) -> list[Message]:
        """The last `limit` messages of a group, oldest first."""
        result = await self.db.execute(
            select(Message)
            .where(Message.group_id == group_id)
            .order_by(Message.created_at.desc())
            .limit(limit)
        )
        return list(reversed(result.scalars().all()))

    async def rooms(self, user: User) -> list[tuple]:
        """The user's groups, each with its latest message (or None)."""
        rooms = []
        for group in await self.groups.list_user_groups(user.id):
            latest = await self.recent(group.id, limit=1)
            rooms.append((group, latest[0] if latest else None))
        return rooms
