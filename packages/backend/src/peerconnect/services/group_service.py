"""Group service — peer groups and their memberships.

Learn: a group has a platform-level leader (the listener or admin who
created it) and group-level roles on each membership. ADMIN and LISTENER
members moderate: they may post in an inactive group and manage its
meetings.
"""

import uuid

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from peerconnect.config import settings
from peerconnect.db.models import (
    Group,
    GroupMember,
    GroupRole,
    NotificationType,
    Topic,
    User,
    UserRole,
)
from peerconnect.errors import ConflictError, ForbiddenError, NotFoundError
from peerconnect.services.notification_service import NotificationService

logger = structlog.get_logger()

MODERATOR_ROLES = (GroupRole.ADMIN, GroupRole.LISTENER)


class GroupService:
    """Business logic for groups and memberships."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.notifications = NotificationService(db)

    # ─── Groups ─────────────────────────────────────────

    async def create_group(
        self,
        creator: User,
        name: str,
        topic_id: uuid.UUID,
        description: str | None = None,
        max_members: int | None = None,
        meeting_schedule: str | None = None,
    ) -> Group:
        """Create a group; the creator becomes its leader and first ADMIN member."""
        if not await self.db.get(Topic, topic_id):
            raise NotFoundError("Topic not found")

        group = Group(
            name=name,
            description=description,
            topic_id=topic_id,
            leader_id=creator.id,
            max_members=max_members or settings.group_default_max_members,
            meeting_schedule=meeting_schedule,
            is_active=True,
        )
        self.db.add(group)
        await self.db.flush()
        self.db.add(GroupMember(group_id=group.id, user_id=creator.id, role=GroupRole.ADMIN))
        await self.db.commit()
        logger.info("group.created", group_id=str(group.id), leader_id=str(creator.id))
        return group

    async def get_group(self, group_id: uuid.UUID) -> Group:
        group = await self.db.get(Group, group_id)
        if not group:
            raise NotFoundError("Group not found")
        return group

    async def list_groups(self, topic_id: uuid.UUID | None = None) -> list[Group]:
        q = select(Group).where(Group.is_active.is_(True))
        if topic_id:
            q = q.where(Group.topic_id == topic_id)
        result = await self.db.execute(q.order_by(Group.created_at.desc()))
        return list(result.scalars().all())

    async def list_user_groups(self, user_id: uuid.UUID) -> list[Group]:
        result = await self.db.execute(
            select(Group)
            .join(GroupMember, GroupMember.group_id == Group.id)
            .where(GroupMember.user_id == user_id)
            .order_by(Group.name)
        )
        return list(result.scalars().all())

    async def user_group_ids(self, user_id: uuid.UUID) -> list[uuid.UUID]:
        result = await self.db.execute(
            select(GroupMember.group_id).where(GroupMember.user_id == user_id)
        )
        return list(result.scalars().all())

    async def member_counts(self, group_ids: list[uuid.UUID]) -> dict[uuid.UUID, int]:
        if not group_ids:
            return {}
        result = await self.db.execute(
            select(GroupMember.group_id, func.count())
            .where(GroupMember.group_id.in_(group_ids))
            .group_by(GroupMember.group_id)
        )
        return {gid: n for gid, n in result.all()}

    # ─── Memberships ────────────────────────────────────

    async def get_members(self, group_id: uuid.UUID) -> list[GroupMember]:
        result = await self.db.execute(
            select(GroupMember)
            .where(GroupMember.group_id == group_id)
            .order_by(GroupMember.joined_at)
        )
        return list(result.scalars().all())

    async def get_membership(
        self, group_id: uuid.UUID, user_id: uuid.UUID
    ) -> GroupMember | None:
        result = await self.db.execute(
            select(GroupMember).where(
                GroupMember.group_id == group_id,
                GroupMember.user_id == user_id,
            )
        )
        return result.scalars().first()

    async def require_membership(
        self, group_id: uuid.UUID, user_id: uuid.UUID
    ) -> GroupMember:
        membership = await self.get_membership(group_id, user_id)
        if not membership:
            raise ForbiddenError("User is not a member of this group")
        return membership

    async def join_group(self, user: User, group_id: uuid.UUID) -> GroupMember:
        group = await self.get_group(group_id)
        if not group.is_active:
            raise ForbiddenError("Group is not active")
        if await self.get_membership(group_id, user.id):
            raise ConflictError("User is already a member of this group")
        count = (await self.member_counts([group_id])).get(group_id, 0)
        if count >= group.max_members:
            raise ForbiddenError("Group is at maximum capacity")

        membership = GroupMember(group_id=group_id, user_id=user.id, role=GroupRole.MEMBER)
        self.db.add(membership)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("User is already a member of this group")
        logger.info("group.joined", group_id=str(group_id), user_id=str(user.id))

        others = [m.user_id for m in await self.get_members(group_id) if m.user_id != user.id]
        if others:
            await self.notifications.create_bulk(
                others,
                title="New group member",
                message=f"{user.full_name} joined {group.name}",
                type=NotificationType.GROUP_ACTIVITY,
                related_id=f"{group_id}:{user.id}",
            )
        return await self.get_membership(group_id, user.id)

    async def leave_group(self, user: User, group_id: uuid.UUID) -> None:
        await self.get_group(group_id)
        membership = await self.get_membership(group_id, user.id)
        if not membership:
            raise NotFoundError("Membership not found")
        await self.db.delete(membership)
        await self.db.commit()
        logger.info("group.left", group_id=str(group_id), user_id=str(user.id))

    # ─── Permissions ────────────────────────────────────

    @staticmethod
    def may_post(group: Group, membership: GroupMember | None) -> bool:
        if membership is None:
            return False
        return group.is_active or membership.role in MODERATOR_ROLES

    async def can_send_message(self, user: User, group_id: uuid.UUID) -> bool:
        group = await self.get_group(group_id)
        return self.may_post(group, await self.get_membership(group_id, user.id))

    async def is_moderator(self, user: User, group_id: uuid.UUID) -> bool:
        """Platform admins, the group leader and ADMIN/LISTENER members."""
        if user.role == UserRole.ADMIN:
            return True
        group = await self.get_group(group_id)
        if group.leader_id == user.id:
            return True
        membership = await self.get_membership(group_id, user.id)
        return membership is not None and membership.role in MODERATOR_ROLES

    async def moderator_ids(self, group_id: uuid.UUID) -> list[uuid.UUID]:
        result = await self.db.execute(
            select(GroupMember.user_id).where(
                GroupMember.group_id == group_id,
                GroupMember.role.in_(MODERATOR_ROLES),
            )
        )
        return list(result.scalars().all())
