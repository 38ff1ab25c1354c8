"""Resource service — shared PDFs, videos, articles and audio.

Learn: uploads by listeners wait in a moderation queue until an admin
approves them; admin uploads are live immediately. Only approved
resources are visible (and downloadable) to everyone else.
"""

import uuid

import structlog
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from peerconnect.db.models import (
    NotificationType,
    Resource,
    Topic,
    User,
    UserRole,
    UserTopic,
)
from peerconnect.errors import ForbiddenError, NotFoundError
from peerconnect.services.notification_service import NotificationService

logger = structlog.get_logger()

SORTABLE = {
    "createdAt": Resource.created_at,
    "title": Resource.title,
    "downloadCount": Resource.download_count,
}


class ResourceService:
    """Business logic for resources."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.notifications = NotificationService(db)

    async def create_resource(self, uploader: User, **fields) -> Resource:
        if uploader.role == UserRole.LISTENER and not uploader.is_approved:
            raise ForbiddenError("Listener must be approved to upload resources")
        if not await self.db.get(Topic, fields["topic_id"]):
            raise NotFoundError("Topic not found")

        resource = Resource(
            uploaded_by_id=uploader.id,
            is_approved=uploader.role == UserRole.ADMIN,
            **fields,
        )
        self.db.add(resource)
        await self.db.commit()
        logger.info(
            "resource.created",
            resource_id=str(resource.id),
            approved=resource.is_approved,
        )
        if resource.is_approved:
            await self._announce(resource, exclude=uploader.id)
        return resource

    async def get_resource(self, resource_id: uuid.UUID, viewer: User) -> Resource:
        resource = await self.db.get(Resource, resource_id)
        if not resource:
            raise NotFoundError("Resource not found")
        if not resource.is_approved and not self._can_edit(viewer, resource):
            raise NotFoundError("Resource not found")
        return resource

    async def update_resource(
        self, user: User, resource_id: uuid.UUID, changes: dict
    ) -> Resource:
        resource = await self._editable(user, resource_id)
        if "topic_id" in changes and not await self.db.get(Topic, changes["topic_id"]):
            raise NotFoundError("Topic not found")
        for field, value in changes.items():
            setattr(resource, field, value)
        await self.db.commit()
        return resource

    async def delete_resource(self, user: User, resource_id: uuid.UUID) -> None:
        resource = await self._editable(user, resource_id)
        await self.db.delete(resource)
        await self.db.commit()
        logger.info("resource.deleted", resource_id=str(resource_id))

    async def approve_resource(
        self, resource_id: uuid.UUID, is_approved: bool
    ) -> Resource:
        resource = await self.db.get(Resource, resource_id)
        if not resource:
            raise NotFoundError("Resource not found")

        was_approved = resource.is_approved
        resource.is_approved = is_approved
        await self.db.commit()
        logger.info("resource.moderated", resource_id=str(resource_id), approved=is_approved)

        if is_approved and not was_approved:
            await self.notifications.create(
                resource.uploaded_by_id,
                title="Resource approved",
                message=f'Your resource "{resource.title}" is now available',
                type=NotificationType.APPLICATION_UPDATE,
                related_id=str(resource.id),
            )
            await self._announce(resource, exclude=resource.uploaded_by_id)
        return resource

    # ─── Listing ────────────────────────────────────────

    async def list_resources(
        self,
        viewer: User,
        topic_id: uuid.UUID | None = None,
        type: str | None = None,
        include_unapproved: bool = False,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
    ) -> list[Resource]:
        q = select(Resource)
        if not (include_unapproved and viewer.role == UserRole.ADMIN):
            q = q.where(Resource.is_approved.is_(True))
        if topic_id:
            q = q.where(Resource.topic_id == topic_id)
        if type:
            q = q.where(Resource.type == type)

        column = SORTABLE.get(sort_by, Resource.created_at)
        q = q.order_by(column.asc() if sort_order == "asc" else column.desc())
        result = await self.db.execute(q)
        return list(result.scalars().all())

    async def pending_approval(self) -> list[Resource]:
        result = await self.db.execute(
            select(Resource)
            .where(Resource.is_approved.is_(False))
            .order_by(Resource.created_at)
        )
        return list(result.scalars().all())

    async def search(self, query: str) -> list[Resource]:
        pattern = f"%{query.lower()}%"
        result = await self.db.execute(
            select(Resource)
            .where(
                Resource.is_approved.is_(True),
                or_(
                    func.lower(Resource.title).like(pattern),
                    func.lower(Resource.description).like(pattern),
                ),
            )
            .order_by(Resource.download_count.desc(), Resource.created_at.desc())
        )
        return list(result.scalars().all())

    async def record_download(self, resource_id: uuid.UUID) -> Resource:
        resource = await self.db.get(Resource, resource_id)
        if not resource:
            raise NotFoundError("Resource not found")
        if not resource.is_approved:
            raise ForbiddenError("Resource is not approved for download")

        # Atomic increment; concurrent downloads must not lose counts
        await self.db.execute(
            update(Resource)
            .where(Resource.id == resource_id)
            .values(download_count=Resource.download_count + 1)
        )
        await self.db.commit()
        await self.db.refresh(resource)
        return resource

    # ─── Helpers ────────────────────────────────────────

    @staticmethod
    def _can_edit(user: User, resource: Resource) -> bool:
        if user.role == UserRole.ADMIN:
            return True
        return user.role == UserRole.LISTENER and resource.uploaded_by_id == user.id

    async def _editable(self, user: User, resource_id: uuid.UUID) -> Resource:
        resource = await self.db.get(Resource, resource_id)
        if not resource:
            raise NotFoundError("Resource not found")
        if not self._can_edit(user, resource):
            raise ForbiddenError("You can only modify your own resources")
        return resource

    async def _announce(self, resource: Resource, exclude: uuid.UUID) -> None:
        """Tell users interested in the resource's topic that it is available."""
        result = await self.db.execute(
            select(UserTopic.user_id).where(
                UserTopic.topic_id == resource.topic_id,
                UserTopic.user_id != exclude,
            )
        )
        interested = list(result.scalars().all())
        if interested:
            await self.notifications.create_bulk(
                interested,
                title="New resource available",
                message=resource.title,
                type=NotificationType.NEW_RESOURCE,
                related_id=str(resource.id),
            )
