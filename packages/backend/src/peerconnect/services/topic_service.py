"""Topic service — the topic catalogue and each user's topic selection.

Learn: a selection is always replaced wholesale (delete + insert) inside
the caller's transaction, so a user never ends up with a half-applied
selection.
"""

import uuid

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from peerconnect.db.models import Topic, User, UserTopic
from peerconnect.errors import BadRequestError, ConflictError, NotFoundError
from peerconnect.schemas.base import MAX_TOPICS, MIN_TOPICS


class TopicService:
    """Business logic for topics."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Catalogue ──────────────────────────────────────

    async def list_topics(self) -> list[Topic]:
        result = await self.db.execute(select(Topic).order_by(Topic.name))
        return list(result.scalars().all())

    async def get_topic(self, topic_id: uuid.UUID) -> Topic:
        topic = await self.db.get(Topic, topic_id)
        if not topic:
            raise NotFoundError("Topic not found")
        return topic

    async def create_topic(self, name: str, description: str | None = None) -> Topic:
        existing = await self.db.execute(
            select(Topic.id).where(func.lower(Topic.name) == name.lower())
        )
        if existing.first():
            raise ConflictError("Topic with this name already exists")

        topic = Topic(name=name, description=description)
        self.db.add(topic)
        await self.db.commit()
        return topic

    async def ensure_topics_exist(self, topic_ids: list[uuid.UUID]) -> None:
        """All ids must be distinct and name existing topics."""
        unique = set(topic_ids)
        if len(unique) != len(topic_ids):
            raise BadRequestError("One or more topic IDs are invalid")
        result = await self.db.execute(
            select(func.count()).select_from(Topic).where(Topic.id.in_(unique))
        )
        if result.scalar_one() != len(unique):
            raise BadRequestError("One or more topic IDs are invalid")

    # ─── User selection ─────────────────────────────────

    async def get_user_topics(self, user_id: uuid.UUID) -> list[Topic]:
        result = await self.db.execute(
            select(Topic)
            .join(UserTopic, UserTopic.topic_id == Topic.id)
            .where(UserTopic.user_id == user_id)
            .order_by(Topic.name)
        )
        return list(result.scalars().all())

    async def get_selection(self, user_id: uuid.UUID) -> list[tuple[Topic, bool]]:
        """Every topic, flagged with whether the user picked it."""
        topics = await self.list_topics()
        selected = {t.id for t in await self.get_user_topics(user_id)}
        return [(t, t.id in selected) for t in topics]

    async def replace_user_topics(
        self, user_id: uuid.UUID, topic_ids: list[uuid.UUID]
    ) -> None:
        """Swap the user's selection (no commit: caller owns the transaction)."""
        await self.db.execute(delete(UserTopic).where(UserTopic.user_id == user_id))
        self.db.add_all(UserTopic(user_id=user_id, topic_id=t) for t in topic_ids)
        await self.db.flush()

    async def update_user_topics(
        self, user: User, topic_ids: list[uuid.UUID], complete_profile: bool = False
    ) -> list[Topic]:
        if not MIN_TOPICS <= len(topic_ids) <= MAX_TOPICS:
            raise BadRequestError("You must select between 3 and 5 topics")
        await self.ensure_topics_exist(topic_ids)
        await self.replace_user_topics(user.id, topic_ids)
        if complete_profile:
            user.profile_completed = True
        await self.db.commit()
        return await self.get_user_topics(user.id)
