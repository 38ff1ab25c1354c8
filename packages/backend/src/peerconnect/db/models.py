"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Each class = one table. Alembic migrations are written against these models.

Key concepts:
- UUID primary keys via the generic Uuid type (native UUID on PostgreSQL,
  CHAR(32) on SQLite so the test suite runs in memory)
- Enumerations are StrEnum values stored in plain String columns; the API
  layer validates membership, the database just stores the text
- Python-side defaults (default=utcnow) so freshly flushed rows never need
  a round-trip to read server defaults back under asyncio
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ══════════════════════════════════════════════════════════════
# Enumerations
# ══════════════════════════════════════════════════════════════


class UserRole(enum.StrEnum):
    ADMIN = "ADMIN"
    LISTENER = "LISTENER"
    USER = "USER"


class UserStatus(enum.StrEnum):
    ONLINE = "ONLINE"
    OFFLINE = "OFFLINE"
    BUSY = "BUSY"
    AVAILABLE = "AVAILABLE"


class GroupRole(enum.StrEnum):
    ADMIN = "ADMIN"
    LISTENER = "LISTENER"
    MEMBER = "MEMBER"


class MessageType(enum.StrEnum):
    TEXT = "TEXT"
    FILE = "FILE"
    IMAGE = "IMAGE"


class MeetingType(enum.StrEnum):
    GROUP_THERAPY = "GROUP_THERAPY"
    SUPPORT_GROUP = "SUPPORT_GROUP"
    WORKSHOP = "WORKSHOP"
    DISCUSSION = "DISCUSSION"


class MeetingStatus(enum.StrEnum):
    SCHEDULED = "SCHEDULED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class ResourceType(enum.StrEnum):
    PDF = "PDF"
    VIDEO = "VIDEO"
    ARTICLE = "ARTICLE"
    AUDIO = "AUDIO"


class NotificationType(enum.StrEnum):
    SESSION_REMINDER = "SESSION_REMINDER"
    NEW_RESOURCE = "NEW_RESOURCE"
    GROUP_ACTIVITY = "GROUP_ACTIVITY"
    APPLICATION_UPDATE = "APPLICATION_UPDATE"
    EMAIL_VERIFICATION = "EMAIL_VERIFICATION"
    PASSWORD_RESET = "PASSWORD_RESET"
    MEETING_UPDATE = "MEETING_UPDATE"
    GENERAL = "GENERAL"


# ══════════════════════════════════════════════════════════════
# Users and topics
# ══════════════════════════════════════════════════════════════


class User(Base):
    """A community member.

    Learn: role decides what a user may do platform-wide (ADMIN > LISTENER >
    USER). Listeners are trained volunteers; their uploads need is_approved.
    A user can only log in once is_email_verified is set.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    profile_picture: Mapped[Optional[str]] = mapped_column(Text)
    bio: Mapped[Optional[str]] = mapped_column(Text)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=UserRole.USER)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=UserStatus.OFFLINE
    )
    is_email_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    email_verification_code: Mapped[Optional[str]] = mapped_column(String(6))
    email_verification_expires: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True)
    )
    is_approved: Mapped[bool] = mapped_column(Boolean, default=False)
    profile_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Topic(Base):
    """An onboarding category (anxiety, grief, ...). Users pick 3 to 5."""

    __tablename__ = "topics"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class UserTopic(Base):
    """Association row: a user's topic selection."""

    __tablename__ = "user_topics"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    topic_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("topics.id", ondelete="CASCADE"), primary_key=True
    )


# ══════════════════════════════════════════════════════════════
# Groups, meetings, chat
# ══════════════════════════════════════════════════════════════


class Group(Base):
    """A peer-support group around one topic, led by a listener or admin."""

    __tablename__ = "groups"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    topic_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("topics.id"), nullable=False
    )
    leader_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL")
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    max_members: Mapped[int] = mapped_column(Integer, default=100)
    meeting_schedule: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class GroupMember(Base):
    """Membership of a user in a group, with a group-local role."""

    __tablename__ = "group_members"
    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_members_group_user"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    group_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(String(20), default=GroupRole.MEMBER)
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    # Eager: every membership read wants the member's name
    user: Mapped["User"] = relationship(lazy="joined")


class Meeting(Base):
    """A scheduled session of a group.

    Learn: status only moves forward:
    SCHEDULED → ACTIVE (start) → COMPLETED (end). CANCELLED is set by update.
    """

    __tablename__ = "meetings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    group_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=MeetingStatus.SCHEDULED)
    scheduled_start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    scheduled_end_time: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True)
    )
    actual_start_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    actual_end_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    agenda: Mapped[list] = mapped_column(JSON, default=list)
    max_participants: Mapped[Optional[int]] = mapped_column(Integer)
    notes_template: Mapped[Optional[str]] = mapped_column(Text)
    created_by: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index("ix_meetings_group_start", "group_id", "scheduled_start_time"),
    )


class Message(Base):
    """A chat message posted to a group (or a meeting's room)."""

    __tablename__ = "messages"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    sender_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    group_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("groups.id", ondelete="CASCADE")
    )
    meeting_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("meetings.id", ondelete="CASCADE")
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    message_type: Mapped[str] = mapped_column(String(10), default=MessageType.TEXT)
    file_url: Mapped[Optional[str]] = mapped_column(Text)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    sender: Mapped["User"] = relationship(lazy="joined")

    __table_args__ = (
        Index("ix_messages_group_created", "group_id", "created_at"),
        Index("ix_messages_meeting_created", "meeting_id", "created_at"),
    )


# ══════════════════════════════════════════════════════════════
# Resources and notifications
# ══════════════════════════════════════════════════════════════


class Resource(Base):
    """A shared file or link (PDF, video, article, audio) tagged with a topic."""

    __tablename__ = "resources"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    file_url: Mapped[str] = mapped_column(Text, nullable=False)
    topic_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("topics.id"), nullable=False
    )
    uploaded_by_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    is_approved: Mapped[bool] = mapped_column(Boolean, default=False)
    download_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class Notification(Base):
    """An in-app notification for one user."""

    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_user_created", "user_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    related_id: Mapped[Optional[str]] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
