"""Group API — groups, memberships and group chat over HTTP."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from peerconnect.auth.dependencies import get_current_user
from peerconnect.auth.guards import listener_or_admin
from peerconnect.db.engine import get_db
from peerconnect.db.models import Group, User
from peerconnect.schemas.base import MessageResponse, Pagination
from peerconnect.schemas.group import (
    CanSendMessage,
    GroupCreate,
    GroupDetail,
    GroupMemberRead,
    GroupRead,
    MessageCreate,
    MessagePage,
    MessageRead,
)
from peerconnect.services.chat_service import ChatService
from peerconnect.services.group_service import GroupService

router = APIRouter(prefix="/groups")


def _svc(db: AsyncSession = Depends(get_db)) -> GroupService:
    return GroupService(db)


async def _with_counts(svc: GroupService, groups: list[Group]) -> list[GroupRead]:
    counts = await svc.member_counts([g.id for g in groups])
    return [
        GroupRead(**GroupRead.model_validate(g).model_dump(exclude={"member_count"}),
                  member_count=counts.get(g.id, 0))
        for g in groups
    ]


# ─── Groups ─────────────────────────────────────────────


@router.post("", response_model=GroupDetail, status_code=201)
async def create_group(
    body: GroupCreate,
    user: User = Depends(listener_or_admin),
    svc: GroupService = Depends(_svc),
):
    """Create a group. The caller becomes its leader and first member."""
    group = await svc.create_group(user, **body.model_dump())
    return await _detail(svc, group)


@router.get("", response_model=list[GroupRead])
async def list_groups(
    topic_id: Optional[uuid.UUID] = Query(None, alias="topicId"),
    svc: GroupService = Depends(_svc),
):
    return await _with_counts(svc, await svc.list_groups(topic_id))


@router.get("/mine", response_model=list[GroupRead])
async def my_groups(
    user: User = Depends(get_current_user), svc: GroupService = Depends(_svc)
):
    return await _with_counts(svc, await svc.list_user_groups(user.id))


@router.get("/{group_id}", response_model=GroupDetail)
async def get_group(group_id: uuid.UUID, svc: GroupService = Depends(_svc)):
    return await _detail(svc, await svc.get_group(group_id))


async def _detail(svc: GroupService, group: Group) -> GroupDetail:
    members = await svc.get_members(group.id)
    return GroupDetail(
        **GroupRead.model_validate(group).model_dump(exclude={"member_count"}),
        member_count=len(members),
        members=[GroupMemberRead.model_validate(m) for m in members],
    )


# ─── Memberships ────────────────────────────────────────


@router.post("/{group_id}/join", response_model=GroupMemberRead, status_code=201)
async def join_group(
    group_id: uuid.UUID,
    user: User = Depends(get_current_user),
    svc: GroupService = Depends(_svc),
):
    return await svc.join_group(user, group_id)


@router.post("/{group_id}/leave", response_model=MessageResponse)
async def leave_group(
    group_id: uuid.UUID,
    user: User = Depends(get_current_user),
    svc: GroupService = Depends(_svc),
):
    await svc.leave_group(user, group_id)
    return MessageResponse(message="Left group")


@router.get("/{group_id}/can-send-message", response_model=CanSendMessage)
async def can_send_message(
    group_id: uuid.UUID,
    user: User = Depends(get_current_user),
    svc: GroupService = Depends(_svc),
):
    return CanSendMessage(can_send_message=await svc.can_send_message(user, group_id))


# ─── Messages ───────────────────────────────────────────


@router.post("/{group_id}/messages", response_model=MessageRead, status_code=201)
async def send_group_message(
    group_id: uuid.UUID,
    body: MessageCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await ChatService(db).send_message(
        user,
        body.content,
        group_id=group_id,
        message_type=body.message_type,
        file_url=body.file_url,
    )


@router.get("/{group_id}/messages", response_model=MessagePage)
async def list_group_messages(
    group_id: uuid.UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    messages, total = await ChatService(db).history(
        user, group_id=group_id, page=page, limit=limit
    )
    return MessagePage(
        messages=[MessageRead.model_validate(m) for m in messages],
        pagination=Pagination.of(page, limit, total),
    )
