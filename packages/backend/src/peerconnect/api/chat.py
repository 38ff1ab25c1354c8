"""Chat REST API — history and posting for clients without a live socket."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from peerconnect.auth.dependencies import get_current_user
from peerconnect.db.engine import get_db
from peerconnect.db.models import User
from peerconnect.errors import BadRequestError
from peerconnect.schemas.chat import ChatHistory, ChatRoom, SendMessageRequest
from peerconnect.schemas.group import MessageRead
from peerconnect.services.chat_service import ChatService

router = APIRouter(prefix="/chat")


def _svc(db: AsyncSession = Depends(get_db)) -> ChatService:
    return ChatService(db)


@router.get("/messages", response_model=ChatHistory)
async def get_messages(
    group_id: Optional[uuid.UUID] = Query(None, alias="groupId"),
    meeting_id: Optional[uuid.UUID] = Query(None, alias="meetingId"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    user: User = Depends(get_current_user),
    svc: ChatService = Depends(_svc),
):
    if (group_id is None) == (meeting_id is None):
        raise BadRequestError("Exactly one of groupId or meetingId is required")
    messages, total = await svc.history(
        user, group_id=group_id, meeting_id=meeting_id, page=page, limit=limit
    )
    return ChatHistory(
        data=[MessageRead.model_validate(m) for m in messages],
        total=total,
        page=page,
        limit=limit,
        total_pages=-(-total // limit),
    )


@router.post("/messages", response_model=MessageRead, status_code=201)
async def send_message(
    body: SendMessageRequest,
    user: User = Depends(get_current_user),
    svc: ChatService = Depends(_svc),
):
    return await svc.send_message(
        user,
        body.content,
        group_id=body.group_id,
        meeting_id=body.meeting_id,
        message_type=body.message_type,
        file_url=body.file_url,
    )


@router.get("/rooms", response_model=list[ChatRoom])
async def rooms(user: User = Depends(get_current_user), svc: ChatService = Depends(_svc)):
    return [
        ChatRoom(
            group_id=group.id,
            name=group.name,
            is_active=group.is_active,
            last_message=MessageRead.model_validate(last) if last else None,
        )
        for group, last in await svc.rooms(user)
    ]
