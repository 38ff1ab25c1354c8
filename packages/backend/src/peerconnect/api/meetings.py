"""Meeting API — scheduling and running group sessions."""

import uuid

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from peerconnect.auth.dependencies import get_current_user
from peerconnect.auth.guards import listener_or_admin
from peerconnect.db.engine import get_db
from peerconnect.db.models import User
from peerconnect.schemas.meeting import MeetingCreate, MeetingRead, MeetingUpdate
from peerconnect.services.meeting_service import MeetingService

router = APIRouter(prefix="/meetings")


def _svc(db: AsyncSession = Depends(get_db)) -> MeetingService:
    return MeetingService(db)


@router.post("", response_model=MeetingRead, status_code=201)
async def create_meeting(
    body: MeetingCreate,
    user: User = Depends(listener_or_admin),
    svc: MeetingService = Depends(_svc),
):
    fields = body.model_dump(exclude={"group_id"})
    return await svc.create_meeting(user, body.group_id, **fields)


@router.get("/group/{group_id}", response_model=list[MeetingRead])
async def list_group_meetings(group_id: uuid.UUID, svc: MeetingService = Depends(_svc)):
    return await svc.list_for_group(group_id)


@router.get("/{meeting_id}", response_model=MeetingRead)
async def get_meeting(meeting_id: uuid.UUID, svc: MeetingService = Depends(_svc)):
    return await svc.get_meeting(meeting_id)


@router.post("/{meeting_id}/start", response_model=MeetingRead)
async def start_meeting(
    meeting_id: uuid.UUID,
    user: User = Depends(get_current_user),
    svc: MeetingService = Depends(_svc),
):
    return await svc.start_meeting(user, meeting_id)


@router.post("/{meeting_id}/end", response_model=MeetingRead)
async def end_meeting(
    meeting_id: uuid.UUID,
    user: User = Depends(get_current_user),
    svc: MeetingService = Depends(_svc),
):
    return await svc.end_meeting(user, meeting_id)


@router.put("/{meeting_id}", response_model=MeetingRead)
async def update_meeting(
    meeting_id: uuid.UUID,
    body: MeetingUpdate,
    user: User = Depends(get_current_user),
    svc: MeetingService = Depends(_svc),
):
    return await svc.update_meeting(user, meeting_id, body.model_dump(exclude_unset=True))


@router.delete("/{meeting_id}", status_code=204)
async def delete_meeting(
    meeting_id: uuid.UUID,
    user: User = Depends(get_current_user),
    svc: MeetingService = Depends(_svc),
):
    await svc.delete_meeting(user, meeting_id)
    return Response(status_code=204)
