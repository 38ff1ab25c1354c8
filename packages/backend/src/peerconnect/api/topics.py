"""Topic API — the catalogue (public) and the caller's selection (guarded)."""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from peerconnect.auth.dependencies import get_current_user
from peerconnect.auth.guards import admin_only
from peerconnect.db.engine import get_db
from peerconnect.db.models import User
from peerconnect.schemas.topic import (
    TopicCreate,
    TopicRead,
    TopicSelectionRead,
    TopicSelectionRequest,
)
from peerconnect.services.topic_service import TopicService

router = APIRouter(prefix="/topics")


def _svc(db: AsyncSession = Depends(get_db)) -> TopicService:
    return TopicService(db)


@router.get("", response_model=list[TopicRead])
async def list_topics(svc: TopicService = Depends(_svc)):
    return await svc.list_topics()


@router.post("", response_model=TopicRead, status_code=201, dependencies=[Depends(admin_only)])
async def create_topic(body: TopicCreate, svc: TopicService = Depends(_svc)):
    return await svc.create_topic(body.name, body.description)


# ─── Caller's selection ─────────────────────────────────


@router.get("/user-selection", response_model=list[TopicSelectionRead])
async def user_selection(
    user: User = Depends(get_current_user), svc: TopicService = Depends(_svc)
):
    return [
        TopicSelectionRead(
            **TopicRead.model_validate(topic).model_dump(), is_selected=selected
        )
        for topic, selected in await svc.get_selection(user.id)
    ]


@router.get("/user", response_model=list[TopicRead])
async def user_topics(
    user: User = Depends(get_current_user), svc: TopicService = Depends(_svc)
):
    return await svc.get_user_topics(user.id)


@router.put("/user", response_model=list[TopicRead])
async def update_user_topics(
    body: TopicSelectionRequest,
    user: User = Depends(get_current_user),
    svc: TopicService = Depends(_svc),
):
    return await svc.update_user_topics(user, body.topic_ids)


@router.post("/user/initial-selection", response_model=list[TopicRead])
async def initial_selection(
    body: TopicSelectionRequest,
    user: User = Depends(get_current_user),
    svc: TopicService = Depends(_svc),
):
    return await svc.update_user_topics(user, body.topic_ids, complete_profile=True)


@router.get("/{topic_id}", response_model=TopicRead)
async def get_topic(topic_id: uuid.UUID, svc: TopicService = Depends(_svc)):
    return await svc.get_topic(topic_id)
