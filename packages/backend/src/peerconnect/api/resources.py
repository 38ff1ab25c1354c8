"""Resource API — shared material, moderation queue and download tracking."""

import uuid
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from peerconnect.auth.dependencies import get_current_user
from peerconnect.auth.guards import admin_only, listener_or_admin
from peerconnect.db.engine import get_db
from peerconnect.db.models import ResourceType, User
from peerconnect.schemas.resource import (
    DownloadResponse,
    ResourceApproval,
    ResourceCreate,
    ResourceRead,
    ResourceUpdate,
)
from peerconnect.services.resource_service import ResourceService

router = APIRouter(prefix="/resources")


def _svc(db: AsyncSession = Depends(get_db)) -> ResourceService:
    return ResourceService(db)


@router.post("", response_model=ResourceRead, status_code=201)
async def create_resource(
    body: ResourceCreate,
    user: User = Depends(listener_or_admin),
    svc: ResourceService = Depends(_svc),
):
    return await svc.create_resource(user, **body.model_dump())


@router.get("", response_model=list[ResourceRead])
async def list_resources(
    topic_id: Optional[uuid.UUID] = Query(None, alias="topicId"),
    type: Optional[ResourceType] = None,
    include_unapproved: bool = Query(False, alias="includeUnapproved"),
    sort_by: Literal["createdAt", "title", "downloadCount"] = Query(
        "createdAt", alias="sortBy"
    ),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    user: User = Depends(get_current_user),
    svc: ResourceService = Depends(_svc),
):
    return await svc.list_resources(
        user,
        topic_id=topic_id,
        type=type,
        include_unapproved=include_unapproved,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.get("/search", response_model=list[ResourceRead])
async def search_resources(
    q: str = Query(..., min_length=1), svc: ResourceService = Depends(_svc)
):
    return await svc.search(q)


@router.get(
    "/admin/pending-approval",
    response_model=list[ResourceRead],
    dependencies=[Depends(admin_only)],
)
async def pending_approval(svc: ResourceService = Depends(_svc)):
    return await svc.pending_approval()


@router.get("/topic/{topic_id}", response_model=list[ResourceRead])
async def resources_by_topic(
    topic_id: uuid.UUID,
    include_unapproved: bool = Query(False, alias="includeUnapproved"),
    user: User = Depends(get_current_user),
    svc: ResourceService = Depends(_svc),
):
    return await svc.list_resources(
        user, topic_id=topic_id, include_unapproved=include_unapproved
    )


@router.get("/{resource_id}", response_model=ResourceRead)
async def get_resource(
    resource_id: uuid.UUID,
    user: User = Depends(get_current_user),
    svc: ResourceService = Depends(_svc),
):
    return await svc.get_resource(resource_id, user)


@router.put("/{resource_id}", response_model=ResourceRead)
async def update_resource(
    resource_id: uuid.UUID,
    body: ResourceUpdate,
    user: User = Depends(listener_or_admin),
    svc: ResourceService = Depends(_svc),
):
    return await svc.update_resource(user, resource_id, body.model_dump(exclude_unset=True))


@router.post(
    "/{resource_id}/approve",
    response_model=ResourceRead,
    dependencies=[Depends(admin_only)],
)
async def approve_resource(
    resource_id: uuid.UUID,
    body: ResourceApproval,
    svc: ResourceService = Depends(_svc),
):
    return await svc.approve_resource(resource_id, body.is_approved)


@router.delete("/{resource_id}", status_code=204)
async def delete_resource(
    resource_id: uuid.UUID,
    user: User = Depends(listener_or_admin),
    svc: ResourceService = Depends(_svc),
):
    await svc.delete_resource(user, resource_id)
    return Response(status_code=204)


@router.post("/{resource_id}/download", response_model=DownloadResponse)
async def download_resource(resource_id: uuid.UUID, svc: ResourceService = Depends(_svc)):
    resource = await svc.record_download(resource_id)
    return DownloadResponse(file_url=resource.file_url, download_count=resource.download_count)
