"""Notification API — the caller's inbox, plus admin-side creation."""

import uuid

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from peerconnect.auth.dependencies import get_current_user
from peerconnect.auth.guards import admin_only
from peerconnect.db.engine import get_db
from peerconnect.db.models import User
from peerconnect.schemas.base import Pagination
from peerconnect.schemas.notification import (
    BulkNotificationCreate,
    CountResponse,
    NotificationCreate,
    NotificationPage,
    NotificationRead,
    NotificationStats,
    UnreadCount,
)
from peerconnect.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications")


def _svc(db: AsyncSession = Depends(get_db)) -> NotificationService:
    return NotificationService(db)


@router.get("", response_model=NotificationPage)
async def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    svc: NotificationService = Depends(_svc),
):
    notifications, total = await svc.list_for_user(user.id, page, limit)
    return NotificationPage(
        notifications=[NotificationRead.model_validate(n) for n in notifications],
        pagination=Pagination.of(page, limit, total),
    )


@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(
    user: User = Depends(get_current_user), svc: NotificationService = Depends(_svc)
):
    return UnreadCount(unread_count=await svc.unread_count(user.id))


@router.get("/stats", response_model=NotificationStats)
async def stats(
    user: User = Depends(get_current_user), svc: NotificationService = Depends(_svc)
):
    return NotificationStats(**await svc.stats(user.id))


@router.put("/mark-all-read", response_model=CountResponse)
async def mark_all_read(
    user: User = Depends(get_current_user), svc: NotificationService = Depends(_svc)
):
    return CountResponse(count=await svc.mark_all_as_read(user.id))


@router.put("/{notification_id}/read", response_model=NotificationRead)
async def mark_read(
    notification_id: uuid.UUID,
    user: User = Depends(get_current_user),
    svc: NotificationService = Depends(_svc),
):
    return await svc.mark_as_read(notification_id, user.id)


@router.delete("/{notification_id}", status_code=204)
async def delete_notification(
    notification_id: uuid.UUID,
    user: User = Depends(get_current_user),
    svc: NotificationService = Depends(_svc),
):
    await svc.delete(notification_id, user.id)
    return Response(status_code=204)


# ─── Admin ──────────────────────────────────────────────


@router.post(
    "",
    response_model=NotificationRead,
    status_code=201,
    dependencies=[Depends(admin_only)],
)
async def create_notification(
    body: NotificationCreate, svc: NotificationService = Depends(_svc)
):
    return await svc.create(**body.model_dump())


@router.post(
    "/bulk",
    response_model=list[NotificationRead],
    status_code=201,
    dependencies=[Depends(admin_only)],
)
async def create_bulk(
    body: BulkNotificationCreate, svc: NotificationService = Depends(_svc)
):
    return await svc.create_bulk(**body.model_dump())
