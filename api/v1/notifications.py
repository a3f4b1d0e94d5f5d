"""Notification inbox endpoints. Every route is scoped to the caller's own notifications."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from api.actor import ActorContext
from api.deps import get_actor, get_db
from api.responses import ApiResponse, PaginatedResponse, paginated
from models.notification import NotificationResponse
from services import notifications_service

logger = logging.getLogger(__name__)

router = APIRouter()


class UnreadNotifications(BaseModel):
    count: int
    notifications: list[NotificationResponse]


class MarkAllReadResult(BaseModel):
    updated: int


@router.get("/notifications", response_model=PaginatedResponse[NotificationResponse])
async def list_notifications_endpoint(
    unread_only: bool = False,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    notifications, total = await notifications_service.list_notifications(
        db, actor=actor, unread_only=unread_only, page=page, limit=limit
    )
    items = [NotificationResponse.model_validate(notification) for notification in notifications]
    return PaginatedResponse(**paginated(items, total, page, limit))


@router.get("/notifications/unread", response_model=ApiResponse[UnreadNotifications])
async def unread_notifications_endpoint(
    limit: int = Query(20, ge=1, le=200),
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    notifications, _ = await notifications_service.list_notifications(
        db, actor=actor, unread_only=True, page=1, limit=limit
    )
    count = await notifications_service.count_unread(db, actor=actor)
    return ApiResponse(
        data=UnreadNotifications(
            count=count,
            notifications=[NotificationResponse.model_validate(n) for n in notifications],
        )
    )


@router.put("/notifications/read-all", response_model=ApiResponse[MarkAllReadResult])
async def mark_all_read_endpoint(
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        updated = await notifications_service.mark_all_read(db, actor=actor)
        return ApiResponse(data=MarkAllReadResult(updated=updated), message="All notifications marked as read")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to mark notifications as read for %s", actor.user_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to mark notifications as read",
        )


@router.put("/notifications/{notification_id}/read", response_model=ApiResponse[NotificationResponse])
async def mark_read_endpoint(
    notification_id: UUID,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        notification = await notifications_service.mark_read(db, actor=actor, notification_id=notification_id)
        return ApiResponse(data=NotificationResponse.model_validate(notification), message="Notification marked as read")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to mark notification %s as read", notification_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to mark notification as read",
        )


@router.delete("/notifications/{notification_id}", response_model=ApiResponse[None])
async def delete_notification_endpoint(
    notification_id: UUID,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        await notifications_service.delete_notification(db, actor=actor, notification_id=notification_id)
        return ApiResponse(message="Notification deleted")
    except HTTPException:
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to delete notification %s", notification_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete notification",
        )
