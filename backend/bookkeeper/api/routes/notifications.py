"""API routes for in-app notifications."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bookkeeper.api.dependencies import get_current_user_id, get_db_session
from bookkeeper.models.schemas import (
    MessageResponse,
    NotificationListResponse,
    NotificationRead,
    Pagination,
    UnreadCount,
)
from bookkeeper.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = False,
    db: AsyncSession = Depends(get_db_session),
    user_id: int = Depends(get_current_user_id),
):
    service = NotificationService()
    rows, total = await service.list_notifications(db, user_id, page, limit, unread_only)
    return NotificationListResponse(
        notifications=[NotificationRead.model_validate(n) for n in rows],
        pagination=Pagination(page=page, limit=limit, total=total, totalPages=service.total_pages(total, limit)),
    )


@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(
    db: AsyncSession = Depends(get_db_session),
    user_id: int = Depends(get_current_user_id),
):
    return UnreadCount(unreadCount=await NotificationService().unread_count(db, user_id))


@router.patch("/read-all", response_model=MessageResponse)
async def mark_all_read(
    db: AsyncSession = Depends(get_db_session),
    user_id: int = Depends(get_current_user_id),
):
    await NotificationService().mark_all_read(db, user_id)
    return MessageResponse(message="All notifications marked as read")


@router.delete("", response_model=MessageResponse)
async def clear_all(
    db: AsyncSession = Depends(get_db_session),
    user_id: int = Depends(get_current_user_id),
):
    await NotificationService().clear_all(db, user_id)
    return MessageResponse(message="All notifications cleared")


@router.patch("/{notification_id}/read", response_model=MessageResponse)
async def mark_read(
    notification_id: int,
    db: AsyncSession = Depends(get_db_session),
    user_id: int = Depends(get_current_user_id),
):
    await NotificationService().set_read(db, user_id, notification_id, True)
    return MessageResponse(message="Notification marked as read")


@router.patch("/{notification_id}/unread", response_model=MessageResponse)
async def mark_unread(
    notification_id: int,
    db: AsyncSession = Depends(get_db_session),
    user_id: int = Depends(get_current_user_id),
):
    await NotificationService().set_read(db, user_id, notification_id, False)
    return MessageResponse(message="Notification marked as unread")


@router.delete("/{notification_id}", response_model=MessageResponse)
async def delete_notification(
    notification_id: int,
    db: AsyncSession = Depends(get_db_session),
    user_id: int = Depends(get_current_user_id),
):
    await NotificationService().delete_notification(db, user_id, notification_id)
    return MessageResponse(message="Notification deleted")
