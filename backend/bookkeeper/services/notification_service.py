"""In-app notifications.

``notify`` only stages rows on the session; the caller's commit decides
whether they are written, so a notification never outlives a rolled-back
change that triggered it.
"""

from __future__ import annotations

import math
from typing import Iterable, Sequence, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bookkeeper.core.errors import Forbidden, NotFound
from bookkeeper.models.enums import NotificationType
from bookkeeper.models.tables import Notification


def notify(db: AsyncSession, user_ids: Iterable[int], type_: NotificationType, message: str) -> None:
    """Stage one notification per distinct user id."""
    for uid in dict.fromkeys(user_ids):
        db.add(Notification(user_id=uid, type=type_, message=message, is_read=False))


def record_message(amount: float, note: str, category: str) -> str:
    return f"新增記帳：{note} ({category}) - ${amount:g}"


class NotificationService:
    async def list_notifications(
        self, db: AsyncSession, user_id: int, page: int = 1, limit: int = 20, unread_only: bool = False
    ) -> Tuple[Sequence[Notification], int]:
        criteria = [Notification.user_id == user_id]
        if unread_only:
            criteria.append(Notification.is_read.is_(False))
        total = int((await db.execute(select(func.count(Notification.id)).where(*criteria))).scalar() or 0)
        result = await db.execute(
            select(Notification)
            .where(*criteria)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return result.scalars().all(), total

    @staticmethod
    def total_pages(total: int, limit: int) -> int:
        return math.ceil(total / limit) if limit else 0

    async def unread_count(self, db: AsyncSession, user_id: int) -> int:
        result = await db.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id, Notification.is_read.is_(False)
            )
        )
        return int(result.scalar() or 0)

    async def _get_owned(self, db: AsyncSession, user_id: int, notification_id: int) -> Notification:
        notification = await db.get(Notification, notification_id)
        if notification is None:
            raise NotFound("Notification not found")
        if notification.user_id != user_id:
            raise Forbidden("Not permitted to modify this notification")
        return notification

    async def set_read(self, db: AsyncSession, user_id: int, notification_id: int, is_read: bool) -> None:
        notification = await self._get_owned(db, user_id, notification_id)
        notification.is_read = is_read
        await db.commit()

    async def mark_all_read(self, db: AsyncSession, user_id: int) -> None:
        await db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
        await db.commit()

    async def delete_notification(self, db: AsyncSession, user_id: int, notification_id: int) -> None:
        notification = await self._get_owned(db, user_id, notification_id)
        await db.delete(notification)
        await db.commit()

    async def clear_all(self, db: AsyncSession, user_id: int) -> None:
        await db.execute(delete(Notification).where(Notification.user_id == user_id))
        await db.commit()
