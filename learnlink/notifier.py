"""
notifier.py

In-app notification dispatch for the LearnLink backend.
notify() and notify_many() only stage rows so they commit together with the
lifecycle or engagement change that caused them.
"""
import logging
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from learnlink import models
from learnlink.schemas import NotificationType
from learnlink.settings import settings
from learnlink.utils import utcnow

logger = logging.getLogger(__name__)

# (icon, icon_color) rendering hints per notification type
NOTIFICATION_STYLES = {
    NotificationType.APPROVED: ("bi-check-circle-fill", "#d1fae5"),
    NotificationType.REJECTED: ("bi-x-circle-fill", "#fee2e2"),
    NotificationType.UPLOAD: ("bi-cloud-arrow-up", "#dbeafe"),
    NotificationType.SYSTEM: ("bi-lightbulb-fill", "#fef3c7"),
    NotificationType.REPLY: ("bi-chat-dots-fill", "#e0e7ff"),
}

DASHBOARD_LINK = "/dashboard"


def resource_link(resource_id: int) -> str:
    return f"/resources/{resource_id}"


def notify(
    db: AsyncSession,
    user_id: int,
    title: str,
    message: str,
    type: NotificationType,
    icon: Optional[str] = None,
    icon_color: Optional[str] = None,
    resource_id: Optional[int] = None,
    link: Optional[str] = None,
) -> models.Notification:
    """Stage one unread notification for ``user_id``."""
    default_icon, default_color = NOTIFICATION_STYLES.get(type, ("bi-bell", "#dbeafe"))
    notification = models.Notification(
        user_id=user_id,
        title=title,
        message=message,
        type=type.value,
        icon=icon or default_icon,
        icon_color=icon_color or default_color,
        resource_id=resource_id,
        link=link,
        is_read=False,
        created_at=utcnow(),
    )
    db.add(notification)
    return notification


def notify_many(db: AsyncSession, user_ids: Iterable[int], **kwargs) -> List[models.Notification]:
    """Fan one event out into a notification per recipient."""
    return [notify(db, user_id, **kwargs) for user_id in user_ids]


async def list_recent(db: AsyncSession, user_id: int, limit: Optional[int] = None) -> Sequence[models.Notification]:
    result = await db.execute(
        select(models.Notification)
        .filter(models.Notification.user_id == user_id)
        .order_by(models.Notification.created_at.desc(), models.Notification.id.desc())
        .limit(limit or settings.notification_list_limit)
    )
    return result.scalars().all()


async def count_unread(db: AsyncSession, user_id: int) -> int:
    count = await db.scalar(
        select(func.count())
        .select_from(models.Notification)
        .filter(models.Notification.user_id == user_id, models.Notification.is_read.is_(False))
    )
    return count or 0


async def mark_read(db: AsyncSession, user_id: int, notification_id: int) -> bool:
    """Flip one notification to read. Returns False when it is not the caller's."""
    result = await db.execute(
        update(models.Notification)
        .where(models.Notification.id == notification_id, models.Notification.user_id == user_id)
        .values(is_read=True)
    )
    await db.commit()
    return result.rowcount > 0


async def mark_all_read(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        update(models.Notification)
        .where(models.Notification.user_id == user_id, models.Notification.is_read.is_(False))
        .values(is_read=True)
    )
    await db.commit()
    return result.rowcount


async def delete_notification(db: AsyncSession, user_id: int, notification_id: int) -> bool:
    result = await db.execute(
        delete(models.Notification)
        .where(models.Notification.id == notification_id, models.Notification.user_id == user_id)
    )
    await db.commit()
    return result.rowcount > 0
