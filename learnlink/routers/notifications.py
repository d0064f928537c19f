from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from learnlink import notifier, schemas
from learnlink.auth import Principal, get_principal
from learnlink.database import get_db
from learnlink.utils import time_ago, utcnow

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


# List the caller's most recent notifications
@router.get("", response_model=schemas.NotificationList)
async def list_notifications(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
) -> Any:
    now = utcnow()
    rows = await notifier.list_recent(db, principal.user_id)
    items = []
    for row in rows:
        item = schemas.NotificationItem.model_validate(row)
        item.time_ago = time_ago(row.created_at, now)
        items.append(item)
    return schemas.NotificationList(
        notifications=items,
        unread_count=await notifier.count_unread(db, principal.user_id),
    )


@router.get("/unread-count")
async def unread_count(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    return {"count": await notifier.count_unread(db, principal.user_id)}


# Mark one notification as read; someone else's notification is left untouched
@router.post("/{notification_id}/read")
async def mark_read(
    notification_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    updated = await notifier.mark_read(db, principal.user_id, notification_id)
    return {"success": updated}


@router.post("/read-all")
async def mark_all_read(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    count = await notifier.mark_all_read(db, principal.user_id)
    return {"success": True, "count": count}


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    deleted = await notifier.delete_notification(db, principal.user_id, notification_id)
    return {"success": deleted}
