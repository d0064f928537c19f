import datetime

import pytest
from sqlalchemy import select

from conftest import auth_headers
from learnlink import models, notifier
from learnlink.schemas import NotificationType, Role


@pytest.mark.asyncio
async def test_notify_uses_type_styles(db, make_user):
    user = await make_user(Role.CONTRIBUTOR)
    notifier.notify(db, user.id, title="Resource Approved", message="ok", type=NotificationType.APPROVED, resource_id=None)
    await db.commit()

    row = await db.scalar(select(models.Notification))
    assert (row.icon, row.icon_color, row.is_read) == ("bi-check-circle-fill", "#d1fae5", False)


@pytest.mark.asyncio
async def test_notify_many_fans_out(db, make_user):
    users = [await make_user(Role.MANAGER) for _ in range(3)]
    notifier.notify_many(db, [u.id for u in users], title="t", message="m", type=NotificationType.UPLOAD)
    await db.commit()

    for user in users:
        assert await notifier.count_unread(db, user.id) == 1


@pytest.mark.asyncio
async def test_list_recent_is_newest_first_and_limited(db, make_user):
    user = await make_user(Role.STUDENT)
    base = datetime.datetime(2026, 1, 1, 8, 0, 0)
    for i in range(5):
        row = notifier.notify(db, user.id, title=f"n{i}", message="", type=NotificationType.SYSTEM)
        row.created_at = base + datetime.timedelta(minutes=i)
    await db.commit()

    rows = await notifier.list_recent(db, user.id, limit=3)
    assert [r.title for r in rows] == ["n4", "n3", "n2"]


@pytest.mark.asyncio
async def test_mark_read_ignores_other_users_notifications(db, make_user):
    owner = await make_user(Role.STUDENT)
    stranger = await make_user(Role.STUDENT)
    row = notifier.notify(db, owner.id, title="t", message="m", type=NotificationType.SYSTEM)
    await db.commit()

    assert await notifier.mark_read(db, stranger.id, row.id) is False
    assert await notifier.count_unread(db, owner.id) == 1
    assert await notifier.mark_read(db, owner.id, row.id) is True
    assert await notifier.count_unread(db, owner.id) == 0


@pytest.mark.asyncio
async def test_mark_all_read_and_delete(db, make_user):
    user = await make_user(Role.STUDENT)
    first = notifier.notify(db, user.id, title="a", message="", type=NotificationType.SYSTEM)
    notifier.notify(db, user.id, title="b", message="", type=NotificationType.SYSTEM)
    await db.commit()

    assert await notifier.mark_all_read(db, user.id) == 2
    assert await notifier.count_unread(db, user.id) == 0
    assert await notifier.delete_notification(db, user.id, first.id) is True
    assert len(await notifier.list_recent(db, user.id)) == 1


@pytest.mark.asyncio
async def test_notifications_endpoint(async_client, db, make_user):
    user = await make_user(Role.STUDENT)
    notifier.notify(db, user.id, title="Hello", message="m", type=NotificationType.SYSTEM)
    await db.commit()

    response = await async_client.get("/api/notifications", headers=auth_headers(user))
    assert response.status_code == 200
    data = response.json()
    assert data["unread_count"] == 1
    assert data["notifications"][0]["title"] == "Hello"
    assert data["notifications"][0]["time_ago"] == "Just now"

    notification_id = data["notifications"][0]["id"]
    response = await async_client.post(f"/api/notifications/{notification_id}/read", headers=auth_headers(user))
    assert response.json() == {"success": True}


@pytest.mark.asyncio
async def test_notifications_require_token(async_client):
    response = await async_client.get("/api/notifications")
    assert response.status_code == 401
