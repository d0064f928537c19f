import pytest
from sqlalchemy import func, select

from conftest import auth_headers, principal_for
from learnlink import community, engagement, models
from learnlink.exceptions import AuthorizationError, NotFoundError, ValidationError
from learnlink.schemas import (
    DiscussionCreate,
    DiscussionType,
    LessonCreate,
    LikeTarget,
    ResourceStatus,
    Role,
    TargetKind,
)


@pytest.mark.asyncio
async def test_lesson_notifies_resource_owner(db, make_user, make_resource):
    owner = await make_user(Role.CONTRIBUTOR)
    student = await make_user(Role.STUDENT, first_name="Lea", last_name="Santos")
    resource = await make_resource(owner, ResourceStatus.PUBLISHED)

    lesson = await community.submit_lesson(db, principal_for(student), LessonCreate(
        resource_id=resource.id, title="Draw it first", content="Sketching helps.", tags=["math", " visuals "],
    ))

    assert lesson.tags == "math, visuals"
    notification = await db.scalar(select(models.Notification))
    assert notification.user_id == owner.id
    assert notification.title == "New Lesson Learned"
    assert (notification.type, notification.icon, notification.icon_color) == ("System", "bi-lightbulb-fill", "#fef3c7")


@pytest.mark.asyncio
async def test_lesson_on_own_resource_sends_nothing(db, make_user, make_resource):
    owner = await make_user(Role.CONTRIBUTOR)
    resource = await make_resource(owner, ResourceStatus.PUBLISHED)
    await community.submit_lesson(db, principal_for(owner), LessonCreate(
        resource_id=resource.id, title="Reflection", content="Went well.",
    ))
    assert await db.scalar(select(func.count()).select_from(models.Notification)) == 0


@pytest.mark.asyncio
async def test_lesson_validation(db, make_user, make_resource):
    owner = await make_user(Role.CONTRIBUTOR)
    resource = await make_resource(owner, ResourceStatus.PUBLISHED)
    with pytest.raises(NotFoundError):
        await community.submit_lesson(db, principal_for(owner), LessonCreate(resource_id=999, title="t", content="c"))
    with pytest.raises(ValidationError):
        await community.submit_lesson(db, principal_for(owner), LessonCreate(resource_id=resource.id, title="t", content=" "))


@pytest.mark.asyncio
async def test_only_author_can_delete_lesson(db, make_user, make_resource):
    owner = await make_user(Role.CONTRIBUTOR)
    other = await make_user(Role.STUDENT)
    admin = await make_user(Role.SUPER_ADMIN)
    resource = await make_resource(owner, ResourceStatus.PUBLISHED)
    lesson = await community.submit_lesson(db, principal_for(owner), LessonCreate(
        resource_id=resource.id, title="t", content="c",
    ))
    await engagement.toggle_like(db, principal_for(other), LikeTarget(kind=TargetKind.LESSON, id=lesson.id))

    with pytest.raises(AuthorizationError):
        await community.delete_lesson(db, principal_for(other), lesson.id)
    await community.delete_lesson(db, principal_for(admin), lesson.id)

    assert await db.scalar(select(func.count()).select_from(models.LessonLearned)) == 0
    assert await db.scalar(select(func.count()).select_from(models.Like)) == 0


@pytest.mark.asyncio
async def test_list_lessons_reports_likes(db, make_user, make_resource):
    owner = await make_user(Role.CONTRIBUTOR)
    reader = await make_user(Role.STUDENT)
    resource = await make_resource(owner, ResourceStatus.PUBLISHED)
    lesson = await community.submit_lesson(db, principal_for(owner), LessonCreate(
        resource_id=resource.id, title="t", content="c",
    ))
    await engagement.toggle_like(db, principal_for(reader), LikeTarget(kind=TargetKind.LESSON, id=lesson.id))

    lessons = await community.list_lessons(db, principal_for(reader), resource_id=resource.id)

    assert len(lessons) == 1
    assert (lessons[0].like_count, lessons[0].is_liked) == (1, True)
    assert lessons[0].resource_title == resource.title


@pytest.mark.asyncio
async def test_reply_notifies_discussion_author(db, make_user):
    author = await make_user(Role.STUDENT)
    helper = await make_user(Role.CONTRIBUTOR, first_name="Ben", last_name="Reyes")
    discussion = await community.post_discussion(db, principal_for(author), DiscussionCreate(
        title="Best way to review for exams?", content="Any tips?", type=DiscussionType.QUESTION,
    ))

    await community.post_reply(db, principal_for(helper), discussion.id, "Use flashcards.")

    notification = await db.scalar(select(models.Notification))
    assert notification.user_id == author.id
    assert notification.type == "Reply"
    assert notification.message == 'Ben Reyes replied to your discussion "Best way to review for exams?".'


@pytest.mark.asyncio
async def test_opening_a_thread_counts_view_and_orders_replies(db, make_user):
    author = await make_user(Role.STUDENT)
    discussion = await community.post_discussion(db, principal_for(author), DiscussionCreate(title="Q", content="?"))
    first = await community.post_reply(db, principal_for(author), discussion.id, "first")
    second = await community.post_reply(db, principal_for(author), discussion.id, "second")

    thread = await community.get_discussion(db, principal_for(author), discussion.id)

    assert thread.discussion.view_count == 1
    assert thread.discussion.reply_count == 2
    assert {r.id for r in thread.replies} == {first.id, second.id}
    assert thread.replies[0].id == second.id


@pytest.mark.asyncio
async def test_best_answer_is_single_and_scoped(db, make_user):
    author = await make_user(Role.STUDENT)
    stranger = await make_user(Role.STUDENT)
    discussion = await community.post_discussion(db, principal_for(author), DiscussionCreate(title="Q", content="?"))
    other = await community.post_discussion(db, principal_for(author), DiscussionCreate(title="Other", content="?"))
    first = await community.post_reply(db, principal_for(stranger), discussion.id, "a")
    second = await community.post_reply(db, principal_for(stranger), discussion.id, "b")
    foreign = await community.post_reply(db, principal_for(stranger), other.id, "c")

    await community.set_best_answer(db, principal_for(author), discussion.id, first.id)
    await community.set_best_answer(db, principal_for(author), discussion.id, second.id)
    thread = await community.get_discussion(db, principal_for(author), discussion.id)
    assert [r.id for r in thread.replies if r.is_best_answer] == [second.id]

    with pytest.raises(ValidationError):
        await community.set_best_answer(db, principal_for(author), discussion.id, foreign.id)
    with pytest.raises(AuthorizationError):
        await community.set_best_answer(db, principal_for(stranger), discussion.id, first.id)


@pytest.mark.asyncio
async def test_deleting_best_answer_clears_it(db, make_user):
    author = await make_user(Role.STUDENT)
    discussion = await community.post_discussion(db, principal_for(author), DiscussionCreate(title="Q", content="?"))
    reply = await community.post_reply(db, principal_for(author), discussion.id, "a")
    await community.set_best_answer(db, principal_for(author), discussion.id, reply.id)

    await community.delete_reply(db, principal_for(author), reply.id)

    refreshed = await db.get(models.Discussion, discussion.id, populate_existing=True)
    assert refreshed.best_answer_post_id is None


@pytest.mark.asyncio
async def test_delete_discussion_removes_replies_and_likes(db, make_user):
    author = await make_user(Role.STUDENT)
    reader = await make_user(Role.STUDENT)
    discussion = await community.post_discussion(db, principal_for(author), DiscussionCreate(title="Q", content="?"))
    reply = await community.post_reply(db, principal_for(reader), discussion.id, "a")
    await engagement.toggle_like(db, principal_for(reader), LikeTarget(kind=TargetKind.DISCUSSION, id=discussion.id))
    await engagement.toggle_like(db, principal_for(author), LikeTarget(kind=TargetKind.REPLY, id=reply.id))

    await community.delete_discussion(db, principal_for(author), discussion.id)

    for model in (models.Discussion, models.DiscussionPost, models.Like):
        assert await db.scalar(select(func.count()).select_from(model)) == 0


@pytest.mark.asyncio
async def test_generic_like_endpoint(async_client, db, make_user):
    author = await make_user(Role.STUDENT)
    reader = await make_user(Role.STUDENT)
    discussion = await community.post_discussion(db, principal_for(author), DiscussionCreate(title="Q", content="?"))

    response = await async_client.post(f"/api/likes/Discussion/{discussion.id}", headers=auth_headers(reader))
    assert response.status_code == 200
    assert response.json() == {"success": True, "liked": True, "count": 1}

    response = await async_client.post("/api/likes/Discussion/999", headers=auth_headers(reader))
    assert response.status_code == 404
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_lessons_on_hidden_resources(db, make_user, make_resource):
    owner = await make_user(Role.CONTRIBUTOR)
    student = await make_user(Role.STUDENT)
    manager = await make_user(Role.MANAGER)
    resource = await make_resource(owner, ResourceStatus.DRAFT)

    with pytest.raises(NotFoundError):
        await community.submit_lesson(db, principal_for(student), LessonCreate(
            resource_id=resource.id, title="t", content="c",
        ))

    lesson = await community.submit_lesson(db, principal_for(owner), LessonCreate(
        resource_id=resource.id, title="Notes to self", content="c",
    ))
    assert await community.list_lessons(db, principal_for(student)) == []
    assert [item.id for item in await community.list_lessons(db, principal_for(manager))] == [lesson.id]
    with pytest.raises(NotFoundError):
        await engagement.toggle_like(db, principal_for(student), LikeTarget(kind=TargetKind.LESSON, id=lesson.id))


@pytest.mark.asyncio
async def test_engagement_endpoints_hide_unpublished_resources(async_client, make_user, make_resource):
    owner = await make_user(Role.CONTRIBUTOR)
    student = await make_user(Role.STUDENT)
    resource = await make_resource(owner, ResourceStatus.DRAFT)
    headers = auth_headers(student)

    rate = await async_client.post(f"/api/resources/{resource.id}/rate", json={"rating": 1}, headers=headers)
    like = await async_client.post(f"/api/resources/{resource.id}/like", headers=headers)
    save = await async_client.post(f"/api/resources/{resource.id}/save", headers=headers)
    lesson = await async_client.post(
        "/api/lessons", json={"resource_id": resource.id, "title": "t", "content": "c"}, headers=headers
    )

    assert [r.status_code for r in (rate, like, save, lesson)] == [404, 404, 404, 404]
