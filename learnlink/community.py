"""
community.py

Lessons learned, discussions and replies for the LearnLink backend.
Like counts and the caller's liked flags come from the engagement module;
a discussion's best answer is one nullable reference on the discussion row.
"""
import logging
from typing import List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from learnlink import crud, engagement, lifecycle, models, notifier
from learnlink.auth import Principal
from learnlink.exceptions import AuthorizationError, NotFoundError, ValidationError
from learnlink.schemas import (
    DiscussionCreate,
    DiscussionResponse,
    DiscussionThread,
    DiscussionUpdate,
    LessonCreate,
    LessonResponse,
    LessonUpdate,
    NotificationType,
    REVIEWER_ROLES,
    ReplyResponse,
    TargetKind,
)
from learnlink.utils import join_tags, split_tags, utcnow

logger = logging.getLogger(__name__)


def _ensure_owner(principal: Principal, owner_id: int, what: str) -> None:
    if owner_id != principal.user_id and not principal.is_super_admin:
        raise AuthorizationError(f"You can only modify your own {what}.")


def _require_text(value: Optional[str], field: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{field} is required.")
    return value


async def _delete_likes(db: AsyncSession, kind: TargetKind, target_ids) -> None:
    await db.execute(
        delete(models.Like).where(models.Like.target_type == kind.value, models.Like.target_id.in_(target_ids))
    )


# Lessons learned

async def _get_lesson(db: AsyncSession, lesson_id: int) -> models.LessonLearned:
    result = await db.execute(
        select(models.LessonLearned)
        .options(selectinload(models.LessonLearned.user), selectinload(models.LessonLearned.resource))
        .filter(models.LessonLearned.id == lesson_id)
        .execution_options(populate_existing=True)
    )
    lesson = result.scalars().first()
    if not lesson:
        raise NotFoundError("Lesson not found.")
    return lesson


async def submit_lesson(db: AsyncSession, principal: Principal, data: LessonCreate) -> models.LessonLearned:
    """Share a lesson about a resource; the resource owner is told when someone else writes one."""
    resource = await lifecycle.get_visible_resource(db, principal, data.resource_id)
    title = _require_text(data.title, "Title")
    content = _require_text(data.content, "Content")

    lesson = models.LessonLearned(
        resource_id=resource.id,
        user_id=principal.user_id,
        title=title,
        content=content,
        category=data.category or "",
        tags=join_tags(data.tags),
        date_submitted=utcnow(),
    )
    db.add(lesson)
    await db.flush()
    crud.log_user_activity(db, principal.user_id, "Lesson", title, resource.id)
    if resource.user_id != principal.user_id:
        notifier.notify(
            db,
            resource.user_id,
            title="New Lesson Learned",
            message=f'{principal.name} shared a lesson learned about "{resource.title}".',
            type=NotificationType.SYSTEM,
            resource_id=resource.id,
            link=notifier.resource_link(resource.id),
        )
    await db.commit()
    return await _get_lesson(db, lesson.id)


async def edit_lesson(db: AsyncSession, principal: Principal, lesson_id: int, data: LessonUpdate) -> models.LessonLearned:
    lesson = await _get_lesson(db, lesson_id)
    _ensure_owner(principal, lesson.user_id, "lessons")
    if data.resource_id != lesson.resource_id:
        await lifecycle.get_visible_resource(db, principal, data.resource_id)

    lesson.resource_id = data.resource_id
    lesson.title = _require_text(data.title, "Title")
    lesson.content = _require_text(data.content, "Content")
    lesson.category = data.category or ""
    lesson.tags = join_tags(data.tags)
    await db.commit()
    return await _get_lesson(db, lesson_id)


async def delete_lesson(db: AsyncSession, principal: Principal, lesson_id: int) -> None:
    lesson = await _get_lesson(db, lesson_id)
    _ensure_owner(principal, lesson.user_id, "lessons")
    await _delete_likes(db, TargetKind.LESSON, [lesson.id])
    await db.delete(lesson)
    await db.commit()


async def list_lessons(
    db: AsyncSession, principal: Principal, resource_id: Optional[int] = None, limit: int = 50
) -> List[LessonResponse]:
    query = (
        select(models.LessonLearned)
        .options(selectinload(models.LessonLearned.user), selectinload(models.LessonLearned.resource))
        .join(models.Resource, models.LessonLearned.resource_id == models.Resource.id)
        .filter(lifecycle.visible_criterion(principal))
        .order_by(models.LessonLearned.date_submitted.desc(), models.LessonLearned.id.desc())
        .limit(limit)
    )
    if resource_id is not None:
        query = query.filter(models.LessonLearned.resource_id == resource_id)
    lessons = (await db.execute(query)).scalars().all()
    return await lesson_responses(db, principal, lessons)


async def lesson_responses(db: AsyncSession, principal: Principal, lessons) -> List[LessonResponse]:
    ids = [lesson.id for lesson in lessons]
    counts = await engagement.like_counts(db, TargetKind.LESSON, ids)
    liked = await engagement.liked_ids(db, principal.user_id, TargetKind.LESSON, ids)
    return [
        LessonResponse(
            id=lesson.id,
            resource_id=lesson.resource_id,
            resource_title=lesson.resource.title if lesson.resource else "",
            title=lesson.title,
            content=lesson.content or "",
            category=lesson.category or "",
            tags=split_tags(lesson.tags),
            author=lesson.user.full_name if lesson.user else "",
            like_count=counts.get(lesson.id, 0),
            is_liked=lesson.id in liked,
            date_submitted=lesson.date_submitted,
        )
        for lesson in lessons
    ]


# Discussions

async def _get_discussion(db: AsyncSession, discussion_id: int) -> models.Discussion:
    result = await db.execute(
        select(models.Discussion)
        .options(selectinload(models.Discussion.user))
        .filter(models.Discussion.id == discussion_id)
        .execution_options(populate_existing=True)
    )
    discussion = result.scalars().first()
    if not discussion:
        raise NotFoundError("Discussion not found.")
    return discussion


async def post_discussion(db: AsyncSession, principal: Principal, data: DiscussionCreate) -> models.Discussion:
    title = _require_text(data.title, "Title")
    content = _require_text(data.content, "Content")
    discussion = models.Discussion(
        title=title,
        content=content,
        category=data.category or "",
        type=data.type.value,
        tags=join_tags(data.tags),
        status="Open",
        user_id=principal.user_id,
        date_created=utcnow(),
    )
    db.add(discussion)
    crud.log_user_activity(db, principal.user_id, "Discussion", title)
    await db.commit()
    return await _get_discussion(db, discussion.id)


async def edit_discussion(
    db: AsyncSession, principal: Principal, discussion_id: int, data: DiscussionUpdate
) -> models.Discussion:
    discussion = await _get_discussion(db, discussion_id)
    _ensure_owner(principal, discussion.user_id, "discussions")
    discussion.title = _require_text(data.title, "Title")
    discussion.content = _require_text(data.content, "Content")
    discussion.category = data.category or ""
    discussion.type = data.type.value
    discussion.tags = join_tags(data.tags)
    await db.commit()
    return await _get_discussion(db, discussion_id)


async def delete_discussion(db: AsyncSession, principal: Principal, discussion_id: int) -> None:
    """Delete a discussion with its replies and every like on either."""
    discussion = await _get_discussion(db, discussion_id)
    _ensure_owner(principal, discussion.user_id, "discussions")

    reply_ids = select(models.DiscussionPost.id).where(models.DiscussionPost.discussion_id == discussion.id)
    await db.execute(
        delete(models.Like).where(
            models.Like.target_type == TargetKind.REPLY.value,
            models.Like.target_id.in_(reply_ids),
        )
    )
    await db.execute(delete(models.DiscussionPost).where(models.DiscussionPost.discussion_id == discussion.id))
    await _delete_likes(db, TargetKind.DISCUSSION, [discussion.id])
    await db.execute(delete(models.Discussion).where(models.Discussion.id == discussion.id))
    await db.commit()
    logger.info(f"Discussion {discussion_id} deleted by user {principal.user_id}")


async def _reply_counts(db: AsyncSession, discussion_ids: List[int]) -> dict:
    if not discussion_ids:
        return {}
    result = await db.execute(
        select(models.DiscussionPost.discussion_id, func.count())
        .filter(models.DiscussionPost.discussion_id.in_(discussion_ids))
        .group_by(models.DiscussionPost.discussion_id)
    )
    return dict(result.all())


async def discussion_responses(db: AsyncSession, principal: Principal, discussions) -> List[DiscussionResponse]:
    ids = [discussion.id for discussion in discussions]
    counts = await engagement.like_counts(db, TargetKind.DISCUSSION, ids)
    liked = await engagement.liked_ids(db, principal.user_id, TargetKind.DISCUSSION, ids)
    replies = await _reply_counts(db, ids)
    return [
        DiscussionResponse(
            id=discussion.id,
            title=discussion.title,
            content=discussion.content or "",
            category=discussion.category or "",
            type=discussion.type or "",
            tags=split_tags(discussion.tags),
            status=discussion.status or "Open",
            view_count=discussion.view_count or 0,
            like_count=counts.get(discussion.id, 0),
            is_liked=discussion.id in liked,
            reply_count=replies.get(discussion.id, 0),
            author=discussion.user.full_name if discussion.user else "",
            best_answer_post_id=discussion.best_answer_post_id,
            date_created=discussion.date_created,
        )
        for discussion in discussions
    ]


async def list_discussions(
    db: AsyncSession,
    principal: Principal,
    q: Optional[str] = None,
    type: Optional[str] = None,
    limit: int = 50,
) -> List[DiscussionResponse]:
    query = select(models.Discussion).options(selectinload(models.Discussion.user))
    if q:
        query = query.filter(models.Discussion.title.ilike(f"%{q}%"))
    if type:
        query = query.filter(models.Discussion.type == type)
    query = query.order_by(models.Discussion.date_created.desc(), models.Discussion.id.desc()).limit(limit)
    discussions = (await db.execute(query)).scalars().all()
    return await discussion_responses(db, principal, discussions)


async def get_discussion(db: AsyncSession, principal: Principal, discussion_id: int) -> DiscussionThread:
    """Open a thread: counts the view and returns replies newest first."""
    await _get_discussion(db, discussion_id)
    await db.execute(
        update(models.Discussion)
        .where(models.Discussion.id == discussion_id)
        .values(view_count=models.Discussion.view_count + 1)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    discussion = await _get_discussion(db, discussion_id)

    posts = (await db.execute(
        select(models.DiscussionPost)
        .options(selectinload(models.DiscussionPost.user))
        .filter(models.DiscussionPost.discussion_id == discussion_id)
        .order_by(models.DiscussionPost.date_posted.desc(), models.DiscussionPost.id.desc())
    )).scalars().all()
    ids = [post.id for post in posts]
    counts = await engagement.like_counts(db, TargetKind.REPLY, ids)
    liked = await engagement.liked_ids(db, principal.user_id, TargetKind.REPLY, ids)

    replies = [
        ReplyResponse(
            id=post.id,
            content=post.content,
            author=post.user.full_name if post.user else "",
            like_count=counts.get(post.id, 0),
            is_liked=post.id in liked,
            is_best_answer=post.id == discussion.best_answer_post_id,
            date_posted=post.date_posted,
        )
        for post in posts
    ]
    summary = (await discussion_responses(db, principal, [discussion]))[0]
    return DiscussionThread(discussion=summary, replies=replies)


async def post_reply(db: AsyncSession, principal: Principal, discussion_id: int, content: str) -> models.DiscussionPost:
    content = _require_text(content, "Reply")
    discussion = await _get_discussion(db, discussion_id)

    post = models.DiscussionPost(
        discussion_id=discussion.id,
        user_id=principal.user_id,
        content=content,
        date_posted=utcnow(),
    )
    db.add(post)
    if discussion.user_id != principal.user_id:
        notifier.notify(
            db,
            discussion.user_id,
            title="New reply",
            message=f'{principal.name} replied to your discussion "{discussion.title}".',
            type=NotificationType.REPLY,
            link=f"/discussions/{discussion.id}",
        )
    await db.commit()
    return post


async def delete_reply(db: AsyncSession, principal: Principal, reply_id: int) -> None:
    post = await db.get(models.DiscussionPost, reply_id)
    if not post:
        raise NotFoundError("Reply not found.")
    _ensure_owner(principal, post.user_id, "replies")

    await db.execute(
        update(models.Discussion)
        .where(models.Discussion.id == post.discussion_id, models.Discussion.best_answer_post_id == post.id)
        .values(best_answer_post_id=None)
        .execution_options(synchronize_session=False)
    )
    await _delete_likes(db, TargetKind.REPLY, [post.id])
    await db.delete(post)
    await db.commit()


async def set_best_answer(
    db: AsyncSession, principal: Principal, discussion_id: int, post_id: Optional[int]
) -> models.Discussion:
    """Mark one reply as the best answer, or clear it with ``post_id=None``."""
    discussion = await _get_discussion(db, discussion_id)
    if discussion.user_id != principal.user_id and not principal.has_role(*REVIEWER_ROLES):
        raise AuthorizationError("Only the discussion author or a moderator can choose the best answer.")

    if post_id is not None:
        post = await db.get(models.DiscussionPost, post_id)
        if not post or post.discussion_id != discussion.id:
            raise ValidationError("That reply does not belong to this discussion.")

    discussion.best_answer_post_id = post_id
    await db.commit()
    return discussion
