"""
engagement.py

Likes, ratings, bookmarks, views and reading progress for the LearnLink backend.

A like is keyed by (user, target kind, target id) and backed by a unique
constraint. Toggling never reads-then-writes: it deletes first and, when there
was nothing to delete, inserts with ON CONFLICT DO NOTHING, so two concurrent
toggles can never produce two rows. Like counts are always computed from the
likes table.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Set

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from learnlink import crud, lifecycle, models
from learnlink.auth import Principal
from learnlink.exceptions import NotFoundError, ValidationError
from learnlink.schemas import LikeTarget, ProgressStatus, TargetKind
from learnlink.utils import utcnow

logger = logging.getLogger(__name__)

TARGET_MODELS = {
    TargetKind.RESOURCE: models.Resource,
    TargetKind.LESSON: models.LessonLearned,
    TargetKind.DISCUSSION: models.Discussion,
    TargetKind.REPLY: models.DiscussionPost,
}

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


@dataclass
class LikeResult:
    liked: bool
    count: int


@dataclass
class RatingResult:
    rating: float
    count: int


async def _insert_ignore(db: AsyncSession, model, values: dict, conflict_columns: List[str]) -> bool:
    """Insert one row unless it collides with a unique key. Returns True if a row was inserted."""
    insert = _DIALECT_INSERTS.get(db.get_bind().dialect.name)
    if insert is not None:
        statement = insert(model).values(**values).on_conflict_do_nothing(index_elements=conflict_columns)
        result = await db.execute(statement)
        return result.rowcount > 0
    try:
        async with db.begin_nested():
            db.add(model(**values))
        return True
    except IntegrityError:
        return False


async def _target_title(db: AsyncSession, principal: Principal, target: LikeTarget) -> str:
    """
    Title used in the activity log. Raises NotFoundError for a missing target,
    and for a resource (or a lesson about one) the caller is not allowed to see.
    """
    if target.kind == TargetKind.RESOURCE:
        return (await lifecycle.get_visible_resource(db, principal, target.id)).title
    row = await db.get(TARGET_MODELS[target.kind], target.id)
    if row is None:
        raise NotFoundError(f"{target.kind.value} not found.")
    if target.kind == TargetKind.LESSON:
        resource = await db.get(models.Resource, row.resource_id)
        if resource is None or not lifecycle.can_view(principal, resource):
            raise NotFoundError("Lesson not found.")
        return row.title
    if target.kind == TargetKind.DISCUSSION:
        return row.title
    if target.kind == TargetKind.REPLY:
        return (row.content or "")[:50]
    raise ValidationError(f"Unsupported like target: {target.kind}")


async def _delete_like(db: AsyncSession, user_id: int, target: LikeTarget) -> int:
    result = await db.execute(
        delete(models.Like).where(
            models.Like.user_id == user_id,
            models.Like.target_type == target.kind.value,
            models.Like.target_id == target.id,
        )
    )
    return result.rowcount


async def like_count(db: AsyncSession, target: LikeTarget) -> int:
    count = await db.scalar(
        select(func.count())
        .select_from(models.Like)
        .filter(models.Like.target_type == target.kind.value, models.Like.target_id == target.id)
    )
    return count or 0


async def is_liked(db: AsyncSession, user_id: int, target: LikeTarget) -> bool:
    found = await db.scalar(
        select(models.Like.id).filter(
            models.Like.user_id == user_id,
            models.Like.target_type == target.kind.value,
            models.Like.target_id == target.id,
        )
    )
    return found is not None


async def like_counts(db: AsyncSession, kind: TargetKind, ids: Iterable[int]) -> Dict[int, int]:
    """Like count per target id for a page of targets of one kind."""
    ids = list(ids)
    if not ids:
        return {}
    result = await db.execute(
        select(models.Like.target_id, func.count())
        .filter(models.Like.target_type == kind.value, models.Like.target_id.in_(ids))
        .group_by(models.Like.target_id)
    )
    counts = {target_id: 0 for target_id in ids}
    counts.update({target_id: count for target_id, count in result.all()})
    return counts


async def liked_ids(db: AsyncSession, user_id: int, kind: TargetKind, ids: Iterable[int]) -> Set[int]:
    ids = list(ids)
    if not ids:
        return set()
    result = await db.execute(
        select(models.Like.target_id).filter(
            models.Like.user_id == user_id,
            models.Like.target_type == kind.value,
            models.Like.target_id.in_(ids),
        )
    )
    return set(result.scalars().all())


async def toggle_like(db: AsyncSession, principal: Principal, target: LikeTarget) -> LikeResult:
    """
    Flip the caller's like on ``target`` and return the new state with the live count.

    If a concurrent toggle inserted the row first, the insert is ignored and the
    caller is reported as liking the target.
    """
    title = await _target_title(db, principal, target)

    if await _delete_like(db, principal.user_id, target):
        liked = False
    else:
        inserted = await _insert_ignore(
            db,
            models.Like,
            {
                "user_id": principal.user_id,
                "target_type": target.kind.value,
                "target_id": target.id,
                "created_at": utcnow(),
            },
            ["user_id", "target_type", "target_id"],
        )
        liked = True
        if inserted:
            resource_id = target.id if target.kind == TargetKind.RESOURCE else None
            crud.log_user_activity(db, principal.user_id, "Like", title, resource_id)
    await db.commit()

    return LikeResult(liked=liked, count=await like_count(db, target))


async def rate_resource(db: AsyncSession, principal: Principal, resource_id: int, rating: int) -> RatingResult:
    """Fold one 1-5 rating into the resource's running mean with a single UPDATE."""
    if rating is None or not 1 <= rating <= 5:
        raise ValidationError("Rating must be between 1 and 5.")
    await lifecycle.get_visible_resource(db, principal, resource_id)

    result = await db.execute(
        update(models.Resource)
        .where(models.Resource.id == resource_id)
        .values(
            rating=(models.Resource.rating * models.Resource.rating_count + rating) / (models.Resource.rating_count + 1),
            rating_count=models.Resource.rating_count + 1,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise NotFoundError("Resource not found.")
    await db.commit()

    row = (await db.execute(
        select(models.Resource.rating, models.Resource.rating_count).where(models.Resource.id == resource_id)
    )).one()
    logger.info(f"User {principal.user_id} rated resource {resource_id} with {rating}")
    return RatingResult(rating=round(row.rating, 2), count=row.rating_count)


async def _ensure_history(db: AsyncSession, user_id: int, resource_id: int) -> None:
    await _insert_ignore(
        db,
        models.ReadingHistory,
        {
            "user_id": user_id,
            "resource_id": resource_id,
            "progress_status": ProgressStatus.NOT_STARTED.value,
            "progress_percent": 0,
            "is_bookmarked": False,
            "last_accessed": utcnow(),
        },
        ["user_id", "resource_id"],
    )


def _history_filter(user_id: int, resource_id: int):
    return (models.ReadingHistory.user_id == user_id, models.ReadingHistory.resource_id == resource_id)


async def _require_resource(db: AsyncSession, principal: Principal, resource_id: int) -> models.Resource:
    return await lifecycle.get_visible_resource(db, principal, resource_id)


async def toggle_bookmark(db: AsyncSession, principal: Principal, resource_id: int) -> bool:
    """Flip the bookmark flag on the caller's reading history row. Returns the new flag."""
    await _require_resource(db, principal, resource_id)
    await _ensure_history(db, principal.user_id, resource_id)
    await db.execute(
        update(models.ReadingHistory)
        .where(*_history_filter(principal.user_id, resource_id))
        .values(is_bookmarked=~models.ReadingHistory.is_bookmarked)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    saved = await db.scalar(
        select(models.ReadingHistory.is_bookmarked).where(*_history_filter(principal.user_id, resource_id))
    )
    return bool(saved)


async def is_saved(db: AsyncSession, user_id: int, resource_id: int) -> bool:
    saved = await db.scalar(
        select(models.ReadingHistory.is_bookmarked).where(*_history_filter(user_id, resource_id))
    )
    return bool(saved)


async def record_view(db: AsyncSession, principal: Principal, resource_id: int) -> None:
    """
    Count a view, log it, and move the caller's history to In Progress.
    A Completed history row stays Completed.
    """
    resource = await _require_resource(db, principal, resource_id)
    await db.execute(
        update(models.Resource)
        .where(models.Resource.id == resource_id)
        .values(view_count=models.Resource.view_count + 1)
        .execution_options(synchronize_session=False)
    )
    crud.log_user_activity(db, principal.user_id, "View", resource.title, resource_id)

    await _ensure_history(db, principal.user_id, resource_id)
    completed = ProgressStatus.COMPLETED.value
    await db.execute(
        update(models.ReadingHistory)
        .where(*_history_filter(principal.user_id, resource_id))
        .values(
            progress_status=case(
                (models.ReadingHistory.progress_status == completed, completed),
                else_=ProgressStatus.IN_PROGRESS.value,
            ),
            last_accessed=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()


async def update_progress(db: AsyncSession, principal: Principal, resource_id: int, percent: int) -> models.ReadingHistory:
    if percent is None or not 0 <= percent <= 100:
        raise ValidationError("Progress must be between 0 and 100.")
    await _require_resource(db, principal, resource_id)
    await _ensure_history(db, principal.user_id, resource_id)

    now = utcnow()
    values = {"progress_percent": percent, "last_accessed": now}
    if percent == 100:
        values.update(progress_status=ProgressStatus.COMPLETED.value, completed_date=now)
    else:
        values.update(progress_status=ProgressStatus.IN_PROGRESS.value, completed_date=None)
    await db.execute(
        update(models.ReadingHistory)
        .where(*_history_filter(principal.user_id, resource_id))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return await crud.get_reading_history(db, principal.user_id, resource_id)


async def list_history(db: AsyncSession, principal: Principal) -> Sequence[models.ReadingHistory]:
    return await crud.list_reading_history(db, principal.user_id)
