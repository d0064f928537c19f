"""
crud.py

Async queries and small write helpers for the LearnLink backend.
Holds the resource repository (lookups, filtered listings, moderation queue),
user lookups used as role-store capabilities, and the activity log appender.
Write helpers here only stage rows; the calling operation owns the commit.
"""
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from learnlink import models
from learnlink.schemas import ResourceStatus, Role, UserStatus
from learnlink.utils import utcnow

# User CRUD

async def get_user(db: AsyncSession, user_id: int) -> Optional[models.User]:
    return await db.get(models.User, user_id)


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[models.User]:
    """Asynchronously retrieve a user by email address (case-insensitive)."""
    result = await db.execute(select(models.User).filter(func.lower(models.User.email) == email.strip().lower()))
    return result.scalars().first()


async def create_user(db: AsyncSession, user: dict) -> models.User:
    """Stage a new user, keeping only valid User columns."""
    valid_fields = [column.name for column in models.User.__table__.columns]
    user_data = {key: value for key, value in user.items() if key in valid_fields}
    db_user = models.User(**user_data)
    db.add(db_user)
    await db.flush()
    return db_user


async def user_ids_in_roles(
    db: AsyncSession, roles: Iterable[Role], exclude_user_id: Optional[int] = None
) -> List[int]:
    """Ids of every user holding one of ``roles``, optionally excluding one user."""
    query = select(models.User.id).filter(models.User.role.in_([r.value for r in roles]))
    if exclude_user_id is not None:
        query = query.filter(models.User.id != exclude_user_id)
    result = await db.execute(query.order_by(models.User.id))
    return list(result.scalars().all())


# Activity log

def log_user_activity(
    db: AsyncSession,
    user_id: int,
    activity_type: str,
    target_title: str = "",
    resource_id: Optional[int] = None,
) -> models.UserActivityLog:
    """
    Append an entry to the activity log.
    Args:
        db (AsyncSession): session whose transaction the entry joins
        user_id (int): ID of the user performing the action
        activity_type (str): e.g. 'Upload', 'Approve', 'View', 'Download', 'Like'
        target_title (str): title of the thing acted upon, for display
        resource_id (int, optional): resource the entry is scoped to
    Returns:
        UserActivityLog: the staged (not yet committed) entry
    """
    activity = models.UserActivityLog(
        user_id=user_id,
        activity_type=activity_type,
        target_title=(target_title or "")[:200],
        resource_id=resource_id,
        activity_date=utcnow(),
    )
    db.add(activity)
    return activity


# Resource CRUD

async def get_resource(db: AsyncSession, resource_id: int, with_owner: bool = False) -> Optional[models.Resource]:
    """Retrieve a resource by id, optionally eager-loading its owner."""
    query = (
        select(models.Resource)
        .filter(models.Resource.id == resource_id)
        .execution_options(populate_existing=True)
    )
    if with_owner:
        query = query.options(selectinload(models.Resource.user))
    result = await db.execute(query)
    return result.scalars().first()


async def list_resources(
    db: AsyncSession,
    q: Optional[str] = None,
    subject: Optional[str] = None,
    grade_level: Optional[str] = None,
    resource_type: Optional[str] = None,
    quarter: Optional[str] = None,
    status: Optional[str] = ResourceStatus.PUBLISHED.value,
    skip: int = 0,
    limit: int = 20,
) -> Sequence[models.Resource]:
    """Browse resources with optional filters, newest first."""
    query = select(models.Resource).options(selectinload(models.Resource.user))
    if q:
        search = f"%{q}%"
        query = query.filter(or_(
            models.Resource.title.ilike(search),
            models.Resource.description.ilike(search),
            models.Resource.subject.ilike(search),
        ))
    if subject:
        query = query.filter(models.Resource.subject == subject)
    if grade_level:
        query = query.filter(models.Resource.grade_level == grade_level)
    if resource_type:
        query = query.filter(models.Resource.resource_type == resource_type)
    if quarter:
        query = query.filter(models.Resource.quarter == quarter)
    if status:
        query = query.filter(models.Resource.status == status)
    query = query.order_by(models.Resource.date_uploaded.desc(), models.Resource.id.desc())
    result = await db.execute(query.offset(skip).limit(limit))
    return result.scalars().all()


async def list_pending(db: AsyncSession) -> Sequence[models.Resource]:
    """Moderation queue, oldest submission first."""
    result = await db.execute(
        select(models.Resource)
        .options(selectinload(models.Resource.user))
        .filter(models.Resource.status == ResourceStatus.PENDING.value)
        .order_by(models.Resource.date_uploaded.asc(), models.Resource.id.asc())
    )
    return result.scalars().all()


async def list_uploads(db: AsyncSession, user_id: int, include_all: bool = False) -> Sequence[models.Resource]:
    query = select(models.Resource).options(selectinload(models.Resource.user))
    if not include_all:
        query = query.filter(models.Resource.user_id == user_id)
    result = await db.execute(query.order_by(models.Resource.date_uploaded.desc(), models.Resource.id.desc()))
    return result.scalars().all()


def count_by_status(resources: Iterable[models.Resource]) -> Dict[str, int]:
    counts = {status.value: 0 for status in ResourceStatus}
    for resource in resources:
        counts[resource.status] = counts.get(resource.status, 0) + 1
    return counts


async def related_resources(db: AsyncSession, resource: models.Resource, limit: int = 4) -> Sequence[models.Resource]:
    """Other published resources on the same subject."""
    result = await db.execute(
        select(models.Resource)
        .options(selectinload(models.Resource.user))
        .filter(
            models.Resource.id != resource.id,
            models.Resource.subject == resource.subject,
            models.Resource.status == ResourceStatus.PUBLISHED.value,
        )
        .order_by(models.Resource.date_uploaded.desc())
        .limit(limit)
    )
    return result.scalars().all()


# Reading history

async def get_reading_history(db: AsyncSession, user_id: int, resource_id: int) -> Optional[models.ReadingHistory]:
    result = await db.execute(
        select(models.ReadingHistory).filter(
            models.ReadingHistory.user_id == user_id,
            models.ReadingHistory.resource_id == resource_id,
        ).execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def list_reading_history(db: AsyncSession, user_id: int) -> Sequence[models.ReadingHistory]:
    result = await db.execute(
        select(models.ReadingHistory)
        .options(selectinload(models.ReadingHistory.resource))
        .filter(models.ReadingHistory.user_id == user_id)
        .order_by(models.ReadingHistory.last_accessed.desc())
    )
    return result.scalars().all()


# Dashboard

async def dashboard_stats(db: AsyncSession) -> dict:
    total_resources = await db.scalar(select(func.count()).select_from(models.Resource))
    active_users = await db.scalar(
        select(func.count()).select_from(models.User).filter(models.User.status == UserStatus.ACTIVE.value)
    )
    total_downloads = await db.scalar(select(func.coalesce(func.sum(models.Resource.download_count), 0)))
    discussions = await db.scalar(select(func.count()).select_from(models.Discussion))
    return {
        "total_resources": total_resources or 0,
        "active_users": active_users or 0,
        "total_downloads": total_downloads or 0,
        "active_discussions": discussions or 0,
    }
