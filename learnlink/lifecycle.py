"""
lifecycle.py

Resource lifecycle and moderation for the LearnLink backend.

States: Draft, Pending, Published, Rejected. Every transition commits the
resource change, its activity-log entry and its notifications together.
Storage uploads happen before any row is written and never inside an open
transaction; blob cleanup after a delete or a file replacement is best effort.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from sqlalchemy import delete, or_, select, true, update
from sqlalchemy.ext.asyncio import AsyncSession

from learnlink import crud, models, notifier
from learnlink.auth import Principal, ensure_role
from learnlink.cloudinary_utils import CloudinaryStorage, StoredFile
from learnlink.database import run_in_transaction
from learnlink.exceptions import AuthorizationError, NotFoundError, StorageError, TransactionError, ValidationError
from learnlink.schemas import (
    NotificationType,
    REVIEWER_ROLES,
    ResourceStatus,
    Role,
    TargetKind,
    UPLOADER_ROLES,
)
from learnlink.utils import content_type_for, is_absolute_http_url, utcnow

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    (ResourceStatus.DRAFT, ResourceStatus.PENDING),
    (ResourceStatus.PENDING, ResourceStatus.DRAFT),
    (ResourceStatus.REJECTED, ResourceStatus.PENDING),
    (ResourceStatus.REJECTED, ResourceStatus.DRAFT),
    (ResourceStatus.PENDING, ResourceStatus.PUBLISHED),
    (ResourceStatus.PENDING, ResourceStatus.REJECTED),
}


@dataclass
class ResourceFields:
    title: str = ""
    description: str = ""
    subject: str = ""
    grade_level: str = ""
    resource_type: str = ""
    quarter: str = ""


@dataclass
class UploadedFile:
    filename: str
    content: bytes


@dataclass
class DeleteResult:
    success: bool
    deleted_count: int
    message: str


@dataclass
class DownloadedFile:
    content: bytes
    content_type: str
    filename: str


def check_transition(current: ResourceStatus, target: ResourceStatus) -> None:
    if current != target and (current, target) not in ALLOWED_TRANSITIONS:
        raise ValidationError(f"A {current.value} resource cannot be moved to {target.value}.")


def validate_fields(fields: ResourceFields, has_file: bool, is_draft: bool) -> None:
    """Title is always required; a full submission also needs its metadata and a file."""
    if not (fields.title or "").strip():
        raise ValidationError("Title is required.")
    if is_draft:
        return
    required = {
        "subject": fields.subject,
        "grade level": fields.grade_level,
        "resource type": fields.resource_type,
        "description": fields.description,
    }
    missing = [name for name, value in required.items() if not (value or "").strip()]
    if missing:
        raise ValidationError(f"Please fill in all required fields: {', '.join(missing)}.")
    if not has_file:
        raise ValidationError("Please select a file to upload.")


def can_view(principal: Principal, resource: models.Resource) -> bool:
    if resource.status == ResourceStatus.PUBLISHED.value:
        return True
    return resource.user_id == principal.user_id or principal.has_role(*REVIEWER_ROLES)


def visible_criterion(principal: Principal):
    """SQL criterion on ``Resource`` matching what ``can_view`` allows."""
    if principal.has_role(*REVIEWER_ROLES):
        return true()
    return or_(
        models.Resource.status == ResourceStatus.PUBLISHED.value,
        models.Resource.user_id == principal.user_id,
    )


async def get_visible_resource(db: AsyncSession, principal: Principal, resource_id: int) -> models.Resource:
    resource = await crud.get_resource(db, resource_id, with_owner=True)
    if not resource or not can_view(principal, resource):
        raise NotFoundError("Resource not found.")
    return resource


async def _notify_reviewers(db: AsyncSession, principal: Principal, resource: models.Resource) -> None:
    reviewers = await crud.user_ids_in_roles(db, REVIEWER_ROLES, exclude_user_id=principal.user_id)
    notifier.notify_many(
        db,
        reviewers,
        title="New resource pending review",
        message=f'"{resource.title}" was uploaded by {principal.name} and needs review.',
        type=NotificationType.UPLOAD,
        resource_id=resource.id,
        link=notifier.DASHBOARD_LINK,
    )


async def _discard_blob(storage: CloudinaryStorage, key: Optional[str]) -> None:
    # Absolute URLs reference files outside storage
    if not key or is_absolute_http_url(key):
        return
    try:
        await storage.destroy(key)
    except StorageError as e:
        logger.warning(f"Could not delete stored file {key}: {e.message}")


async def _upload(db: AsyncSession, storage: CloudinaryStorage, file: UploadedFile) -> StoredFile:
    # End the current transaction so no connection is held during the upload
    await db.commit()
    return await storage.upload(file.content, file.filename)


async def submit(
    db: AsyncSession,
    storage: CloudinaryStorage,
    principal: Principal,
    fields: ResourceFields,
    file: Optional[UploadedFile] = None,
    is_draft: bool = False,
) -> models.Resource:
    """
    Create a resource as Draft or Pending.

    The file goes to storage first; if the upload fails nothing is persisted.
    A Pending submission notifies every Manager and SuperAdmin except the submitter.
    """
    ensure_role(principal, *UPLOADER_ROLES)
    validate_fields(fields, has_file=bool(file and file.content), is_draft=is_draft)

    stored = await _upload(db, storage, file) if file and file.content else None
    status = ResourceStatus.DRAFT if is_draft else ResourceStatus.PENDING

    resource = models.Resource(
        title=fields.title.strip(),
        description=(fields.description or "").strip(),
        subject=fields.subject or "",
        grade_level=fields.grade_level or "",
        resource_type=fields.resource_type or "",
        quarter=fields.quarter or "",
        file_path=stored.key if stored else "",
        file_format=stored.format if stored else "",
        file_size=stored.size if stored else "",
        status=status.value,
        user_id=principal.user_id,
        date_uploaded=utcnow(),
    )
    try:
        db.add(resource)
        await db.flush()
        crud.log_user_activity(db, principal.user_id, "Upload", resource.title, resource.id)
        if status == ResourceStatus.PENDING:
            await _notify_reviewers(db, principal, resource)
        await db.commit()
    except Exception:
        await db.rollback()
        await _discard_blob(storage, stored.key if stored else None)
        raise

    logger.info(f"Resource {resource.id} submitted by user {principal.user_id} as {status.value}")
    return resource


async def update_resource(
    db: AsyncSession,
    storage: CloudinaryStorage,
    principal: Principal,
    resource_id: int,
    fields: ResourceFields,
    file: Optional[UploadedFile] = None,
    is_draft: bool = False,
) -> models.Resource:
    """
    Edit a resource and, unless it is Published, save it as Draft or resubmit it as Pending.
    A Published resource only takes metadata edits and stays Published.
    """
    resource = await crud.get_resource(db, resource_id)
    if not resource:
        raise NotFoundError("Resource not found.")
    if resource.user_id != principal.user_id and not principal.is_super_admin:
        raise AuthorizationError("You can only edit your own resources.")

    has_new_file = bool(file and file.content)
    validate_fields(fields, has_file=has_new_file or bool(resource.file_path), is_draft=is_draft)

    current = ResourceStatus(resource.status)
    if current == ResourceStatus.PUBLISHED:
        target = ResourceStatus.PUBLISHED
    else:
        target = ResourceStatus.DRAFT if is_draft else ResourceStatus.PENDING
        check_transition(current, target)

    stored = await _upload(db, storage, file) if has_new_file else None
    replaced_key = None

    try:
        resource.title = fields.title.strip()
        resource.description = (fields.description or "").strip()
        resource.subject = fields.subject or ""
        resource.grade_level = fields.grade_level or ""
        resource.resource_type = fields.resource_type or ""
        resource.quarter = fields.quarter or ""
        if stored:
            replaced_key = resource.file_path or None
            resource.file_path = stored.key
            resource.file_format = stored.format
            resource.file_size = stored.size
        if target != ResourceStatus.PUBLISHED:
            resource.rejection_reason = None
        resource.status = target.value
        resource.updated_at = utcnow()

        crud.log_user_activity(db, principal.user_id, "Edit", resource.title, resource.id)
        if target == ResourceStatus.PENDING and current != ResourceStatus.PENDING:
            await _notify_reviewers(db, principal, resource)
        await db.commit()
    except Exception:
        await db.rollback()
        await _discard_blob(storage, stored.key if stored else None)
        raise

    await _discard_blob(storage, replaced_key)
    logger.info(f"Resource {resource.id} edited by user {principal.user_id} ({current.value} -> {target.value})")
    return resource


async def approve(db: AsyncSession, principal: Principal, resource_id: int) -> Optional[models.Resource]:
    """Publish a pending resource. Missing or already Published resources are left alone."""
    ensure_role(principal, *REVIEWER_ROLES)
    resource = await crud.get_resource(db, resource_id)
    if not resource or resource.status == ResourceStatus.PUBLISHED.value:
        return resource
    check_transition(ResourceStatus(resource.status), ResourceStatus.PUBLISHED)

    resource.status = ResourceStatus.PUBLISHED.value
    resource.rejection_reason = None
    resource.updated_at = utcnow()
    crud.log_user_activity(db, principal.user_id, "Approve", resource.title, resource.id)
    notifier.notify(
        db,
        resource.user_id,
        title="Resource Approved",
        message=f'Your resource "{resource.title}" has been approved and is now published!',
        type=NotificationType.APPROVED,
        resource_id=resource.id,
        link=notifier.resource_link(resource.id),
    )
    await db.commit()
    logger.info(f"Resource {resource.id} approved by user {principal.user_id}")
    return resource


async def reject(
    db: AsyncSession, principal: Principal, resource_id: int, reason: Optional[str] = None
) -> Optional[models.Resource]:
    """Reject a pending resource with an optional reason. Missing or already Rejected resources are left alone."""
    ensure_role(principal, *REVIEWER_ROLES)
    resource = await crud.get_resource(db, resource_id)
    if not resource or resource.status == ResourceStatus.REJECTED.value:
        return resource
    check_transition(ResourceStatus(resource.status), ResourceStatus.REJECTED)

    reason = (reason or "").strip() or None
    resource.status = ResourceStatus.REJECTED.value
    resource.rejection_reason = reason
    resource.updated_at = utcnow()
    crud.log_user_activity(db, principal.user_id, "Reject", resource.title, resource.id)

    message = f'Your resource "{resource.title}" has been rejected.'
    if reason:
        message += f" Reason: {reason}"
    notifier.notify(
        db,
        resource.user_id,
        title="Resource Rejected",
        message=message,
        type=NotificationType.REJECTED,
        resource_id=resource.id,
        link=notifier.resource_link(resource.id),
    )
    await db.commit()
    logger.info(f"Resource {resource.id} rejected by user {principal.user_id}")
    return resource


async def _purge_resource_dependents(db: AsyncSession, resource_id: int) -> None:
    """Delete every row that references the resource, including lessons and likes on them."""
    await db.execute(delete(models.ReadingHistory).where(models.ReadingHistory.resource_id == resource_id))
    await db.execute(delete(models.UserActivityLog).where(models.UserActivityLog.resource_id == resource_id))
    await db.execute(delete(models.Notification).where(models.Notification.resource_id == resource_id))
    await db.execute(delete(models.Recommendation).where(models.Recommendation.resource_id == resource_id))

    lesson_ids = select(models.LessonLearned.id).where(models.LessonLearned.resource_id == resource_id)
    await db.execute(
        delete(models.Like).where(
            models.Like.target_type == TargetKind.LESSON.value,
            models.Like.target_id.in_(lesson_ids),
        )
    )
    await db.execute(delete(models.LessonLearned).where(models.LessonLearned.resource_id == resource_id))
    await db.execute(
        delete(models.Like).where(
            models.Like.target_type == TargetKind.RESOURCE.value,
            models.Like.target_id == resource_id,
        )
    )


async def delete_resources(
    db: AsyncSession, storage: CloudinaryStorage, principal: Principal, resource_ids: Sequence[int]
) -> DeleteResult:
    """
    Delete a batch of resources in one transaction.

    Non-SuperAdmin callers only delete the ones they own; the rest of the batch
    is silently dropped. Any database failure rolls the whole batch back and is
    reported in the result. Stored files are destroyed after the commit and a
    failure there is only logged.
    """
    ensure_role(principal, *UPLOADER_ROLES)
    if not resource_ids:
        return DeleteResult(success=False, deleted_count=0, message="No resources selected.")

    query = select(models.Resource.id, models.Resource.title, models.Resource.file_path).where(
        models.Resource.id.in_(list(resource_ids))
    )
    if principal.role != Role.SUPER_ADMIN:
        query = query.where(models.Resource.user_id == principal.user_id)
    rows = (await db.execute(query)).all()
    if not rows:
        return DeleteResult(success=False, deleted_count=0, message="No valid resources found to delete.")

    ids: List[int] = [row.id for row in rows]
    titles = [row.title for row in rows]
    keys = [row.file_path for row in rows if row.file_path]

    async def work(session: AsyncSession) -> int:
        for resource_id in ids:
            await _purge_resource_dependents(session, resource_id)
        await session.execute(
            delete(models.Resource).where(models.Resource.id.in_(ids)).execution_options(synchronize_session=False)
        )
        for title in titles:
            crud.log_user_activity(session, principal.user_id, "Delete", title)
        return len(ids)

    try:
        deleted = await run_in_transaction(db, work)
    except TransactionError as e:
        logger.error(f"Batch delete of resources {ids} failed and was rolled back: {e.message}")
        return DeleteResult(
            success=False,
            deleted_count=0,
            message=f"An error occurred while deleting resources: {e.message}",
        )

    for key in keys:
        await _discard_blob(storage, key)

    logger.info(f"User {principal.user_id} deleted resources {ids}")
    return DeleteResult(success=True, deleted_count=deleted, message=f"{deleted} resource(s) deleted successfully.")


async def download(
    db: AsyncSession, storage: CloudinaryStorage, principal: Principal, resource_id: int, inline: bool = False
) -> DownloadedFile:
    """
    Fetch a resource's file. Unless ``inline``, counts the download and logs it
    before the bytes are fetched.
    """
    resource = await get_visible_resource(db, principal, resource_id)
    if not resource.file_path:
        raise NotFoundError("File not found.")

    if not inline:
        await db.execute(
            update(models.Resource)
            .where(models.Resource.id == resource.id)
            .values(download_count=models.Resource.download_count + 1)
        )
        crud.log_user_activity(db, principal.user_id, "Download", resource.title, resource.id)
    await db.commit()

    content = await storage.fetch(resource.file_path)
    extension = (resource.file_format or "").lower()
    filename = f"{resource.title}.{extension}" if extension else resource.title
    return DownloadedFile(content=content, content_type=content_type_for(resource.file_format), filename=filename)


async def view_url(db: AsyncSession, storage: CloudinaryStorage, principal: Principal, resource_id: int) -> str:
    """Signed delivery URL for redirecting a viewer to the stored file."""
    resource = await get_visible_resource(db, principal, resource_id)
    if not resource.file_path:
        raise NotFoundError("File not found.")
    return storage.build_url(resource.file_path, "upload", signed=True)
