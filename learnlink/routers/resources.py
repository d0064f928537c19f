"""
resources.py

API endpoints for resources in the LearnLink backend: browsing, submission and
editing, moderation, batch delete, engagement (like, rate, save, progress) and
file delivery. Business rules live in lifecycle.py and engagement.py.
"""
from typing import Any, List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import RedirectResponse, Response
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncSession

from learnlink import crud, engagement, lifecycle, models, schemas
from learnlink.auth import Principal, get_principal, require_role
from learnlink.cloudinary_utils import CloudinaryStorage, get_storage
from learnlink.database import get_db
from learnlink.schemas import LikeTarget, REVIEWER_ROLES, Role, TargetKind

router = APIRouter(prefix="/api/resources", tags=["resources"])


def to_response(resource: models.Resource) -> schemas.ResourceResponse:
    response = schemas.ResourceResponse.model_validate(resource)
    if "user" not in inspect(resource).unloaded and resource.user is not None:
        response.uploader = resource.user.full_name
    return response


async def _read_upload(file: Optional[UploadFile]) -> Optional[lifecycle.UploadedFile]:
    if file is None or not file.filename:
        return None
    return lifecycle.UploadedFile(filename=file.filename, content=await file.read())


@router.get("", response_model=List[schemas.ResourceResponse])
async def list_resources(
    q: Optional[str] = None,
    subject: Optional[str] = None,
    grade_level: Optional[str] = None,
    resource_type: Optional[str] = None,
    quarter: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
) -> Any:
    """Browse published resources."""
    resources = await crud.list_resources(
        db, q=q, subject=subject, grade_level=grade_level,
        resource_type=resource_type, quarter=quarter, skip=skip, limit=limit,
    )
    return [to_response(r) for r in resources]


@router.post("", response_model=schemas.ResourceResponse, status_code=201)
async def submit_resource(
    title: str = Form(""),
    description: str = Form(""),
    subject: str = Form(""),
    grade_level: str = Form(""),
    resource_type: str = Form(""),
    quarter: str = Form(""),
    is_draft: bool = Form(False),
    file: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db),
    storage: CloudinaryStorage = Depends(get_storage),
    principal: Principal = Depends(get_principal),
) -> Any:
    fields = lifecycle.ResourceFields(
        title=title, description=description, subject=subject,
        grade_level=grade_level, resource_type=resource_type, quarter=quarter,
    )
    resource = await lifecycle.submit(db, storage, principal, fields, await _read_upload(file), is_draft)
    return to_response(await crud.get_resource(db, resource.id, with_owner=True))


@router.get("/uploads", response_model=schemas.UploadsResponse)
async def my_uploads(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_role(Role.SUPER_ADMIN, Role.MANAGER, Role.CONTRIBUTOR)),
) -> Any:
    """The caller's uploads; a SuperAdmin sees everyone's."""
    resources = await crud.list_uploads(db, principal.user_id, include_all=principal.is_super_admin)
    return schemas.UploadsResponse(
        uploads=[to_response(r) for r in resources],
        total=len(resources),
        counts=crud.count_by_status(resources),
    )


@router.get("/pending", response_model=List[schemas.ResourceResponse])
async def pending_resources(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_role(*REVIEWER_ROLES)),
) -> Any:
    return [to_response(r) for r in await crud.list_pending(db)]


@router.get("/history", response_model=List[schemas.ReadingHistoryItem])
async def reading_history(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
) -> Any:
    rows = await engagement.list_history(db, principal)
    return [
        schemas.ReadingHistoryItem(
            resource_id=row.resource_id,
            title=row.resource.title if row.resource else "",
            subject=row.resource.subject if row.resource else "",
            file_format=row.resource.file_format if row.resource else "",
            progress_status=row.progress_status,
            progress_percent=row.progress_percent,
            is_bookmarked=row.is_bookmarked,
            last_accessed=row.last_accessed,
            completed_date=row.completed_date,
        )
        for row in rows
    ]


@router.post("/delete", response_model=schemas.DeleteResponse)
async def delete_resources(
    body: schemas.DeleteRequest,
    db: AsyncSession = Depends(get_db),
    storage: CloudinaryStorage = Depends(get_storage),
    principal: Principal = Depends(get_principal),
) -> Any:
    result = await lifecycle.delete_resources(db, storage, principal, body.ids)
    return schemas.DeleteResponse(success=result.success, message=result.message, deleted_count=result.deleted_count)


@router.get("/{resource_id}", response_model=schemas.ResourceDetailResponse)
async def resource_detail(
    resource_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
) -> Any:
    """Resource detail; opening it counts as a view."""
    await lifecycle.get_visible_resource(db, principal, resource_id)
    await engagement.record_view(db, principal, resource_id)
    resource = await crud.get_resource(db, resource_id, with_owner=True)

    target = LikeTarget(kind=TargetKind.RESOURCE, id=resource_id)
    related = await crud.related_resources(db, resource)
    detail = schemas.ResourceDetailResponse(
        **to_response(resource).model_dump(),
        like_count=await engagement.like_count(db, target),
        is_liked=await engagement.is_liked(db, principal.user_id, target),
        is_saved=await engagement.is_saved(db, principal.user_id, resource_id),
        file_url=f"/api/resources/{resource_id}/view" if resource.file_path else None,
        related=[to_response(r) for r in related],
    )
    return detail


@router.put("/{resource_id}", response_model=schemas.ResourceResponse)
async def edit_resource(
    resource_id: int,
    title: str = Form(""),
    description: str = Form(""),
    subject: str = Form(""),
    grade_level: str = Form(""),
    resource_type: str = Form(""),
    quarter: str = Form(""),
    is_draft: bool = Form(False),
    file: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db),
    storage: CloudinaryStorage = Depends(get_storage),
    principal: Principal = Depends(get_principal),
) -> Any:
    fields = lifecycle.ResourceFields(
        title=title, description=description, subject=subject,
        grade_level=grade_level, resource_type=resource_type, quarter=quarter,
    )
    await lifecycle.update_resource(db, storage, principal, resource_id, fields, await _read_upload(file), is_draft)
    return to_response(await crud.get_resource(db, resource_id, with_owner=True))


@router.post("/{resource_id}/approve")
async def approve_resource(
    resource_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    await lifecycle.approve(db, principal, resource_id)
    return {"success": True, "message": "Resource approved successfully."}


@router.post("/{resource_id}/reject")
async def reject_resource(
    resource_id: int,
    body: schemas.RejectRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    await lifecycle.reject(db, principal, resource_id, body.reason)
    return {"success": True, "message": "Resource rejected."}


@router.post("/{resource_id}/like", response_model=schemas.LikeResponse)
async def like_resource(
    resource_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
) -> Any:
    result = await engagement.toggle_like(db, principal, LikeTarget(kind=TargetKind.RESOURCE, id=resource_id))
    return schemas.LikeResponse(liked=result.liked, count=result.count)


@router.post("/{resource_id}/rate", response_model=schemas.RateResponse)
async def rate_resource(
    resource_id: int,
    body: schemas.RateRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
) -> Any:
    result = await engagement.rate_resource(db, principal, resource_id, body.rating)
    return schemas.RateResponse(rating=result.rating, count=result.count)


@router.post("/{resource_id}/save", response_model=schemas.SaveResponse)
async def save_resource(
    resource_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
) -> Any:
    saved = await engagement.toggle_bookmark(db, principal, resource_id)
    return schemas.SaveResponse(is_saved=saved)


@router.post("/{resource_id}/progress", response_model=schemas.ReadingHistoryItem)
async def update_progress(
    resource_id: int,
    body: schemas.ProgressRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
) -> Any:
    row = await engagement.update_progress(db, principal, resource_id, body.percent)
    resource = await crud.get_resource(db, resource_id)
    return schemas.ReadingHistoryItem(
        resource_id=resource_id,
        title=resource.title,
        subject=resource.subject,
        file_format=resource.file_format,
        progress_status=row.progress_status,
        progress_percent=row.progress_percent,
        is_bookmarked=row.is_bookmarked,
        last_accessed=row.last_accessed,
        completed_date=row.completed_date,
    )


@router.get("/{resource_id}/download")
async def download_resource(
    resource_id: int,
    inline: bool = False,
    db: AsyncSession = Depends(get_db),
    storage: CloudinaryStorage = Depends(get_storage),
    principal: Principal = Depends(get_principal),
):
    downloaded = await lifecycle.download(db, storage, principal, resource_id, inline=inline)
    disposition = "inline" if inline else "attachment"
    return Response(
        content=downloaded.content,
        media_type=downloaded.content_type,
        headers={"Content-Disposition": f"{disposition}; filename*=UTF-8''{quote(downloaded.filename)}"},
    )


@router.get("/{resource_id}/view")
async def view_resource(
    resource_id: int,
    db: AsyncSession = Depends(get_db),
    storage: CloudinaryStorage = Depends(get_storage),
    principal: Principal = Depends(get_principal),
):
    url = await lifecycle.view_url(db, storage, principal, resource_id)
    return RedirectResponse(url, status_code=307)
