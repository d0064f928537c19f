"""
community.py

API endpoints for lessons learned, discussions, replies and likes on any target kind.
"""
from typing import Any, List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from learnlink import community, engagement, schemas
from learnlink.auth import Principal, get_principal
from learnlink.database import get_db
from learnlink.schemas import LikeTarget, TargetKind

router = APIRouter(prefix="/api", tags=["community"])


@router.post("/likes/{kind}/{target_id}", response_model=schemas.LikeResponse)
async def toggle_like(
    kind: TargetKind,
    target_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
) -> Any:
    """Like or unlike a resource, lesson, discussion or reply."""
    result = await engagement.toggle_like(db, principal, LikeTarget(kind=kind, id=target_id))
    return schemas.LikeResponse(liked=result.liked, count=result.count)


# Lessons learned

@router.get("/lessons", response_model=List[schemas.LessonResponse])
async def list_lessons(
    resource_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
) -> Any:
    return await community.list_lessons(db, principal, resource_id=resource_id)


@router.post("/lessons", response_model=schemas.LessonResponse, status_code=201)
async def submit_lesson(
    body: schemas.LessonCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
) -> Any:
    lesson = await community.submit_lesson(db, principal, body)
    return (await community.lesson_responses(db, principal, [lesson]))[0]


@router.put("/lessons/{lesson_id}", response_model=schemas.LessonResponse)
async def edit_lesson(
    lesson_id: int,
    body: schemas.LessonUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
) -> Any:
    lesson = await community.edit_lesson(db, principal, lesson_id, body)
    return (await community.lesson_responses(db, principal, [lesson]))[0]


@router.delete("/lessons/{lesson_id}")
async def delete_lesson(
    lesson_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    await community.delete_lesson(db, principal, lesson_id)
    return {"success": True}


# Discussions

@router.get("/discussions", response_model=List[schemas.DiscussionResponse])
async def list_discussions(
    q: Optional[str] = None,
    type: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
) -> Any:
    return await community.list_discussions(db, principal, q=q, type=type)


@router.post("/discussions", response_model=schemas.DiscussionResponse, status_code=201)
async def post_discussion(
    body: schemas.DiscussionCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
) -> Any:
    discussion = await community.post_discussion(db, principal, body)
    return (await community.discussion_responses(db, principal, [discussion]))[0]


@router.get("/discussions/{discussion_id}", response_model=schemas.DiscussionThread)
async def get_discussion(
    discussion_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
) -> Any:
    return await community.get_discussion(db, principal, discussion_id)


@router.put("/discussions/{discussion_id}", response_model=schemas.DiscussionResponse)
async def edit_discussion(
    discussion_id: int,
    body: schemas.DiscussionUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
) -> Any:
    discussion = await community.edit_discussion(db, principal, discussion_id, body)
    return (await community.discussion_responses(db, principal, [discussion]))[0]


@router.delete("/discussions/{discussion_id}")
async def delete_discussion(
    discussion_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    await community.delete_discussion(db, principal, discussion_id)
    return {"success": True}


@router.post("/discussions/{discussion_id}/replies", status_code=201)
async def post_reply(
    discussion_id: int,
    body: schemas.ReplyCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    post = await community.post_reply(db, principal, discussion_id, body.content)
    return {"success": True, "id": post.id}


@router.delete("/replies/{reply_id}")
async def delete_reply(
    reply_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    await community.delete_reply(db, principal, reply_id)
    return {"success": True}


@router.put("/discussions/{discussion_id}/best-answer")
async def set_best_answer(
    discussion_id: int,
    body: schemas.BestAnswerRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    discussion = await community.set_best_answer(db, principal, discussion_id, body.post_id)
    return {"success": True, "best_answer_post_id": discussion.best_answer_post_id}
