from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from learnlink import crud, schemas
from learnlink.auth import Principal, require_role
from learnlink.database import get_db
from learnlink.routers.resources import to_response
from learnlink.schemas import REVIEWER_ROLES

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("", response_model=schemas.DashboardResponse)
async def dashboard(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_role(*REVIEWER_ROLES)),
) -> Any:
    """
    Async: Site-wide stats, the five newest published resources and the moderation queue.
    """
    stats = await crud.dashboard_stats(db)
    recent = await crud.list_resources(db, limit=5)
    pending = await crud.list_pending(db)
    return schemas.DashboardResponse(
        stats=schemas.DashboardStats(**stats),
        recent_resources=[to_response(r) for r in recent],
        pending_approvals=[to_response(r) for r in pending],
    )
