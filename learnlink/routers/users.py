"""
users.py

API endpoints for registration, sign-in and user administration in the LearnLink backend.
Each account holds exactly one role; only a SuperAdmin can change roles or suspend accounts.
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from learnlink import auth, crud, models, schemas
from learnlink.auth import Principal, get_current_user, require_role
from learnlink.database import get_db
from learnlink.schemas import Role, UserStatus
from learnlink.utils import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


def make_initials(first_name: str, last_name: str) -> str:
    return f"{first_name[:1]}{last_name[:1]}".upper()


@router.post("/register", response_model=schemas.UserResponse, status_code=201)
async def register_user(user: schemas.RegisterRequest, db: AsyncSession = Depends(get_db)) -> Any:
    first_name = user.first_name.strip()
    last_name = user.last_name.strip()
    if not first_name or not last_name or not user.password:
        raise HTTPException(status_code=400, detail="All fields are required.")
    if user.password != user.confirm_password:
        raise HTTPException(status_code=400, detail="Passwords do not match.")
    if await crud.get_user_by_email(db, user.email):
        raise HTTPException(status_code=400, detail="This email is already registered.")

    db_user = await crud.create_user(db, {
        "first_name": first_name,
        "last_name": last_name,
        "email": user.email.lower(),
        "password_hash": auth.hash_password(user.password),
        "role": Role.STUDENT.value,
        "status": UserStatus.ACTIVE.value,
        "initials": make_initials(first_name, last_name),
        "created_at": utcnow(),
    })
    crud.log_user_activity(db, db_user.id, "Register", db_user.full_name)
    await db.commit()
    await db.refresh(db_user)
    logger.info(f"User {db_user.id} registered")
    return schemas.UserResponse.model_validate(db_user)


@router.post("/login", response_model=schemas.TokenResponse)
async def login_user(login_data: schemas.LoginRequest, db: AsyncSession = Depends(get_db)) -> Any:
    user = await crud.get_user_by_email(db, login_data.email)
    if not user or not auth.verify_password(login_data.password, user.password_hash):
        raise HTTPException(status_code=400, detail="Invalid email or password.")
    if user.status == UserStatus.SUSPENDED.value:
        raise HTTPException(status_code=403, detail="Your account has been suspended.")

    user.status = UserStatus.ACTIVE.value
    crud.log_user_activity(db, user.id, "Login", user.full_name)
    await db.commit()

    token = auth.create_access_token({"sub": str(user.id), "role": user.role})
    return {"token": token, "user": schemas.UserResponse.model_validate(user)}


@router.post("/logout")
async def logout_user(
    current_user: models.User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    current_user.status = UserStatus.INACTIVE.value
    await db.commit()
    return {"success": True}


@router.get("/me", response_model=schemas.UserResponse)
async def read_me(current_user: models.User = Depends(get_current_user)) -> Any:
    return schemas.UserResponse.model_validate(current_user)


async def _get_user_or_404(db: AsyncSession, user_id: int) -> models.User:
    user = await crud.get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found.")
    return user


@router.put("/{user_id}/role", response_model=schemas.UserResponse)
async def change_role(
    user_id: int,
    body: schemas.RoleChangeRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_role(Role.SUPER_ADMIN)),
) -> Any:
    user = await _get_user_or_404(db, user_id)
    user.role = body.role.value
    await db.commit()
    logger.info(f"User {user_id} role changed to {body.role.value} by {principal.user_id}")
    return schemas.UserResponse.model_validate(user)


@router.post("/{user_id}/suspend", response_model=schemas.UserResponse)
async def suspend_user(
    user_id: int,
    body: schemas.SuspendRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_role(Role.SUPER_ADMIN)),
) -> Any:
    if user_id == principal.user_id:
        raise HTTPException(status_code=400, detail="You cannot suspend your own account.")
    user = await _get_user_or_404(db, user_id)
    user.status = UserStatus.SUSPENDED.value
    user.suspension_reason = (body.reason or "").strip() or None
    user.suspension_date = utcnow()
    await db.commit()
    logger.info(f"User {user_id} suspended by {principal.user_id}")
    return schemas.UserResponse.model_validate(user)


@router.post("/{user_id}/reactivate", response_model=schemas.UserResponse)
async def reactivate_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_role(Role.SUPER_ADMIN)),
) -> Any:
    user = await _get_user_or_404(db, user_id)
    user.status = UserStatus.ACTIVE.value
    user.suspension_reason = None
    user.suspension_date = None
    await db.commit()
    logger.info(f"User {user_id} reactivated by {principal.user_id}")
    return schemas.UserResponse.model_validate(user)
