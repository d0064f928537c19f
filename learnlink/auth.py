from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from learnlink import models
from learnlink.database import get_db
from learnlink.exceptions import AuthorizationError
from learnlink.schemas import Role, UserStatus
from learnlink.settings import settings
from learnlink.utils import utcnow

"""
Authentication logic using centralized settings for secrets and config.
The authenticated caller is handed to the core as an explicit Principal.
"""

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = utcnow() + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def verify_access_token(token: str):
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


@dataclass(frozen=True)
class Principal:
    """The authenticated caller of a core operation."""

    user_id: int
    role: Role
    name: str = ""

    @classmethod
    def from_user(cls, user: models.User) -> "Principal":
        return cls(user_id=user.id, role=Role(user.role), name=user.full_name)

    def has_role(self, *roles: Role) -> bool:
        return self.role in roles

    @property
    def is_super_admin(self) -> bool:
        return self.role == Role.SUPER_ADMIN


def ensure_role(principal: Principal, *roles: Role) -> None:
    if not principal.has_role(*roles):
        raise AuthorizationError("You do not have permission to perform this action.")


bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db)
) -> models.User:
    """
    Async: Extract and validate the current user from the Bearer JWT token.
    """
    token = credentials.credentials if credentials else None
    if not token:
        raise HTTPException(status_code=401, detail="Missing token")

    payload = verify_access_token(token)
    if not payload or "sub" not in payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token.")

    user_id = int(payload["sub"])
    result = await db.execute(select(models.User).filter(models.User.id == user_id))
    user = result.scalars().first()

    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    if user.status == UserStatus.SUSPENDED.value:
        raise HTTPException(status_code=403, detail="Your account has been suspended.")

    return user


async def get_principal(user: models.User = Depends(get_current_user)) -> Principal:
    return Principal.from_user(user)


def require_role(*allowed_roles: Role):
    """
    Dependency factory to enforce role-based access control on endpoints.
    Usage: Depends(require_role(Role.MANAGER, Role.SUPER_ADMIN))
    """
    async def role_checker(principal: Principal = Depends(get_principal)) -> Principal:
        if not principal.has_role(*allowed_roles):
            raise HTTPException(status_code=403, detail="You do not have permission to perform this action.")
        return principal
    return role_checker
