from dataclasses import dataclass
from uuid import UUID

import jwt
from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from georise.core.exceptions import ForbiddenError, UnauthorizedError
from georise.core.security import decode_token, is_service_role_token
from georise.db.postgres import get_db
from georise.models.user import User


@dataclass
class Caller:
    """Authenticated identity of a request: a user, or the trusted service role."""

    user: User | None = None
    is_service_role: bool = False

    @property
    def user_id(self) -> UUID | None:
        return self.user.id if self.user else None

    @property
    def is_admin(self) -> bool:
        return self.is_service_role or (self.user is not None and self.user.role == "admin")


def _bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise UnauthorizedError("No authorization header")
    if not authorization.startswith("Bearer "):
        raise UnauthorizedError("Invalid authorization header")
    return authorization[7:]


async def _user_from_token(token: str, db: AsyncSession) -> User:
    try:
        payload = decode_token(token)
    except jwt.PyJWTError:
        raise UnauthorizedError("Invalid or expired token")

    if payload.get("type") != "access":
        raise UnauthorizedError("Invalid token type")

    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError("Invalid token payload")

    result = await db.execute(select(User).where(User.id == UUID(user_id), User.is_active == True))  # noqa: E712
    user = result.scalar_one_or_none()
    if not user:
        raise UnauthorizedError("User not found or inactive")

    return user


async def get_current_user(
    db: AsyncSession = Depends(get_db),
    authorization: str | None = Header(None, description="Bearer <token>"),
) -> User:
    return await _user_from_token(_bearer_token(authorization), db)


async def get_caller(
    db: AsyncSession = Depends(get_db),
    authorization: str | None = Header(None, description="Bearer <token or service role key>"),
) -> Caller:
    """Like get_current_user, but also accepts the service role key."""
    token = _bearer_token(authorization)
    if is_service_role_token(token):
        return Caller(is_service_role=True)
    return Caller(user=await _user_from_token(token, db))


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != "admin":
        raise ForbiddenError("Admin privileges required")
    return user


async def require_admin_caller(caller: Caller = Depends(get_caller)) -> Caller:
    if not caller.is_admin:
        raise ForbiddenError("Admin privileges required")
    return caller
