import hashlib
import secrets
from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, Header, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.base.dependencies import get_session
from src.user.models import AppRole, Inspector, InspectorStatus, User, UserRole


@dataclass(frozen=True)
class Principal:
    """The authenticated caller together with their staff profile."""

    user_id: UUID
    name: str
    email: str
    role: AppRole
    inspector_id: UUID
    business_id: UUID

    @property
    def is_admin(self) -> bool:
        return self.role is AppRole.ADMIN


def hash_password(password: str) -> str:
    salt = secrets.token_hex(16)
    digest = hashlib.sha256(f"{salt}:{password}".encode("utf-8")).hexdigest()
    return f"{salt}${digest}"


def verify_password(password: str, stored: str) -> bool:
    salt, _, digest = stored.partition("$")
    check = hashlib.sha256(f"{salt}:{password}".encode("utf-8")).hexdigest()
    return secrets.compare_digest(check, digest)


async def get_current_user(
    x_user: str = Header(),
    session: AsyncSession = Depends(get_session),
) -> Principal:
    if ":" not in x_user:
        raise HTTPException(status_code=400, detail="X-User must be 'name:email'")

    name, email = x_user.split(":", maxsplit=1)
    if not name or not email:
        raise HTTPException(
            status_code=400, detail="X-User name and email must not be empty"
        )

    stmt = select(User).where(User.email == email)
    user = (await session.execute(stmt)).scalar_one_or_none()
    if user is None:
        raise HTTPException(status_code=401, detail="Unknown user")

    stmt = select(Inspector).where(Inspector.user_id == user.id)
    inspector = (await session.execute(stmt)).scalar_one_or_none()
    if inspector is None:
        raise HTTPException(status_code=403, detail="User has no staff profile")
    if inspector.status is InspectorStatus.INACTIVE:
        raise HTTPException(status_code=403, detail="Staff account is inactive")

    roles_stmt = select(UserRole.role).where(UserRole.user_id == user.id)
    roles = set((await session.execute(roles_stmt)).scalars().all())

    return Principal(
        user_id=user.id,
        name=user.name,
        email=user.email,
        role=AppRole.ADMIN if AppRole.ADMIN in roles else AppRole.STAFF,
        inspector_id=inspector.id,
        business_id=inspector.business_id,
    )


async def require_admin(
    principal: Principal = Depends(get_current_user),
) -> Principal:
    if not principal.is_admin:
        raise HTTPException(status_code=403, detail="Admin role required")
    return principal
