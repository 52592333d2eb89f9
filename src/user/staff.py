from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import hash_password
from src.user.models import (
    AppRole,
    Business,
    Inspector,
    InspectorStatus,
    User,
    UserRole,
)

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
TEMP_PASSWORD_LENGTH = 12


class StaffError(Exception):
    """Base class for refused staff management operations."""


class StaffValidationError(StaffError):
    pass


class StaffNotFound(StaffError):
    pass


@dataclass(frozen=True)
class CreatedAccount:
    user_id: UUID
    inspector_id: UUID
    name: str
    email: str
    # Only set when the password was generated here.
    temporary_password: str | None


def generate_temp_password() -> str:
    return secrets.token_hex(TEMP_PASSWORD_LENGTH // 2)


def _check_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise StaffValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )


async def _create_account(
    session: AsyncSession,
    *,
    name: str,
    email: str,
    business_id: UUID,
    role: AppRole,
    created_by: UUID | None,
    password: str | None,
) -> CreatedAccount:
    name, email = name.strip(), email.strip().lower()
    if not name or not email:
        raise StaffValidationError("Missing required fields: name or email")

    existing = await session.execute(select(User.id).where(User.email == email))
    if existing.scalar_one_or_none() is not None:
        raise StaffValidationError(f"A user with email {email} already exists")

    temporary = None
    if password is None:
        temporary = password = generate_temp_password()
    _check_password(password)

    user = User(name=name, email=email, password_hash=hash_password(password))
    session.add(user)
    await session.flush()

    inspector = Inspector(
        user_id=user.id,
        business_id=business_id,
        name=name,
        email=email,
        created_by=created_by,
        status=InspectorStatus.ACTIVE,
    )
    session.add_all([inspector, UserRole(user_id=user.id, role=role)])
    await session.flush()

    logger.info("Created %s account %s for business %s", role.value, user.id, business_id)
    return CreatedAccount(
        user_id=user.id,
        inspector_id=inspector.id,
        name=name,
        email=email,
        temporary_password=temporary,
    )


async def create_staff(
    session: AsyncSession,
    *,
    name: str,
    email: str,
    business_id: UUID,
    created_by: UUID,
    password: str | None = None,
) -> CreatedAccount:
    """Create login, staff profile and `staff` role together. The caller commits."""
    business = await session.get(Business, business_id)
    if business is None:
        raise StaffNotFound("Business not found")
    return await _create_account(
        session,
        name=name,
        email=email,
        business_id=business_id,
        role=AppRole.STAFF,
        created_by=created_by,
        password=password,
    )


async def create_business_admin(
    session: AsyncSession,
    *,
    business_name: str,
    name: str,
    email: str,
    password: str,
) -> CreatedAccount:
    """Bootstrap a business together with its first admin."""
    if not business_name.strip():
        raise StaffValidationError("Business name must not be empty")
    business = Business(name=business_name.strip())
    session.add(business)
    await session.flush()
    return await _create_account(
        session,
        name=name,
        email=email,
        business_id=business.id,
        role=AppRole.ADMIN,
        created_by=None,
        password=password,
    )


async def reset_staff_password(
    session: AsyncSession, email: str, new_password: str, business_id: UUID
) -> None:
    """Set a new password for an account belonging to `business_id`."""
    _check_password(new_password)
    stmt = (
        select(User)
        .join(Inspector, Inspector.user_id == User.id)
        .where(
            User.email == email.strip().lower(),
            Inspector.business_id == business_id,
        )
    )
    user = (await session.execute(stmt)).scalar_one_or_none()
    if user is None:
        raise StaffNotFound(f"No user with email {email}")
    user.password_hash = hash_password(new_password)
    await session.flush()
    logger.info("Password reset for user %s", user.id)


async def list_staff(session: AsyncSession, business_id: UUID) -> list[Inspector]:
    stmt = (
        select(Inspector)
        .where(Inspector.business_id == business_id)
        .order_by(Inspector.name)
    )
    return list((await session.execute(stmt)).scalars().all())


async def deactivate_staff(
    session: AsyncSession, inspector_id: UUID, business_id: UUID
) -> Inspector:
    inspector = await session.get(Inspector, inspector_id)
    if inspector is None or inspector.business_id != business_id:
        raise StaffNotFound("Staff member not found")
    inspector.status = InspectorStatus.INACTIVE
    await session.flush()
    return inspector
