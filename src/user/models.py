from __future__ import annotations

import enum
from uuid import UUID

from sqlalchemy import Enum, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.base.models import BaseDbModel


class AppRole(enum.Enum):
    ADMIN = "admin"
    STAFF = "staff"


class InspectorStatus(enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Business(BaseDbModel):
    __tablename__ = "businesses"

    name: Mapped[str] = mapped_column(String, nullable=False)

    inspectors: Mapped[list[Inspector]] = relationship(back_populates="business")


class User(BaseDbModel):
    """Authentication account. Staff profiles hang off it via `Inspector`."""

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String, nullable=False)

    roles: Mapped[list[UserRole]] = relationship(back_populates="user")
    inspector: Mapped[Inspector | None] = relationship(back_populates="user")


class UserRole(BaseDbModel):
    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_user_role"),)

    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    role: Mapped[AppRole] = mapped_column(Enum(AppRole), nullable=False)

    user: Mapped[User] = relationship(back_populates="roles")


class Inspector(BaseDbModel):
    __tablename__ = "inspectors"

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id"), nullable=False, unique=True
    )
    business_id: Mapped[UUID] = mapped_column(
        ForeignKey("businesses.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str] = mapped_column(String, nullable=False)
    created_by: Mapped[UUID | None] = mapped_column(nullable=True)
    status: Mapped[InspectorStatus] = mapped_column(
        Enum(InspectorStatus), nullable=False, default=InspectorStatus.ACTIVE
    )

    user: Mapped[User] = relationship(back_populates="inspector")
    business: Mapped[Business] = relationship(back_populates="inspectors")
