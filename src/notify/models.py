from __future__ import annotations

import enum
from uuid import UUID

from sqlalchemy import Enum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from src.base.models import BaseDbModel


class Platform(enum.Enum):
    WEB = "web"
    ANDROID = "android"
    IOS = "ios"


class FcmToken(BaseDbModel):
    """Browser (web push) registration."""

    __tablename__ = "fcm_tokens"

    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    token: Mapped[str] = mapped_column(String, nullable=False, unique=True)


class UserPushToken(BaseDbModel):
    """Native app registration."""

    __tablename__ = "user_push_tokens"

    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    token: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    platform: Mapped[Platform] = mapped_column(Enum(Platform), nullable=False)
