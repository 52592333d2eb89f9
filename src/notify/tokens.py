from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.notify.models import FcmToken, Platform, UserPushToken


async def register_token(
    session: AsyncSession, user_id: UUID, token: str, platform: Platform
) -> None:
    """Attach a device token to a user. Re-registering moves the token."""
    model: type[FcmToken] | type[UserPushToken]
    model = FcmToken if platform is Platform.WEB else UserPushToken

    stmt = select(model).where(model.token == token)
    existing = (await session.execute(stmt)).scalar_one_or_none()
    if existing is not None:
        existing.user_id = user_id
        if isinstance(existing, UserPushToken):
            existing.platform = platform
    elif model is FcmToken:
        session.add(FcmToken(user_id=user_id, token=token))
    else:
        session.add(UserPushToken(user_id=user_id, token=token, platform=platform))
    await session.flush()


async def tokens_for_user(session: AsyncSession, user_id: UUID) -> list[str]:
    web = select(FcmToken.token).where(FcmToken.user_id == user_id)
    native = select(UserPushToken.token).where(UserPushToken.user_id == user_id)
    tokens = list((await session.execute(web)).scalars().all())
    tokens += (await session.execute(native)).scalars().all()
    return tokens
