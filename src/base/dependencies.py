import logging
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from src.base.db import async_session

logger = logging.getLogger(__name__)


async def get_session() -> AsyncGenerator[AsyncSession]:
    """Request-scoped session: one transaction per request.

    Service functions only flush; everything a request wrote is committed
    here, or rolled back together when the request fails.
    """
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception as exc:
            logger.info("Rolling back request transaction: %r", exc)
            await session.rollback()
            raise
