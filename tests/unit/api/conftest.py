from collections.abc import AsyncGenerator
from pathlib import Path
from unittest.mock import AsyncMock

import httpx
import pytest
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncSession

from src.base.context import AppContext, get_context
from src.base.dependencies import get_session
from src.functions.router import router as functions_router
from src.inspection.router import router as inspection_router
from src.negotiation.router import router as negotiation_router
from src.notify.email import EmailSender
from src.notify.push import PushSender
from src.notify.router import router as push_token_router
from src.realtime.feed import ChangeFeed
from src.realtime.router import router as realtime_router
from src.storage.local import LocalMediaStorage
from src.user.router import router as staff_router


@pytest.fixture
def context(tmp_path: Path) -> AppContext:
    return AppContext(
        feed=ChangeFeed(),
        storage=LocalMediaStorage(tmp_path / "storage"),
        push=AsyncMock(spec=PushSender),
        email=AsyncMock(spec=EmailSender),
    )


@pytest.fixture
def app(db_session: AsyncSession, context: AppContext) -> FastAPI:
    test_app = FastAPI()
    for router in (
        inspection_router,
        negotiation_router,
        staff_router,
        functions_router,
        push_token_router,
        realtime_router,
    ):
        test_app.include_router(router)

    async def override_session() -> AsyncSession:  # type: ignore[misc]
        yield db_session  # type: ignore[misc]

    test_app.dependency_overrides[get_session] = override_session
    test_app.dependency_overrides[get_context] = lambda: context
    return test_app


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)  # type: ignore[arg-type]
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
