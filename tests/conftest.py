import os

# src.base.db builds its engine at import time.
os.environ.setdefault("AUTOINSPECT_DATABASE_URI", "sqlite+aiosqlite://")

from collections.abc import AsyncGenerator, Generator
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from src.auth import Principal, get_current_user
from src.base.db import make_engine
from src.base.models import BaseDbModel
from src.inspection.models import InspectionJob
from src.inspection.service import create_job
from src.user.staff import create_business_admin, create_staff

ADMIN_HEADER = {"X-User": "Alice:alice@example.com"}
STAFF_HEADER = {"X-User": "Bob:bob@example.com"}


def import_models() -> None:
    # Import all models so metadata knows about them
    import src.inspection.models  # noqa: F401
    import src.negotiation.models  # noqa: F401
    import src.notify.models  # noqa: F401
    import src.user.models  # noqa: F401


@pytest.fixture(scope="session")
def postgres_url() -> Generator[str]:
    from testcontainers.postgres import PostgresContainer

    with PostgresContainer("postgres:17") as pg:
        # Convert sync URL to async (postgresql:// -> postgresql+asyncpg://)
        sync_url = pg.get_connection_url()
        yield sync_url.replace("postgresql+psycopg2://", "postgresql+asyncpg://")


@pytest.fixture
async def db_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine]:
    import_models()

    # File-backed so separate sessions see each other's commits.
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(BaseDbModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def admin(db_session: AsyncSession) -> Principal:
    await create_business_admin(
        db_session,
        business_name="Acme Motors",
        name="Alice",
        email="alice@example.com",
        password="secret123",
    )
    return await get_current_user(x_user=ADMIN_HEADER["X-User"], session=db_session)


@pytest.fixture
async def staff_member(db_session: AsyncSession, admin: Principal) -> Principal:
    await create_staff(
        db_session,
        name="Bob",
        email="bob@example.com",
        business_id=admin.business_id,
        created_by=admin.user_id,
        password="secret123",
    )
    return await get_current_user(x_user=STAFF_HEADER["X-User"], session=db_session)


@pytest.fixture
async def job(
    db_session: AsyncSession, admin: Principal, staff_member: Principal
) -> InspectionJob:
    return await create_job(
        db_session,
        admin,
        {
            "reg": "ab12 cde",
            "make": "Ford",
            "model": "Focus",
            "assigned_to": staff_member.inspector_id,
        },
    )


@pytest.fixture
def admin_header() -> dict[str, str]:
    return dict(ADMIN_HEADER)


@pytest.fixture
def staff_header() -> dict[str, str]:
    return dict(STAFF_HEADER)
