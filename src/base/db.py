import os

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

DATABASE_URI = os.environ["AUTOINSPECT_DATABASE_URI"]
SQL_ECHO = os.environ.get("AUTOINSPECT_SQL_ECHO") == "1"


def make_engine(uri: str = DATABASE_URI) -> AsyncEngine:
    # SQLite (tests only) has no connection pool worth pinging.
    if uri.startswith("sqlite"):
        return create_async_engine(uri, echo=SQL_ECHO)
    return create_async_engine(uri, echo=SQL_ECHO, pool_pre_ping=True)


engine = make_engine()
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
