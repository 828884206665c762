from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from airtime.config import settings

# Seconds a SQLite writer waits for another writer before giving up
SQLITE_BUSY_TIMEOUT = 15


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def create_engine_for(url: str, **kwargs) -> AsyncEngine:
    """Async engine for a database URL; SQLite writers queue instead of failing fast."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"timeout": SQLITE_BUSY_TIMEOUT})
    return create_async_engine(url, echo=False, **kwargs)


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    # Generated entries are returned to callers after commit
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = create_engine_for(settings.database_url)
async_session = create_session_factory(engine)


async def get_session() -> AsyncSession:
    """Dependency for getting database sessions."""
    async with async_session() as session:
        yield session


async def init_db(bind: AsyncEngine = engine):
    """Create the SQLite data directory if needed, then all tables."""
    from airtime import models  # noqa: F401

    if bind.url.get_backend_name() == "sqlite" and bind.url.database:
        Path(bind.url.database).parent.mkdir(parents=True, exist_ok=True)

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
