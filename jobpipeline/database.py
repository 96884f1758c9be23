from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase
from jobpipeline.config import get_settings

settings = get_settings()


def to_async_url(database_url: str) -> str:
    """Convert sqlite:/// to sqlite+aiosqlite:///"""
    if database_url.startswith("sqlite:///"):
        return database_url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return database_url


engine = create_async_engine(to_async_url(settings.database_url), echo=False)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


def create_session_factory(
    database_url: Optional[str] = None,
) -> Tuple[AsyncEngine, async_sessionmaker]:
    """
    Build a fresh engine and session factory.

    Celery tasks run each invocation on a new event loop, so they must not
    reuse the module-level engine whose pooled connections belong to the
    API's loop. Caller disposes the engine when done.
    """
    task_engine = create_async_engine(
        to_async_url(database_url or settings.database_url), echo=False
    )
    factory = async_sessionmaker(task_engine, class_=AsyncSession, expire_on_commit=False)
    return task_engine, factory


async def init_db(bind: Optional[AsyncEngine] = None):
    import jobpipeline.models  # noqa: F401  register tables

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
