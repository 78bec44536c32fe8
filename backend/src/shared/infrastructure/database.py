import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from shared.config import Settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def build_engine(settings: Settings) -> AsyncEngine:
    """Create the engine and its connection pool from settings."""
    url = settings.database_url
    if url.startswith("sqlite"):
        # SQLite connections are cheap and not safely shared across tasks
        return create_async_engine(url, poolclass=NullPool)

    connect_args = {"timeout": 5} if url.startswith("postgresql+asyncpg") else {}
    max_idle = settings.DB_MAX_IDLE_CONNS
    return create_async_engine(
        url,
        pool_size=max_idle,
        max_overflow=max(settings.DB_MAX_OPEN_CONNS - max_idle, 0),
        pool_recycle=settings.DB_CONN_MAX_LIFETIME * 60,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_schema(engine: AsyncEngine) -> None:
    """Create any tables declared on Base.metadata that do not exist yet."""
    import users.infrastructure.orm_models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema verified")


async def ping(session: AsyncSession) -> None:
    await session.execute(text("SELECT 1"))
