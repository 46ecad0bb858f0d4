"""Async engine and session factory.

SQLite (tests, local dev) does not accept pool sizing arguments, so the
connection pool is only configured for server databases.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from pixel_relay.core.config import Settings, settings


def build_engine(config: Settings) -> AsyncEngine:
    if config.DATABASE_URL.startswith("sqlite"):
        return create_async_engine(config.DATABASE_URL, echo=config.DEBUG)
    return create_async_engine(
        config.DATABASE_URL,
        echo=config.DEBUG,
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW,
        pool_recycle=3600,
        pool_pre_ping=True,
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings)
async_session_factory = build_session_factory(engine)
