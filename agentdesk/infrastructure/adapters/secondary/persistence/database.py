import logging
from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from agentdesk.configuration.config import Settings, get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def create_engine_from_settings(config: Settings) -> AsyncEngine:
    """Build the async engine; pool options only apply to server databases."""
    url = config.sqlalchemy_url
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=config.db_echo)

    # pool_recycle: Recycle connections after this many seconds (prevents stale connections)
    # pool_pre_ping: Test connections before using them (detects stale connections)
    return create_async_engine(
        url,
        echo=config.db_echo,
        pool_size=config.postgres_pool_size,
        max_overflow=config.postgres_max_overflow,
        pool_recycle=config.postgres_pool_recycle,
        pool_pre_ping=config.postgres_pool_pre_ping,
    )


engine = create_engine_from_settings(settings)

async_session_factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def get_db() -> AsyncGenerator[Any, None]:
    """
    Dependency that provides a database session.

    The caller is responsible for committing changes when needed.
    """
    session = async_session_factory()
    try:
        yield session
    finally:
        await session.close()


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Dependency for code that outlives the request scope.

    Streaming responses keep running after the endpoint returns, so they open
    their own sessions instead of borrowing the request's.
    """
    return async_session_factory


async def initialize_database() -> None:
    """Create all tables defined in SQLAlchemy models."""
    from agentdesk.infrastructure.adapters.secondary.persistence.models import Base

    logger.info("Initializing database schema...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema initialized")


async def dispose_database() -> None:
    await engine.dispose()
    logger.info("Database engine disposed")
