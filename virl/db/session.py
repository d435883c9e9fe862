"""Process-wide async engine and session factory.

`init_db` is called once from the application lifespan; everything else
reaches the database through `get_session_factory()`.
"""

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from virl.core.config import Settings, get_settings
from virl.db.base import Base

logger = structlog.get_logger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _create_engine(settings: Settings) -> AsyncEngine:
    return create_async_engine(
        settings.database_url,
        echo=settings.db_echo,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
    )


async def init_db(settings: Settings | None = None) -> async_sessionmaker[AsyncSession]:
    """Open the engine, create missing tables and return the session factory.

    Calling it again while a connection pool is open returns the existing
    factory.
    """
    global _engine, _session_factory

    if _session_factory is not None:
        return _session_factory

    settings = settings or get_settings()
    engine = _create_engine(settings)

    import virl.db.models  # noqa: F401  (registers tables on Base.metadata)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    _engine = engine
    _session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    logger.info("db_ready", tables=sorted(Base.metadata.tables), pool_size=settings.db_pool_size)
    return _session_factory


async def close_db(drop_tables: bool = False) -> None:
    """Dispose of the pool. `drop_tables` is for disposable test databases."""
    global _engine, _session_factory

    if _engine is None:
        return
    if drop_tables:
        async with _engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
    await _engine.dispose()
    _engine = None
    _session_factory = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _session_factory


async def ping_db() -> bool:
    """True if the database answers `SELECT 1`."""
    async with get_session_factory()() as session:
        await session.execute(text("SELECT 1"))
    return True
