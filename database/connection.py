"""Database connection configuration."""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy import event, text

from config.settings import get_settings
from database.models import Base

logger = logging.getLogger(__name__)

# Global engine (initialized lazily)
_engine: Optional[AsyncEngine] = None
_AsyncSessionLocal: Optional[async_sessionmaker] = None


def get_database_url() -> str:
    """Get database URL with proper format for asyncpg."""
    database_url = get_settings().database_url

    # Convert postgres:// to postgresql+asyncpg://
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql+asyncpg://", 1)
    elif database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    logger.info(f"Database host: {database_url.split('@')[1].split('/')[0] if '@' in database_url else database_url}")
    return database_url


def create_engine_for_url(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine; SQLite gets foreign keys switched on."""
    if url.startswith("sqlite"):
        engine = create_async_engine(url, echo=echo)

        @event.listens_for(engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    settings = get_settings()
    return create_async_engine(
        url,
        echo=echo,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_pre_ping=True,
    )


def get_engine() -> AsyncEngine:
    """Get or create engine (lazy initialization)."""
    global _engine
    if _engine is None:
        _engine = create_engine_for_url(get_database_url(), echo=get_settings().sql_echo)
    return _engine


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory bound to ``engine``."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_session_maker() -> async_sessionmaker:
    """Get or create session maker (lazy initialization)."""
    global _AsyncSessionLocal
    if _AsyncSessionLocal is None:
        _AsyncSessionLocal = make_session_factory(get_engine())
    return _AsyncSessionLocal


async def init_db(engine: Optional[AsyncEngine] = None) -> None:
    """Create tables that do not exist yet."""
    engine = engine or get_engine()
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("✅ Database initialized successfully")
    except Exception as e:
        logger.error(f"❌ Failed to initialize database: {e}")
        raise


async def check_db_connection() -> bool:
    """Check if database connection is working."""
    try:
        async with get_engine().connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            return result.scalar() == 1
    except Exception as e:
        logger.error(f"❌ Database connection check failed: {e}")
        return False


async def close_db() -> None:
    """Close database connections."""
    global _engine, _AsyncSessionLocal
    if _engine:
        await _engine.dispose()
        _engine = None
        _AsyncSessionLocal = None
        logger.info("Database connections closed")
