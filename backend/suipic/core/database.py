"""
Database connection and session management.
Uses SQLAlchemy 2.0 async API.
"""
import logging

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from suipic.core.config import settings

logger = logging.getLogger(__name__)


def _pgbouncer_statement_name():
    """
    Returns empty string to force usage of anonymous prepared statements.
    Required for pgbouncer transaction pooling to avoid collisions.
    """
    return ""


def normalize_database_url(url: str) -> str:
    """Rewrite plain postgres URLs to the asyncpg driver."""
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def build_engine_kwargs(database_url: str) -> dict:
    """Engine options; pool and pgbouncer settings apply to asyncpg only."""
    engine_kwargs = {
        "echo": settings.DEBUG,
        "future": True,
    }
    if not database_url.startswith("postgresql+asyncpg://"):
        return engine_kwargs

    engine_kwargs["connect_args"] = {
        "statement_cache_size": 0,
        "prepared_statement_name_func": _pgbouncer_statement_name,
    }
    if settings.DATABASE_POOL_SIZE == 0:
        logger.info("Disabling connection pooling (NullPool)")
        engine_kwargs["poolclass"] = NullPool
    else:
        engine_kwargs["pool_size"] = settings.DATABASE_POOL_SIZE
        engine_kwargs["max_overflow"] = settings.DATABASE_MAX_OVERFLOW
        engine_kwargs["pool_pre_ping"] = True
    return engine_kwargs


database_url = normalize_database_url(settings.DATABASE_URL)
engine = create_async_engine(database_url, **build_engine_kwargs(database_url))

# Session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

# Base class for models
Base = declarative_base()


async def get_db() -> AsyncSession:
    """
    Dependency to get database session.
    Usage in FastAPI:
        @app.get("/")
        async def endpoint(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db():
    """Initialize database (create tables)."""
    # Models must be registered on Base.metadata before create_all
    import suipic.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    """Close database connections."""
    await engine.dispose()
