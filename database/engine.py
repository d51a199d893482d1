import logging
from uuid import uuid4
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from core.config import settings

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict[str, Any]:
    # SQLite (tests, local runs) does not accept queue pool sizing
    if url.startswith("sqlite"):
        return {}
    return {
        "pool_size": settings.database_pool_size,
        "max_overflow": settings.database_max_overflow,
        "pool_pre_ping": True,
    }


db_engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    **_engine_options(settings.database_url),
)


# Create async session maker to be used throughout the application
AsyncSessionLocal = async_sessionmaker(
    db_engine, class_=AsyncSession, expire_on_commit=False
)


# Base class for declarative models
class Base(DeclarativeBase):
    # Fetch server-generated timestamps on flush; async sessions cannot lazy-load them
    __mapper_args__ = {"eager_defaults": True}


def create_session_factory(
    url: str | None = None, **engine_kwargs: Any
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """
    Build a dedicated engine and session factory.

    Celery workers call this once per task with ``poolclass=NullPool`` so that
    no pooled connection outlives the event loop that opened it.
    """
    engine = create_async_engine(url or settings.database_url, **engine_kwargs)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    return engine, factory


# Dependency to get DB session
async def get_db():
    async with AsyncSessionLocal() as session:
        yield session


# Function to initialize the database (create tables)
async def init_db():
    # Import models so every table is registered on Base.metadata
    import database.models  # noqa: F401

    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ensured")


# Function to close database connections
async def close_db():
    """Close database engine and connections."""
    await db_engine.dispose()


def new_id() -> str:
    """Primary key default for string identifiers."""
    return str(uuid4())
