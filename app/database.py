"""Database configuration and connection management."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from sqlalchemy import exc, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.config import Settings
from app.core.exceptions import TransientInfrastructureException

logger = structlog.get_logger(__name__)

# Connectivity failures worth retrying; anything else is a bug or bad data
TRANSIENT_DB_ERRORS = (
    exc.OperationalError,
    exc.InterfaceError,
    exc.TimeoutError,
    OSError,
)


def to_async_url(url: str) -> str:
    """Convert a sync PostgreSQL URL to its asyncpg form."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def create_engine(url: str, settings: Settings) -> AsyncEngine:
    """Create an async engine with connection pooling.

    One engine is built per database at process start and shared by every
    invocation in that process.
    """
    url = to_async_url(url)
    options: dict = {"echo": settings.debug}

    if not url.startswith("sqlite"):
        options.update(
            pool_pre_ping=True,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_recycle=3600,
        )
    if url.startswith("postgresql+asyncpg"):
        options["connect_args"] = {
            "server_settings": {
                "application_name": settings.app_name,
            },
        }

    return create_async_engine(url, **options)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Async session factory bound to ``engine``."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@asynccontextmanager
async def translate_database_errors(operation: str, **context: object) -> AsyncIterator[None]:
    """Re-raise connectivity failures as TransientInfrastructureException."""
    try:
        yield
    except TRANSIENT_DB_ERRORS as e:
        logger.warning("database_unavailable", operation=operation, error=str(e), **context)
        raise TransientInfrastructureException(
            f"Database unavailable during {operation}"
        ) from e


async def check_database_connection(engine: AsyncEngine) -> bool:
    """Check if database connection is healthy."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
