# db.py
import logging
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from storefront.settings import Settings

# --- Configuration & Setup ---
logger = logging.getLogger(__name__)

# Base class for declarative models. All models in `models.py` will inherit from this.
Base = declarative_base()


def normalize_database_url(url: str) -> str:
    """Rewrites plain PostgreSQL URLs (as handed out by most hosts) to the asyncpg driver."""
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


# --- SQLAlchemy Engine & Session ---

def build_engine(settings: Settings) -> AsyncEngine:
    """Creates the async engine described by `settings`."""
    url = normalize_database_url(settings.DATABASE_URL)

    if url.startswith("sqlite"):
        logger.info("✅ Using local SQLite database for development.")
        return create_async_engine(url, echo=settings.DB_ECHO)

    logger.info("✅ Connecting to PostgreSQL database.")
    # `pool_timeout` bounds how long a request waits for a free connection.
    # `pool_recycle` drops connections the database or network may have closed.
    return create_async_engine(
        url,
        echo=settings.DB_ECHO,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
    )


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker:
    # `expire_on_commit=False` keeps attributes readable after commit.
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    # Importing models registers every table on Base.metadata.
    from storefront import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables verified/created.")


# --- FastAPI Dependency ---

async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session to each request.

    The session factory lives on `app.state`, so every application instance
    talks to its own engine. A failing request rolls back before the error
    propagates to the exception handlers.
    """
    async with request.app.state.session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
