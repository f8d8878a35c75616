# db.py
import logging
from typing import AsyncGenerator

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

# Import the centralized settings object
from settings import settings

# --- Configuration & Setup ---
log = logging.getLogger(__name__)


def normalize_database_url(url: str) -> str:
    """Rewrites plain PostgreSQL URLs to the asyncpg driver."""
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


DATABASE_URL = normalize_database_url(settings.DATABASE_URL)

if DATABASE_URL.startswith("sqlite"):
    log.info("✅ Using local SQLite database for development.")
    engine = create_async_engine(DATABASE_URL, echo=False)
else:
    log.info("✅ Connecting to PostgreSQL database.")
    # pool_recycle keeps idle connections from being dropped by the host.
    engine = create_async_engine(
        DATABASE_URL,
        echo=False,
        pool_size=10,
        max_overflow=5,
        pool_timeout=30,
        pool_recycle=1800,
    )

async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

# Base class for declarative models. All models in `models.py` inherit from this.
Base = declarative_base()


# --- FastAPI Dependency ---

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session to each request.

    Rolls back on error so a failed request never leaves a half-written
    transaction on the connection.
    """
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def commit_or_500(db: AsyncSession, what: str):
    """Commits the session, rolling back and answering 500 if the write fails."""
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        log.error(f"Failed to save {what}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to save {what}")
