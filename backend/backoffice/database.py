"""Database configuration and async SQLAlchemy setup.

The engine and session factory are built in the application lifespan and kept
on ``app.state``; nothing here opens a connection at import time.
"""
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

# Base class for models
Base = declarative_base()


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create the async engine for *database_url*."""
    options = {"echo": echo, "future": True}
    if not database_url.startswith("sqlite"):
        options.update(pool_pre_ping=True, pool_recycle=1800)
    return create_async_engine(database_url, **options)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the session factory bound to *engine*."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def get_db(request: Request):
    """Dependency to get database session."""
    async with request.app.state.session_factory() as session:
        yield session
