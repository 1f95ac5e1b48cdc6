"""Async SQLAlchemy 2.0 database setup and the process-wide context.

The process entry point (FastAPI lifespan or a CLI script) builds exactly one
``AppContext`` and disposes it on exit. Request handlers reach it through
``request.app.state.context``; nothing here holds a module-level engine.
"""

from collections.abc import AsyncGenerator
from dataclasses import dataclass

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.core.config import Settings


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all models."""

    pass


@dataclass(frozen=True)
class AppContext:
    """Shared, read-only resources owned by the process entry point."""

    settings: Settings
    engine: AsyncEngine
    session_maker: async_sessionmaker[AsyncSession]

    async def dispose(self) -> None:
        """Release pooled connections."""
        await self.engine.dispose()


def create_context(settings: Settings) -> AppContext:
    """Create the engine and session maker for this process.

    Args:
        settings: Application settings.

    Returns:
        New application context.
    """
    engine: AsyncEngine = create_async_engine(
        settings.database_url,
        echo=settings.debug,
        pool_pre_ping=True,
    )
    session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    return AppContext(settings=settings, engine=engine, session_maker=session_maker)


def get_context(request: Request) -> AppContext:
    """Dependency returning the context installed by the lifespan."""
    context: AppContext = request.app.state.context
    return context


def get_app_settings(request: Request) -> Settings:
    """Dependency returning the settings the context was built with."""
    return get_context(request).settings


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions.

    Yields:
        AsyncSession: Database session that auto-commits on success.
    """
    context = get_context(request)
    async with context.session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
