"""Fixtures for data platform integration tests.

Note: The db_session fixture is duplicated here because pytest fixtures are discovered
based on conftest.py files in the directory path. Tests in app/features/*/tests/ cannot
see fixtures in tests/conftest.py since it's not in their parent path.
"""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import get_settings
from app.core.database import Base
from app.features.data_platform.models import Style, Vendor


@pytest.fixture
async def db_session():
    """Create async database session with fresh tables for integration tests.

    Requires PostgreSQL to be running.
    """
    settings = get_settings()
    engine = create_async_engine(settings.database_url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def sample_style(db_session: AsyncSession) -> Style:
    """Create a vendor and one of its styles."""
    vendor = Vendor(tenant_id="test", code="TESTV", name="Test Vendor")
    db_session.add(vendor)
    await db_session.flush()

    style = Style(tenant_id="test", vendor_id=vendor.id, code="TEST-STYLE", name="Test Style")
    db_session.add(style)
    await db_session.commit()
    await db_session.refresh(style)
    return style
