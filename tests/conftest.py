"""Shared pytest fixtures for ApparelPortal integration tests."""

from datetime import UTC, date, datetime
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import Settings, get_settings
from app.core.database import Base
from app.features.approvals import models as approvals_models  # noqa: F401
from app.features.data_platform.models import (
    FabricCutting,
    Rate,
    Shipment,
    Style,
    Tailor,
    TailorJob,
    Vendor,
)

REFRESH_DAY = date(2024, 3, 15)


@pytest.fixture
def refresh_day() -> date:
    return REFRESH_DAY


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest.fixture
async def db_session(settings):
    """Create async database session for integration tests.

    This fixture creates all tables, provides a session, and cleans up after.
    Requires PostgreSQL to be running.
    """
    engine = create_async_engine(settings.database_url, echo=False)

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Create session
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

    # Cleanup: drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def seeded(db_session):
    """One tenant with a style that was cut, issued and shipped on REFRESH_DAY.

    - 100 pieces cut
    - 50 pieces issued to a tailor at 10.00 per piece (job still pending)
    - 20 pieces shipped, vendor rate 40.00 in force since January
    """
    at_noon = datetime(2024, 3, 15, 12, 0, tzinfo=UTC)

    vendor = Vendor(tenant_id="acme", code="V1", name="Acme Brands")
    tailor = Tailor(tenant_id="acme", name="Ravi")
    db_session.add_all([vendor, tailor])
    await db_session.flush()

    style = Style(tenant_id="acme", vendor_id=vendor.id, code="POLO-01", name="Polo")
    idle_style = Style(tenant_id="acme", vendor_id=vendor.id, code="TEE-01", name="Tee")
    db_session.add_all([style, idle_style])
    await db_session.flush()

    db_session.add_all(
        [
            FabricCutting(
                tenant_id="acme",
                style_id=style.id,
                vendor_id=vendor.id,
                total_qty=100,
                created_at=at_noon,
            ),
            TailorJob(
                style_id=style.id,
                tailor_id=tailor.id,
                issued_pcs=50,
                returned_pcs=0,
                rejected_pcs=0,
                rate=Decimal("10.00"),
                status="pending",
                issue_date=at_noon,
            ),
            Shipment(
                style_id=style.id,
                vendor_id=vendor.id,
                pcs_shipped=20,
                date=REFRESH_DAY,
                challan_no="CH-1",
            ),
            Rate(
                style_id=style.id,
                vendor_id=vendor.id,
                vendor_rate=Decimal("40.00"),
                effective_date=date(2024, 1, 1),
            ),
        ]
    )
    await db_session.commit()
    return {"vendor": vendor, "tailor": tailor, "style": style, "idle_style": idle_style}
