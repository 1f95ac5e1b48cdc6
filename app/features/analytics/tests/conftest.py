"""Test fixtures for analytics module."""

from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from app.core.config import Settings
from app.core.database import get_app_settings, get_db
from app.core.identity import Principal, Role
from app.features.analytics.filters import DateRange, FilterContext, build_filter_context
from app.features.analytics.schemas import (
    BreakdownItem,
    BreakdownResponse,
    GroupBy,
    KPICard,
    KPIResponse,
    Metric,
    TrendDirection,
)
from app.main import app


@pytest.fixture
def march() -> DateRange:
    return DateRange(start=date(2024, 3, 1), end=date(2024, 3, 31))


@pytest.fixture
def admin() -> Principal:
    return Principal(user_id="u-admin", role=Role.ADMIN, tenant_id="acme")


@pytest.fixture
def vendor() -> Principal:
    return Principal(user_id="u-vendor", role=Role.VENDOR, tenant_id="acme", vendor_id=7)


@pytest.fixture
def tailor() -> Principal:
    return Principal(user_id="u-tailor", role=Role.TAILOR, tenant_id="acme", tailor_id=42)


@pytest.fixture
def staff_filters(admin, march) -> FilterContext:
    return build_filter_context(admin, march)


@pytest.fixture
def tailor_filters(tailor, march) -> FilterContext:
    return build_filter_context(tailor, march)


@pytest.fixture
def mock_db() -> MagicMock:
    session = MagicMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-User-Id": "u-admin", "X-User-Role": "admin", "X-Tenant-Id": "acme"}


@pytest.fixture
def vendor_headers() -> dict[str, str]:
    return {
        "X-User-Id": "u-vendor",
        "X-User-Role": "vendor",
        "X-Tenant-Id": "acme",
        "X-Vendor-Id": "7",
    }


@pytest.fixture
def tailor_headers() -> dict[str, str]:
    return {
        "X-User-Id": "u-tailor",
        "X-User-Role": "tailor",
        "X-Tenant-Id": "acme",
        "X-Tailor-Id": "42",
    }


@pytest.fixture
def sample_kpi_response(march) -> KPIResponse:
    return KPIResponse(
        cards=[
            KPICard(
                id="cutting-received",
                label="Cutting Received",
                value=100,
                unit="pcs",
                previous_value=50,
                trend=100.0,
                trend_direction=TrendDirection.UP,
            )
        ],
        start_date=march.start,
        end_date=march.end,
        previous_start_date=date(2024, 1, 30),
        previous_end_date=date(2024, 2, 29),
    )


@pytest.fixture
def sample_breakdown(march) -> BreakdownResponse:
    return BreakdownResponse(
        metric=Metric.SHIPPED_PCS,
        group_by=GroupBy.STYLE,
        items=[BreakdownItem(group_key=1, label="Polo", value=30, percentage=100.0)],
        total_groups=1,
        start_date=march.start,
        end_date=march.end,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
async def client(mock_db, settings):
    """HTTP client over ``mock_db`` and the ``settings`` fixture."""

    async def override_get_db():
        yield mock_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_app_settings] = lambda: settings
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
