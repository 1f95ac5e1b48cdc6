"""Test fixtures for financial module."""

from datetime import date, datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from app.core.config import Settings
from app.core.database import get_app_settings, get_db
from app.features.financial.rates import RateBook, RateRecord
from app.main import app


@pytest.fixture
def rate_history() -> list[RateRecord]:
    """Style 1 / vendor 10 price history with a same-day correction."""
    return [
        RateRecord(1, 1, 10, Decimal("40.00"), date(2024, 1, 1)),
        RateRecord(
            2,
            1,
            10,
            Decimal("45.00"),
            date(2024, 3, 1),
            created_at=datetime(2024, 2, 20, 9, 0, tzinfo=timezone.utc),
        ),
        RateRecord(
            3,
            1,
            10,
            Decimal("47.00"),
            date(2024, 3, 1),
            created_at=datetime(2024, 2, 25, 9, 0, tzinfo=timezone.utc),
        ),
        RateRecord(4, 1, 20, Decimal("60.00"), date(2024, 1, 1)),
    ]


@pytest.fixture
def rate_book(rate_history) -> RateBook:
    return RateBook(rate_history)


@pytest.fixture
def mock_db() -> MagicMock:
    session = MagicMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


@pytest.fixture
def manager_headers() -> dict[str, str]:
    return {"X-User-Id": "u-mgr", "X-User-Role": "manager", "X-Tenant-Id": "acme"}


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
