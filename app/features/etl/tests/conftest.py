"""Test fixtures for the ETL module."""

from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from app.core.config import Settings
from app.core.database import get_app_settings, get_db
from app.features.etl.service import StyleRef
from app.main import app


class FakeSavepoint:
    """Async context manager standing in for ``session.begin_nested()``."""

    def __init__(self) -> None:
        self.rolled_back = False

    async def __aenter__(self) -> "FakeSavepoint":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        self.rolled_back = exc_type is not None
        return False


@pytest.fixture
def mock_db() -> MagicMock:
    """Session mock supporting savepoints, commit and rollback."""
    session = MagicMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.begin_nested = MagicMock(side_effect=lambda: FakeSavepoint())
    return session


@pytest.fixture
def refresh_day() -> date:
    return date(2024, 3, 15)


@pytest.fixture
def styles() -> list[StyleRef]:
    return [
        StyleRef(id=1, vendor_id=10),
        StyleRef(id=2, vendor_id=10),
        StyleRef(id=3, vendor_id=20),
    ]


@pytest.fixture
def settings() -> Settings:
    """Settings with a known cron secret."""
    return Settings(cron_secret="test-cron-secret")


@pytest.fixture
def cron_secret(settings) -> str:
    return settings.cron_secret


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
