"""Test fixtures for approvals module."""

from datetime import UTC, date, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from app.core.database import get_db
from app.core.identity import Principal, Role
from app.features.approvals.models import Approval, ApprovalStatus
from app.features.data_platform.models import Rate, Style
from app.main import app

CREATED = datetime(2024, 3, 10, 9, 30, tzinfo=UTC)


@pytest.fixture
def admin() -> Principal:
    return Principal(user_id="u-admin", role=Role.ADMIN, tenant_id="acme")


@pytest.fixture
def manager() -> Principal:
    return Principal(user_id="u-mgr", role=Role.MANAGER, tenant_id="acme")


@pytest.fixture
def vendor() -> Principal:
    return Principal(user_id="u-vendor", role=Role.VENDOR, tenant_id="acme", vendor_id=7)


@pytest.fixture
def mock_db() -> MagicMock:
    session = MagicMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()

    async def refresh(obj):
        if obj.id is None:
            obj.id = 101
        obj.created_at = obj.created_at or CREATED
        obj.updated_at = CREATED

    session.refresh = AsyncMock(side_effect=refresh)
    return session


@pytest.fixture
def style() -> Style:
    return Style(id=3, tenant_id="acme", vendor_id=7, code="POLO-01", name="Polo", is_active=True)


@pytest.fixture
def rate() -> Rate:
    return Rate(
        id=12,
        style_id=3,
        vendor_id=7,
        vendor_rate=Decimal("45.00"),
        effective_date=date(2024, 1, 1),
    )


@pytest.fixture
def make_approval():
    """Build an approval row with sensible defaults."""

    def _make(**overrides) -> Approval:
        values = {
            "id": 5,
            "tenant_id": "acme",
            "target": "rate",
            "target_id": 12,
            "action": "update",
            "payload": {"vendor_rate": "48.50"},
            "status": ApprovalStatus.PENDING.value,
            "requested_by": "u-vendor",
            "requested_role": "vendor",
            "created_at": CREATED,
            "updated_at": CREATED,
        }
        values.update(overrides)
        return Approval(**values)

    return _make


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
async def client(mock_db):
    """HTTP client with the database dependency replaced by ``mock_db``."""

    async def override_get_db():
        yield mock_db

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
