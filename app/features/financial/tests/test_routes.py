"""Tests for financial API routes."""

from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from app.features.financial.routes import period_start, resolve_window
from app.features.financial.schemas import CostBreakdown, FinancialDashboard, FinancialPeriod
from app.features.financial.service import (
    build_cost_breakdown,
    build_financial_summary,
    build_inventory_turnover,
    build_pl_statement,
    build_turnover_metrics,
)

MID_MARCH = date(2024, 3, 15)


def _statement(start: date, end: date):
    costs = build_cost_breakdown(Decimal("500"), Decimal("0"), {})
    return build_pl_statement(start, end, "INR", Decimal("0"), costs)


def _dashboard(start: date, end: date) -> FinancialDashboard:
    statement = _statement(start, end)
    inventory = build_inventory_turnover(Decimal("0"), Decimal("0"), Decimal("0"), 15)
    return FinancialDashboard(
        summary=build_financial_summary(statement, statement),
        turnover=build_turnover_metrics(statement, 0, inventory),
    )


class TestResolveWindow:
    def test_defaults_to_month_to_date(self):
        assert resolve_window(None, None, current_day=MID_MARCH) == (
            date(2024, 3, 1),
            MID_MARCH,
        )

    def test_start_defaults_to_first_of_end_month(self):
        window = resolve_window(None, "2024-02-20", current_day=MID_MARCH)
        assert window == (date(2024, 2, 1), date(2024, 2, 20))

    def test_explicit_window_kept(self):
        window = resolve_window("2024-01-05", "2024-01-09", current_day=MID_MARCH)
        assert window == (date(2024, 1, 5), date(2024, 1, 9))

    @pytest.mark.parametrize("bad", ["2024-13-45", "yesterday", "", "2024/03/01"])
    def test_unparseable_start_uses_default(self, bad):
        assert resolve_window(bad, None, current_day=MID_MARCH) == (date(2024, 3, 1), MID_MARCH)

    def test_unparseable_end_uses_today(self):
        window = resolve_window("2024-03-10", "not-a-date", current_day=MID_MARCH)
        assert window == (date(2024, 3, 10), MID_MARCH)

    def test_reversed_window_swapped(self):
        window = resolve_window("2024-03-31", "2024-03-01", current_day=MID_MARCH)
        assert window == (date(2024, 3, 1), date(2024, 3, 31))

    def test_start_after_today_swapped(self):
        window = resolve_window("2024-04-01", None, current_day=MID_MARCH)
        assert window == (MID_MARCH, date(2024, 4, 1))

    def test_period_sets_start(self):
        window = resolve_window(None, None, current_day=MID_MARCH, period="year")
        assert window == (date(2024, 1, 1), MID_MARCH)

    def test_unknown_period_is_month(self):
        window = resolve_window(None, None, current_day=MID_MARCH, period="decade")
        assert window == (date(2024, 3, 1), MID_MARCH)

    def test_explicit_start_wins_over_period(self):
        window = resolve_window("2024-03-10", None, current_day=MID_MARCH, period="year")
        assert window == (date(2024, 3, 10), MID_MARCH)


@pytest.mark.parametrize(
    ("period", "expected"),
    [
        (FinancialPeriod.TODAY, date(2024, 5, 20)),
        (FinancialPeriod.WEEK, date(2024, 5, 13)),
        (FinancialPeriod.MONTH, date(2024, 5, 1)),
        (FinancialPeriod.QUARTER, date(2024, 4, 1)),
        (FinancialPeriod.YEAR, date(2024, 1, 1)),
    ],
)
def test_period_start(period, expected):
    assert period_start(period, date(2024, 5, 20)) == expected


@pytest.mark.asyncio
async def test_missing_session_rejected(client):
    response = await client.get("/financial/profit-loss")

    assert response.status_code == 401


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "headers",
    [
        {"X-User-Id": "v1", "X-User-Role": "vendor", "X-Tenant-Id": "acme", "X-Vendor-Id": "7"},
        {"X-User-Id": "t1", "X-User-Role": "tailor", "X-Tenant-Id": "acme", "X-Tailor-Id": "4"},
    ],
)
async def test_non_finance_roles_rejected(client, mock_db, headers):
    response = await client.get("/financial/profit-loss", headers=headers)

    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"
    mock_db.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_profit_loss_zero_revenue(client, manager_headers):
    statement = _statement(date(2024, 3, 1), date(2024, 3, 31))
    with patch("app.features.financial.routes.FinancialCalculationService") as service_cls:
        service_cls.return_value.calculate_pl_statement = AsyncMock(return_value=statement)
        response = await client.get(
            "/financial/profit-loss?start=2024-03-01&end=2024-03-31", headers=manager_headers
        )

    assert response.status_code == 200
    data = response.json()
    assert Decimal(data["gross_profit"]) == Decimal("-500")
    assert data["margin"] is None
    assert service_cls.call_args.args[0] == "acme"
    service_cls.return_value.calculate_pl_statement.assert_awaited_once()
    _, start, end = service_cls.return_value.calculate_pl_statement.call_args.args
    assert (start, end) == (date(2024, 3, 1), date(2024, 3, 31))


@pytest.mark.asyncio
async def test_profit_loss_default_window(client, manager_headers):
    with (
        patch("app.features.financial.routes.today", return_value=date(2024, 3, 15)),
        patch("app.features.financial.routes.FinancialCalculationService") as service_cls,
    ):
        service_cls.return_value.calculate_pl_statement = AsyncMock(
            return_value=_statement(date(2024, 3, 1), date(2024, 3, 15))
        )
        response = await client.get("/financial/profit-loss", headers=manager_headers)

    assert response.status_code == 200
    _, start, end = service_cls.return_value.calculate_pl_statement.call_args.args
    assert (start, end) == (date(2024, 3, 1), date(2024, 3, 15))


@pytest.mark.asyncio
async def test_reversed_window_is_swapped(client, manager_headers):
    with patch("app.features.financial.routes.FinancialCalculationService") as service_cls:
        service_cls.return_value.calculate_pl_statement = AsyncMock(
            return_value=_statement(date(2024, 3, 1), date(2024, 3, 31))
        )
        response = await client.get(
            "/financial/profit-loss?start=2024-03-31&end=2024-03-01", headers=manager_headers
        )

    assert response.status_code == 200
    _, start, end = service_cls.return_value.calculate_pl_statement.call_args.args
    assert (start, end) == (date(2024, 3, 1), date(2024, 3, 31))


@pytest.mark.asyncio
async def test_invalid_start_falls_back_to_default(client, manager_headers):
    with (
        patch("app.features.financial.routes.today", return_value=MID_MARCH),
        patch("app.features.financial.routes.FinancialCalculationService") as service_cls,
    ):
        service_cls.return_value.calculate_pl_statement = AsyncMock(
            return_value=_statement(date(2024, 3, 1), MID_MARCH)
        )
        response = await client.get(
            "/financial/profit-loss?start=2024-13-45", headers=manager_headers
        )

    assert response.status_code == 200
    _, start, end = service_cls.return_value.calculate_pl_statement.call_args.args
    assert (start, end) == (date(2024, 3, 1), MID_MARCH)


@pytest.mark.asyncio
async def test_future_start_swapped_with_today(client, manager_headers):
    with (
        patch("app.features.financial.routes.today", return_value=MID_MARCH),
        patch("app.features.financial.routes.FinancialCalculationService") as service_cls,
    ):
        service_cls.return_value.calculate_pl_statement = AsyncMock(
            return_value=_statement(MID_MARCH, date(2024, 4, 1))
        )
        response = await client.get(
            "/financial/profit-loss?start=2024-04-01", headers=manager_headers
        )

    assert response.status_code == 200
    _, start, end = service_cls.return_value.calculate_pl_statement.call_args.args
    assert (start, end) == (MID_MARCH, date(2024, 4, 1))


@pytest.mark.asyncio
async def test_service_built_with_context_settings(client, manager_headers, settings):
    with patch("app.features.financial.routes.FinancialCalculationService") as service_cls:
        service_cls.return_value.calculate_revenue_breakdown = AsyncMock(
            side_effect=OperationalError("SELECT 1", {}, Exception("down"))
        )
        await client.get("/financial/revenue-breakdown", headers=manager_headers)

    assert service_cls.call_args.args == ("acme", settings)


@pytest.mark.asyncio
async def test_dashboard_uses_period(client, manager_headers):
    with (
        patch("app.features.financial.routes.today", return_value=MID_MARCH),
        patch("app.features.financial.routes.FinancialCalculationService") as service_cls,
    ):
        service_cls.return_value.calculate_dashboard = AsyncMock(
            return_value=_dashboard(date(2024, 1, 1), MID_MARCH)
        )
        response = await client.get(
            "/financial/dashboard?period=quarter", headers=manager_headers
        )

    assert response.status_code == 200
    data = response.json()
    assert Decimal(data["summary"]["gross_profit"]) == Decimal("-500")
    assert data["summary"]["revenue_trend"] is None
    assert data["turnover"]["inventory"]["ratio"] is None
    _, start, end = service_cls.return_value.calculate_dashboard.call_args.args
    assert (start, end) == (date(2024, 1, 1), MID_MARCH)


@pytest.mark.asyncio
async def test_dashboard_explicit_window_wins(client, manager_headers):
    with patch("app.features.financial.routes.FinancialCalculationService") as service_cls:
        service_cls.return_value.calculate_dashboard = AsyncMock(
            return_value=_dashboard(date(2024, 2, 1), date(2024, 2, 29))
        )
        response = await client.get(
            "/financial/dashboard?period=year&start=2024-02-01&end=2024-02-29",
            headers=manager_headers,
        )

    assert response.status_code == 200
    _, start, end = service_cls.return_value.calculate_dashboard.call_args.args
    assert (start, end) == (date(2024, 2, 1), date(2024, 2, 29))


@pytest.mark.asyncio
async def test_dashboard_forbidden_for_vendor(client, mock_db):
    headers = {"X-User-Id": "v1", "X-User-Role": "vendor", "X-Tenant-Id": "acme"}
    response = await client.get("/financial/dashboard", headers=headers)

    assert response.status_code == 403
    mock_db.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_missing_tenant_rejected(client):
    response = await client.get(
        "/financial/cost-breakdown", headers={"X-User-Id": "a1", "X-User-Role": "admin"}
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_cost_breakdown(client, manager_headers):
    with patch("app.features.financial.routes.FinancialCalculationService") as service_cls:
        service_cls.return_value.calculate_costs = AsyncMock(
            return_value=CostBreakdown(overhead=Decimal("10"), total=Decimal("10"))
        )
        service_cls.return_value.settings.currency = "INR"
        response = await client.get(
            "/financial/cost-breakdown?start=2024-03-01&end=2024-03-31", headers=manager_headers
        )

    assert response.status_code == 200
    data = response.json()
    assert data["currency"] == "INR"
    assert Decimal(data["costs"]["overhead"]) == Decimal("10")
    assert data["start_date"] == "2024-03-01"


@pytest.mark.asyncio
async def test_database_failure_is_problem_response(client, manager_headers):
    with patch("app.features.financial.routes.FinancialCalculationService") as service_cls:
        service_cls.return_value.calculate_revenue_breakdown = AsyncMock(
            side_effect=OperationalError("SELECT 1", {}, Exception("connection lost"))
        )
        response = await client.get(
            "/financial/revenue-breakdown?start=2024-03-01&end=2024-03-31",
            headers=manager_headers,
        )

    assert response.status_code == 500
    assert response.headers["content-type"].startswith("application/problem+json")
