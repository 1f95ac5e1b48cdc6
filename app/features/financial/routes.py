"""API routes for financial statements (admin and manager only)."""

from datetime import date, timedelta

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings
from app.core.database import get_app_settings, get_db
from app.core.exceptions import DatabaseError
from app.core.identity import Principal, Role, require_roles
from app.core.logging import get_logger
from app.features.financial.schemas import (
    CostBreakdownResponse,
    FinancialDashboard,
    FinancialPeriod,
    PLStatement,
    RevenueBreakdown,
)
from app.features.financial.service import FinancialCalculationService
from app.shared.dates import parse_day, today

logger = get_logger(__name__)

router = APIRouter(prefix="/financial", tags=["financial"])

require_finance_role = require_roles(Role.ADMIN, Role.MANAGER)


def period_start(period: FinancialPeriod, end: date) -> date:
    """First day of a named period ending on ``end``."""
    if period is FinancialPeriod.TODAY:
        return end
    if period is FinancialPeriod.WEEK:
        return end - timedelta(days=7)
    if period is FinancialPeriod.QUARTER:
        return end.replace(month=(end.month - 1) // 3 * 3 + 1, day=1)
    if period is FinancialPeriod.YEAR:
        return end.replace(month=1, day=1)
    return end.replace(day=1)


def resolve_window(
    start: str | None,
    end: str | None,
    *,
    current_day: date,
    period: str | None = None,
) -> tuple[date, date]:
    """Resolve query strings to an inclusive window.

    Unparseable dates fall back to the defaults: ``end`` is ``current_day``
    and ``start`` is the beginning of ``period`` (month when absent or
    unknown). A reversed window is swapped.
    """
    start_day = parse_day(start)
    end_day = parse_day(end) or current_day
    if start_day is None:
        try:
            named = FinancialPeriod(period) if period else FinancialPeriod.MONTH
        except ValueError:
            named = FinancialPeriod.MONTH
        start_day = period_start(named, end_day)
    if start_day > end_day:
        start_day, end_day = end_day, start_day
    return start_day, end_day


def _database_error(operation: str, e: SQLAlchemyError) -> DatabaseError:
    logger.error(
        "financial.query_failed",
        operation=operation,
        error=str(e),
        error_type=type(e).__name__,
        exc_info=True,
    )
    return DatabaseError(message=f"Failed to compute {operation}", details={"error": str(e)})


@router.get(
    "/profit-loss",
    response_model=PLStatement,
    summary="Profit and loss statement",
    description="""
Revenue, costs by category, gross profit and margin for an inclusive window.

- Revenue prices every shipment at the vendor rate in force on its date.
- `gross_profit = revenue - costs.total`
- `margin = gross_profit / revenue`, null when revenue is 0.

Defaults: `end` = today, `start` = first day of `end`'s month. Unparseable
dates use the default and a reversed window is swapped.
""",
)
async def get_profit_loss(
    start: str | None = Query(None, description="First day (YYYY-MM-DD)."),
    end: str | None = Query(None, description="Last day (YYYY-MM-DD)."),
    principal: Principal = Depends(require_finance_role),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> PLStatement:
    start_day, end_day = resolve_window(start, end, current_day=today(settings.tzinfo))
    service = FinancialCalculationService(principal.require_tenant(), settings)
    try:
        return await service.calculate_pl_statement(db, start_day, end_day)
    except SQLAlchemyError as e:
        raise _database_error("profit and loss", e) from e


@router.get(
    "/cost-breakdown",
    response_model=CostBreakdownResponse,
    summary="Costs by category",
)
async def get_cost_breakdown(
    start: str | None = Query(None, description="First day (YYYY-MM-DD)."),
    end: str | None = Query(None, description="Last day (YYYY-MM-DD)."),
    principal: Principal = Depends(require_finance_role),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> CostBreakdownResponse:
    start_day, end_day = resolve_window(start, end, current_day=today(settings.tzinfo))
    service = FinancialCalculationService(principal.require_tenant(), settings)
    try:
        costs = await service.calculate_costs(db, start_day, end_day)
    except SQLAlchemyError as e:
        raise _database_error("cost breakdown", e) from e
    return CostBreakdownResponse(
        start_date=start_day,
        end_date=end_day,
        currency=settings.currency,
        costs=costs,
    )


@router.get(
    "/revenue-breakdown",
    response_model=RevenueBreakdown,
    summary="Revenue by vendor and style",
)
async def get_revenue_breakdown(
    start: str | None = Query(None, description="First day (YYYY-MM-DD)."),
    end: str | None = Query(None, description="Last day (YYYY-MM-DD)."),
    principal: Principal = Depends(require_finance_role),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> RevenueBreakdown:
    start_day, end_day = resolve_window(start, end, current_day=today(settings.tzinfo))
    service = FinancialCalculationService(principal.require_tenant(), settings)
    try:
        return await service.calculate_revenue_breakdown(db, start_day, end_day)
    except SQLAlchemyError as e:
        raise _database_error("revenue breakdown", e) from e


@router.get(
    "/dashboard",
    response_model=FinancialDashboard,
    summary="Financial summary and turnover metrics",
    description="""
Headline P&L figures with trends against the preceding window of equal
length, plus inventory turnover, sales velocity and profitability ratios.

`period` is one of `today`, `week`, `month`, `quarter`, `year` (default
`month`) and is ignored when `start` is given.
""",
)
async def get_dashboard(
    period: str | None = Query(None, description="Named window ending today."),
    start: str | None = Query(None, description="First day (YYYY-MM-DD)."),
    end: str | None = Query(None, description="Last day (YYYY-MM-DD)."),
    principal: Principal = Depends(require_finance_role),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> FinancialDashboard:
    start_day, end_day = resolve_window(
        start, end, current_day=today(settings.tzinfo), period=period
    )
    service = FinancialCalculationService(principal.require_tenant(), settings)
    try:
        return await service.calculate_dashboard(db, start_day, end_day)
    except SQLAlchemyError as e:
        raise _database_error("dashboard", e) from e
