"""API routes for analytics endpoints.

Every endpoint builds a role-scoped ``FilterContext`` from the caller and the
shared query parameters before touching the database.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings
from app.core.database import get_app_settings, get_db
from app.core.exceptions import DatabaseError
from app.core.identity import Principal, get_principal
from app.core.logging import get_logger
from app.features.analytics.filters import (
    FilterContext,
    build_filter_context,
    parse_id_list,
    resolve_date_range,
)
from app.features.analytics.schemas import (
    BreakdownResponse,
    DrilldownPage,
    DrilldownSortField,
    Granularity,
    GroupBy,
    KPIResponse,
    Metric,
    SortDirection,
    TableOptions,
    TrendResponse,
)
from app.features.analytics.service import AnalyticsQueryService
from app.shared.dates import today

logger = get_logger(__name__)

router = APIRouter(prefix="/analytics", tags=["analytics"])


async def get_filters(
    principal: Principal = Depends(get_principal),
    start: str | None = Query(None, description="Start date (YYYY-MM-DD, inclusive)."),
    end: str | None = Query(None, description="End date (YYYY-MM-DD, inclusive)."),
    preset: str | None = Query(
        None,
        description="today | 7d | 30d | mtd | ytd. Takes precedence over start/end.",
    ),
    style_ids: str | None = Query(None, alias="styleIds", description="Comma-separated style ids."),
    vendor_ids: str | None = Query(
        None, alias="vendorIds", description="Comma-separated vendor ids."
    ),
    tailor_ids: str | None = Query(
        None, alias="tailorIds", description="Comma-separated tailor ids."
    ),
    search: str | None = Query(None, description="Match on style code or name."),
    settings: Settings = Depends(get_app_settings),
) -> FilterContext:
    """Resolve the request's filter, applying role scoping.

    Missing or malformed dates fall back to the default trailing window
    rather than failing.
    """
    date_range = resolve_date_range(
        start,
        end,
        preset,
        today=today(settings.tzinfo),
        default_days=settings.analytics_default_window_days,
    )
    return build_filter_context(
        principal,
        date_range,
        style_ids=parse_id_list(style_ids, "styleIds"),
        vendor_ids=parse_id_list(vendor_ids, "vendorIds"),
        tailor_ids=parse_id_list(tailor_ids, "tailorIds"),
        search=search,
    )


def _database_error(operation: str, e: SQLAlchemyError) -> DatabaseError:
    logger.error(
        "analytics.query_failed",
        operation=operation,
        error=str(e),
        error_type=type(e).__name__,
        exc_info=True,
    )
    return DatabaseError(message=f"Failed to compute {operation}", details={"error": str(e)})


@router.get(
    "/kpis",
    response_model=KPIResponse,
    summary="Dashboard KPI cards",
    description="""
Totals for the selected period with the percent change against the period of
equal length immediately before it.

`trend` is null when the previous period's value is 0. Tailor-scoped
requests only return job metrics (issued, in production, tailoring expense).
""",
)
async def get_kpis(
    filters: FilterContext = Depends(get_filters),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> KPIResponse:
    service = AnalyticsQueryService(filters, settings)
    try:
        return await service.get_kpi_cards(db)
    except SQLAlchemyError as e:
        raise _database_error("KPIs", e) from e


@router.get(
    "/trends",
    response_model=TrendResponse,
    summary="Metric trend over time",
    description="""
Metric totals per day, ISO week (Monday start) or calendar month. Every
bucket in the range is present, ascending, with zero where there is no data.
""",
)
async def get_trends(
    metric: Metric = Query(..., description="Metric to chart."),
    granularity: Granularity = Query(Granularity.DAY, description="Bucket size."),
    filters: FilterContext = Depends(get_filters),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> TrendResponse:
    service = AnalyticsQueryService(filters, settings)
    try:
        return await service.get_trend_data(db, metric, granularity)
    except SQLAlchemyError as e:
        raise _database_error("trend", e) from e


@router.get(
    "/breakdown",
    response_model=BreakdownResponse,
    summary="Metric breakdown by dimension",
    description="""
Top groups (style, vendor or tailor) by metric value, descending, at most
`limit` entries. `percentage` is each group's share of the total across all
groups, including those cut off by `limit`.
""",
)
async def get_breakdown(
    metric: Metric = Query(..., description="Metric to rank by."),
    group_by: GroupBy = Query(GroupBy.STYLE, alias="groupBy", description="Grouping dimension."),
    limit: int = Query(10, ge=1, le=100, description="Maximum groups returned."),
    filters: FilterContext = Depends(get_filters),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> BreakdownResponse:
    service = AnalyticsQueryService(filters, settings)
    try:
        return await service.get_breakdown(db, metric, group_by, limit)
    except SQLAlchemyError as e:
        raise _database_error("breakdown", e) from e


@router.get(
    "/table",
    response_model=DrilldownPage,
    summary="Drilldown table of tailor jobs",
    description="""
Paginated tailor-job rows issued in the selected period, with style, vendor
and tailor names. Offset pagination: keep `sortBy` stable across pages.
""",
)
async def get_table(
    limit: int = Query(50, ge=1, le=500, description="Page size."),
    skip: int = Query(0, ge=0, description="Rows to skip."),
    sort_by: DrilldownSortField = Query(
        DrilldownSortField.ISSUE_DATE, alias="sortBy", description="Sort column."
    ),
    sort_direction: SortDirection = Query(
        SortDirection.DESC, alias="sortDirection", description="asc or desc."
    ),
    filters: FilterContext = Depends(get_filters),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> DrilldownPage:
    service = AnalyticsQueryService(filters, settings)
    options = TableOptions(
        limit=limit,
        skip=skip,
        sort_by=sort_by,
        sort_direction=sort_direction,
    )
    try:
        return await service.get_drilldown_table(db, options)
    except SQLAlchemyError as e:
        raise _database_error("table", e) from e
