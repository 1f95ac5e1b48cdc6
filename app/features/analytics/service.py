"""Service layer for analytics queries.

Dashboards read the ``analytics_daily`` rollup. The rollup has no tailor
grain, so any request restricted to tailors (tailor callers, or a tailor
filter/grouping) reads raw ``tailor_job`` rows with the same metric
expressions the refresher uses. Only job metrics exist on that path.
"""

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy import ColumnElement, Date, cast, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings
from app.core.exceptions import BadRequestError
from app.core.logging import get_logger
from app.features.analytics.filters import DateRange, FilterContext
from app.features.analytics.schemas import (
    BreakdownItem,
    BreakdownResponse,
    DrilldownPage,
    DrilldownRow,
    DrilldownSortField,
    Granularity,
    GroupBy,
    KPICard,
    KPIResponse,
    Metric,
    SortDirection,
    TableOptions,
    TrendDirection,
    TrendPoint,
    TrendResponse,
)
from app.features.data_platform.metrics import (
    in_production_pcs_sum,
    issued_pcs_sum,
    tailor_expense_sum,
)
from app.features.data_platform.models import (
    ACTIVE_JOB_STATUSES,
    DailyAggregate,
    Style,
    Tailor,
    TailorJob,
    Vendor,
)
from app.shared.dates import iter_days, range_window

logger = get_logger(__name__)


@dataclass(frozen=True)
class MetricInfo:
    """Card presentation for a metric. ``inverse``: lower is better."""

    card_id: str
    label: str
    is_currency: bool = False
    inverse: bool = False


METRICS: dict[Metric, MetricInfo] = {
    Metric.CUTTING_RECEIVED: MetricInfo("cutting-received", "Cutting Received"),
    Metric.ISSUED_PCS: MetricInfo("issued-pcs", "Issued to Tailors"),
    Metric.IN_PRODUCTION_PCS: MetricInfo("in-production", "In Production", inverse=True),
    Metric.SHIPPED_PCS: MetricInfo("pcs-shipped", "PCS Shipped"),
    Metric.TAILOR_EXPENSE: MetricInfo("tailoring-expense", "Tailoring Expense", is_currency=True),
    Metric.REVENUE: MetricInfo("revenue", "Revenue", is_currency=True),
}

AGGREGATE_COLUMNS: dict[Metric, Any] = {
    Metric.CUTTING_RECEIVED: DailyAggregate.cutting_received,
    Metric.ISSUED_PCS: DailyAggregate.issued_pcs,
    Metric.IN_PRODUCTION_PCS: DailyAggregate.in_production_pcs,
    Metric.SHIPPED_PCS: DailyAggregate.shipped_pcs,
    Metric.TAILOR_EXPENSE: DailyAggregate.tailor_expense,
    Metric.REVENUE: DailyAggregate.revenue,
}

JOB_EXPRESSIONS: dict[Metric, Callable[[], ColumnElement[Any]]] = {
    Metric.ISSUED_PCS: issued_pcs_sum,
    Metric.IN_PRODUCTION_PCS: in_production_pcs_sum,
    Metric.TAILOR_EXPENSE: tailor_expense_sum,
}

SORT_COLUMNS: dict[DrilldownSortField, Any] = {
    DrilldownSortField.ISSUE_DATE: TailorJob.issue_date,
    DrilldownSortField.ISSUED_PCS: TailorJob.issued_pcs,
    DrilldownSortField.RETURNED_PCS: TailorJob.returned_pcs,
    DrilldownSortField.RATE: TailorJob.rate,
    DrilldownSortField.STATUS: TailorJob.status,
    DrilldownSortField.STYLE_CODE: Style.code,
}


# =============================================================================
# Pure helpers
# =============================================================================


def calculate_trend(current: float, previous: float) -> float | None:
    """Percent change vs. the previous period; None when there is no baseline."""
    if previous == 0:
        return None
    return round((current - previous) / previous * 100, 2)


def trend_direction(current: float, previous: float, inverse: bool = False) -> TrendDirection:
    diff = current - previous
    if abs(diff) < 0.01:
        return TrendDirection.NEUTRAL
    rising = diff > 0
    if inverse:
        rising = not rising
    return TrendDirection.UP if rising else TrendDirection.DOWN


def bucket_start(day: date, granularity: Granularity) -> date:
    """First day of the calendar bucket containing ``day``."""
    if granularity == Granularity.WEEK:
        return day - timedelta(days=day.weekday())
    if granularity == Granularity.MONTH:
        return day.replace(day=1)
    return day


def bucket_label(bucket: date, granularity: Granularity) -> str:
    if granularity == Granularity.WEEK:
        iso = bucket.isocalendar()
        return f"{iso.year}-W{iso.week:02d}"
    if granularity == Granularity.MONTH:
        return bucket.strftime("%Y-%m")
    return bucket.isoformat()


def fold_into_buckets(
    daily: Mapping[date, float],
    date_range: DateRange,
    granularity: Granularity,
) -> list[TrendPoint]:
    """Sum daily values into calendar buckets.

    Every bucket overlapping the range is returned, ascending, with zero for
    buckets without data. Only days inside the range contribute, so the
    first and last week/month may be partial.
    """
    totals: dict[date, float] = {}
    for day in iter_days(date_range.start, date_range.end):
        key = bucket_start(day, granularity)
        totals[key] = totals.get(key, 0.0) + float(daily.get(day, 0.0))
    return [
        TrendPoint(bucket=key, label=bucket_label(key, granularity), value=round(value, 2))
        for key, value in totals.items()
    ]


def rank_breakdown(totals: Mapping[int, float], limit: int) -> list[tuple[int, float, float]]:
    """Top ``limit`` groups as (key, value, percentage of the grand total).

    Sorted by value descending; equal values keep ascending key order.
    """
    grand_total = sum(totals.values())
    ranked = sorted(totals.items(), key=lambda item: (-item[1], item[0]))[:limit]
    return [
        (key, value, round(value / grand_total * 100, 2) if grand_total > 0 else 0.0)
        for key, value in ranked
    ]


def _to_drilldown_row(row: Any) -> DrilldownRow:
    returned = row.returned_pcs or 0
    rate = Decimal(str(row.rate))
    in_production = row.issued_pcs - returned if row.status in ACTIVE_JOB_STATUSES else 0
    return DrilldownRow(
        job_id=row.job_id,
        issue_date=row.issue_date,
        status=row.status,
        style_id=row.style_id,
        style_code=row.style_code,
        style_name=row.style_name,
        vendor_id=row.vendor_id,
        vendor_name=row.vendor_name,
        tailor_id=row.tailor_id,
        tailor_name=row.tailor_name,
        issued_pcs=row.issued_pcs,
        returned_pcs=returned,
        in_production_pcs=in_production,
        rate=rate,
        tailor_expense=rate * row.issued_pcs,
    )


# =============================================================================
# Service
# =============================================================================


class AnalyticsQueryService:
    """Answers dashboard queries for one role-scoped filter.

    The filter is fixed for the lifetime of the service; construct one per
    request.
    """

    def __init__(self, filters: FilterContext, settings: Settings) -> None:
        self.filters = filters
        self.settings = settings

    def available_metrics(self) -> list[Metric]:
        """Metrics answerable for this filter."""
        if self.filters.tailor_scoped:
            return [m for m in Metric if m in JOB_EXPRESSIONS]
        return list(Metric)

    def _require_job_metric(self, metric: Metric) -> None:
        if metric not in JOB_EXPRESSIONS:
            raise BadRequestError(
                message=f"Metric '{metric.value}' is not available per tailor",
                details={
                    "metric": metric.value,
                    "available": [m.value for m in JOB_EXPRESSIONS],
                },
            )

    def _aggregate_conditions(self, date_range: DateRange) -> list[ColumnElement[bool]]:
        f = self.filters
        conditions: list[ColumnElement[bool]] = [
            DailyAggregate.tenant_id == f.tenant_id,
            DailyAggregate.date >= date_range.start,
            DailyAggregate.date <= date_range.end,
        ]
        if f.style_ids:
            conditions.append(DailyAggregate.style_id.in_(f.style_ids))
        if f.vendor_ids:
            conditions.append(DailyAggregate.vendor_id.in_(f.vendor_ids))
        if f.search:
            matching = select(Style.id).where(
                Style.tenant_id == f.tenant_id,
                self._search_condition(f.search),
            )
            conditions.append(DailyAggregate.style_id.in_(matching))
        return conditions

    def _job_conditions(self, date_range: DateRange) -> list[ColumnElement[bool]]:
        """Conditions over ``tailor_job`` joined to ``style``."""
        f = self.filters
        start, end = range_window(date_range.start, date_range.end, self.settings.tzinfo)
        conditions: list[ColumnElement[bool]] = [
            Style.tenant_id == f.tenant_id,
            TailorJob.issue_date >= start,
            TailorJob.issue_date < end,
        ]
        if f.style_ids:
            conditions.append(TailorJob.style_id.in_(f.style_ids))
        if f.vendor_ids:
            conditions.append(Style.vendor_id.in_(f.vendor_ids))
        if f.tailor_ids:
            conditions.append(TailorJob.tailor_id.in_(f.tailor_ids))
        if f.search:
            conditions.append(self._search_condition(f.search))
        return conditions

    @staticmethod
    def _search_condition(search: str) -> ColumnElement[bool]:
        return or_(
            Style.code.icontains(search, autoescape=True),
            Style.name.icontains(search, autoescape=True),
        )

    async def _totals(
        self,
        db: AsyncSession,
        date_range: DateRange,
        metrics: Iterable[Metric],
    ) -> dict[Metric, float]:
        metrics = list(metrics)
        if self.filters.tailor_scoped:
            stmt = (
                select(*[JOB_EXPRESSIONS[m]().label(m.value) for m in metrics])
                .select_from(TailorJob)
                .join(Style, TailorJob.style_id == Style.id)
                .where(*self._job_conditions(date_range))
            )
        else:
            stmt = select(
                *[func.coalesce(func.sum(AGGREGATE_COLUMNS[m]), 0).label(m.value) for m in metrics]
            ).where(*self._aggregate_conditions(date_range))

        row = (await db.execute(stmt)).one()
        return {m: float(row._mapping[m.value]) for m in metrics}

    async def get_kpi_cards(self, db: AsyncSession) -> KPIResponse:
        """Current-period totals with the change vs. the preceding period.

        Args:
            db: Database session.

        Returns:
            One card per available metric.
        """
        metrics = self.available_metrics()
        current_range = self.filters.date_range
        previous_range = current_range.previous()

        current = await self._totals(db, current_range, metrics)
        previous = await self._totals(db, previous_range, metrics)

        cards: list[KPICard] = []
        for metric in metrics:
            info = METRICS[metric]
            cards.append(
                KPICard(
                    id=info.card_id,
                    label=info.label,
                    value=round(current[metric], 2),
                    unit=self.settings.currency if info.is_currency else "pcs",
                    is_currency=info.is_currency,
                    previous_value=round(previous[metric], 2),
                    trend=calculate_trend(current[metric], previous[metric]),
                    trend_direction=trend_direction(
                        current[metric], previous[metric], inverse=info.inverse
                    ),
                )
            )

        logger.info(
            "analytics.kpis_computed",
            tenant_id=self.filters.tenant_id,
            role=self.filters.role.value,
            start_date=str(current_range.start),
            end_date=str(current_range.end),
            cards=len(cards),
            tailor_scoped=self.filters.tailor_scoped,
        )

        return KPIResponse(
            cards=cards,
            start_date=current_range.start,
            end_date=current_range.end,
            previous_start_date=previous_range.start,
            previous_end_date=previous_range.end,
        )

    async def get_trend_data(
        self,
        db: AsyncSession,
        metric: Metric,
        granularity: Granularity = Granularity.DAY,
    ) -> TrendResponse:
        """Metric totals per day, ISO week or calendar month.

        Args:
            db: Database session.
            metric: Metric to chart.
            granularity: Bucket size.

        Returns:
            Every bucket in the range, ascending, zero-filled.

        Raises:
            BadRequestError: If the metric is not available for a tailor-scoped filter.
        """
        date_range = self.filters.date_range

        if self.filters.tailor_scoped:
            self._require_job_metric(metric)
            local_day = cast(
                func.timezone(self.settings.analytics_timezone, TailorJob.issue_date), Date
            )
            stmt = (
                select(local_day.label("day"), JOB_EXPRESSIONS[metric]().label("value"))
                .select_from(TailorJob)
                .join(Style, TailorJob.style_id == Style.id)
                .where(*self._job_conditions(date_range))
                .group_by(local_day)
            )
        else:
            stmt = (
                select(
                    DailyAggregate.date.label("day"),
                    func.coalesce(func.sum(AGGREGATE_COLUMNS[metric]), 0).label("value"),
                )
                .where(*self._aggregate_conditions(date_range))
                .group_by(DailyAggregate.date)
            )

        result = await db.execute(stmt)
        daily = {row.day: float(row.value) for row in result}
        points = fold_into_buckets(daily, date_range, granularity)

        logger.info(
            "analytics.trend_computed",
            tenant_id=self.filters.tenant_id,
            metric=metric.value,
            granularity=granularity.value,
            buckets=len(points),
        )

        return TrendResponse(
            metric=metric,
            granularity=granularity,
            points=points,
            start_date=date_range.start,
            end_date=date_range.end,
        )

    async def get_breakdown(
        self,
        db: AsyncSession,
        metric: Metric,
        group_by: GroupBy,
        limit: int = 10,
    ) -> BreakdownResponse:
        """Top groups by metric value.

        Args:
            db: Database session.
            metric: Metric to rank by.
            group_by: Style, vendor or tailor.
            limit: Maximum number of groups returned.

        Returns:
            Groups sorted by value descending, ties by ascending id.

        Raises:
            BadRequestError: If ``limit`` is out of range, or the metric is not
                available for a tailor grouping/scope.
        """
        max_limit = self.settings.analytics_breakdown_max_limit
        if not 1 <= limit <= max_limit:
            raise BadRequestError(
                message=f"limit must be between 1 and {max_limit}",
                details={"limit": limit},
            )

        date_range = self.filters.date_range
        from_jobs = self.filters.tailor_scoped or group_by == GroupBy.TAILOR

        key_col: Any
        if from_jobs:
            self._require_job_metric(metric)
            key_col = {
                GroupBy.STYLE: TailorJob.style_id,
                GroupBy.VENDOR: Style.vendor_id,
                GroupBy.TAILOR: TailorJob.tailor_id,
            }[group_by]
            stmt = (
                select(key_col.label("group_key"), JOB_EXPRESSIONS[metric]().label("value"))
                .select_from(TailorJob)
                .join(Style, TailorJob.style_id == Style.id)
                .where(*self._job_conditions(date_range))
                .group_by(key_col)
            )
        else:
            key_col = {
                GroupBy.STYLE: DailyAggregate.style_id,
                GroupBy.VENDOR: DailyAggregate.vendor_id,
            }[group_by]
            stmt = (
                select(
                    key_col.label("group_key"),
                    func.coalesce(func.sum(AGGREGATE_COLUMNS[metric]), 0).label("value"),
                )
                .where(*self._aggregate_conditions(date_range), key_col.isnot(None))
                .group_by(key_col)
            )

        result = await db.execute(stmt)
        totals = {row.group_key: float(row.value) for row in result if row.group_key is not None}
        ranked = rank_breakdown(totals, limit)
        labels = await self._load_labels(db, group_by, [key for key, _, _ in ranked])

        items = [
            BreakdownItem(
                group_key=key,
                label=labels.get(key, "Unknown"),
                value=round(value, 2),
                percentage=percentage,
            )
            for key, value, percentage in ranked
        ]

        logger.info(
            "analytics.breakdown_computed",
            tenant_id=self.filters.tenant_id,
            metric=metric.value,
            group_by=group_by.value,
            total_groups=len(totals),
            items_count=len(items),
        )

        return BreakdownResponse(
            metric=metric,
            group_by=group_by,
            items=items,
            total_groups=len(totals),
            start_date=date_range.start,
            end_date=date_range.end,
        )

    async def _load_labels(
        self, db: AsyncSession, group_by: GroupBy, ids: list[int]
    ) -> dict[int, str]:
        if not ids:
            return {}
        model: Any = {GroupBy.STYLE: Style, GroupBy.VENDOR: Vendor, GroupBy.TAILOR: Tailor}[
            group_by
        ]
        stmt = select(model.id, model.name).where(
            model.id.in_(ids), model.tenant_id == self.filters.tenant_id
        )
        result = await db.execute(stmt)
        return {row.id: row.name for row in result}

    async def get_drilldown_table(self, db: AsyncSession, options: TableOptions) -> DrilldownPage:
        """Paginated tailor-job rows for the filter's date range.

        Offset pagination without a snapshot: rows written between page
        requests can shift later pages. Sorting always ends on the job id so
        a page boundary never splits equal sort keys arbitrarily.

        Args:
            db: Database session.
            options: limit, skip and sort.

        Returns:
            One page of rows with the total match count.
        """
        max_limit = self.settings.analytics_table_max_limit
        if options.limit > max_limit:
            raise BadRequestError(
                message=f"limit must be at most {max_limit}",
                details={"limit": options.limit},
            )

        conditions = self._job_conditions(self.filters.date_range)

        count_stmt = (
            select(func.count(TailorJob.id))
            .select_from(TailorJob)
            .join(Style, TailorJob.style_id == Style.id)
            .where(*conditions)
        )
        total = int((await db.execute(count_stmt)).scalar_one())

        sort_col = SORT_COLUMNS[options.sort_by]
        if options.sort_direction == SortDirection.ASC:
            order = [sort_col.asc(), TailorJob.id.asc()]
        else:
            order = [sort_col.desc(), TailorJob.id.desc()]

        stmt = (
            select(
                TailorJob.id.label("job_id"),
                TailorJob.issue_date,
                TailorJob.status,
                TailorJob.style_id,
                Style.code.label("style_code"),
                Style.name.label("style_name"),
                Style.vendor_id,
                Vendor.name.label("vendor_name"),
                TailorJob.tailor_id,
                Tailor.name.label("tailor_name"),
                TailorJob.issued_pcs,
                TailorJob.returned_pcs,
                TailorJob.rate,
            )
            .select_from(TailorJob)
            .join(Style, TailorJob.style_id == Style.id)
            .outerjoin(Vendor, Style.vendor_id == Vendor.id)
            .outerjoin(Tailor, TailorJob.tailor_id == Tailor.id)
            .where(*conditions)
            .order_by(*order)
            .offset(options.skip)
            .limit(options.limit)
        )
        result = await db.execute(stmt)
        rows = [_to_drilldown_row(row) for row in result]

        logger.info(
            "analytics.table_fetched",
            tenant_id=self.filters.tenant_id,
            total=total,
            returned=len(rows),
            skip=options.skip,
            limit=options.limit,
        )

        return DrilldownPage(
            rows=rows,
            total=total,
            limit=options.limit,
            skip=options.skip,
            has_more=options.skip + options.limit < total,
        )
