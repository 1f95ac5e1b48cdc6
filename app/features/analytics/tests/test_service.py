"""Unit tests for the analytics query service."""

import math
from datetime import date, datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.core.exceptions import BadRequestError
from app.features.analytics.filters import DateRange, build_filter_context
from app.features.analytics.schemas import (
    DrilldownSortField,
    Granularity,
    GroupBy,
    Metric,
    SortDirection,
    TableOptions,
    TrendDirection,
)
from app.features.analytics.service import (
    AnalyticsQueryService,
    bucket_label,
    bucket_start,
    calculate_trend,
    fold_into_buckets,
    rank_breakdown,
    trend_direction,
)


def _totals_result(**values):
    row = SimpleNamespace(_mapping=values)
    return SimpleNamespace(one=lambda: row)


def _rows(*items):
    return [SimpleNamespace(**item) for item in items]


ALL_ZERO = {m.value: 0 for m in Metric}


class TestCalculateTrend:
    def test_percent_change(self):
        assert calculate_trend(150, 100) == 50.0
        assert calculate_trend(50, 100) == -50.0

    def test_rounded_to_two_places(self):
        assert calculate_trend(1, 3) == -66.67

    def test_zero_previous_is_no_trend(self):
        for current in (0, 1, 1000):
            result = calculate_trend(current, 0)
            assert result is None

    def test_never_infinite_or_nan(self):
        for current, previous in [(5, 0), (0, 0), (0, 5), (-5, 5)]:
            result = calculate_trend(current, previous)
            assert result is None or math.isfinite(result)


class TestTrendDirection:
    def test_up_down_neutral(self):
        assert trend_direction(10, 5) == TrendDirection.UP
        assert trend_direction(5, 10) == TrendDirection.DOWN
        assert trend_direction(5, 5.001) == TrendDirection.NEUTRAL

    def test_inverse_metric(self):
        assert trend_direction(10, 5, inverse=True) == TrendDirection.DOWN
        assert trend_direction(5, 10, inverse=True) == TrendDirection.UP


class TestBuckets:
    def test_week_starts_monday(self):
        # 2024-03-20 is a Wednesday
        assert bucket_start(date(2024, 3, 20), Granularity.WEEK) == date(2024, 3, 18)
        assert bucket_start(date(2024, 3, 18), Granularity.WEEK) == date(2024, 3, 18)
        assert bucket_start(date(2024, 3, 24), Granularity.WEEK) == date(2024, 3, 18)

    def test_month_and_day(self):
        assert bucket_start(date(2024, 3, 20), Granularity.MONTH) == date(2024, 3, 1)
        assert bucket_start(date(2024, 3, 20), Granularity.DAY) == date(2024, 3, 20)

    def test_labels(self):
        assert bucket_label(date(2024, 3, 18), Granularity.WEEK) == "2024-W12"
        assert bucket_label(date(2024, 3, 1), Granularity.MONTH) == "2024-03"
        assert bucket_label(date(2024, 3, 5), Granularity.DAY) == "2024-03-05"

    def test_iso_week_label_across_year_end(self):
        assert bucket_label(date(2024, 12, 30), Granularity.WEEK) == "2025-W01"

    def test_daily_buckets_zero_filled(self):
        points = fold_into_buckets(
            {date(2024, 3, 2): 5.0},
            DateRange(date(2024, 3, 1), date(2024, 3, 3)),
            Granularity.DAY,
        )
        assert [p.bucket for p in points] == [date(2024, 3, 1), date(2024, 3, 2), date(2024, 3, 3)]
        assert [p.value for p in points] == [0.0, 5.0, 0.0]

    def test_weekly_buckets_follow_calendar_weeks(self):
        # Fri 2024-03-15 .. Tue 2024-03-26 spans three calendar weeks
        daily = {
            date(2024, 3, 15): 1.0,
            date(2024, 3, 17): 2.0,
            date(2024, 3, 18): 4.0,
            date(2024, 3, 26): 8.0,
        }
        points = fold_into_buckets(
            daily, DateRange(date(2024, 3, 15), date(2024, 3, 26)), Granularity.WEEK
        )
        assert [p.bucket for p in points] == [
            date(2024, 3, 11),
            date(2024, 3, 18),
            date(2024, 3, 25),
        ]
        assert [p.value for p in points] == [3.0, 4.0, 8.0]

    def test_monthly_buckets(self):
        daily = {date(2024, 1, 31): 1.0, date(2024, 2, 1): 2.0, date(2024, 2, 29): 3.0}
        points = fold_into_buckets(
            daily, DateRange(date(2024, 1, 15), date(2024, 3, 10)), Granularity.MONTH
        )
        assert [p.label for p in points] == ["2024-01", "2024-02", "2024-03"]
        assert [p.value for p in points] == [1.0, 5.0, 0.0]

    def test_days_outside_range_ignored(self):
        points = fold_into_buckets(
            {date(2024, 2, 1): 100.0, date(2024, 3, 1): 1.0},
            DateRange(date(2024, 3, 1), date(2024, 3, 1)),
            Granularity.MONTH,
        )
        assert [p.value for p in points] == [1.0]


class TestRankBreakdown:
    def test_sorted_descending_and_truncated(self):
        totals = {key: float(key) for key in range(1, 21)}
        ranked = rank_breakdown(totals, 10)
        values = [value for _, value, _ in ranked]
        assert len(ranked) == 10
        assert values == sorted(values, reverse=True)
        assert all(a > b for a, b in zip(values, values[1:]))

    def test_ties_keep_ascending_key(self):
        ranked = rank_breakdown({5: 10.0, 2: 10.0, 9: 20.0}, 10)
        assert [key for key, _, _ in ranked] == [9, 2, 5]

    def test_percentage_of_grand_total(self):
        ranked = rank_breakdown({1: 75.0, 2: 25.0}, 1)
        assert ranked == [(1, 75.0, 75.0)]

    def test_zero_total(self):
        assert rank_breakdown({1: 0.0}, 5) == [(1, 0.0, 0.0)]

    def test_empty(self):
        assert rank_breakdown({}, 5) == []


class TestKPICards:
    @pytest.mark.asyncio
    async def test_cards_with_trends(self, settings, staff_filters, mock_db):
        current = dict(ALL_ZERO, cutting_received=100, in_production_pcs=50, tailor_expense=500)
        previous = dict(ALL_ZERO, cutting_received=50, in_production_pcs=0, tailor_expense=1000)
        mock_db.execute.side_effect = [_totals_result(**current), _totals_result(**previous)]

        response = await AnalyticsQueryService(staff_filters, settings).get_kpi_cards(mock_db)

        cards = {card.id: card for card in response.cards}
        assert len(cards) == 6
        assert cards["cutting-received"].value == 100
        assert cards["cutting-received"].trend == 100.0
        assert cards["cutting-received"].trend_direction == TrendDirection.UP
        assert cards["in-production"].trend is None
        # Lower in-production is better
        assert cards["in-production"].trend_direction == TrendDirection.DOWN
        assert cards["tailoring-expense"].is_currency is True
        assert cards["tailoring-expense"].trend == -50.0
        assert response.previous_end_date == date(2024, 2, 29)
        assert response.previous_start_date == date(2024, 1, 30)
        assert mock_db.execute.await_count == 2

    @pytest.mark.asyncio
    async def test_tailor_scope_only_job_cards(self, settings, tailor_filters, mock_db):
        values = {"issued_pcs": 10, "in_production_pcs": 4, "tailor_expense": 100}
        mock_db.execute.side_effect = [_totals_result(**values), _totals_result(**values)]

        service = AnalyticsQueryService(tailor_filters, settings)
        response = await service.get_kpi_cards(mock_db)

        assert [c.id for c in response.cards] == [
            "issued-pcs",
            "in-production",
            "tailoring-expense",
        ]
        assert all(c.trend == 0.0 for c in response.cards)

    def test_vendor_scope_in_aggregate_conditions(self, settings, vendor, march):
        filters = build_filter_context(vendor, march, vendor_ids=(99,))
        service = AnalyticsQueryService(filters, settings)
        conditions = [str(c) for c in service._aggregate_conditions(march)]
        assert any("analytics_daily.vendor_id IN" in c for c in conditions)
        assert service.filters.vendor_ids == (7,)

    def test_tenant_always_in_conditions(self, settings, staff_filters, march):
        service = AnalyticsQueryService(staff_filters, settings)
        assert "analytics_daily.tenant_id" in str(service._aggregate_conditions(march)[0])
        assert "style.tenant_id" in str(service._job_conditions(march)[0])


class TestTrendData:
    @pytest.mark.asyncio
    async def test_daily_trend_zero_filled(self, settings, admin, mock_db):
        filters = build_filter_context(admin, DateRange(date(2024, 3, 1), date(2024, 3, 3)))
        mock_db.execute.return_value = _rows({"day": date(2024, 3, 2), "value": Decimal("12.5")})

        response = await AnalyticsQueryService(filters, settings).get_trend_data(
            mock_db, Metric.REVENUE, Granularity.DAY
        )

        assert [p.value for p in response.points] == [0.0, 12.5, 0.0]
        assert response.metric == Metric.REVENUE

    @pytest.mark.asyncio
    async def test_tailor_scope_rejects_rollup_only_metric(
        self, settings, tailor_filters, mock_db
    ):
        service = AnalyticsQueryService(tailor_filters, settings)
        with pytest.raises(BadRequestError):
            await service.get_trend_data(mock_db, Metric.REVENUE)
        mock_db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_tailor_scope_job_metric(self, settings, tailor, mock_db):
        filters = build_filter_context(tailor, DateRange(date(2024, 3, 1), date(2024, 3, 2)))
        mock_db.execute.return_value = _rows({"day": date(2024, 3, 1), "value": 40})

        service = AnalyticsQueryService(filters, settings)
        response = await service.get_trend_data(mock_db, Metric.ISSUED_PCS)

        assert [p.value for p in response.points] == [40.0, 0.0]


class TestBreakdown:
    @pytest.mark.asyncio
    async def test_breakdown_sorted_with_labels(self, settings, staff_filters, mock_db):
        mock_db.execute.side_effect = [
            _rows(
                {"group_key": 1, "value": 10},
                {"group_key": 2, "value": 30},
                {"group_key": 3, "value": 10},
            ),
            _rows({"id": 1, "name": "Polo"}, {"id": 2, "name": "Shirt"}),
        ]

        response = await AnalyticsQueryService(staff_filters, settings).get_breakdown(
            mock_db, Metric.SHIPPED_PCS, GroupBy.STYLE, limit=2
        )

        assert [item.group_key for item in response.items] == [2, 1]
        assert [item.label for item in response.items] == ["Shirt", "Polo"]
        assert response.items[0].percentage == 60.0
        assert response.total_groups == 3

    @pytest.mark.asyncio
    async def test_missing_label_is_unknown(self, settings, staff_filters, mock_db):
        mock_db.execute.side_effect = [_rows({"group_key": 8, "value": 1}), []]

        response = await AnalyticsQueryService(staff_filters, settings).get_breakdown(
            mock_db, Metric.REVENUE, GroupBy.VENDOR
        )

        assert response.items[0].label == "Unknown"

    @pytest.mark.asyncio
    async def test_group_by_tailor_requires_job_metric(self, settings, staff_filters, mock_db):
        with pytest.raises(BadRequestError):
            await AnalyticsQueryService(staff_filters, settings).get_breakdown(
                mock_db, Metric.SHIPPED_PCS, GroupBy.TAILOR
            )

    @pytest.mark.asyncio
    async def test_group_by_tailor_with_job_metric(self, settings, staff_filters, mock_db):
        mock_db.execute.side_effect = [
            _rows({"group_key": 42, "value": Decimal("250.00")}),
            _rows({"id": 42, "name": "Ravi"}),
        ]

        response = await AnalyticsQueryService(staff_filters, settings).get_breakdown(
            mock_db, Metric.TAILOR_EXPENSE, GroupBy.TAILOR
        )

        assert response.items[0].label == "Ravi"
        assert response.items[0].value == 250.0

    @pytest.mark.parametrize("limit", [0, 101])
    @pytest.mark.asyncio
    async def test_limit_bounds(self, settings, staff_filters, mock_db, limit):
        with pytest.raises(BadRequestError):
            await AnalyticsQueryService(staff_filters, settings).get_breakdown(
                mock_db, Metric.SHIPPED_PCS, GroupBy.STYLE, limit=limit
            )

    @pytest.mark.asyncio
    async def test_no_labels_query_when_empty(self, settings, staff_filters, mock_db):
        mock_db.execute.side_effect = [[]]

        response = await AnalyticsQueryService(staff_filters, settings).get_breakdown(
            mock_db, Metric.SHIPPED_PCS, GroupBy.STYLE
        )

        assert response.items == []
        assert mock_db.execute.await_count == 1


class TestDrilldownTable:
    @pytest.mark.asyncio
    async def test_page_with_derived_columns(self, settings, staff_filters, mock_db):
        job = {
            "job_id": 11,
            "issue_date": datetime(2024, 3, 5, 9, 0, tzinfo=timezone.utc),
            "status": "in-progress",
            "style_id": 1,
            "style_code": "ST-1",
            "style_name": "Polo",
            "vendor_id": 7,
            "vendor_name": "Acme Brands",
            "tailor_id": 42,
            "tailor_name": "Ravi",
            "issued_pcs": 50,
            "returned_pcs": 20,
            "rate": Decimal("10.00"),
        }
        mock_db.execute.side_effect = [SimpleNamespace(scalar_one=lambda: 3), _rows(job)]

        page = await AnalyticsQueryService(staff_filters, settings).get_drilldown_table(
            mock_db, TableOptions(limit=1, skip=0)
        )

        assert page.total == 3
        assert page.has_more is True
        row = page.rows[0]
        assert row.in_production_pcs == 30
        assert row.tailor_expense == Decimal("500.00")

    @pytest.mark.asyncio
    async def test_last_page(self, settings, staff_filters, mock_db):
        mock_db.execute.side_effect = [SimpleNamespace(scalar_one=lambda: 3), []]

        page = await AnalyticsQueryService(staff_filters, settings).get_drilldown_table(
            mock_db,
            TableOptions(
                limit=2,
                skip=2,
                sort_by=DrilldownSortField.STYLE_CODE,
                sort_direction=SortDirection.ASC,
            ),
        )

        assert page.has_more is False
        assert page.skip == 2
