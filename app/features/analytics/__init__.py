"""Analytics module for dashboard KPIs, trends, breakdowns and drilldowns.

Reads the daily rollup for tenant-, style- and vendor-level questions and
raw tailor jobs where tailor grain is needed.
"""

from app.features.analytics.filters import (
    DateRange,
    FilterContext,
    build_filter_context,
    resolve_date_range,
)
from app.features.analytics.routes import router
from app.features.analytics.schemas import (
    BreakdownResponse,
    DrilldownPage,
    Granularity,
    GroupBy,
    KPIResponse,
    Metric,
    TrendResponse,
)
from app.features.analytics.service import AnalyticsQueryService

__all__ = [
    "AnalyticsQueryService",
    "BreakdownResponse",
    "DateRange",
    "DrilldownPage",
    "FilterContext",
    "Granularity",
    "GroupBy",
    "KPIResponse",
    "Metric",
    "TrendResponse",
    "build_filter_context",
    "resolve_date_range",
    "router",
]
