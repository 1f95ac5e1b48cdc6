"""Pydantic schemas for analytics endpoints.

Values are plain floats: piece counts and currency amounts share the same
fields, and dashboards chart them directly.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# Enums
# =============================================================================


class Metric(str, Enum):
    """Metrics held in the daily rollup.

    Job metrics (issued, in production, tailor expense) can also be computed
    per tailor from raw jobs; the others only exist per style/vendor.
    """

    CUTTING_RECEIVED = "cutting_received"
    ISSUED_PCS = "issued_pcs"
    IN_PRODUCTION_PCS = "in_production_pcs"
    TAILOR_EXPENSE = "tailor_expense"
    SHIPPED_PCS = "shipped_pcs"
    REVENUE = "revenue"


class Granularity(str, Enum):
    """Trend bucket size. Weeks start on Monday; months are calendar months."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class GroupBy(str, Enum):
    """Dimensions available for breakdowns."""

    STYLE = "style"
    VENDOR = "vendor"
    TAILOR = "tailor"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class TrendDirection(str, Enum):
    """Whether the change vs. the previous period is good news."""

    UP = "up"
    DOWN = "down"
    NEUTRAL = "neutral"


class DrilldownSortField(str, Enum):
    """Columns the drilldown table can be sorted by."""

    ISSUE_DATE = "issue_date"
    ISSUED_PCS = "issued_pcs"
    RETURNED_PCS = "returned_pcs"
    RATE = "rate"
    STATUS = "status"
    STYLE_CODE = "style_code"


# =============================================================================
# KPI Schemas
# =============================================================================


class KPICard(BaseModel):
    """One dashboard card."""

    id: str = Field(..., description="Stable card identifier, e.g. 'cutting-received'.")
    label: str = Field(..., description="Display label.")
    value: float = Field(..., description="Current-period total.")
    unit: str = Field(..., description="'pcs' or the currency code.")
    is_currency: bool = Field(False, description="True for monetary cards.")
    previous_value: float = Field(..., description="Total for the previous period.")
    trend: float | None = Field(
        None,
        description="Percent change vs. the previous period. Null when the previous value is 0.",
    )
    trend_direction: TrendDirection = Field(TrendDirection.NEUTRAL)


class KPIResponse(BaseModel):
    """KPI cards for a date range."""

    cards: list[KPICard]
    start_date: date
    end_date: date
    previous_start_date: date = Field(..., description="Start of the comparison period.")
    previous_end_date: date = Field(..., description="End of the comparison period.")


# =============================================================================
# Trend Schemas
# =============================================================================


class TrendPoint(BaseModel):
    """Metric total for one bucket."""

    bucket: date = Field(..., description="First day of the bucket.")
    label: str = Field(..., description="'2024-03-15', '2024-W11' or '2024-03'.")
    value: float


class TrendResponse(BaseModel):
    metric: Metric
    granularity: Granularity
    points: list[TrendPoint] = Field(..., description="Every bucket in the range, ascending.")
    start_date: date
    end_date: date


# =============================================================================
# Breakdown Schemas
# =============================================================================


class BreakdownItem(BaseModel):
    """Metric total for one group."""

    group_key: int = Field(..., description="Style, vendor or tailor id.")
    label: str = Field(..., description="Display name of the group.")
    value: float
    percentage: float = Field(..., description="Share of the total across all groups.")


class BreakdownResponse(BaseModel):
    metric: Metric
    group_by: GroupBy
    items: list[BreakdownItem] = Field(..., description="Descending by value.")
    total_groups: int = Field(..., ge=0, description="Groups before truncation.")
    start_date: date
    end_date: date


# =============================================================================
# Drilldown Table Schemas
# =============================================================================


class TableOptions(BaseModel):
    """Pagination and sort options for the drilldown table."""

    limit: int = Field(50, ge=1, le=500)
    skip: int = Field(0, ge=0)
    sort_by: DrilldownSortField = DrilldownSortField.ISSUE_DATE
    sort_direction: SortDirection = SortDirection.DESC


class DrilldownRow(BaseModel):
    """One tailor job with its style, vendor and tailor labels."""

    model_config = ConfigDict(from_attributes=True)

    job_id: int
    issue_date: datetime
    status: str
    style_id: int
    style_code: str
    style_name: str
    vendor_id: int | None
    vendor_name: str | None
    tailor_id: int
    tailor_name: str | None
    issued_pcs: int
    returned_pcs: int
    in_production_pcs: int
    rate: Decimal
    tailor_expense: Decimal


class DrilldownPage(BaseModel):
    rows: list[DrilldownRow]
    total: int = Field(..., ge=0)
    limit: int
    skip: int
    has_more: bool
