"""Pydantic schemas for financial statements.

Amounts are Decimals in the tenant's reporting currency and serialize as
strings to keep exact cents.
"""

from datetime import date
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class CostBreakdown(BaseModel):
    """Costs for a window by category."""

    tailor_wages: Decimal = Field(
        Decimal("0"),
        description="Returned pieces times piece rate for jobs finished in the window.",
    )
    materials: Decimal = Field(
        Decimal("0"),
        description="Total cost of inventory consumed in the window.",
    )
    overhead: Decimal = Field(Decimal("0"), description="Approved overhead cost entries.")
    logistics: Decimal = Field(Decimal("0"), description="Approved logistics cost entries.")
    quality: Decimal = Field(Decimal("0"), description="Approved quality cost entries.")
    other: Decimal = Field(Decimal("0"), description="Approved uncategorized cost entries.")
    total: Decimal = Field(Decimal("0"), description="Sum of all categories.")

    @property
    def cogs(self) -> Decimal:
        """Direct production cost: wages plus materials."""
        return self.tailor_wages + self.materials

    @property
    def operating_expenses(self) -> Decimal:
        return self.overhead + self.logistics + self.quality + self.other


class PLStatement(BaseModel):
    """Profit and loss for an inclusive date window.

    ``gross_profit`` is revenue minus every cost category; ``margin`` is
    gross profit over revenue and is null when there was no revenue.
    """

    start_date: date
    end_date: date
    currency: str
    revenue: Decimal
    costs: CostBreakdown
    cogs: Decimal = Field(..., description="Tailor wages plus materials.")
    operating_expenses: Decimal = Field(..., description="Overhead, logistics, quality and other.")
    gross_profit: Decimal
    margin: Decimal | None = Field(
        None,
        description="gross_profit / revenue as a ratio (0.25 = 25%). Null when revenue is 0.",
    )
    unpriced_shipments: int = Field(
        0,
        ge=0,
        description="Shipments in the window with no vendor rate in force, counted at 0.",
    )


class CostBreakdownResponse(BaseModel):
    start_date: date
    end_date: date
    currency: str
    costs: CostBreakdown


class RevenueLine(BaseModel):
    """Revenue attributed to one vendor or style."""

    key: int = Field(..., description="Vendor or style id.")
    name: str
    pcs_shipped: int = Field(..., ge=0)
    amount: Decimal


class RevenueBreakdown(BaseModel):
    """Revenue by vendor and by style, each sorted by amount descending."""

    start_date: date
    end_date: date
    currency: str
    total: Decimal
    by_vendor: list[RevenueLine]
    by_style: list[RevenueLine]
    unpriced_shipments: int = Field(0, ge=0)


class FinancialPeriod(str, Enum):
    """Named dashboard windows ending today."""

    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


class PeriodTotals(BaseModel):
    """Headline totals of the comparison period."""

    start_date: date
    end_date: date
    revenue: Decimal
    total_costs: Decimal
    gross_profit: Decimal


class FinancialSummary(BaseModel):
    """Headline figures for a window compared with the window before it.

    Trends are percent changes against a period of equal length ending the
    day before ``start_date``; null when that period's value is 0.
    """

    start_date: date
    end_date: date
    currency: str
    revenue: Decimal
    total_costs: Decimal
    cogs: Decimal
    gross_profit: Decimal
    margin: Decimal | None = None
    inventory_turnover: Decimal | None = Field(
        None,
        description="Materials consumed over average inventory value. Null without stock.",
    )
    previous: PeriodTotals
    revenue_trend: Decimal | None = None
    profit_trend: Decimal | None = None
    unpriced_shipments: int = Field(0, ge=0)


class InventoryTurnover(BaseModel):
    """Stock value at both ends of the window and how fast it was consumed."""

    opening_value: Decimal
    closing_value: Decimal
    average_value: Decimal
    materials_consumed: Decimal
    ratio: Decimal | None = Field(None, description="materials_consumed / average_value.")
    days_inventory_outstanding: Decimal | None = Field(
        None, description="Window length in days divided by the ratio."
    )


class SalesTurnover(BaseModel):
    revenue_per_day: Decimal
    revenue_per_week: Decimal
    revenue_per_month: Decimal = Field(..., description="Per-day revenue times 30.")


class FinancialRatios(BaseModel):
    """Ratios as percentages (25.00 = 25%); per-unit values per shipped piece."""

    return_on_sales: Decimal | None = None
    cost_to_income: Decimal | None = None
    cogs_per_unit: Decimal | None = None
    profit_per_unit: Decimal | None = None


class TurnoverMetrics(BaseModel):
    start_date: date
    end_date: date
    currency: str
    pcs_shipped: int = Field(..., ge=0)
    inventory: InventoryTurnover
    sales: SalesTurnover
    ratios: FinancialRatios


class FinancialDashboard(BaseModel):
    summary: FinancialSummary
    turnover: TurnoverMetrics
