"""Financial calculations over raw operational tables.

Statements read shipments, tailor jobs, inventory and cost entries directly
rather than the daily rollup, so every shipment is priced with the vendor
rate in force on its own date. Nothing is cached or persisted; each call
recomputes from the raw rows.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings
from app.core.exceptions import BadRequestError
from app.core.logging import get_logger
from app.features.data_platform.models import (
    FINISHED_JOB_STATUSES,
    CostCategory,
    CostEntry,
    InventoryTransaction,
    Shipment,
    Style,
    TailorJob,
    Vendor,
)
from app.features.financial.rates import RateBook, load_rate_book
from app.features.financial.schemas import (
    CostBreakdown,
    FinancialDashboard,
    FinancialRatios,
    FinancialSummary,
    InventoryTurnover,
    PeriodTotals,
    PLStatement,
    RevenueBreakdown,
    RevenueLine,
    SalesTurnover,
    TurnoverMetrics,
)
from app.shared.dates import range_window

logger = get_logger(__name__)

ZERO = Decimal("0")
CENT = Decimal("0.01")

STOCK_IN_TYPES = ("purchase", "return")
STOCK_OUT_TYPES = ("issue", "consumption")


@dataclass(frozen=True)
class ShipmentRecord:
    """Shipment fields needed for pricing."""

    id: int
    style_id: int
    vendor_id: int
    pcs_shipped: int
    date: date


@dataclass(frozen=True)
class PricedShipment:
    shipment: ShipmentRecord
    amount: Decimal
    priced: bool


def price_shipments(
    shipments: Iterable[ShipmentRecord], rate_book: RateBook
) -> list[PricedShipment]:
    """Price each shipment at the rate in force on its own date.

    Shipments with no applicable rate are kept with amount 0 and
    ``priced=False``.
    """
    priced: list[PricedShipment] = []
    for shipment in shipments:
        rate = rate_book.rate_on(shipment.style_id, shipment.vendor_id, shipment.date)
        if rate is None:
            priced.append(PricedShipment(shipment=shipment, amount=ZERO, priced=False))
        else:
            priced.append(
                PricedShipment(shipment=shipment, amount=rate * shipment.pcs_shipped, priced=True)
            )
    return priced


def build_cost_breakdown(
    tailor_wages: Decimal,
    materials: Decimal,
    entries: dict[str, Decimal],
) -> CostBreakdown:
    """Assemble a cost breakdown from the three cost sources.

    Args:
        tailor_wages: Wages for finished jobs.
        materials: Consumed inventory cost.
        entries: Approved cost-entry totals keyed by category.
    """
    parts = {
        "tailor_wages": tailor_wages,
        "materials": materials,
        "overhead": entries.get(CostCategory.OVERHEAD.value, ZERO),
        "logistics": entries.get(CostCategory.LOGISTICS.value, ZERO),
        "quality": entries.get(CostCategory.QUALITY.value, ZERO),
        "other": entries.get(CostCategory.OTHER.value, ZERO),
    }
    return CostBreakdown(**parts, total=sum(parts.values(), ZERO))


def build_pl_statement(
    start: date,
    end: date,
    currency: str,
    revenue: Decimal,
    costs: CostBreakdown,
    unpriced_shipments: int = 0,
) -> PLStatement:
    """Profit and loss from revenue and costs.

    ``margin`` is None when revenue is 0; a loss on zero revenue is still
    reported through ``gross_profit``.
    """
    gross_profit = revenue - costs.total
    margin = (gross_profit / revenue).quantize(Decimal("0.0001")) if revenue != 0 else None
    return PLStatement(
        start_date=start,
        end_date=end,
        currency=currency,
        revenue=revenue,
        costs=costs,
        cogs=costs.cogs,
        operating_expenses=costs.operating_expenses,
        gross_profit=gross_profit,
        margin=margin,
        unpriced_shipments=unpriced_shipments,
    )


def window_days(start: date, end: date) -> int:
    """Number of days in the inclusive window."""
    return (end - start).days + 1


def previous_window(start: date, end: date) -> tuple[date, date]:
    """Window of equal length ending the day before ``start``."""
    prev_end = start - timedelta(days=1)
    return prev_end - timedelta(days=window_days(start, end) - 1), prev_end


def percent_change(current: Decimal, previous: Decimal) -> Decimal | None:
    """Change from ``previous`` to ``current`` in percent; None when ``previous`` is 0."""
    if previous == 0:
        return None
    return ((current - previous) / abs(previous) * 100).quantize(CENT)


def _ratio(numerator: Decimal, denominator: Decimal | int | None) -> Decimal | None:
    if not denominator:
        return None
    return (numerator / denominator).quantize(CENT)


def build_inventory_turnover(
    opening_value: Decimal,
    closing_value: Decimal,
    materials_consumed: Decimal,
    days: int,
) -> InventoryTurnover:
    """Turnover of material stock over a window of ``days`` days.

    The ratio and days outstanding are None when the average stock value is
    not positive.
    """
    average = ((opening_value + closing_value) / 2).quantize(CENT)
    ratio = (
        (materials_consumed / average).quantize(Decimal("0.0001")) if average > 0 else None
    )
    days_outstanding = _ratio(Decimal(days), ratio)
    return InventoryTurnover(
        opening_value=opening_value,
        closing_value=closing_value,
        average_value=average,
        materials_consumed=materials_consumed,
        ratio=ratio,
        days_inventory_outstanding=days_outstanding,
    )


def build_turnover_metrics(
    statement: PLStatement,
    pcs_shipped: int,
    inventory: InventoryTurnover,
) -> TurnoverMetrics:
    """Sales velocity and profitability ratios for a P&L window."""
    revenue_per_day = (
        statement.revenue / window_days(statement.start_date, statement.end_date)
    ).quantize(CENT)
    ratios = FinancialRatios(
        return_on_sales=_ratio(statement.gross_profit * 100, statement.revenue),
        cost_to_income=_ratio(statement.costs.total * 100, statement.revenue),
        cogs_per_unit=_ratio(statement.cogs, pcs_shipped),
        profit_per_unit=_ratio(statement.gross_profit, pcs_shipped),
    )
    return TurnoverMetrics(
        start_date=statement.start_date,
        end_date=statement.end_date,
        currency=statement.currency,
        pcs_shipped=pcs_shipped,
        inventory=inventory,
        sales=SalesTurnover(
            revenue_per_day=revenue_per_day,
            revenue_per_week=revenue_per_day * 7,
            revenue_per_month=revenue_per_day * 30,
        ),
        ratios=ratios,
    )


def build_financial_summary(
    statement: PLStatement,
    previous: PLStatement,
    inventory_turnover: Decimal | None = None,
) -> FinancialSummary:
    """Headline figures for ``statement`` with trends against ``previous``."""
    return FinancialSummary(
        start_date=statement.start_date,
        end_date=statement.end_date,
        currency=statement.currency,
        revenue=statement.revenue,
        total_costs=statement.costs.total,
        cogs=statement.cogs,
        gross_profit=statement.gross_profit,
        margin=statement.margin,
        inventory_turnover=inventory_turnover,
        previous=PeriodTotals(
            start_date=previous.start_date,
            end_date=previous.end_date,
            revenue=previous.revenue,
            total_costs=previous.costs.total,
            gross_profit=previous.gross_profit,
        ),
        revenue_trend=percent_change(statement.revenue, previous.revenue),
        profit_trend=percent_change(statement.gross_profit, previous.gross_profit),
        unpriced_shipments=statement.unpriced_shipments,
    )


def _to_decimal(value: Any) -> Decimal:
    return Decimal(str(value)) if value is not None else ZERO


class FinancialCalculationService:
    """Revenue, cost and P&L for one tenant over inclusive date windows."""

    def __init__(self, tenant_id: str, settings: Settings) -> None:
        self.tenant_id = tenant_id
        self.settings = settings

    @staticmethod
    def _check_window(start: date, end: date) -> None:
        if start > end:
            raise BadRequestError(
                message="start must not be after end",
                details={"start": str(start), "end": str(end)},
            )

    async def _load_shipments(
        self, db: AsyncSession, start: date, end: date
    ) -> list[ShipmentRecord]:
        stmt = (
            select(
                Shipment.id,
                Shipment.style_id,
                Shipment.vendor_id,
                Shipment.pcs_shipped,
                Shipment.date,
            )
            .join(Style, Shipment.style_id == Style.id)
            .where(Style.tenant_id == self.tenant_id)
            .where((Shipment.date >= start) & (Shipment.date <= end))
            .order_by(Shipment.date, Shipment.id)
        )
        result = await db.execute(stmt)
        return [
            ShipmentRecord(
                id=row.id,
                style_id=row.style_id,
                vendor_id=row.vendor_id,
                pcs_shipped=row.pcs_shipped or 0,
                date=row.date,
            )
            for row in result
        ]

    async def _priced_shipments(
        self, db: AsyncSession, start: date, end: date
    ) -> list[PricedShipment]:
        shipments = await self._load_shipments(db, start, end)
        rate_book = await load_rate_book(db, {s.style_id for s in shipments})
        priced = price_shipments(shipments, rate_book)

        unpriced = [p.shipment.id for p in priced if not p.priced]
        if unpriced:
            logger.warning(
                "financial.shipments_unpriced",
                tenant_id=self.tenant_id,
                start_date=str(start),
                end_date=str(end),
                count=len(unpriced),
                shipment_ids=unpriced[:20],
            )
        return priced

    async def calculate_revenue(self, db: AsyncSession, start: date, end: date) -> Decimal:
        """Shipped pieces times the vendor rate in force on each shipment date.

        Args:
            db: Database session.
            start: First day (inclusive).
            end: Last day (inclusive).

        Returns:
            Total revenue.
        """
        self._check_window(start, end)
        priced = await self._priced_shipments(db, start, end)
        return sum((p.amount for p in priced), ZERO)

    async def calculate_revenue_breakdown(
        self, db: AsyncSession, start: date, end: date
    ) -> RevenueBreakdown:
        """Revenue grouped by vendor and by style, largest first."""
        self._check_window(start, end)
        priced = await self._priced_shipments(db, start, end)

        by_vendor: dict[int, tuple[int, Decimal]] = {}
        by_style: dict[int, tuple[int, Decimal]] = {}
        for p in priced:
            s = p.shipment
            pcs, amount = by_vendor.get(s.vendor_id, (0, ZERO))
            by_vendor[s.vendor_id] = (pcs + s.pcs_shipped, amount + p.amount)
            pcs, amount = by_style.get(s.style_id, (0, ZERO))
            by_style[s.style_id] = (pcs + s.pcs_shipped, amount + p.amount)

        vendor_names = await self._names(db, Vendor, by_vendor.keys())
        style_names = await self._names(db, Style, by_style.keys())

        def lines(
            totals: dict[int, tuple[int, Decimal]], names: dict[int, str]
        ) -> list[RevenueLine]:
            ordered = sorted(totals.items(), key=lambda item: (-item[1][1], item[0]))
            return [
                RevenueLine(key=key, name=names.get(key, "Unknown"), pcs_shipped=pcs, amount=amount)
                for key, (pcs, amount) in ordered
            ]

        total = sum((p.amount for p in priced), ZERO)
        logger.info(
            "financial.revenue_breakdown_computed",
            tenant_id=self.tenant_id,
            start_date=str(start),
            end_date=str(end),
            vendors=len(by_vendor),
            styles=len(by_style),
        )
        return RevenueBreakdown(
            start_date=start,
            end_date=end,
            currency=self.settings.currency,
            total=total,
            by_vendor=lines(by_vendor, vendor_names),
            by_style=lines(by_style, style_names),
            unpriced_shipments=sum(1 for p in priced if not p.priced),
        )

    async def _names(self, db: AsyncSession, model: Any, ids: Iterable[int]) -> dict[int, str]:
        ids = list(ids)
        if not ids:
            return {}
        stmt = select(model.id, model.name).where(
            model.id.in_(ids), model.tenant_id == self.tenant_id
        )
        result = await db.execute(stmt)
        return {row.id: row.name for row in result}

    async def _tailor_wages(self, db: AsyncSession, start: date, end: date) -> Decimal:
        window_start, window_end = range_window(start, end, self.settings.tzinfo)
        finished_at = func.coalesce(TailorJob.completed_date, TailorJob.updated_at)
        stmt = (
            select(
                func.coalesce(
                    func.sum(func.coalesce(TailorJob.returned_pcs, 0) * TailorJob.rate), 0
                )
            )
            .join(Style, TailorJob.style_id == Style.id)
            .where(Style.tenant_id == self.tenant_id)
            .where(TailorJob.status.in_(FINISHED_JOB_STATUSES))
            .where((finished_at >= window_start) & (finished_at < window_end))
        )
        return _to_decimal((await db.execute(stmt)).scalar_one())

    async def _material_cost(self, db: AsyncSession, start: date, end: date) -> Decimal:
        window_start, window_end = range_window(start, end, self.settings.tzinfo)
        stmt = (
            select(func.coalesce(func.sum(InventoryTransaction.total_cost), 0))
            .where(InventoryTransaction.tenant_id == self.tenant_id)
            .where(InventoryTransaction.transaction_type == "consumption")
            .where(
                (InventoryTransaction.transaction_date >= window_start)
                & (InventoryTransaction.transaction_date < window_end)
            )
        )
        return _to_decimal((await db.execute(stmt)).scalar_one())

    async def _cost_entries(self, db: AsyncSession, start: date, end: date) -> dict[str, Decimal]:
        stmt = (
            select(CostEntry.category, func.coalesce(func.sum(CostEntry.amount), 0).label("total"))
            .where(CostEntry.tenant_id == self.tenant_id)
            .where(CostEntry.status == "approved")
            .where((CostEntry.entry_date >= start) & (CostEntry.entry_date <= end))
            .group_by(CostEntry.category)
        )
        result = await db.execute(stmt)
        return {row.category: _to_decimal(row.total) for row in result}

    async def calculate_costs(self, db: AsyncSession, start: date, end: date) -> CostBreakdown:
        """Costs by category for the window.

        Args:
            db: Database session.
            start: First day (inclusive).
            end: Last day (inclusive).

        Returns:
            Breakdown with tailor wages, materials and approved cost entries.
        """
        self._check_window(start, end)
        costs = build_cost_breakdown(
            tailor_wages=await self._tailor_wages(db, start, end),
            materials=await self._material_cost(db, start, end),
            entries=await self._cost_entries(db, start, end),
        )
        logger.info(
            "financial.costs_computed",
            tenant_id=self.tenant_id,
            start_date=str(start),
            end_date=str(end),
            total=str(costs.total),
        )
        return costs

    async def _statement(
        self, db: AsyncSession, start: date, end: date
    ) -> tuple[PLStatement, int]:
        """P&L for the window and the number of pieces shipped in it."""
        priced = await self._priced_shipments(db, start, end)
        revenue = sum((p.amount for p in priced), ZERO)
        costs = await self.calculate_costs(db, start, end)
        statement = build_pl_statement(
            start,
            end,
            self.settings.currency,
            revenue,
            costs,
            unpriced_shipments=sum(1 for p in priced if not p.priced),
        )
        return statement, sum(p.shipment.pcs_shipped for p in priced)

    async def calculate_pl_statement(
        self, db: AsyncSession, start: date, end: date
    ) -> PLStatement:
        """Profit and loss statement for the window.

        Args:
            db: Database session.
            start: First day (inclusive).
            end: Last day (inclusive).

        Returns:
            Revenue, costs, gross profit and margin.
        """
        self._check_window(start, end)
        statement, _ = await self._statement(db, start, end)
        logger.info(
            "financial.pl_computed",
            tenant_id=self.tenant_id,
            start_date=str(start),
            end_date=str(end),
            revenue=str(statement.revenue),
            gross_profit=str(statement.gross_profit),
            margin=str(statement.margin) if statement.margin is not None else None,
        )
        return statement

    async def _inventory_value(self, db: AsyncSession, before: datetime) -> Decimal:
        """Stock value from every movement recorded before ``before``.

        Purchases and returns add to stock, issues and consumption remove
        from it, adjustments count with their recorded sign.
        """
        cost = InventoryTransaction.total_cost
        signed = case(
            (InventoryTransaction.transaction_type.in_(STOCK_IN_TYPES), cost),
            (InventoryTransaction.transaction_type.in_(STOCK_OUT_TYPES), -cost),
            else_=cost,
        )
        stmt = (
            select(func.coalesce(func.sum(signed), 0))
            .where(InventoryTransaction.tenant_id == self.tenant_id)
            .where(InventoryTransaction.transaction_date < before)
        )
        return _to_decimal((await db.execute(stmt)).scalar_one())

    async def calculate_inventory_turnover(
        self,
        db: AsyncSession,
        start: date,
        end: date,
        materials: Decimal | None = None,
    ) -> InventoryTurnover:
        """Material cost consumed over the average stock value of the window.

        Args:
            db: Database session.
            start: First day (inclusive).
            end: Last day (inclusive).
            materials: Consumed material cost when already known.

        Returns:
            Opening, closing and average stock value with the turnover ratio.
        """
        self._check_window(start, end)
        window_start, window_end = range_window(start, end, self.settings.tzinfo)
        if materials is None:
            materials = await self._material_cost(db, start, end)
        return build_inventory_turnover(
            opening_value=await self._inventory_value(db, window_start),
            closing_value=await self._inventory_value(db, window_end),
            materials_consumed=materials,
            days=window_days(start, end),
        )

    async def calculate_turnover_metrics(
        self, db: AsyncSession, start: date, end: date
    ) -> TurnoverMetrics:
        """Inventory turnover, sales velocity and profitability ratios."""
        self._check_window(start, end)
        statement, pcs = await self._statement(db, start, end)
        inventory = await self.calculate_inventory_turnover(
            db, start, end, materials=statement.costs.materials
        )
        return build_turnover_metrics(statement, pcs, inventory)

    async def calculate_financial_summary(
        self, db: AsyncSession, start: date, end: date
    ) -> FinancialSummary:
        """Headline figures with trends against the preceding window of equal length."""
        self._check_window(start, end)
        statement, _ = await self._statement(db, start, end)
        previous, _ = await self._statement(db, *previous_window(start, end))
        inventory = await self.calculate_inventory_turnover(
            db, start, end, materials=statement.costs.materials
        )
        return build_financial_summary(statement, previous, inventory.ratio)

    async def calculate_dashboard(
        self, db: AsyncSession, start: date, end: date
    ) -> FinancialDashboard:
        """Summary and turnover metrics computed from one pass over the window."""
        self._check_window(start, end)
        statement, pcs = await self._statement(db, start, end)
        previous, _ = await self._statement(db, *previous_window(start, end))
        inventory = await self.calculate_inventory_turnover(
            db, start, end, materials=statement.costs.materials
        )
        dashboard = FinancialDashboard(
            summary=build_financial_summary(statement, previous, inventory.ratio),
            turnover=build_turnover_metrics(statement, pcs, inventory),
        )
        logger.info(
            "financial.dashboard_computed",
            tenant_id=self.tenant_id,
            start_date=str(start),
            end_date=str(end),
            revenue=str(statement.revenue),
            revenue_trend=str(dashboard.summary.revenue_trend),
            inventory_turnover=str(inventory.ratio),
        )
        return dashboard
