"""Daily analytics refresher.

Recomputes one ``analytics_daily`` row per (tenant, style) for a calendar day
from the raw cutting, tailor-job and shipment tables, then upserts it on the
(tenant_id, style_id, date) key. Rows are rebuilt wholesale on every run, so
re-running a day overwrites instead of accumulating.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date as date_type
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings
from app.core.logging import get_logger
from app.features.data_platform.metrics import (
    in_production_orders_count,
    in_production_pcs_sum,
    issued_pcs_sum,
    tailor_expense_sum,
)
from app.features.data_platform.models import (
    DailyAggregate,
    FabricCutting,
    Shipment,
    Style,
    TailorJob,
)
from app.features.etl.schemas import RefreshSummary, StyleFailure
from app.features.financial.rates import RateBook, load_rate_book
from app.shared.dates import day_window

logger = get_logger(__name__)

# Columns overwritten when a row for the same grain already exists
REFRESHED_COLUMNS: tuple[str, ...] = (
    "vendor_id",
    "cutting_received",
    "issued_pcs",
    "in_production_pcs",
    "in_production_orders",
    "tailor_expense",
    "shipped_pcs",
    "revenue",
)


@dataclass(frozen=True)
class StyleRef:
    """Style id and the vendor it belongs to."""

    id: int
    vendor_id: int | None


@dataclass(frozen=True)
class JobTotals:
    """Tailor-job totals for one style on one day."""

    issued_pcs: int = 0
    in_production_pcs: int = 0
    in_production_orders: int = 0
    tailor_expense: Decimal = Decimal("0")


@dataclass(frozen=True)
class ShipmentLine:
    """Pieces shipped for one (style, vendor) on one day."""

    style_id: int
    vendor_id: int
    pcs_shipped: int


def build_daily_rows(
    tenant_id: str,
    day: date_type,
    styles: Iterable[StyleRef],
    cutting: Mapping[int, int],
    jobs: Mapping[int, JobTotals],
    shipments: Iterable[ShipmentLine],
    rate_book: RateBook,
) -> list[dict[str, Any]]:
    """Assemble one aggregate row per style from pre-grouped raw totals.

    Styles with no activity still get a row with every metric at zero.
    Shipments are priced with the vendor rate in force on ``day``; a shipment
    with no rate contributes pieces but no revenue.

    Args:
        tenant_id: Tenant being refreshed.
        day: Calendar day.
        styles: Every style of the tenant.
        cutting: style_id -> pieces cut.
        jobs: style_id -> tailor-job totals.
        shipments: Shipped pieces per (style, vendor).
        rate_book: Price history for the tenant's styles.

    Returns:
        Rows ready for upsert into ``analytics_daily``, ordered by style id.
    """
    shipped: dict[int, int] = {}
    revenue: dict[int, Decimal] = {}
    for line in shipments:
        shipped[line.style_id] = shipped.get(line.style_id, 0) + line.pcs_shipped
        rate = rate_book.rate_on(line.style_id, line.vendor_id, day)
        if rate is None:
            logger.warning(
                "etl.shipment_unpriced",
                tenant_id=tenant_id,
                style_id=line.style_id,
                vendor_id=line.vendor_id,
                date=str(day),
            )
            continue
        revenue[line.style_id] = revenue.get(line.style_id, Decimal("0")) + rate * line.pcs_shipped

    rows: list[dict[str, Any]] = []
    for style in sorted(styles, key=lambda s: s.id):
        totals = jobs.get(style.id, JobTotals())
        rows.append(
            {
                "tenant_id": tenant_id,
                "style_id": style.id,
                "vendor_id": style.vendor_id,
                "date": day,
                "cutting_received": int(cutting.get(style.id, 0)),
                "issued_pcs": totals.issued_pcs,
                "in_production_pcs": totals.in_production_pcs,
                "in_production_orders": totals.in_production_orders,
                "tailor_expense": totals.tailor_expense,
                "shipped_pcs": shipped.get(style.id, 0),
                "revenue": revenue.get(style.id, Decimal("0")),
            }
        )
    return rows


class DailyRefresher:
    """Rebuilds the daily aggregate for one tenant or every tenant."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    async def list_tenants(self, db: AsyncSession) -> list[str]:
        """Distinct tenants that own at least one style."""
        stmt = select(Style.tenant_id).distinct().order_by(Style.tenant_id)
        result = await db.execute(stmt)
        return [row.tenant_id for row in result]

    async def refresh(self, db: AsyncSession, tenant_id: str, day: date_type) -> RefreshSummary:
        """Refresh every style of a tenant for one calendar day.

        Each style is written inside its own savepoint: a failing style is
        rolled back and reported while the others are kept and committed.

        Args:
            db: Database session.
            tenant_id: Tenant to refresh.
            day: Calendar day (window is the whole day in the analytics timezone).

        Returns:
            Summary with processed/written counts and per-style failures.
        """
        logger.info("etl.refresh_started", tenant_id=tenant_id, date=str(day))

        styles = await self._load_styles(db, tenant_id)
        cutting = await self._load_cutting(db, tenant_id, day)
        jobs = await self._load_jobs(db, tenant_id, day)
        shipments = await self._load_shipments(db, tenant_id, day)
        rate_book = await load_rate_book(db, {line.style_id for line in shipments})

        rows = build_daily_rows(tenant_id, day, styles, cutting, jobs, shipments, rate_book)

        written = 0
        failures: list[StyleFailure] = []
        for row in rows:
            try:
                async with db.begin_nested():
                    await self._upsert_row(db, row)
                written += 1
            except Exception as e:
                logger.error(
                    "etl.style_failed",
                    tenant_id=tenant_id,
                    style_id=row["style_id"],
                    date=str(day),
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
                failures.append(
                    StyleFailure(
                        style_id=row["style_id"],
                        error_type=type(e).__name__,
                        error=str(e),
                    )
                )

        await db.commit()

        logger.info(
            "etl.refresh_completed",
            tenant_id=tenant_id,
            date=str(day),
            styles_processed=len(rows),
            records_written=written,
            failed=len(failures),
        )

        return RefreshSummary(
            tenant_id=tenant_id,
            date=day,
            styles_processed=len(rows),
            records_written=written,
            failures=failures,
        )

    async def refresh_all(
        self,
        db: AsyncSession,
        day: date_type,
        tenant_ids: Iterable[str] | None = None,
    ) -> list[RefreshSummary]:
        """Refresh many tenants; one tenant failing never stops the others.

        Tenants already refreshed stay committed when a later one fails.

        Args:
            db: Database session.
            day: Calendar day.
            tenant_ids: Tenants to refresh (default: every tenant with styles).

        Returns:
            One summary per tenant, in processing order.
        """
        tenants = list(tenant_ids) if tenant_ids is not None else await self.list_tenants(db)
        logger.info("etl.batch_started", date=str(day), tenant_count=len(tenants))

        results: list[RefreshSummary] = []
        for tenant_id in tenants:
            try:
                results.append(await self.refresh(db, tenant_id, day))
            except Exception as e:
                await db.rollback()
                logger.error(
                    "etl.tenant_failed",
                    tenant_id=tenant_id,
                    date=str(day),
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
                results.append(
                    RefreshSummary(tenant_id=tenant_id, date=day, success=False, error=str(e))
                )

        logger.info(
            "etl.batch_completed",
            date=str(day),
            tenant_count=len(tenants),
            failed_tenants=sum(1 for r in results if not r.success),
        )
        return results

    async def _load_styles(self, db: AsyncSession, tenant_id: str) -> list[StyleRef]:
        stmt = select(Style.id, Style.vendor_id).where(Style.tenant_id == tenant_id)
        result = await db.execute(stmt.order_by(Style.id))
        return [StyleRef(id=row.id, vendor_id=row.vendor_id) for row in result]

    async def _load_cutting(
        self, db: AsyncSession, tenant_id: str, day: date_type
    ) -> dict[int, int]:
        start, end = day_window(day, self.settings.tzinfo)
        stmt = (
            select(
                FabricCutting.style_id,
                func.coalesce(func.sum(FabricCutting.total_qty), 0).label("total_qty"),
            )
            .where(FabricCutting.tenant_id == tenant_id)
            .where((FabricCutting.created_at >= start) & (FabricCutting.created_at < end))
            .group_by(FabricCutting.style_id)
        )
        result = await db.execute(stmt)
        return {row.style_id: int(row.total_qty) for row in result}

    async def _load_jobs(
        self, db: AsyncSession, tenant_id: str, day: date_type
    ) -> dict[int, JobTotals]:
        start, end = day_window(day, self.settings.tzinfo)
        stmt = (
            select(
                TailorJob.style_id,
                issued_pcs_sum().label("issued_pcs"),
                in_production_pcs_sum().label("in_production_pcs"),
                in_production_orders_count().label("in_production_orders"),
                tailor_expense_sum().label("tailor_expense"),
            )
            .join(Style, TailorJob.style_id == Style.id)
            .where(Style.tenant_id == tenant_id)
            .where((TailorJob.issue_date >= start) & (TailorJob.issue_date < end))
            .group_by(TailorJob.style_id)
        )
        result = await db.execute(stmt)
        return {
            row.style_id: JobTotals(
                issued_pcs=int(row.issued_pcs),
                in_production_pcs=int(row.in_production_pcs),
                in_production_orders=int(row.in_production_orders),
                tailor_expense=Decimal(str(row.tailor_expense)),
            )
            for row in result
        }

    async def _load_shipments(
        self, db: AsyncSession, tenant_id: str, day: date_type
    ) -> list[ShipmentLine]:
        stmt = (
            select(
                Shipment.style_id,
                Shipment.vendor_id,
                func.coalesce(func.sum(Shipment.pcs_shipped), 0).label("pcs_shipped"),
            )
            .join(Style, Shipment.style_id == Style.id)
            .where(Style.tenant_id == tenant_id)
            .where(Shipment.date == day)
            .group_by(Shipment.style_id, Shipment.vendor_id)
        )
        result = await db.execute(stmt)
        return [
            ShipmentLine(
                style_id=row.style_id,
                vendor_id=row.vendor_id,
                pcs_shipped=int(row.pcs_shipped),
            )
            for row in result
        ]

    async def _upsert_row(self, db: AsyncSession, row: dict[str, Any]) -> None:
        stmt = pg_insert(DailyAggregate).values(**row)
        stmt = stmt.on_conflict_do_update(
            constraint="uq_analytics_daily_grain",
            set_={
                **{column: stmt.excluded[column] for column in REFRESHED_COLUMNS},
                "updated_at": func.now(),
            },
        )
        await db.execute(stmt)
