"""Cron endpoint triggering the daily analytics refresh."""

import time
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings
from app.core.database import get_app_settings, get_db
from app.core.identity import verify_cron_secret
from app.core.logging import get_logger
from app.features.etl.schemas import RefreshBatchResponse
from app.features.etl.service import DailyRefresher
from app.shared.dates import today

logger = get_logger(__name__)

router = APIRouter(prefix="/cron", tags=["etl"], dependencies=[Depends(verify_cron_secret)])


@router.api_route(
    "/analytics",
    methods=["GET", "POST"],
    response_model=RefreshBatchResponse,
    summary="Refresh daily analytics aggregates",
    description="""
Rebuild the `analytics_daily` rows for one calendar day.

**Authorization**: `Authorization: Bearer <CRON_SECRET>`. Session headers are
not accepted here.

**Scope**: every tenant that owns a style, or only `tenant_id` when given.

**Idempotency**: rows are upserted on (tenant_id, style_id, date); running the
same day twice yields the same rows.

**Partial Success**: a failing style or tenant is reported in `results` while
the rest are still written. `success` is false when any tenant run aborted.
""",
)
async def refresh_analytics(
    day: date | None = Query(
        None,
        alias="date",
        description="Day to refresh (YYYY-MM-DD). Defaults to today.",
    ),
    tenant_id: str | None = Query(None, description="Refresh only this tenant."),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> RefreshBatchResponse:
    """Run the refresher for one day.

    Args:
        day: Day to refresh (defaults to today in the analytics timezone).
        tenant_id: Optional single tenant.
        db: Database session.
        settings: Settings from the application context.

    Returns:
        Per-tenant summaries.
    """
    start_time = time.perf_counter()
    target_day = day or today(settings.tzinfo)

    logger.info("etl.cron_triggered", date=str(target_day), tenant_id=tenant_id)

    refresher = DailyRefresher(settings)
    results = await refresher.refresh_all(
        db,
        target_day,
        tenant_ids=[tenant_id] if tenant_id else None,
    )

    duration_ms = (time.perf_counter() - start_time) * 1000
    return RefreshBatchResponse(
        success=all(r.success for r in results),
        date=target_day,
        results=results,
        duration_ms=round(duration_ms, 2),
    )
