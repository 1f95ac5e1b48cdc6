"""Daily ETL refresh of the analytics rollup."""

from app.features.etl.routes import router
from app.features.etl.schemas import RefreshBatchResponse, RefreshSummary, StyleFailure
from app.features.etl.service import DailyRefresher, build_daily_rows

__all__ = [
    "DailyRefresher",
    "RefreshBatchResponse",
    "RefreshSummary",
    "StyleFailure",
    "build_daily_rows",
    "router",
]
