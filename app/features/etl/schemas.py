"""Pydantic schemas for the daily analytics refresh."""

from datetime import date as date_type

from pydantic import BaseModel, Field


class StyleFailure(BaseModel):
    """A style whose aggregate could not be written."""

    style_id: int = Field(..., description="Style that failed")
    error_type: str = Field(..., description="Exception class name")
    error: str = Field(..., description="Error message")


class RefreshSummary(BaseModel):
    """Outcome of refreshing one tenant for one day.

    ``success`` is False only when the tenant run itself failed (e.g. the raw
    queries could not be read). Per-style failures leave ``success`` True and
    are listed in ``failures``; the other styles' rows are still written.
    """

    tenant_id: str = Field(..., description="Tenant refreshed")
    date: date_type = Field(..., description="Calendar day refreshed")
    success: bool = Field(True, description="False if the tenant run aborted")
    styles_processed: int = Field(0, ge=0, description="Styles considered")
    records_written: int = Field(0, ge=0, description="Aggregate rows upserted")
    failures: list[StyleFailure] = Field(default=[], description="Per-style failures")
    error: str | None = Field(None, description="Tenant-level error, if any")

    @property
    def is_partial(self) -> bool:
        """Completed, but some styles failed."""
        return self.success and bool(self.failures)


class RefreshBatchResponse(BaseModel):
    """Response body for the cron refresh endpoint."""

    success: bool = Field(..., description="True if every tenant run completed")
    date: date_type = Field(..., description="Calendar day refreshed")
    results: list[RefreshSummary] = Field(..., description="One entry per tenant")
    duration_ms: float = Field(..., ge=0, description="Processing duration in milliseconds")
