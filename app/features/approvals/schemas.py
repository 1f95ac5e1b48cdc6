"""Pydantic schemas for approval requests.

Each target entity has its own update schema. Unknown fields are rejected so
a request can only ever touch the columns listed here.
"""

import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.features.approvals.models import ApprovalAction, ApprovalStatus, ApprovalTarget
from app.features.data_platform.models import JobStatus

# =============================================================================
# Per-target update schemas
# =============================================================================


class _UpdateSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")


class VendorUpdate(_UpdateSchema):
    code: str | None = Field(None, min_length=1, max_length=30)
    name: str | None = Field(None, min_length=1, max_length=200)
    contact_phone: str | None = Field(None, max_length=30)


class StyleUpdate(_UpdateSchema):
    code: str | None = Field(None, min_length=1, max_length=50)
    name: str | None = Field(None, min_length=1, max_length=200)
    fabric_type: str | None = Field(None, max_length=100)


class TailorUpdate(_UpdateSchema):
    name: str | None = Field(None, min_length=1, max_length=200)
    phone: str | None = Field(None, max_length=30)
    daily_capacity: int | None = Field(None, ge=0)


class RateUpdate(_UpdateSchema):
    vendor_rate: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)
    effective_date: datetime.date | None = None


class ShipmentUpdate(_UpdateSchema):
    pcs_shipped: int | None = Field(None, ge=0)
    date: datetime.date | None = None
    challan_no: str | None = Field(None, min_length=1, max_length=50)
    notes: str | None = Field(None, max_length=500)


class FabricCuttingUpdate(_UpdateSchema):
    total_qty: int | None = Field(None, ge=0)
    fabric_received_meters: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)
    cutting_in_house: bool | None = None
    notes: str | None = Field(None, max_length=500)


class TailorJobUpdate(_UpdateSchema):
    returned_pcs: int | None = Field(None, ge=0)
    rejected_pcs: int | None = Field(None, ge=0)
    rate: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)
    status: JobStatus | None = None
    completed_date: datetime.datetime | None = None

    @model_validator(mode="after")
    def rejected_within_returned(self) -> "TailorJobUpdate":
        if (
            self.returned_pcs is not None
            and self.rejected_pcs is not None
            and self.rejected_pcs > self.returned_pcs
        ):
            raise ValueError("rejected_pcs cannot exceed returned_pcs")
        return self


# =============================================================================
# Request / decision schemas
# =============================================================================


class ApprovalDecision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class ApprovalCreate(BaseModel):
    """Request a change that takes effect once approved.

    For `update`, `payload` holds the new field values and is checked against
    the target's update schema. For `soft_delete`, `payload` must be empty.
    """

    target: ApprovalTarget = Field(..., description="Entity type to change.")
    target_id: int = Field(..., ge=1, description="Primary key of the row to change.")
    action: ApprovalAction = Field(ApprovalAction.UPDATE, description="update or soft_delete.")
    payload: dict[str, Any] = Field(default_factory=dict, description="Field values to apply.")


class ApprovalDecide(BaseModel):
    decision: ApprovalDecision
    remarks: str | None = Field(None, max_length=1000)


class ApprovalResponse(BaseModel):
    """A change request and its decision state."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    target: ApprovalTarget
    target_id: int
    action: ApprovalAction
    payload: dict[str, Any]
    status: ApprovalStatus
    requested_by: str
    requested_role: str
    decided_by: str | None = None
    remarks: str | None = None
    decided_at: datetime.datetime | None = None
    created_at: datetime.datetime
    updated_at: datetime.datetime


class ApprovalListResponse(BaseModel):
    approvals: list[ApprovalResponse]
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)
