"""Data platform ORM models for the apparel manufacturing portal.

Three groups of tables:
- Master data: Vendor, Tailor, Style
- Raw operational records: FabricCutting, TailorJob, Shipment, Rate,
  CostEntry, InventoryTransaction
- Rollup: DailyAggregate (analytics_daily)

Every row is scoped to a tenant, either directly (``tenant_id``) or through
its style. Grain: DailyAggregate is uniquely keyed by (tenant_id, style_id, date).
"""

import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base
from app.shared.models import SoftDeleteMixin, TimestampMixin


class JobStatus(str, Enum):
    """Tailor job lifecycle states.

    - PENDING -> IN_PROGRESS -> COMPLETED -> READY_TO_SHIP -> SHIPPED
    """

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    READY_TO_SHIP = "ready-to-ship"
    SHIPPED = "shipped"


# Jobs still holding pieces at the tailor
ACTIVE_JOB_STATUSES: tuple[str, ...] = (JobStatus.PENDING.value, JobStatus.IN_PROGRESS.value)
# Jobs whose returned pieces are payable
FINISHED_JOB_STATUSES: tuple[str, ...] = (
    JobStatus.COMPLETED.value,
    JobStatus.READY_TO_SHIP.value,
    JobStatus.SHIPPED.value,
)


class CostCategory(str, Enum):
    """Categories of manually entered costs."""

    OVERHEAD = "overhead"
    LOGISTICS = "logistics"
    QUALITY = "quality"
    OTHER = "other"


# ============================================================================
# MASTER DATA
# ============================================================================


class Vendor(TimestampMixin, SoftDeleteMixin, Base):
    """Vendor (brand/customer) placing garment orders.

    Attributes:
        id: Primary key.
        tenant_id: Owning tenant.
        code: Vendor code, unique within the tenant.
        name: Display name.
        contact_phone: Optional phone number.
    """

    __tablename__ = "vendor"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), index=True)
    code: Mapped[str] = mapped_column(String(30))
    name: Mapped[str] = mapped_column(String(200))
    contact_phone: Mapped[str | None] = mapped_column(String(30), nullable=True)

    __table_args__ = (UniqueConstraint("tenant_id", "code", name="uq_vendor_tenant_code"),)


class Tailor(TimestampMixin, SoftDeleteMixin, Base):
    """Tailor receiving piece-rate jobs.

    Attributes:
        id: Primary key.
        tenant_id: Owning tenant.
        name: Display name.
        phone: Optional phone number.
        daily_capacity: Pieces the tailor can typically finish per day.
    """

    __tablename__ = "tailor"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), index=True)
    name: Mapped[str] = mapped_column(String(200))
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    daily_capacity: Mapped[int | None] = mapped_column(Integer, nullable=True)


class Style(TimestampMixin, SoftDeleteMixin, Base):
    """Garment product definition belonging to one vendor.

    Attributes:
        id: Primary key.
        tenant_id: Owning tenant.
        vendor_id: Vendor the style is made for (FK).
        code: Style code, unique within the tenant.
        name: Display name.
        fabric_type: Fabric description.
    """

    __tablename__ = "style"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), index=True)
    vendor_id: Mapped[int] = mapped_column(Integer, ForeignKey("vendor.id"), index=True)
    code: Mapped[str] = mapped_column(String(50))
    name: Mapped[str] = mapped_column(String(200))
    fabric_type: Mapped[str | None] = mapped_column(String(100), nullable=True)

    vendor: Mapped["Vendor"] = relationship()

    __table_args__ = (UniqueConstraint("tenant_id", "code", name="uq_style_tenant_code"),)


# ============================================================================
# RAW OPERATIONAL RECORDS
# ============================================================================


class FabricCutting(TimestampMixin, Base):
    """Fabric received and cut into pieces for a style.

    The cutting day is ``created_at``.

    Attributes:
        id: Primary key.
        tenant_id: Owning tenant.
        style_id: Style (FK).
        vendor_id: Vendor that supplied the fabric (FK).
        total_qty: Cut pieces produced.
        fabric_received_meters: Fabric received.
        cutting_in_house: False when the vendor sent pre-cut pieces.
    """

    __tablename__ = "fabric_cutting"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), index=True)
    style_id: Mapped[int] = mapped_column(Integer, ForeignKey("style.id"), index=True)
    vendor_id: Mapped[int] = mapped_column(Integer, ForeignKey("vendor.id"), index=True)
    total_qty: Mapped[int] = mapped_column(Integer)
    fabric_received_meters: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    cutting_in_house: Mapped[bool] = mapped_column(Boolean, default=True)
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)

    __table_args__ = (
        Index("ix_fabric_cutting_tenant_created", "tenant_id", "created_at"),
        CheckConstraint("total_qty >= 0", name="ck_fabric_cutting_qty_positive"),
    )


class TailorJob(TimestampMixin, Base):
    """Pieces of a style issued to a tailor at a piece rate.

    Attributes:
        id: Primary key.
        style_id: Style (FK). Tenant comes from the style.
        tailor_id: Tailor (FK).
        fabric_cutting_id: Cutting the pieces came from (FK, optional).
        issued_pcs: Pieces handed to the tailor.
        returned_pcs: Pieces returned finished.
        rejected_pcs: Returned pieces rejected in QC.
        rate: Pay per piece.
        status: JobStatus value.
        issue_date: When the pieces were issued.
        completed_date: When the job was finished (optional).
    """

    __tablename__ = "tailor_job"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    style_id: Mapped[int] = mapped_column(Integer, ForeignKey("style.id"), index=True)
    tailor_id: Mapped[int] = mapped_column(Integer, ForeignKey("tailor.id"), index=True)
    fabric_cutting_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("fabric_cutting.id"), nullable=True
    )
    issued_pcs: Mapped[int] = mapped_column(Integer)
    returned_pcs: Mapped[int] = mapped_column(Integer, default=0)
    rejected_pcs: Mapped[int] = mapped_column(Integer, default=0)
    rate: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    status: Mapped[str] = mapped_column(String(20), default=JobStatus.PENDING.value)
    issue_date: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), index=True)
    completed_date: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_tailor_job_tailor_status", "tailor_id", "status"),
        CheckConstraint(
            "status IN ('pending', 'in-progress', 'completed', 'ready-to-ship', 'shipped')",
            name="ck_tailor_job_valid_status",
        ),
        CheckConstraint("issued_pcs >= 0", name="ck_tailor_job_issued_positive"),
        CheckConstraint(
            "returned_pcs >= 0 AND returned_pcs <= issued_pcs",
            name="ck_tailor_job_returned_range",
        ),
        CheckConstraint("rate >= 0", name="ck_tailor_job_rate_positive"),
    )


class Shipment(TimestampMixin, Base):
    """Finished pieces shipped to a vendor.

    Attributes:
        id: Primary key.
        style_id: Style (FK). Tenant comes from the style.
        vendor_id: Receiving vendor (FK).
        pcs_shipped: Pieces shipped.
        date: Shipment date.
        challan_no: Delivery challan number.
    """

    __tablename__ = "shipment"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    style_id: Mapped[int] = mapped_column(Integer, ForeignKey("style.id"), index=True)
    vendor_id: Mapped[int] = mapped_column(Integer, ForeignKey("vendor.id"), index=True)
    pcs_shipped: Mapped[int] = mapped_column(Integer)
    date: Mapped[datetime.date] = mapped_column(Date, index=True)
    challan_no: Mapped[str] = mapped_column(String(50))
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)

    __table_args__ = (CheckConstraint("pcs_shipped >= 0", name="ck_shipment_pcs_positive"),)


class Rate(TimestampMixin, Base):
    """Vendor price per piece for a style, valid from ``effective_date`` onwards.

    Several rows per (style, vendor) form a price history; the one in force on
    a given day is the latest with ``effective_date <= day``.
    """

    __tablename__ = "rate"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    style_id: Mapped[int] = mapped_column(Integer, ForeignKey("style.id"), index=True)
    vendor_id: Mapped[int] = mapped_column(Integer, ForeignKey("vendor.id"), index=True)
    vendor_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    effective_date: Mapped[datetime.date] = mapped_column(Date)

    __table_args__ = (
        Index("ix_rate_style_vendor_effective", "style_id", "vendor_id", "effective_date"),
        CheckConstraint("vendor_rate >= 0", name="ck_rate_vendor_rate_positive"),
    )


class CostEntry(TimestampMixin, Base):
    """Manually booked cost (overhead, logistics, ...), counted once approved."""

    __tablename__ = "cost_entry"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), index=True)
    category: Mapped[str] = mapped_column(String(20))
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    entry_date: Mapped[datetime.date] = mapped_column(Date, index=True)
    status: Mapped[str] = mapped_column(String(20), default="pending")
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "category IN ('overhead', 'logistics', 'quality', 'other')",
            name="ck_cost_entry_valid_category",
        ),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_cost_entry_valid_status",
        ),
    )


class InventoryTransaction(TimestampMixin, Base):
    """Stock movement of materials; ``consumption`` rows carry material cost."""

    __tablename__ = "inventory_transaction"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), index=True)
    item_code: Mapped[str] = mapped_column(String(50))
    transaction_type: Mapped[str] = mapped_column(String(20))
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3))
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    total_cost: Mapped[Decimal] = mapped_column(Numeric(14, 2))
    transaction_date: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), index=True
    )

    __table_args__ = (
        CheckConstraint(
            "transaction_type IN ('purchase', 'issue', 'return', 'adjustment', 'consumption')",
            name="ck_inventory_transaction_valid_type",
        ),
    )


# ============================================================================
# ROLLUP
# ============================================================================


class DailyAggregate(TimestampMixin, Base):
    """Per-tenant, per-style, per-day rollup consumed by dashboards.

    CRITICAL: Grain is (tenant_id, style_id, date). Written only by the daily
    refresher through an upsert on that key; re-running a day overwrites.

    Attributes:
        tenant_id: Owning tenant.
        style_id: Style (FK).
        vendor_id: Style's vendor, copied for vendor-scoped reads.
        date: Calendar day.
        cutting_received: Pieces cut that day.
        issued_pcs: Pieces issued to tailors that day.
        in_production_pcs: Issued minus returned, over that day's active jobs.
        in_production_orders: Count of that day's active jobs.
        tailor_expense: Sum of issued pieces times job rate.
        shipped_pcs: Pieces shipped that day.
        revenue: Shipped pieces priced at the vendor rate in force that day.
    """

    __tablename__ = "analytics_daily"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64))
    style_id: Mapped[int] = mapped_column(Integer, ForeignKey("style.id"), index=True)
    vendor_id: Mapped[int | None] = mapped_column(Integer, index=True, nullable=True)
    date: Mapped[datetime.date] = mapped_column(Date)
    cutting_received: Mapped[int] = mapped_column(Integer, default=0)
    issued_pcs: Mapped[int] = mapped_column(Integer, default=0)
    in_production_pcs: Mapped[int] = mapped_column(Integer, default=0)
    in_production_orders: Mapped[int] = mapped_column(Integer, default=0)
    tailor_expense: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    shipped_pcs: Mapped[int] = mapped_column(Integer, default=0)
    revenue: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))

    __table_args__ = (
        # GRAIN PROTECTION: natural key for idempotent upserts
        UniqueConstraint("tenant_id", "style_id", "date", name="uq_analytics_daily_grain"),
        Index("ix_analytics_daily_tenant_date", "tenant_id", "date"),
    )
