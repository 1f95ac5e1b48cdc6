"""create_portal_tables

Revision ID: 3f1a9c2b7d10
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3f1a9c2b7d10"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    """created_at / updated_at columns (from TimestampMixin)."""
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def _is_active() -> sa.Column:
    """is_active column (from SoftDeleteMixin)."""
    return sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False)


def upgrade() -> None:
    """Apply migration - create master data, operational, rollup and approval tables."""
    # Master data
    op.create_table(
        "vendor",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("code", sa.String(length=30), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("contact_phone", sa.String(length=30), nullable=True),
        *_timestamps(),
        _is_active(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "code", name="uq_vendor_tenant_code"),
    )
    op.create_index("ix_vendor_tenant_id", "vendor", ["tenant_id"])

    op.create_table(
        "tailor",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("phone", sa.String(length=30), nullable=True),
        sa.Column("daily_capacity", sa.Integer(), nullable=True),
        *_timestamps(),
        _is_active(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_tailor_tenant_id", "tailor", ["tenant_id"])

    op.create_table(
        "style",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("vendor_id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("fabric_type", sa.String(length=100), nullable=True),
        *_timestamps(),
        _is_active(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["vendor_id"], ["vendor.id"]),
        sa.UniqueConstraint("tenant_id", "code", name="uq_style_tenant_code"),
    )
    op.create_index("ix_style_tenant_id", "style", ["tenant_id"])
    op.create_index("ix_style_vendor_id", "style", ["vendor_id"])

    # Raw operational records
    op.create_table(
        "fabric_cutting",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("style_id", sa.Integer(), nullable=False),
        sa.Column("vendor_id", sa.Integer(), nullable=False),
        sa.Column("total_qty", sa.Integer(), nullable=False),
        sa.Column("fabric_received_meters", sa.Numeric(10, 2), nullable=True),
        sa.Column("cutting_in_house", sa.Boolean(), nullable=False),
        sa.Column("notes", sa.String(length=500), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["style_id"], ["style.id"]),
        sa.ForeignKeyConstraint(["vendor_id"], ["vendor.id"]),
        sa.CheckConstraint("total_qty >= 0", name="ck_fabric_cutting_qty_positive"),
    )
    op.create_index("ix_fabric_cutting_tenant_id", "fabric_cutting", ["tenant_id"])
    op.create_index("ix_fabric_cutting_style_id", "fabric_cutting", ["style_id"])
    op.create_index("ix_fabric_cutting_vendor_id", "fabric_cutting", ["vendor_id"])
    op.create_index(
        "ix_fabric_cutting_tenant_created", "fabric_cutting", ["tenant_id", "created_at"]
    )

    op.create_table(
        "tailor_job",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("style_id", sa.Integer(), nullable=False),
        sa.Column("tailor_id", sa.Integer(), nullable=False),
        sa.Column("fabric_cutting_id", sa.Integer(), nullable=True),
        sa.Column("issued_pcs", sa.Integer(), nullable=False),
        sa.Column("returned_pcs", sa.Integer(), nullable=False),
        sa.Column("rejected_pcs", sa.Integer(), nullable=False),
        sa.Column("rate", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("issue_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_date", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["style_id"], ["style.id"]),
        sa.ForeignKeyConstraint(["tailor_id"], ["tailor.id"]),
        sa.ForeignKeyConstraint(["fabric_cutting_id"], ["fabric_cutting.id"]),
        sa.CheckConstraint(
            "status IN ('pending', 'in-progress', 'completed', 'ready-to-ship', 'shipped')",
            name="ck_tailor_job_valid_status",
        ),
        sa.CheckConstraint("issued_pcs >= 0", name="ck_tailor_job_issued_positive"),
        sa.CheckConstraint(
            "returned_pcs >= 0 AND returned_pcs <= issued_pcs",
            name="ck_tailor_job_returned_range",
        ),
        sa.CheckConstraint("rate >= 0", name="ck_tailor_job_rate_positive"),
    )
    op.create_index("ix_tailor_job_style_id", "tailor_job", ["style_id"])
    op.create_index("ix_tailor_job_tailor_id", "tailor_job", ["tailor_id"])
    op.create_index("ix_tailor_job_issue_date", "tailor_job", ["issue_date"])
    op.create_index("ix_tailor_job_tailor_status", "tailor_job", ["tailor_id", "status"])

    op.create_table(
        "shipment",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("style_id", sa.Integer(), nullable=False),
        sa.Column("vendor_id", sa.Integer(), nullable=False),
        sa.Column("pcs_shipped", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("challan_no", sa.String(length=50), nullable=False),
        sa.Column("notes", sa.String(length=500), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["style_id"], ["style.id"]),
        sa.ForeignKeyConstraint(["vendor_id"], ["vendor.id"]),
        sa.CheckConstraint("pcs_shipped >= 0", name="ck_shipment_pcs_positive"),
    )
    op.create_index("ix_shipment_style_id", "shipment", ["style_id"])
    op.create_index("ix_shipment_vendor_id", "shipment", ["vendor_id"])
    op.create_index("ix_shipment_date", "shipment", ["date"])

    op.create_table(
        "rate",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("style_id", sa.Integer(), nullable=False),
        sa.Column("vendor_id", sa.Integer(), nullable=False),
        sa.Column("vendor_rate", sa.Numeric(10, 2), nullable=False),
        sa.Column("effective_date", sa.Date(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["style_id"], ["style.id"]),
        sa.ForeignKeyConstraint(["vendor_id"], ["vendor.id"]),
        sa.CheckConstraint("vendor_rate >= 0", name="ck_rate_vendor_rate_positive"),
    )
    op.create_index("ix_rate_style_id", "rate", ["style_id"])
    op.create_index("ix_rate_vendor_id", "rate", ["vendor_id"])
    op.create_index(
        "ix_rate_style_vendor_effective", "rate", ["style_id", "vendor_id", "effective_date"]
    )

    op.create_table(
        "cost_entry",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("category", sa.String(length=20), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("entry_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "category IN ('overhead', 'logistics', 'quality', 'other')",
            name="ck_cost_entry_valid_category",
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_cost_entry_valid_status",
        ),
    )
    op.create_index("ix_cost_entry_tenant_id", "cost_entry", ["tenant_id"])
    op.create_index("ix_cost_entry_entry_date", "cost_entry", ["entry_date"])

    op.create_table(
        "inventory_transaction",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("item_code", sa.String(length=50), nullable=False),
        sa.Column("transaction_type", sa.String(length=20), nullable=False),
        sa.Column("quantity", sa.Numeric(12, 3), nullable=False),
        sa.Column("unit_cost", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_cost", sa.Numeric(14, 2), nullable=False),
        sa.Column("transaction_date", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "transaction_type IN ('purchase', 'issue', 'return', 'adjustment', 'consumption')",
            name="ck_inventory_transaction_valid_type",
        ),
    )
    op.create_index("ix_inventory_transaction_tenant_id", "inventory_transaction", ["tenant_id"])
    op.create_index(
        "ix_inventory_transaction_transaction_date", "inventory_transaction", ["transaction_date"]
    )

    # Rollup
    op.create_table(
        "analytics_daily",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("style_id", sa.Integer(), nullable=False),
        sa.Column("vendor_id", sa.Integer(), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("cutting_received", sa.Integer(), nullable=False),
        sa.Column("issued_pcs", sa.Integer(), nullable=False),
        sa.Column("in_production_pcs", sa.Integer(), nullable=False),
        sa.Column("in_production_orders", sa.Integer(), nullable=False),
        sa.Column("tailor_expense", sa.Numeric(14, 2), nullable=False),
        sa.Column("shipped_pcs", sa.Integer(), nullable=False),
        sa.Column("revenue", sa.Numeric(14, 2), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["style_id"], ["style.id"]),
        # GRAIN PROTECTION: natural key for idempotent upserts
        sa.UniqueConstraint("tenant_id", "style_id", "date", name="uq_analytics_daily_grain"),
    )
    op.create_index("ix_analytics_daily_style_id", "analytics_daily", ["style_id"])
    op.create_index("ix_analytics_daily_vendor_id", "analytics_daily", ["vendor_id"])
    op.create_index("ix_analytics_daily_tenant_date", "analytics_daily", ["tenant_id", "date"])

    # Approvals
    op.create_table(
        "approval",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("target", sa.String(length=30), nullable=False),
        sa.Column("target_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(length=20), nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("requested_by", sa.String(length=64), nullable=False),
        sa.Column("requested_role", sa.String(length=20), nullable=False),
        sa.Column("decided_by", sa.String(length=64), nullable=True),
        sa.Column("remarks", sa.String(length=1000), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_approval_valid_status",
        ),
        sa.CheckConstraint(
            "action IN ('update', 'soft_delete')",
            name="ck_approval_valid_action",
        ),
        sa.CheckConstraint(
            "target IN ('vendor', 'style', 'tailor', 'rate', 'shipment', "
            "'fabric_cutting', 'tailor_job')",
            name="ck_approval_valid_target",
        ),
    )
    op.create_index("ix_approval_tenant_id", "approval", ["tenant_id"])
    op.create_index("ix_approval_status", "approval", ["status"])
    op.create_index("ix_approval_tenant_status", "approval", ["tenant_id", "status"])
    op.create_index("ix_approval_target", "approval", ["target", "target_id"])


def downgrade() -> None:
    """Revert migration - drop all portal tables."""
    op.drop_table("approval")
    op.drop_table("analytics_daily")
    op.drop_table("inventory_transaction")
    op.drop_table("cost_entry")
    op.drop_table("rate")
    op.drop_table("shipment")
    op.drop_table("tailor_job")
    op.drop_table("fabric_cutting")
    op.drop_table("style")
    op.drop_table("tailor")
    op.drop_table("vendor")
