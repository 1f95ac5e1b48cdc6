"""Approval ORM model for change requests awaiting an approver.

A request names one of a closed set of target entities, the action to take
on it and, for updates, the validated field values to apply. Decisions are
one-way: a request leaves PENDING exactly once.

CRITICAL: Uses PostgreSQL JSONB for the change payload.
"""

from __future__ import annotations

import datetime
from enum import Enum
from typing import Any

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.shared.models import TimestampMixin


class ApprovalTarget(str, Enum):
    """Entities a change request may target."""

    VENDOR = "vendor"
    STYLE = "style"
    TAILOR = "tailor"
    RATE = "rate"
    SHIPMENT = "shipment"
    FABRIC_CUTTING = "fabric_cutting"
    TAILOR_JOB = "tailor_job"


class ApprovalAction(str, Enum):
    """What to do with the target once approved."""

    UPDATE = "update"
    SOFT_DELETE = "soft_delete"


class ApprovalStatus(str, Enum):
    """Approval lifecycle states.

    State transitions:
    - PENDING -> APPROVED | REJECTED
    """

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


VALID_APPROVAL_TRANSITIONS: dict[ApprovalStatus, set[ApprovalStatus]] = {
    ApprovalStatus.PENDING: {ApprovalStatus.APPROVED, ApprovalStatus.REJECTED},
    ApprovalStatus.APPROVED: set(),  # Terminal state
    ApprovalStatus.REJECTED: set(),  # Terminal state
}


class Approval(TimestampMixin, Base):
    """Pending change to a master-data or operational record.

    Attributes:
        id: Primary key.
        tenant_id: Tenant of the requester and of the target row.
        target: ApprovalTarget value.
        target_id: Primary key of the target row.
        action: ApprovalAction value.
        payload: Validated field values for updates (empty for soft deletes).
        status: ApprovalStatus value.
        requested_by: User id of the requester.
        requested_role: Role of the requester at request time.
        decided_by: User id of the approver or rejecter.
        remarks: Free-text note from the decider.
        decided_at: When the request was decided.
    """

    __tablename__ = "approval"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), index=True)
    target: Mapped[str] = mapped_column(String(30))
    target_id: Mapped[int] = mapped_column(Integer)
    action: Mapped[str] = mapped_column(String(20))
    payload: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    status: Mapped[str] = mapped_column(
        String(20), default=ApprovalStatus.PENDING.value, index=True
    )
    requested_by: Mapped[str] = mapped_column(String(64))
    requested_role: Mapped[str] = mapped_column(String(20))
    decided_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    remarks: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    decided_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_approval_tenant_status", "tenant_id", "status"),
        Index("ix_approval_target", "target", "target_id"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_approval_valid_status",
        ),
        CheckConstraint(
            "action IN ('update', 'soft_delete')",
            name="ck_approval_valid_action",
        ),
        CheckConstraint(
            "target IN ('vendor', 'style', 'tailor', 'rate', 'shipment', "
            "'fabric_cutting', 'tailor_job')",
            name="ck_approval_valid_target",
        ),
    )
