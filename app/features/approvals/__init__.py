"""Approvals module: change requests against a closed set of target entities."""

from app.features.approvals.models import (
    Approval,
    ApprovalAction,
    ApprovalStatus,
    ApprovalTarget,
)
from app.features.approvals.routes import router
from app.features.approvals.schemas import ApprovalCreate, ApprovalDecide, ApprovalResponse
from app.features.approvals.service import TARGET_HANDLERS, ApprovalService

__all__ = [
    "TARGET_HANDLERS",
    "Approval",
    "ApprovalAction",
    "ApprovalCreate",
    "ApprovalDecide",
    "ApprovalResponse",
    "ApprovalService",
    "ApprovalStatus",
    "ApprovalTarget",
    "router",
]
