"""API routes for change approvals."""

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.exceptions import ConflictError, DatabaseError
from app.core.identity import Principal, Role, require_roles
from app.core.logging import get_logger
from app.features.approvals.models import ApprovalStatus
from app.features.approvals.schemas import (
    ApprovalCreate,
    ApprovalDecide,
    ApprovalListResponse,
    ApprovalResponse,
)
from app.features.approvals.service import ApprovalService

logger = get_logger(__name__)

router = APIRouter(prefix="/approvals", tags=["approvals"])

require_requester = require_roles(Role.ADMIN, Role.MANAGER, Role.VENDOR)
require_approver = require_roles(Role.ADMIN, Role.MANAGER)


def _write_error(operation: str, e: SQLAlchemyError) -> ConflictError | DatabaseError:
    logger.error(
        "approvals.write_failed",
        operation=operation,
        error=str(e),
        error_type=type(e).__name__,
        exc_info=True,
    )
    if isinstance(e, IntegrityError):
        return ConflictError(
            message=f"Failed to {operation}: change violates a data constraint",
            details={"error": str(e.orig)},
        )
    return DatabaseError(message=f"Failed to {operation}", details={"error": str(e)})


@router.get(
    "",
    response_model=ApprovalListResponse,
    summary="List change requests",
    description="""
List change requests in the caller's tenant, newest first.

- Admins and managers see every request.
- Vendors see only the requests they raised.
- `status`: pending, approved or rejected.
""",
)
async def list_approvals(
    status_filter: ApprovalStatus | None = Query(
        None, alias="status", description="Filter by status"
    ),
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    page_size: int = Query(20, ge=1, le=100, description="Requests per page (max 100)"),
    principal: Principal = Depends(require_requester),
    db: AsyncSession = Depends(get_db),
) -> ApprovalListResponse:
    service = ApprovalService(principal)
    try:
        return await service.list_approvals(
            db, status=status_filter, page=page, page_size=page_size
        )
    except SQLAlchemyError as e:
        raise _write_error("list approvals", e) from e


@router.post(
    "",
    response_model=ApprovalResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request a change",
    description="""
Request an update or soft delete of a vendor, style, tailor, rate, shipment,
fabric cutting or tailor job. Nothing changes until the request is approved.

Example:
```json
{
  "target": "rate",
  "target_id": 12,
  "action": "update",
  "payload": {"vendor_rate": "48.50", "effective_date": "2024-04-01"}
}
```

The payload is validated against the target's fields when the request is
made; unknown fields are rejected.
""",
)
async def create_approval(
    request: ApprovalCreate,
    principal: Principal = Depends(require_requester),
    db: AsyncSession = Depends(get_db),
) -> ApprovalResponse:
    service = ApprovalService(principal)
    try:
        return await service.create_request(db, request)
    except SQLAlchemyError as e:
        raise _write_error("create approval", e) from e


@router.put(
    "/{approval_id}",
    response_model=ApprovalResponse,
    summary="Approve or reject a change request",
    description="""
Decide a pending request. Approving applies the change in the same
transaction as the status update.

- 409 if the request was already decided.
- 403 if the caller's role may not approve changes to the target entity
  (vendor and rate changes need an admin).
""",
)
async def decide_approval(
    decision: ApprovalDecide,
    approval_id: int = Path(..., ge=1, description="Approval id"),
    principal: Principal = Depends(require_approver),
    db: AsyncSession = Depends(get_db),
) -> ApprovalResponse:
    service = ApprovalService(principal)
    try:
        return await service.decide(db, approval_id, decision)
    except SQLAlchemyError as e:
        raise _write_error("decide approval", e) from e
